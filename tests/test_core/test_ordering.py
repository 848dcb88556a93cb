"""Tests for ordering key parsing and extraction."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from dicom_stacker.core.exceptions import MalformedTagError, MissingTagError
from dicom_stacker.core.ordering import OrderingKeyExtractor, parse_key


class TestParseKeyPermissive:
    """Default parsing keeps the leading numeric prefix."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("120000.000", 120000.0),
            ("  093015.25", 93015.25),
            ("30.0", 30.0),
            ("-1.5", -1.5),
            ("+2", 2.0),
            (".5", 0.5),
            ("1e3", 1000.0),
            ("120000.5abc", 120000.5),
            ("42 seconds", 42.0),
            ("7\\8", 7.0),
        ],
    )
    def test_parses_prefix(self, value, expected):
        """Test numeric prefixes are accepted."""
        assert parse_key(value) == expected

    @pytest.mark.parametrize("value", ["", "abc", "  ", "-", ".", "e5", "nan", "inf"])
    def test_no_number(self, value):
        """Test values without a leading number are rejected."""
        assert parse_key(value) is None

    def test_overflow_is_rejected(self):
        """Test values that overflow to infinity break ordering."""
        assert parse_key("1e999") is None


class TestParseKeyStrict:
    """Strict parsing requires the whole value to be a number."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("120000.000", 120000.0), (" 12.5 ", 12.5), ("-3", -3.0)],
    )
    def test_whole_numbers(self, value, expected):
        """Test clean numbers parse in strict mode."""
        assert parse_key(value, strict=True) == expected

    @pytest.mark.parametrize("value", ["120000.5abc", "42 seconds", "7\\8", "1_000"])
    def test_partial_matches_rejected(self, value):
        """Test trailing text is an error in strict mode."""
        assert parse_key(value, strict=True) is None


@given(st.floats(allow_nan=False, allow_infinity=False))
def test_repr_of_any_finite_float_parses_back(value):
    """Test Python's float repr always parses to the same key."""
    assert parse_key(repr(value), strict=True) == value


@given(
    st.floats(allow_nan=False, allow_infinity=False),
    st.text(alphabet="abcxyz :/", min_size=1),
)
def test_permissive_ignores_trailing_text(value, suffix):
    """Test any letter suffix after a number is ignored by default."""
    assert parse_key(repr(value) + suffix) == value


class TestOrderingKeyExtractor:
    """Test OrderingKeyExtractor."""

    def test_extracts_content_time(self, slice_factory):
        """Test the default tag is Content Time."""
        extractor = OrderingKeyExtractor()
        assert extractor.tag == "0008|0033"
        assert extractor.extract_key(slice_factory(key="101530.5")) == 101530.5

    def test_missing_tag(self, slice_factory):
        """Test absent tag raises MissingTagError naming the file and tag."""
        extractor = OrderingKeyExtractor()
        with pytest.raises(MissingTagError) as exc_info:
            extractor.extract_key(slice_factory(key=None, name="s1.dcm"))

        assert exc_info.value.context["tag"] == "0008|0033"
        assert exc_info.value.context["file_path"] == "s1.dcm"
        assert "0008|0033" in str(exc_info.value)

    def test_empty_tag_counts_as_missing(self, slice_factory):
        """Test an empty value is treated as absent."""
        with pytest.raises(MissingTagError):
            OrderingKeyExtractor().extract_key(slice_factory(key="  "))

    def test_malformed_tag(self, slice_factory):
        """Test non-numeric values raise MalformedTagError."""
        with pytest.raises(MalformedTagError) as exc_info:
            OrderingKeyExtractor().extract_key(slice_factory(key="noon"))

        assert exc_info.value.context["value"] == "noon"

    def test_strict_rejects_suffix(self, slice_factory):
        """Test strict extraction refuses partial numbers."""
        slice_ = slice_factory(key="120000.5abc")

        assert OrderingKeyExtractor().extract_key(slice_) == 120000.5
        with pytest.raises(MalformedTagError):
            OrderingKeyExtractor(strict=True).extract_key(slice_)

    def test_custom_tag(self, slice_factory):
        """Test another tag can be used as ordering key."""
        slice_ = slice_factory(key=None)
        slice_.metadata["0020|0013"] = "7"

        assert OrderingKeyExtractor(tag="0020|0013").extract_key(slice_) == 7.0

    def test_keyed_keeps_position(self, slice_factory):
        """Test keyed() pairs the slice with key and position."""
        slice_ = slice_factory(key="5")
        keyed = OrderingKeyExtractor().keyed(slice_, 4)

        assert keyed.key == 5.0
        assert keyed.slice is slice_
        assert keyed.position == 4
