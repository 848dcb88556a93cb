"""Ordering key extraction.

Reads the acquisition-time tag of a decoded slice and turns it into a
float used to sort the series. Content Time is a DICOM TM value
(``HHMMSS.FFFFFF``), so sorting the plain number orders the slices in
time within one day.
"""

from __future__ import annotations

import math
import re

from dicom_stacker.utils.logger import get_logger

from .constants import DEFAULT_ORDERING_TAG
from .exceptions import MalformedTagError, MissingTagError
from .types import KeyedSlice, Slice

logger = get_logger(__name__)

# Decimal floating point literal, as accepted by C strtod (no hex, no inf/nan)
_NUMBER = r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"
_LEADING_NUMBER = re.compile(r"\s*(" + _NUMBER + ")")
_WHOLE_NUMBER = re.compile(r"\s*(" + _NUMBER + r")\s*")


def parse_key(value: str, strict: bool = False) -> float | None:
    """Parse an ordering key from a tag value.

    Permissive mode keeps the longest leading numeric prefix and ignores
    whatever follows it ("120000.5abc" -> 120000.5). Strict mode
    requires the whole value to be a number.

    Args:
        value: Raw tag value
        strict: Reject values with trailing non-numeric text

    Returns:
        Parsed key, or None when no finite number can be read

    """
    pattern = _WHOLE_NUMBER.fullmatch if strict else _LEADING_NUMBER.match
    match = pattern(value)
    if match is None:
        return None
    key = float(match.group(1))
    if not math.isfinite(key):
        return None
    return key


class OrderingKeyExtractor:
    """Extract a numeric ordering key from a slice's metadata."""

    def __init__(self, tag: str = DEFAULT_ORDERING_TAG, strict: bool = False):
        self.tag = tag
        self.strict = strict

    def extract_key(self, slice_: Slice) -> float:
        """Return the ordering key of ``slice_``.

        Raises:
            MissingTagError: If the tag is absent or empty
            MalformedTagError: If the tag value is not a number

        """
        raw = slice_.metadata.get(self.tag)
        if raw is None or not str(raw).strip():
            raise MissingTagError(
                f"Tag {self.tag} not found in the DICOM header of {slice_.label}",
                error_code="TAG_MISSING",
                context={"file_path": slice_.label, "tag": self.tag},
            )

        key = parse_key(str(raw), strict=self.strict)
        if key is None:
            raise MalformedTagError(
                f"Tag {self.tag} of {slice_.label} is not numeric: {raw!r}",
                error_code="TAG_MALFORMED",
                context={"file_path": slice_.label, "tag": self.tag, "value": raw},
            )

        logger.debug("ordering_key", file=slice_.label, tag=self.tag, key=key)
        return key

    def keyed(self, slice_: Slice, position: int) -> KeyedSlice:
        """Pair ``slice_`` with its key and enumeration position."""
        return KeyedSlice(key=self.extract_key(slice_), slice=slice_, position=position)
