"""Slice source: series discovery and per-file slice decoding.

Files directly inside a directory are probed with pydicom and grouped
by SeriesInstanceUID. One series is selected and each of its files can
then be decoded into an immutable :class:`Slice`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np
import pydicom
from pydicom.dataset import Dataset
from pydicom.errors import InvalidDicomError
from pydicom.multival import MultiValue
from pydicom.tag import Tag

from dicom_stacker.utils.logger import get_logger

from .constants import DEFAULT_ORIGIN, DEFAULT_PIXEL_SPACING, SeriesSelection
from .exceptions import AmbiguousSeriesError, DecodeError, NotFoundError
from .types import Slice

logger = get_logger(__name__)

PIXEL_DATA_TAG = Tag(0x7FE0, 0x0010)

# Value representations that never make sense as text metadata
_BINARY_VRS = {"OB", "OD", "OF", "OL", "OV", "OW", "UN", "SQ"}


def tag_key(tag: Any) -> str:
    """Format a pydicom tag as an ITK style "gggg|eeee" key."""
    tag = Tag(tag)
    return f"{tag.group:04x}|{tag.element:04x}"


def _format_value(value: Any) -> str:
    if isinstance(value, (MultiValue, list, tuple)):
        return "\\".join(str(v) for v in value)
    return str(value)


def extract_metadata(dataset: Dataset) -> dict[str, str]:
    """Flatten the top level text elements of ``dataset`` into a dict.

    Sequences, bulk binary elements and pixel data are left out.
    """
    metadata: dict[str, str] = {}
    for elem in dataset:
        if elem.tag == PIXEL_DATA_TAG or elem.VR in _BINARY_VRS:
            continue
        if elem.value is None or isinstance(elem.value, bytes):
            continue
        metadata[tag_key(elem.tag)] = _format_value(elem.value)
    return metadata


def _float_tuple(value: Any, length: int, default: tuple[float, ...]) -> tuple:
    if value is None:
        return default
    try:
        numbers = tuple(float(v) for v in value)
    except (TypeError, ValueError):
        return default
    if len(numbers) != length:
        return default
    return numbers


class SliceSource:
    """Enumerate one DICOM series in a directory and decode its slices.

    Attributes:
        selection: Policy applied when the directory holds several series

    """

    def __init__(self, selection: SeriesSelection = SeriesSelection.FIRST):
        self.selection = SeriesSelection(selection)

    def discover(self, directory: str | Path) -> dict[str, list[Path]]:
        """Group the DICOM files directly inside ``directory`` by series.

        Files are enumerated in name order; series keep the order in which
        their first file was seen. Non-DICOM files and DICOM objects
        without an image (no Rows element) are skipped.

        Args:
            directory: Folder holding the slices

        Returns:
            Mapping of SeriesInstanceUID to file paths

        Raises:
            NotFoundError: If ``directory`` does not exist or is not a directory
            DecodeError: If a DICOM file's header cannot be read

        """
        directory = Path(directory)
        if not directory.is_dir():
            raise NotFoundError(
                f"Input directory not found: {directory}",
                error_code="DIRECTORY_NOT_FOUND",
                context={"directory": str(directory)},
            )

        series: dict[str, list[Path]] = {}
        for path in sorted(p for p in directory.iterdir() if p.is_file()):
            uid = self._probe_series_uid(path)
            if uid is None:
                continue
            series.setdefault(uid, []).append(path)

        logger.debug(
            "series_discovered",
            directory=str(directory),
            series={uid: len(files) for uid, files in series.items()},
        )
        return series

    def _probe_series_uid(self, path: Path) -> str | None:
        try:
            header = pydicom.dcmread(
                path,
                stop_before_pixels=True,
                specific_tags=["SeriesInstanceUID", "Rows"],
            )
        except InvalidDicomError:
            logger.debug("skipping_non_dicom_file", file=str(path))
            return None
        except Exception as e:
            raise DecodeError(
                f"Failed to read DICOM header of {path}: {e}",
                error_code="HEADER_UNREADABLE",
                context={"file_path": str(path)},
            ) from e
        # Reports, DICOMDIR and other objects without an image never join a series
        if "Rows" not in header:
            logger.debug("skipping_non_image_file", file=str(path))
            return None
        return str(header.get("SeriesInstanceUID", "") or "")

    def list_series(self, directory: str | Path) -> list[Path]:
        """Return the files of the one series found in ``directory``.

        Raises:
            NotFoundError: If no series is found
            AmbiguousSeriesError: If several series are found and the
                selection policy is ``error``

        """
        series = self.discover(directory)
        if not series:
            raise NotFoundError(
                f"No DICOM series found in {directory}",
                error_code="SERIES_NOT_FOUND",
                context={"directory": str(directory)},
            )

        uids = list(series)
        if len(uids) > 1:
            if self.selection is SeriesSelection.ERROR:
                raise AmbiguousSeriesError(
                    f"{len(uids)} series found in {directory}; expected exactly one",
                    error_code="MULTIPLE_SERIES",
                    context={"directory": str(directory), "series_uids": uids},
                )
            logger.warning(
                "multiple_series_found",
                directory=str(directory),
                selected=uids[0],
                skipped=uids[1:],
            )

        files = series[uids[0]]
        logger.info("series_selected", series_uid=uids[0], slices=len(files))
        return files

    def decode(self, path: str | Path) -> Slice:
        """Decode one file into a :class:`Slice`.

        Raises:
            DecodeError: If the file is unreadable, not DICOM, or does not
                hold exactly one 2-D frame of pixel data

        """
        path = Path(path)
        context = {"file_path": str(path)}
        try:
            dataset = pydicom.dcmread(path)
        except Exception as e:
            raise DecodeError(
                f"Failed to read DICOM file {path}: {e}",
                error_code="DECODE_FAILED",
                context=context,
            ) from e

        if "PixelData" not in dataset:
            raise DecodeError(
                f"No pixel data in {path}",
                error_code="NO_PIXEL_DATA",
                context=context,
            )

        try:
            pixels = dataset.pixel_array
        except Exception as e:
            raise DecodeError(
                f"Failed to decode pixel data of {path}: {e}",
                error_code="PIXEL_DECODE_FAILED",
                context=context,
            ) from e

        if pixels.ndim != 2:
            raise DecodeError(
                f"Expected a single 2-D frame in {path}, got shape {pixels.shape}",
                error_code="NOT_A_SLICE",
                context={**context, "shape": pixels.shape},
            )

        origin = _float_tuple(
            dataset.get("ImagePositionPatient"), 3, DEFAULT_ORIGIN
        )
        row_spacing, column_spacing = _float_tuple(
            dataset.get("PixelSpacing"), 2, DEFAULT_PIXEL_SPACING
        )

        return Slice(
            pixels=pixels.astype(np.uint16),
            origin=origin,
            spacing=(column_spacing, row_spacing),
            metadata=extract_metadata(dataset),
            source=path,
        )
