"""Shared constants for DICOM series assembly."""

from __future__ import annotations

from enum import Enum
from typing import Final

# =============================================================================
# Ordering Key
# =============================================================================

#: Content Time (0008,0033), one value per acquisition in Siemens MRA series
CONTENT_TIME_TAG: Final[str] = "0008|0033"

#: Tag used to order slices unless configured otherwise
DEFAULT_ORDERING_TAG: Final[str] = CONTENT_TIME_TAG

# =============================================================================
# Geometry
# =============================================================================

#: Spacing written along the stacking axis (not derived from acquisition times)
DEFAULT_AXIS_SPACING: Final[float] = 1.0

#: Fallbacks when a slice carries no ImagePositionPatient / PixelSpacing
DEFAULT_ORIGIN: Final[tuple[float, float, float]] = (0.0, 0.0, 0.0)
DEFAULT_PIXEL_SPACING: Final[tuple[float, float]] = (1.0, 1.0)

# =============================================================================
# Output
# =============================================================================

#: Prefix of the sibling file written before the atomic rename
PARTIAL_FILE_PREFIX: Final[str] = ".partial-"


class SeriesSelection(str, Enum):
    """What to do when a directory holds more than one series.

    - FIRST: use the first discovered series and warn about the rest
    - ERROR: refuse to guess and raise AmbiguousSeriesError
    """

    FIRST = "first"
    ERROR = "error"
