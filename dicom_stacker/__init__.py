"""
DICOM Stacker - Assemble a DICOM series into one time-ordered volume.

Slices are ordered by their Content Time (0008,0033), checked for a
consistent geometry and stacked into a single volumetric image.
"""

__version__ = "1.0.0"
__license__ = "MIT"

from dicom_stacker.core.assembler import SeriesAssembler, assemble_series
from dicom_stacker.core.ordering import OrderingKeyExtractor
from dicom_stacker.core.sink import VolumeSink
from dicom_stacker.core.source import SliceSource
from dicom_stacker.core.types import KeyedSlice, Slice, Volume

__all__ = [
    "__version__",
    "__license__",
    "KeyedSlice",
    "OrderingKeyExtractor",
    "SeriesAssembler",
    "Slice",
    "SliceSource",
    "Volume",
    "VolumeSink",
    "assemble_series",
]
