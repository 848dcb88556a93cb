"""Series assembly core -- slice source, ordering, assembly and volume sink.

Exports:
- SliceSource: discover one series in a folder and decode its slices
- OrderingKeyExtractor: read the acquisition-time ordering key of a slice
- SeriesAssembler: decode, order, validate and stack a series
- VolumeSink: write an assembled volume with SimpleITK
"""

from .assembler import SeriesAssembler, assemble_series
from .ordering import OrderingKeyExtractor
from .sink import VolumeSink
from .source import SliceSource
from .types import KeyedSlice, Slice, Volume

__all__ = [
    "KeyedSlice",
    "OrderingKeyExtractor",
    "SeriesAssembler",
    "Slice",
    "SliceSource",
    "Volume",
    "VolumeSink",
    "assemble_series",
]
