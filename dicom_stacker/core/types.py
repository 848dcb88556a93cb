"""Data model of the assembly pipeline.

Slice -> KeyedSlice -> sorted series -> Volume. Nothing here outlives a
single pipeline run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np


def _readonly(array: np.ndarray) -> np.ndarray:
    array.flags.writeable = False
    return array


def _frozen(array: np.ndarray, dtype=None) -> np.ndarray:
    """Read-only array holding ``array``'s values.

    Writable input is copied so the caller's buffer is left untouched.
    """
    array = np.asarray(array, dtype=dtype)
    if array.flags.writeable:
        array = array.copy()
    return _readonly(array)


@dataclass(frozen=True, eq=False)
class Slice:
    """One decoded 2-D raster with its geometry and header metadata.

    Attributes:
        pixels: uint16 array of shape (rows, columns), read-only
        origin: Physical position of the first pixel (x, y, z)
        spacing: In-plane pixel spacing (x, y)
        metadata: Header values keyed by "gggg|eeee" tag strings
        source: File the slice was decoded from, if any

    """

    pixels: np.ndarray
    origin: tuple[float, float, float]
    spacing: tuple[float, float]
    metadata: dict[str, str] = field(default_factory=dict)
    source: Path | None = None

    def __post_init__(self) -> None:
        if self.pixels.ndim != 2:
            raise ValueError(
                f"Slice pixels must be 2-D, got shape {self.pixels.shape}"
            )
        object.__setattr__(self, "pixels", _frozen(self.pixels, dtype=np.uint16))

    @property
    def size(self) -> tuple[int, int]:
        """In-plane size (columns, rows)."""
        rows, columns = self.pixels.shape
        return (int(columns), int(rows))

    @property
    def label(self) -> str:
        """Name used in log and error messages."""
        return str(self.source) if self.source is not None else "<memory>"


@dataclass(frozen=True)
class KeyedSlice:
    """A slice paired with its ordering key and enumeration position."""

    key: float
    slice: Slice
    position: int


@dataclass(frozen=True, eq=False)
class Volume:
    """Slices stacked along a new axis, in ascending key order.

    The pixel array is laid out (count, rows, columns) like
    ``SimpleITK.GetArrayFromImage``; ``size`` and ``spacing`` use ITK
    (x, y, z) order.
    """

    pixels: np.ndarray
    origin: tuple[float, float, float]
    spacing: tuple[float, float, float]
    keys: tuple[float, ...] = ()
    sources: tuple[Path | None, ...] = ()

    def __post_init__(self) -> None:
        if self.pixels.ndim != 3:
            raise ValueError(
                f"Volume pixels must be 3-D, got shape {self.pixels.shape}"
            )
        object.__setattr__(self, "pixels", _frozen(self.pixels))

    @property
    def size(self) -> tuple[int, int, int]:
        """Volume size (columns, rows, slice count)."""
        count, rows, columns = self.pixels.shape
        return (int(columns), int(rows), int(count))

    @property
    def slice_count(self) -> int:
        return int(self.pixels.shape[0])

    def plane(self, index: int) -> np.ndarray:
        """Return the 2-D plane stored at ``index`` along the stacking axis."""
        return self.pixels[index]
