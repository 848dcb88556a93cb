"""Series assembly: decode, order, validate and stack DICOM slices.

PIPELINE:
    1. list the files of one series (SliceSource.list_series)
    2. decode each file and extract its ordering key
    3. stable sort by key, ascending
    4. check that every slice matches the first one's size and spacing
    5. stack the planes into one (count, rows, columns) array
    6. hand the volume to the sink (run only)

Any failure aborts the whole run; nothing is written unless every
slice decoded, carried a valid key and matched the reference geometry.

USAGE:
    assembler = SeriesAssembler()
    volume = assembler.run("/data/mra/patient01", "/data/out/mra.mha")
"""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import numpy as np

from dicom_stacker.utils.logger import get_logger

from .config import AssemblyConfig, Settings, get_settings
from .exceptions import GeometryMismatchError, NotFoundError
from .ordering import OrderingKeyExtractor
from .sink import VolumeSink
from .source import SliceSource
from .types import KeyedSlice, Volume

logger = get_logger(__name__)


def sort_series(keyed: Sequence[KeyedSlice]) -> list[KeyedSlice]:
    """Sort by key ascending; equal keys keep their enumeration order."""
    return sorted(keyed, key=lambda k: k.key)


def validate_geometry(series: Sequence[KeyedSlice]) -> None:
    """Require every slice to match the first slice's size and spacing exactly.

    Raises:
        GeometryMismatchError: On the first slice that differs

    """
    reference = series[0].slice
    for keyed in series[1:]:
        current = keyed.slice
        if current.size == reference.size and current.spacing == reference.spacing:
            continue
        raise GeometryMismatchError(
            f"Slice {current.label} has size {current.size} and spacing "
            f"{current.spacing}; expected size {reference.size} and spacing "
            f"{reference.spacing} (from {reference.label})",
            error_code="GEOMETRY_MISMATCH",
            context={
                "file_path": current.label,
                "reference_file": reference.label,
                "size": current.size,
                "spacing": current.spacing,
                "expected_size": reference.size,
                "expected_spacing": reference.spacing,
            },
        )


def compose_volume(
    series: Sequence[KeyedSlice], axis_spacing: float = 1.0
) -> Volume:
    """Stack sorted, geometry-checked slices into a :class:`Volume`.

    Plane ``i`` of the result is a copy of ``series[i]``'s pixels; no
    resampling takes place.
    """
    if not series:
        raise NotFoundError("Cannot compose a volume from an empty series")

    reference = series[0].slice
    columns, rows = reference.size
    arena = np.empty((len(series), rows, columns), dtype=np.uint16)
    for index, keyed in enumerate(series):
        arena[index] = keyed.slice.pixels
    arena.flags.writeable = False

    sx, sy = reference.spacing
    return Volume(
        pixels=arena,
        origin=reference.origin,
        spacing=(sx, sy, axis_spacing),
        keys=tuple(k.key for k in series),
        sources=tuple(k.slice.source for k in series),
    )


class SeriesAssembler:
    """Build one ordered volume from an unordered folder of slices.

    Attributes:
        config: Assembly settings (ordering tag, key parsing, workers, ...)
        source: Series discovery and slice decoding
        extractor: Ordering key extraction
        sink: Volume encoding

    """

    def __init__(
        self,
        config: AssemblyConfig | None = None,
        source: SliceSource | None = None,
        extractor: OrderingKeyExtractor | None = None,
        sink: VolumeSink | None = None,
    ):
        self.config = config or get_settings().assembly
        self.source = source or SliceSource(selection=self.config.series_selection)
        self.extractor = extractor or OrderingKeyExtractor(
            tag=self.config.ordering_tag, strict=self.config.strict_keys
        )
        self.sink = sink or VolumeSink()

    def _load(self, path: Path, position: int) -> KeyedSlice:
        logger.debug("decoding_slice", file=str(path), position=position)
        return self.extractor.keyed(self.source.decode(path), position)

    def load_series(self, files: Sequence[Path]) -> list[KeyedSlice]:
        """Decode ``files`` and pair each slice with its ordering key.

        With more than one worker, files are decoded concurrently but
        results (and the first failure) still follow enumeration order.
        """
        positions = range(len(files))
        if self.config.max_workers == 1 or len(files) < 2:
            return [self._load(path, i) for i, path in zip(positions, files)]

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            return list(executor.map(self._load, files, positions))

    def assemble(self, directory: str | Path) -> Volume:
        """Discover, decode, order, validate and stack the series in ``directory``.

        Raises:
            NotFoundError: If no series (or an empty one) is found
            AmbiguousSeriesError: If several series are found under the
                ``error`` selection policy
            DecodeError: If a slice cannot be decoded
            MissingTagError: If a slice lacks the ordering tag
            MalformedTagError: If an ordering tag is not numeric
            GeometryMismatchError: If slices disagree on size or spacing

        """
        files = self.source.list_series(directory)
        if not files:
            raise NotFoundError(
                f"Series in {directory} has no files",
                error_code="EMPTY_SERIES",
                context={"directory": str(directory)},
            )

        series = sort_series(self.load_series(files))
        validate_geometry(series)
        volume = compose_volume(series, axis_spacing=self.config.axis_spacing)

        logger.info(
            "volume_assembled",
            size=volume.size,
            origin=volume.origin,
            spacing=volume.spacing,
            first_key=volume.keys[0],
            last_key=volume.keys[-1],
        )
        return volume

    def run(self, directory: str | Path, output_path: str | Path) -> Volume:
        """Assemble the series in ``directory`` and write it to ``output_path``.

        Raises:
            EncodeError: If the volume cannot be written, in addition to
                everything :meth:`assemble` raises

        """
        volume = self.assemble(directory)
        self.sink.encode(volume, output_path)
        return volume


def assemble_series(
    directory: str | Path,
    output_path: str | Path,
    settings: Settings | None = None,
) -> Volume:
    """Assemble ``directory`` into ``output_path`` using ``settings``."""
    settings = settings or get_settings()
    return SeriesAssembler(config=settings.assembly).run(directory, output_path)
