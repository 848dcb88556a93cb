"""
Pytest configuration and shared fixtures for DICOM-Stacker tests.
"""

import tempfile
from collections.abc import Callable, Generator
from pathlib import Path

import numpy as np
import pydicom
import pytest
from pydicom.dataset import FileDataset
from pydicom.uid import (
    BasicTextSRStorage,
    ExplicitVRLittleEndian,
    MRImageStorage,
    generate_uid,
)

from dicom_stacker.core.types import Slice


def make_pixels(value: int, rows: int = 4, columns: int = 4) -> np.ndarray:
    """Distinct, recognisable plane: ``value`` plus the pixel index."""
    return (np.arange(rows * columns, dtype=np.uint16) + value).reshape(rows, columns)


def write_slice(
    path: Path,
    pixels: np.ndarray,
    content_time: str | None = "120000.000",
    series_uid: str = "1.2.826.0.1.3680043.8.498.1",
    pixel_spacing: tuple[float, float] = (0.5, 0.5),
    position: tuple[float, float, float] = (-10.0, -20.0, 5.0),
    with_pixels: bool = True,
) -> Path:
    """Write a minimal single-frame MR slice.

    The ordering tag is stored with an LO value representation so that
    tests can write arbitrary (even non-numeric) text into it.
    """
    file_meta = pydicom.dataset.FileMetaDataset()
    file_meta.MediaStorageSOPClassUID = MRImageStorage
    file_meta.MediaStorageSOPInstanceUID = generate_uid()
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian
    file_meta.ImplementationClassUID = generate_uid()

    dataset = FileDataset(str(path), {}, file_meta=file_meta, preamble=b"\x00" * 128)
    dataset.SOPClassUID = file_meta.MediaStorageSOPClassUID
    dataset.SOPInstanceUID = file_meta.MediaStorageSOPInstanceUID
    dataset.StudyInstanceUID = "1.2.826.0.1.3680043.8.498.100"
    dataset.SeriesInstanceUID = series_uid
    dataset.PatientName = "Test^Patient"
    dataset.PatientID = "TEST123"
    dataset.Modality = "MR"
    dataset.PixelSpacing = list(pixel_spacing)
    dataset.ImagePositionPatient = list(position)

    if content_time is not None:
        dataset.add_new(0x00080033, "LO", content_time)

    rows, columns = pixels.shape[-2:]
    dataset.Rows = rows
    dataset.Columns = columns
    if with_pixels:
        if pixels.ndim == 3:
            dataset.NumberOfFrames = pixels.shape[0]
        dataset.SamplesPerPixel = 1
        dataset.PhotometricInterpretation = "MONOCHROME2"
        dataset.BitsAllocated = 16
        dataset.BitsStored = 16
        dataset.HighBit = 15
        dataset.PixelRepresentation = 0
        dataset.PixelData = pixels.astype(np.uint16).tobytes()

    dataset.save_as(path, enforce_file_format=True)
    return path


def write_report(path: Path, series_uid: str | None = None) -> Path:
    """Write a structured report: a valid DICOM object without an image."""
    file_meta = pydicom.dataset.FileMetaDataset()
    file_meta.MediaStorageSOPClassUID = BasicTextSRStorage
    file_meta.MediaStorageSOPInstanceUID = generate_uid()
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian
    file_meta.ImplementationClassUID = generate_uid()

    dataset = FileDataset(str(path), {}, file_meta=file_meta, preamble=b"\x00" * 128)
    dataset.SOPClassUID = file_meta.MediaStorageSOPClassUID
    dataset.SOPInstanceUID = file_meta.MediaStorageSOPInstanceUID
    dataset.Modality = "SR"
    dataset.ContentTime = "000000"
    if series_uid is not None:
        dataset.SeriesInstanceUID = series_uid

    dataset.save_as(path, enforce_file_format=True)
    return path


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files.

    Yields:
        Path to temporary directory that will be cleaned up after test
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def series_dir(temp_dir: Path) -> Path:
    """Three 4x4 slices whose file order disagrees with their Content Time.

    File a.dcm holds key 30, b.dcm key 10 and c.dcm key 20; the plane
    values are 3000, 1000 and 2000 respectively.
    """
    directory = temp_dir / "series"
    directory.mkdir()
    for name, key in (("a.dcm", 30), ("b.dcm", 10), ("c.dcm", 20)):
        write_slice(directory / name, make_pixels(key * 100), content_time=f"{key}.0")
    return directory


@pytest.fixture
def slice_factory() -> Callable[..., Slice]:
    """Build in-memory slices without touching the file system."""

    def factory(
        key: str | None = "0",
        value: int = 0,
        rows: int = 4,
        columns: int = 4,
        spacing: tuple[float, float] = (0.5, 0.5),
        origin: tuple[float, float, float] = (0.0, 0.0, 0.0),
        name: str | None = None,
    ) -> Slice:
        metadata = {} if key is None else {"0008|0033": key}
        return Slice(
            pixels=make_pixels(value, rows, columns),
            origin=origin,
            spacing=spacing,
            metadata=metadata,
            source=Path(name) if name else None,
        )

    return factory


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Drop the cached settings singleton so each test reads its own env."""
    monkeypatch.setattr("dicom_stacker.core.config._settings", None)


@pytest.fixture
def reset_structlog():
    """Reset structlog configuration after the test.

    This ensures tests don't interfere with each other's logging configuration.
    """
    import logging

    import structlog

    yield

    structlog.reset_defaults()
    for handler in logging.root.handlers[:]:
        if isinstance(handler, logging.FileHandler):
            logging.root.removeHandler(handler)
            handler.close()


@pytest.fixture
def capture_logs(reset_structlog):
    """Capture log output for testing.

    Returns:
        List that will contain captured log entries
    """
    import logging

    import structlog

    captured = []

    def capture_processor(logger, method_name, event_dict):
        """Capture event dict before rendering."""
        captured.append(event_dict.copy())
        return event_dict

    logging.basicConfig(level=logging.DEBUG)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            capture_processor,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    yield captured

    captured.clear()
