"""DICOM Stacker CLI Package."""

from dicom_stacker.cli.main import main

__all__ = ["main"]
