"""Custom exceptions for DICOM series assembly.

This module defines the exception hierarchy for the series stacker,
providing detailed error information and categorization. Every error
raised by the pipeline is fatal to the run; nothing is retried or
downgraded to a warning.
"""

from typing import Any


class StackerError(Exception):
    """Base exception for series assembly operations.

    Attributes:
        message: Human-readable error description
        error_code: Optional error code for categorization
        context: Additional context information (offending file, tag, ...)

    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}


class NotFoundError(StackerError):
    """Raised when a directory holds no recognisable DICOM series."""

    pass


class AmbiguousSeriesError(StackerError):
    """Raised when several series are found and the policy forbids picking one."""

    pass


class DecodeError(StackerError):
    """Raised when a slice file is unreadable or not a valid 2-D slice."""

    pass


class OrderingKeyError(StackerError):
    """Base class for ordering key extraction failures."""

    pass


class MissingTagError(OrderingKeyError):
    """Raised when the ordering tag is absent from a slice."""

    pass


class MalformedTagError(OrderingKeyError):
    """Raised when the ordering tag cannot be parsed as a number."""

    pass


class GeometryMismatchError(StackerError):
    """Raised when slices disagree on in-plane size or spacing."""

    pass


class EncodeError(StackerError):
    """Raised when the assembled volume cannot be written."""

    pass
