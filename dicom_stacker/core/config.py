"""Configuration Management - Assembly and Logging Settings.

Settings are read from environment variables prefixed with
``DICOM_STACKER_`` (nested fields use ``__``, e.g.
``DICOM_STACKER_ASSEMBLY__STRICT_KEYS=true``) and from an optional
``.env`` file. Command line flags override them.
"""

import re
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_AXIS_SPACING, DEFAULT_ORDERING_TAG, SeriesSelection

_TAG_PATTERN = re.compile(r"[0-9a-f]{4}\|[0-9a-f]{4}")


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AssemblyConfig(BaseModel):
    """Series assembly behaviour."""

    ordering_tag: str = Field(
        default=DEFAULT_ORDERING_TAG,
        description='Metadata tag ("gggg|eeee") holding the ordering key',
    )
    strict_keys: bool = Field(
        default=False,
        description="Reject ordering keys with trailing non-numeric text",
    )
    series_selection: SeriesSelection = Field(
        default=SeriesSelection.FIRST,
        description="Policy when the directory holds several series",
    )
    max_workers: int = Field(
        default=1, ge=1, le=64, description="Threads used to decode slices"
    )
    axis_spacing: float = Field(
        default=DEFAULT_AXIS_SPACING,
        gt=0.0,
        description="Spacing written along the stacking axis",
    )

    @field_validator("ordering_tag")
    @classmethod
    def normalize_tag(cls, v: str) -> str:
        """Accept "0008,0033", "(0008,0033)" or "0008|0033"."""
        cleaned = v.strip().strip("()").replace(",", "|").replace(" ", "").lower()
        if not _TAG_PATTERN.fullmatch(cleaned):
            raise ValueError(f"Tag must look like gggg|eeee, got {v!r}")
        return cleaned

    @field_validator("series_selection", mode="before")
    @classmethod
    def normalize_selection(cls, v: object) -> object:
        if isinstance(v, str):
            return v.lower()
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: str = Field(default="console", description="Log format: json or console")
    log_file: Path | None = Field(
        default=None, description="Also write log lines to this file"
    )

    @field_validator("log_format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        v = v.lower()
        if v not in {"json", "console"}:
            raise ValueError(f"log_format must be 'json' or 'console', got {v!r}")
        return v


class Settings(BaseSettings):
    """Main application settings.

    Usage:
        from dicom_stacker.core.config import get_settings
        settings = get_settings()
    """

    model_config = SettingsConfigDict(
        env_prefix="DICOM_STACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    assembly: AssemblyConfig = Field(default_factory=AssemblyConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def get_summary(self) -> str:
        """Get configuration summary."""
        return f"""
DICOM-Stacker Configuration
===========================
Assembly:
  - Ordering Tag: {self.assembly.ordering_tag}
  - Strict Keys: {self.assembly.strict_keys}
  - Series Selection: {self.assembly.series_selection.value}
  - Workers: {self.assembly.max_workers}
  - Axis Spacing: {self.assembly.axis_spacing}

Logging:
  - Level: {self.logging.log_level.value}
  - Format: {self.logging.log_format}
  - File: {self.logging.log_file or "-"}
"""


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings(force_reload: bool = False) -> Settings:
    """Get application settings (singleton).

    Args:
        force_reload: Force reload settings from environment

    Returns:
        Settings instance

    """
    global _settings
    if _settings is None or force_reload:
        _settings = Settings()
    return _settings
