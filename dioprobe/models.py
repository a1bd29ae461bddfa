"""Pydantic models for dioprobe.

Provides validated configuration models for the probe and its logging.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from dioprobe.utils.network import parse_listen_address

DEFAULT_PROBE_PATH = "/var/run"
DEFAULT_LISTEN = ":9172"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ProbeConfig(BaseModel):
    """Probe target and endpoint configuration."""

    model_config = {"frozen": True}

    path: str = Field(
        default=DEFAULT_PROBE_PATH,
        min_length=1,
        description="Directory to probe with direct I/O",
    )
    listen: str = Field(
        default=DEFAULT_LISTEN,
        description="Address the HTTP endpoint listens on",
    )
    block_size: int | None = Field(
        default=None,
        description="Probe block size in bytes (None = detect from filesystem)",
    )
    file_prefix: str = Field(
        default="file",
        min_length=1,
        description="Prefix for the temporary probe file name",
    )

    @field_validator("listen")
    @classmethod
    def validate_listen(cls, v: str) -> str:
        """Validate that the listen address has a usable port."""
        parse_listen_address(v)
        return v

    @field_validator("block_size")
    @classmethod
    def validate_block_size(cls, v: int | None) -> int | None:
        """Validate block size is a power of two no smaller than a sector."""
        if v is None:
            return v
        if v < 512 or v & (v - 1) != 0:
            msg = f"block_size must be a power of two >= 512, got {v}"
            raise ValueError(msg)
        return v

    @field_validator("file_prefix")
    @classmethod
    def validate_file_prefix(cls, v: str) -> str:
        """Reject prefixes that would escape the target directory."""
        if "/" in v or "\\" in v or v in {".", ".."}:
            msg = f"file_prefix must be a plain file name, got {v!r}"
            raise ValueError(msg)
        return v


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Log level")
    log_file: str | None = Field(None, description="Log file path")
    structured_logging: bool = Field(
        default=False,
        description="Write JSON records to the log file",
    )
    log_correlation_id: bool = Field(
        default=True,
        description="Include correlation IDs",
    )
    rich_console: bool = Field(
        default=True,
        description="Use Rich for console log output",
    )


class Config(BaseModel):
    """Top-level dioprobe configuration."""

    probe: ProbeConfig = Field(default_factory=ProbeConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
