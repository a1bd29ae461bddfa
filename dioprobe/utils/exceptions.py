"""Exception hierarchy for dioprobe.

Every error raised by the probe carries a message and an optional details
mapping so the collector can log the failure with its context.
"""

from __future__ import annotations

from typing import Any


class DioprobeError(Exception):
    """Base exception for all dioprobe errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize dioprobe error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ValidationError(DioprobeError):
    """Data validation errors."""


class ConfigurationError(ValidationError):
    """Configuration validation errors."""


class DiskError(DioprobeError):
    """Disk I/O related errors."""


class AllocationError(DiskError):
    """Aligned buffer could not be allocated or is misaligned."""


class ProbeIOError(DiskError):
    """Underlying I/O failure during a direct read or write."""


class ShortWriteError(ProbeIOError):
    """Fewer bytes were written than requested."""


class ShortReadError(ProbeIOError):
    """Fewer bytes were read than requested."""


class DirectIOUnsupportedError(ProbeIOError):
    """The platform has no way to bypass the page cache."""


class DataIntegrityError(DiskError):
    """Bytes read back differ from the bytes written."""


class ServerError(DioprobeError):
    """HTTP endpoint errors."""


class ServerBindError(ServerError):
    """The HTTP listener could not bind its address."""
