"""Utility modules for dioprobe."""

from __future__ import annotations

from dioprobe.utils.exceptions import (
    AllocationError,
    ConfigurationError,
    DataIntegrityError,
    DioprobeError,
    DirectIOUnsupportedError,
    DiskError,
    ProbeIOError,
    ServerBindError,
    ServerError,
    ShortReadError,
    ShortWriteError,
    ValidationError,
)

__all__ = [
    "AllocationError",
    "ConfigurationError",
    "DataIntegrityError",
    "DioprobeError",
    "DirectIOUnsupportedError",
    "DiskError",
    "ProbeIOError",
    "ServerBindError",
    "ServerError",
    "ShortReadError",
    "ShortWriteError",
    "ValidationError",
]
