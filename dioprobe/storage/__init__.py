"""Direct I/O storage probing for dioprobe."""

from __future__ import annotations

from dioprobe.storage.direct_io import (
    ALIGN_SIZE,
    BLOCK_SIZE,
    allocate_aligned_block,
    detect_block_size,
    is_aligned,
    read_direct,
    write_direct,
)
from dioprobe.storage.probe import DirectIOProbe, MeasurementSample, ProbeState

__all__ = [
    "ALIGN_SIZE",
    "BLOCK_SIZE",
    "DirectIOProbe",
    "MeasurementSample",
    "ProbeState",
    "allocate_aligned_block",
    "detect_block_size",
    "is_aligned",
    "read_direct",
    "write_direct",
]
