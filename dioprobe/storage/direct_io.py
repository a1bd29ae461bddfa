"""Aligned block I/O that bypasses the page cache.

Direct I/O needs buffers whose memory address, length and file offset are
all multiples of the device granularity. Buffers here come from anonymous
``mmap`` regions, which are page-aligned, and every buffer is checked
before it is handed to the kernel so a misaligned buffer surfaces as
``AllocationError`` instead of an ambiguous ``EINVAL``.

Linux uses ``O_DIRECT``. macOS has no such flag and instead disables
caching per descriptor with ``fcntl(F_NOCACHE)``.
"""

from __future__ import annotations

import contextlib
import ctypes
import mmap
import os
import sys
from pathlib import Path
from typing import Union

from dioprobe.utils.exceptions import (
    AllocationError,
    DirectIOUnsupportedError,
    ProbeIOError,
    ShortReadError,
    ShortWriteError,
)

# Memory alignment required for direct I/O buffers
ALIGN_SIZE = 4096
# Default probe block size when the filesystem cannot be queried
BLOCK_SIZE = 4096
# Smallest addressable unit; buffer lengths must be a multiple of it
SECTOR_SIZE = 512
# Upper bound for detected block sizes; network and copy-on-write
# filesystems report transfer sizes of several MiB
MAX_DETECTED_BLOCK_SIZE = 65536

O_DIRECT: int | None = getattr(os, "O_DIRECT", None)

PathLike = Union[str, "os.PathLike[str]"]


def _round_up_pow2(value: int) -> int:
    return 1 << (value - 1).bit_length()


def detect_block_size(path: PathLike) -> int:
    """Return the probe block size for the filesystem holding ``path``.

    Uses the filesystem block size reported by ``statvfs``, rounded up to a
    power of two and clamped to :data:`BLOCK_SIZE` ..
    :data:`MAX_DETECTED_BLOCK_SIZE`.
    """
    try:
        reported = os.statvfs(path).f_bsize
    except (AttributeError, OSError):
        return BLOCK_SIZE
    if reported <= 0:
        return BLOCK_SIZE
    return min(max(_round_up_pow2(reported), BLOCK_SIZE), MAX_DETECTED_BLOCK_SIZE)


def buffer_address(buffer: memoryview | mmap.mmap) -> int:
    """Return the starting memory address of a writable buffer.

    Raises:
        AllocationError: If the buffer is read-only or not contiguous.

    """
    try:
        return ctypes.addressof(ctypes.c_char.from_buffer(buffer))
    except (TypeError, ValueError) as e:
        msg = f"Buffer has no usable address for direct I/O: {e}"
        raise AllocationError(
            msg, details={"reason": "buffer not writable or addressable"}
        ) from e


def is_aligned(buffer: memoryview | mmap.mmap, alignment: int = ALIGN_SIZE) -> bool:
    """Check that ``buffer`` starts on an ``alignment`` boundary."""
    if len(buffer) == 0:
        return False
    return buffer_address(buffer) % alignment == 0


def _check_block(buffer: memoryview | mmap.mmap, alignment: int) -> None:
    size = len(buffer)
    if size == 0 or size % SECTOR_SIZE:
        msg = f"Block length {size} is not a positive multiple of {SECTOR_SIZE}"
        raise AllocationError(msg, details={"size": size})
    if not is_aligned(buffer, alignment):
        msg = f"Block is not aligned to {alignment} bytes"
        raise AllocationError(
            msg,
            details={"address": hex(buffer_address(buffer)), "alignment": alignment},
        )


def allocate_aligned_block(size: int, alignment: int = ALIGN_SIZE) -> memoryview:
    """Allocate a zeroed buffer of ``size`` bytes aligned to ``alignment``.

    Raises:
        AllocationError: If ``size`` or ``alignment`` is unusable or the
            memory cannot be mapped.

    """
    if size <= 0 or size % SECTOR_SIZE:
        msg = f"Block size {size} is not a positive multiple of {SECTOR_SIZE}"
        raise AllocationError(msg, details={"size": size})
    if alignment <= 0 or alignment & (alignment - 1):
        msg = f"Alignment {alignment} is not a power of two"
        raise AllocationError(msg, details={"alignment": alignment})

    # mmap regions start on a page boundary; over-allocate when a stricter
    # alignment is requested and slice from the first aligned address.
    extra = alignment if alignment > mmap.PAGESIZE else 0
    try:
        region = mmap.mmap(-1, size + extra)
    except (OSError, ValueError) as e:
        msg = f"Failed to map {size + extra} bytes: {e}"
        raise AllocationError(msg, details={"size": size}) from e

    view = memoryview(region)
    offset = 0
    if extra:
        remainder = buffer_address(view) % alignment
        offset = (alignment - remainder) % alignment
    block = view[offset : offset + size]

    if not is_aligned(block, alignment):
        msg = f"Mapped block is not aligned to {alignment} bytes"
        raise AllocationError(
            msg,
            details={"address": hex(buffer_address(block)), "alignment": alignment},
        )
    return block


def open_direct(path: PathLike, flags: int, mode: int = 0o666) -> int:
    """Open ``path`` with page-cache bypass and return the file descriptor.

    Raises:
        DirectIOUnsupportedError: On platforms without a direct I/O mode.
        OSError: If the underlying open fails.

    """
    if O_DIRECT is not None:
        return os.open(path, flags | O_DIRECT, mode)

    if sys.platform == "darwin":
        import fcntl

        fd = os.open(path, flags, mode)
        try:
            fcntl.fcntl(fd, fcntl.F_NOCACHE, 1)
        except OSError:
            os.close(fd)
            raise
        return fd

    msg = f"Direct I/O is not supported on {sys.platform}"
    raise DirectIOUnsupportedError(msg, details={"platform": sys.platform})


def _io_error(op: str, path: PathLike, exc: OSError) -> ProbeIOError:
    msg = f"{op} {Path(path)}: {exc.strerror or exc}"
    return ProbeIOError(msg, details={"op": op, "path": str(path), "errno": exc.errno})


def _close(fd: int, path: PathLike) -> None:
    try:
        os.close(fd)
    except OSError as e:
        raise _io_error("close", path, e) from e


def write_direct(
    path: PathLike,
    buffer: memoryview | mmap.mmap,
    alignment: int = ALIGN_SIZE,
) -> None:
    """Write the whole of ``buffer`` to ``path`` with direct I/O.

    The file is created or truncated. The descriptor is closed on every
    exit path; a failing close after a complete write is reported too.

    Raises:
        AllocationError: If ``buffer`` is not suitably aligned.
        ShortWriteError: If the kernel accepted fewer bytes than requested.
        ProbeIOError: For any other I/O failure.

    """
    _check_block(buffer, alignment)

    try:
        fd = open_direct(path, os.O_RDWR | os.O_CREAT | os.O_TRUNC, 0o666)
    except OSError as e:
        raise _io_error("open", path, e) from e

    closed = False
    try:
        try:
            written = os.write(fd, buffer)
        except OSError as e:
            raise _io_error("write", path, e) from e
        if written != len(buffer):
            msg = f"short write: {written} of {len(buffer)} bytes"
            raise ShortWriteError(
                msg,
                details={"path": str(path), "written": written, "expected": len(buffer)},
            )
        closed = True
        _close(fd, path)
    finally:
        if not closed:
            with contextlib.suppress(OSError):
                os.close(fd)


def read_direct(
    path: PathLike,
    size: int,
    alignment: int = ALIGN_SIZE,
) -> memoryview:
    """Read ``size`` bytes from ``path`` into a fresh aligned buffer.

    Raises:
        AllocationError: If an aligned buffer cannot be allocated.
        ShortReadError: If fewer than ``size`` bytes were read.
        ProbeIOError: For any other I/O failure.

    """
    block = allocate_aligned_block(size, alignment)
    _check_block(block, alignment)

    try:
        fd = open_direct(path, os.O_RDONLY, 0)
    except OSError as e:
        raise _io_error("open", path, e) from e

    try:
        try:
            # readv fills the aligned buffer in place; os.read would hand the
            # kernel an unaligned temporary.
            nread = os.readv(fd, [block])
        except OSError as e:
            raise _io_error("read", path, e) from e
        if nread != size:
            msg = f"short read: {nread} of {size} bytes"
            raise ShortReadError(
                msg,
                details={"path": str(path), "read": nread, "expected": size},
            )
    finally:
        with contextlib.suppress(OSError):
            os.close(fd)

    return block
