"""Direct I/O round-trip measurement.

One measurement writes a block of random bytes to a uniquely named file in
the target directory, reads it back, checks the bytes match and deletes the
file. The write and read phases are timed separately.
"""

from __future__ import annotations

import os
import random
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Protocol

from dioprobe.storage.direct_io import (
    ALIGN_SIZE,
    allocate_aligned_block,
    detect_block_size,
    read_direct,
    write_direct,
)
from dioprobe.utils.exceptions import DataIntegrityError
from dioprobe.utils.logging_config import get_logger, log_exception

if TYPE_CHECKING:
    from dioprobe.models import ProbeConfig


class RandomSource(Protocol):
    """Source of randomness for file names and block content."""

    def getrandbits(self, k: int) -> int: ...

    def randbytes(self, n: int) -> bytes: ...


class ProbeState(str, Enum):
    """Phases of a single measurement."""

    IDLE = "idle"
    WRITING = "writing"
    READING = "reading"
    VERIFYING = "verifying"


@dataclass(frozen=True)
class MeasurementSample:
    """Durations of one write/read round trip, in seconds."""

    read_duration: float
    write_duration: float

    @classmethod
    def zero(cls) -> MeasurementSample:
        """Sample reported when a measurement fails."""
        return cls(read_duration=0.0, write_duration=0.0)


def _first_mismatch(expected: memoryview, actual: memoryview) -> int:
    for offset, (want, got) in enumerate(zip(expected, actual)):
        if want != got:
            return offset
    return min(len(expected), len(actual))


class DirectIOProbe:
    """Measures direct write and read latency against one directory."""

    def __init__(
        self,
        config: ProbeConfig,
        rng: RandomSource | None = None,
        clock: Callable[[], float] = time.perf_counter,
        alignment: int = ALIGN_SIZE,
    ):
        """Initialize the probe.

        Args:
            config: Probe configuration; only read, never modified
            rng: Randomness for file names and block content. Defaults to
                ``random.SystemRandom``, backed by ``os.urandom``.
            clock: Monotonic clock returning seconds
            alignment: Buffer address alignment for direct I/O

        """
        self.config = config
        self.target = Path(config.path)
        self.rng: RandomSource = rng if rng is not None else random.SystemRandom()
        self.clock = clock
        self.alignment = alignment
        self.logger = get_logger(__name__)

    def block_size(self) -> int:
        """Return the configured block size, or detect it from the target."""
        if self.config.block_size is not None:
            return self.config.block_size
        return detect_block_size(self.target)

    def temp_file_path(self) -> Path:
        """Return a fresh, randomly named file path inside the target."""
        return self.target / f"{self.config.file_prefix}{self.rng.getrandbits(63)}.dat"

    def measure(self) -> MeasurementSample:
        """Run one write/read round trip and return its durations.

        The temporary file is removed before returning, whether the round
        trip succeeded or not.

        Raises:
            AllocationError: If an aligned buffer cannot be obtained.
            ProbeIOError: If the write or read fails, including short transfers.
            DataIntegrityError: If the bytes read back differ from those written.

        """
        path = self.temp_file_path()
        state = ProbeState.IDLE
        try:
            size = self.block_size()
            block = allocate_aligned_block(size, self.alignment)
            block[:] = self.rng.randbytes(size)

            state = ProbeState.WRITING
            t0 = self.clock()
            write_direct(path, block, self.alignment)
            t1 = self.clock()

            state = ProbeState.READING
            data = read_direct(path, size, self.alignment)
            t2 = self.clock()

            state = ProbeState.VERIFYING
            if data != block:
                offset = _first_mismatch(block, data)
                msg = f"data mismatch reading back {path}"
                raise DataIntegrityError(
                    msg,
                    details={"path": str(path), "offset": offset, "size": size},
                )
        except BaseException:
            self.logger.debug("Probe of %s aborted while %s", path, state.value)
            raise
        finally:
            self._remove_temp_file(path)

        sample = MeasurementSample(read_duration=t2 - t1, write_duration=t1 - t0)
        self.logger.debug(
            "Probe of %s: op=write %.6fs op=read %.6fs",
            self.target,
            sample.write_duration,
            sample.read_duration,
        )
        return sample

    def measure_safely(self) -> tuple[MeasurementSample, Exception | None]:
        """Run :meth:`measure`, turning any failure into a zero sample.

        Returns:
            The sample and ``None`` on success, or a zero sample and the
            exception that aborted the measurement.

        """
        try:
            return self.measure(), None
        except Exception as e:
            log_exception(self.logger, e, f"Probe of {self.target} failed")
            return MeasurementSample.zero(), e

    def _remove_temp_file(self, path: Path) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning("Failed to remove probe file %s: %s", path, e)
