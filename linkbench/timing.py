"""
Core timing primitives for the benchmarking system.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

GIB = 1024 ** 3


class Unit(str, Enum):
    """Unit of a sample series. The value is what logs and reports print."""

    GBPS = "GB/s"
    MICROSECONDS = "us"


@dataclass
class TimingRecord:
    """A single timing measurement."""

    name: str
    start_ns: int
    end_ns: int
    device_elapsed_s: float | None = None

    @property
    def duration_ns(self) -> int:
        """Wall-clock duration in nanoseconds, never less than 1."""
        return max(self.end_ns - self.start_ns, 1)

    @property
    def duration_s(self) -> float:
        """Elapsed seconds, preferring the device-reported figure."""
        if self.device_elapsed_s is not None:
            return self.device_elapsed_s
        return self.duration_ns / 1_000_000_000

    @property
    def duration_us(self) -> float:
        return self.duration_s * 1_000_000


@dataclass
class SampleSeries:
    """Ordered measurements from one test, in the order they were taken."""

    name: str
    unit: Unit
    samples: list[float] = field(default_factory=list)
    cancelled: bool = False

    def append(self, value: float) -> None:
        self.samples.append(value)

    def __len__(self) -> int:
        return len(self.samples)

    def __iter__(self) -> Iterator[float]:
        return iter(self.samples)

    def __bool__(self) -> bool:
        return bool(self.samples)


def sample_from_record(record: TimingRecord, unit: Unit, bytes_moved: int = 0) -> float:
    """Convert a timing record into a sample in the given unit.

    Bandwidth uses binary gigabytes (GiB) per second.
    """
    if unit is Unit.GBPS:
        return (bytes_moved / GIB) / record.duration_s
    return record.duration_us


class OperationTimer:
    """Context manager timing one call with the monotonic clock.

    Usage:
        with OperationTimer("upload") as timer:
            timer.device_elapsed_s = operation.execute()
        record = timer.record
    """

    def __init__(self, name: str):
        self.name = name
        self.device_elapsed_s: float | None = None
        self._start_ns: int = 0
        self._record: TimingRecord | None = None

    def __enter__(self) -> OperationTimer:
        self._start_ns = time.perf_counter_ns()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        end_ns = time.perf_counter_ns()
        self._record = TimingRecord(
            name=self.name,
            start_ns=self._start_ns,
            end_ns=end_ns,
            device_elapsed_s=self.device_elapsed_s,
        )

    @property
    def record(self) -> TimingRecord | None:
        """Get the timing record after context exit."""
        return self._record
