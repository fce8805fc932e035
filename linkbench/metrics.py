"""
Statistics aggregation for benchmark sample series.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence

from linkbench.errors import InvalidInputError
from linkbench.timing import SampleSeries, Unit


@dataclass(frozen=True)
class TestResult:
    """Statistical summary of one test's samples."""

    __test__ = False  # not a pytest class

    name: str
    min: float
    avg: float
    max: float
    p99: float
    p999: float
    unit: Unit
    timestamp: datetime = field(default_factory=datetime.now)
    sample_count: int = 0
    cancelled: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "min": self.min,
            "avg": self.avg,
            "max": self.max,
            "p99": self.p99,
            "p999": self.p999,
            "unit": self.unit.value,
            "timestamp": self.timestamp.isoformat(timespec="seconds"),
            "sample_count": self.sample_count,
            "cancelled": self.cancelled,
        }


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile: the element at floor(n * p), clamped to the last index."""
    if not sorted_values:
        raise InvalidInputError("Cannot take a percentile of an empty sequence")
    index = min(math.floor(len(sorted_values) * p), len(sorted_values) - 1)
    return sorted_values[index]


def summarize(
    series: SampleSeries | Sequence[float],
    unit: Unit | None = None,
    name: str | None = None,
) -> TestResult:
    """Reduce a sample series to a TestResult.

    Args:
        series: A SampleSeries or plain sequence of samples
        unit: Unit of the samples. Defaults to the series' own unit.
        name: Test name. Defaults to the series' own name.

    Raises:
        InvalidInputError: if the series holds no samples.
    """
    if isinstance(series, SampleSeries):
        unit = unit or series.unit
        name = name or series.name
        cancelled = series.cancelled
        values = list(series.samples)
    else:
        cancelled = False
        values = list(series)

    if unit is None:
        raise InvalidInputError("A unit is required to summarize a plain sequence")
    if not values:
        raise InvalidInputError(f"Cannot summarize an empty series ({name or 'unnamed'}, {unit.value})")

    values.sort()
    return TestResult(
        name=name or "",
        min=values[0],
        avg=sum(values) / len(values),
        max=values[-1],
        p99=percentile(values, 0.99),
        p999=percentile(values, 0.999),
        unit=unit,
        timestamp=datetime.now(),
        sample_count=len(values),
        cancelled=cancelled,
    )
