"""
Timed-operation harness.

Runs one hardware operation repeatedly and turns each invocation into a
sample, with progress reporting and cooperative cancellation.
"""

from __future__ import annotations

import logging
from typing import Callable

from linkbench.cancellation import CancellationSignal
from linkbench.errors import InvalidInputError, OperationError
from linkbench.operations import HardwareOperation
from linkbench.timing import OperationTimer, SampleSeries, Unit, sample_from_record

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


class TestHarness:
    """Drives repetitions of a single timed operation."""

    __test__ = False  # not a pytest class

    def __init__(
        self,
        cancel_signal: CancellationSignal | None = None,
        progress_callback: ProgressCallback | None = None,
    ):
        """Initialize the harness.

        Args:
            cancel_signal: Polled after each repetition of a cancellable series
            progress_callback: Optional callback for progress updates.
                              Called with (percent, 100, message).
        """
        self.cancel_signal = cancel_signal
        self._progress_callback = progress_callback

    def _report_progress(self, percent: int, message: str) -> None:
        if self._progress_callback:
            self._progress_callback(percent, 100, message)

    def run_timed_series(
        self,
        operation: HardwareOperation,
        repetitions: int,
        cancellable: bool = False,
        name: str | None = None,
        unit: Unit | None = None,
    ) -> SampleSeries:
        """Execute ``operation`` ``repetitions`` times and collect one sample per call.

        Bandwidth samples are computed from ``operation.bytes_per_execute``;
        latency samples are the elapsed time in microseconds. A cancelled
        series holds the samples taken before cancellation was observed.

        Raises:
            InvalidInputError: if ``repetitions`` is less than 1.
            OperationError: if any invocation fails. Remaining repetitions are skipped.
        """
        if repetitions < 1:
            raise InvalidInputError(f"repetitions must be at least 1, got {repetitions}")

        name = name or operation.name
        if unit is None:
            unit = Unit.GBPS if operation.bytes_per_execute > 0 else Unit.MICROSECONDS

        series = SampleSeries(name=name, unit=unit)
        last_percent = -1

        logger.debug(f"Running {repetitions} repetitions of {name}")
        for i in range(repetitions):
            with OperationTimer(name) as timer:
                try:
                    timer.device_elapsed_s = operation.execute()
                except OperationError:
                    raise
                except Exception as e:
                    raise OperationError(name, str(e)) from e

            record = timer.record
            if record.device_elapsed_s is not None and record.device_elapsed_s <= 0:
                raise OperationError(name, f"device reported non-positive elapsed time {record.device_elapsed_s}")
            series.append(sample_from_record(record, unit, operation.bytes_per_execute))

            percent = (i + 1) * 100 // repetitions
            if percent != last_percent:
                self._report_progress(percent, name)
                last_percent = percent

            if cancellable and self.cancel_signal is not None and self.cancel_signal.poll():
                logger.info(f"{name}: stopped by user after {len(series)} of {repetitions} repetitions")
                series.cancelled = True
                break

        return series
