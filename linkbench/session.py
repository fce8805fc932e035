"""
Benchmark suite orchestrator.

Sequences the five canonical tests, classifies the link from the paired
bandwidth results, logs every result and optionally repeats until cancelled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from linkbench.cancellation import CancellationSignal
from linkbench.config import MIB, format_size, get_csv_path, get_output_dir
from linkbench.csv_logger import ResultLogger
from linkbench.errors import InvalidInputError
from linkbench.harness import ProgressCallback, TestHarness
from linkbench.interfaces import (
    DEFAULT_REALISTIC_RANGE,
    DEFAULT_UPLOAD_WEIGHT,
    LinkClassification,
    RealisticRange,
    classify_link,
)
from linkbench.metrics import TestResult, summarize
from linkbench.operations import Backend, CopyDirection, HardwareOperation
from linkbench.timing import Unit

logger = logging.getLogger(__name__)

UPLOAD_BANDWIDTH = "upload_bandwidth"
DOWNLOAD_BANDWIDTH = "download_bandwidth"
COMMAND_LATENCY = "command_latency"
UPLOAD_LATENCY = "upload_latency"
DOWNLOAD_LATENCY = "download_latency"


@dataclass(frozen=True)
class BenchmarkConfig:
    """Configuration for a benchmark run."""

    large_transfer_bytes: int = 256 * MIB
    small_transfer_bytes: int = 1
    command_latency_iterations: int = 100_000
    transfer_latency_iterations: int = 10_000
    copies_per_batch: int = 8
    bandwidth_batches: int = 32
    continuous_mode: bool = False
    csv_logging_enabled: bool = True
    csv_path: Path = field(default_factory=get_csv_path)

    # Link classification heuristics
    realistic_min_percent: float = DEFAULT_REALISTIC_RANGE.min_percent
    realistic_max_percent: float = DEFAULT_REALISTIC_RANGE.max_percent
    upload_weight: float = DEFAULT_UPLOAD_WEIGHT

    # Where summary.json, charts and logs go; None disables them
    output_dir: Path | None = field(default_factory=get_output_dir)

    def __post_init__(self) -> None:
        """Convert paths to Path objects and reject non-positive sizes or counts."""
        if isinstance(self.csv_path, str):
            object.__setattr__(self, "csv_path", Path(self.csv_path))
        if isinstance(self.output_dir, str):
            object.__setattr__(self, "output_dir", Path(self.output_dir))

        for name in (
            "large_transfer_bytes",
            "small_transfer_bytes",
            "command_latency_iterations",
            "transfer_latency_iterations",
            "copies_per_batch",
            "bandwidth_batches",
        ):
            if getattr(self, name) < 1:
                raise InvalidInputError(f"{name} must be positive, got {getattr(self, name)}")
        if not 0.0 <= self.upload_weight <= 1.0:
            raise InvalidInputError(f"upload_weight must be within [0, 1], got {self.upload_weight}")
        if self.realistic_min_percent > self.realistic_max_percent:
            raise InvalidInputError("realistic_min_percent must not exceed realistic_max_percent")

    @property
    def realistic_range(self) -> RealisticRange:
        return RealisticRange(self.realistic_min_percent, self.realistic_max_percent)


@dataclass(frozen=True)
class SuiteTest:
    """One entry of the fixed suite."""

    key: str
    name: str
    repetitions: int
    unit: Unit
    make_operation: Callable[[Backend], HardwareOperation]


def build_suite(config: BenchmarkConfig) -> list[SuiteTest]:
    """The five canonical tests, in execution order."""
    large = format_size(config.large_transfer_bytes)
    small = format_size(config.small_transfer_bytes)
    up, down = CopyDirection.UPLOAD, CopyDirection.DOWNLOAD

    return [
        SuiteTest(
            UPLOAD_BANDWIDTH,
            f"Test 1 - {up.arrow} {large} Transfer Bandwidth",
            config.bandwidth_batches,
            Unit.GBPS,
            lambda b: b.create_copy(up, config.large_transfer_bytes, config.copies_per_batch),
        ),
        SuiteTest(
            DOWNLOAD_BANDWIDTH,
            f"Test 2 - {down.arrow} {large} Transfer Bandwidth",
            config.bandwidth_batches,
            Unit.GBPS,
            lambda b: b.create_copy(down, config.large_transfer_bytes, config.copies_per_batch),
        ),
        SuiteTest(
            COMMAND_LATENCY,
            f"Test 3 - {up.arrow} Command Submission Latency",
            config.command_latency_iterations,
            Unit.MICROSECONDS,
            lambda b: b.create_submission(),
        ),
        SuiteTest(
            UPLOAD_LATENCY,
            f"Test 4 - {up.arrow} {small} Transfer Latency",
            config.transfer_latency_iterations,
            Unit.MICROSECONDS,
            lambda b: b.create_copy(up, config.small_transfer_bytes),
        ),
        SuiteTest(
            DOWNLOAD_LATENCY,
            f"Test 5 - {down.arrow} {small} Transfer Latency",
            config.transfer_latency_iterations,
            Unit.MICROSECONDS,
            lambda b: b.create_copy(down, config.small_transfer_bytes),
        ),
    ]


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class SuiteResult:
    """Result of one pass over the suite."""

    run_number: int
    source_label: str
    results: list[TestResult]
    link: LinkClassification | None
    cancelled: bool
    start_time: datetime
    end_time: datetime

    @property
    def wall_time_s(self) -> float:
        """Total wall clock time in seconds."""
        return (self.end_time - self.start_time).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_number": self.run_number,
            "api": self.source_label,
            "cancelled": self.cancelled,
            "start_time": self.start_time.isoformat(timespec="seconds"),
            "wall_time_s": self.wall_time_s,
            "results": [r.to_dict() for r in self.results],
            "interface": self.link.to_dict() if self.link else None,
        }


class BenchmarkOrchestrator:
    """Runs the benchmark suite against one backend.

    Orchestrates:
    - The five canonical tests, in order
    - Link classification from the upload/download bandwidth pair
    - CSV logging of every result
    - Repetition of the whole suite in continuous mode
    """

    def __init__(
        self,
        config: BenchmarkConfig,
        backend: Backend,
        result_logger: ResultLogger | None = None,
        cancel_signal: CancellationSignal | None = None,
        progress_callback: ProgressCallback | None = None,
        source_label: str | None = None,
        on_run_complete: Callable[[SuiteResult], None] | None = None,
    ):
        self.config = config
        self.backend = backend
        self.result_logger = result_logger
        self.cancel_signal = cancel_signal
        self.source_label = source_label or backend.label
        self.harness = TestHarness(cancel_signal=cancel_signal, progress_callback=progress_callback)
        self.state = RunState.IDLE
        self.run_count = 0
        self._on_run_complete = on_run_complete
        self._file_handler: logging.Handler | None = None

    def setup(self) -> None:
        """Create the output directory and mirror logging into it, if configured."""
        if self.config.output_dir is None:
            return

        self.config.output_dir.mkdir(parents=True, exist_ok=True)
        (self.config.output_dir / "logs").mkdir(exist_ok=True)
        (self.config.output_dir / "charts").mkdir(exist_ok=True)

        log_path = self.config.output_dir / "logs" / "benchmark.log"
        self._file_handler = logging.FileHandler(log_path)
        self._file_handler.setLevel(logging.DEBUG)
        self._file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logging.getLogger().addHandler(self._file_handler)

    def _teardown(self) -> None:
        if self._file_handler is not None:
            logging.getLogger().removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def _run_test(self, test: SuiteTest) -> TestResult | None:
        """Run one test. None means it was cancelled before producing a sample."""
        logger.info(f"{test.name} ({test.repetitions} repetitions)")
        with test.make_operation(self.backend) as operation:
            series = self.harness.run_timed_series(
                operation,
                test.repetitions,
                cancellable=self.config.continuous_mode,
                name=test.name,
                unit=test.unit,
            )

        if not series:
            logger.warning(f"{test.name}: no samples collected")
            return None

        result = summarize(series)
        logger.info(
            f"{test.name}: min={result.min:.2f}, avg={result.avg:.2f}, max={result.max:.2f}, "
            f"p99={result.p99:.2f}, p99.9={result.p999:.2f} {result.unit.value}"
        )
        return result

    def run_suite(self) -> SuiteResult:
        """Execute the five tests once.

        Raises:
            OperationError: if a test fails. The rest of the suite is skipped and
                nothing from the run is logged. Any other error also marks the run failed.
        """
        self.run_count += 1
        self.state = RunState.RUNNING
        start_time = datetime.now()
        logger.info(f"Starting run #{self.run_count} on {self.source_label}")

        by_key: dict[str, TestResult] = {}
        try:
            for test in build_suite(self.config):
                result = self._run_test(test)
                if result is not None:
                    by_key[test.key] = result
        except Exception as e:
            self.state = RunState.FAILED
            logger.error(f"Run #{self.run_count} aborted: {e}")
            raise

        results = list(by_key.values())
        link = None
        if UPLOAD_BANDWIDTH in by_key and DOWNLOAD_BANDWIDTH in by_key:
            link = classify_link(
                by_key[UPLOAD_BANDWIDTH].avg,
                by_key[DOWNLOAD_BANDWIDTH].avg,
                upload_weight=self.config.upload_weight,
                realistic_range=self.config.realistic_range,
            )
            if link.primary.profile is not None:
                logger.info(
                    f"Likely connection: {link.primary.profile.name} "
                    f"({link.primary.percent_of_theoretical:.1f}% of theoretical)"
                )

        if self.result_logger is not None:
            for result in results:
                self.result_logger.log_result(result, self.source_label)

        cancelled = any(r.cancelled for r in results)
        self.state = RunState.CANCELLED if cancelled else RunState.COMPLETED

        suite = SuiteResult(
            run_number=self.run_count,
            source_label=self.source_label,
            results=results,
            link=link,
            cancelled=cancelled,
            start_time=start_time,
            end_time=datetime.now(),
        )
        if self._on_run_complete:
            self._on_run_complete(suite)
        return suite

    def run(self) -> list[SuiteResult]:
        """Run the suite once, or repeatedly in continuous mode until cancelled.

        Returns:
            One SuiteResult per completed run.
        """
        runs: list[SuiteResult] = []
        self.setup()
        try:
            while True:
                suite = self.run_suite()
                runs.append(suite)

                if not self.config.continuous_mode or suite.cancelled:
                    break
                if self.cancel_signal is not None and self.cancel_signal.poll():
                    logger.info(f"Stopped by user after run #{self.run_count}")
                    self.state = RunState.CANCELLED
                    break

            if self.config.output_dir is not None:
                self._write_reports(runs)
            return runs
        finally:
            self._teardown()

    def _write_reports(self, runs: list[SuiteResult]) -> None:
        from linkbench.report import ReportGenerator

        generator = ReportGenerator()
        generator.write_summary_json(runs, self.config.output_dir / "summary.json")
        generator.write_results_chart(runs[-1], self.config.output_dir / "charts" / "results.png")
        logger.info(f"Reports generated in {self.config.output_dir}")
