"""
Host <-> accelerator interconnect benchmark.

Measures copy bandwidth and command/transfer latency through a compute
backend, summarizes the samples, guesses the physical link type and appends
every result to a CSV log.

Usage:
    python -m linkbench
    python -m linkbench --backend cpu --batches 8
    python -m linkbench --continuous --output ./results
"""

from linkbench.timing import SampleSeries, TimingRecord, Unit
from linkbench.metrics import TestResult, percentile, summarize
from linkbench.interfaces import (
    INTERFACE_PROFILES,
    ClassificationResult,
    InterfaceProfile,
    LinkClassification,
    RealisticRange,
    analyze_bandwidth,
    classify_link,
)
from linkbench.csv_logger import ResultLogger
from linkbench.harness import TestHarness
from linkbench.operations import Backend, CopyDirection, HardwareOperation
from linkbench.cancellation import CancellationSignal, CancellationToken, KeyboardCancel
from linkbench.session import BenchmarkConfig, BenchmarkOrchestrator, RunState, SuiteResult
from linkbench.errors import (
    BenchmarkError,
    DeviceSelectionError,
    InvalidInputError,
    LoggingDegraded,
    OperationError,
)

__all__ = [
    # Timing primitives
    "SampleSeries",
    "TimingRecord",
    "Unit",
    # Statistics
    "TestResult",
    "percentile",
    "summarize",
    # Interface classification
    "INTERFACE_PROFILES",
    "ClassificationResult",
    "InterfaceProfile",
    "LinkClassification",
    "RealisticRange",
    "analyze_bandwidth",
    "classify_link",
    # Result log
    "ResultLogger",
    # Measurement
    "TestHarness",
    "Backend",
    "CopyDirection",
    "HardwareOperation",
    "CancellationSignal",
    "CancellationToken",
    "KeyboardCancel",
    # Session management
    "BenchmarkConfig",
    "BenchmarkOrchestrator",
    "RunState",
    "SuiteResult",
    # Errors
    "BenchmarkError",
    "DeviceSelectionError",
    "InvalidInputError",
    "LoggingDegraded",
    "OperationError",
]
