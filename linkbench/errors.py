"""
Error types raised by the benchmark engine.
"""

from __future__ import annotations

from pathlib import Path


class BenchmarkError(Exception):
    """Base class for all benchmark errors."""


class InvalidInputError(BenchmarkError, ValueError):
    """Raised for programmer errors such as summarizing an empty series."""


class OperationError(BenchmarkError):
    """A hardware operation failed. Fatal to the current test series."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class DeviceSelectionError(BenchmarkError):
    """No compatible device could be selected for a backend."""


class LoggingDegraded(BenchmarkError):
    """CSV result logging was disabled because the log file could not be opened.

    Recorded on the logger, never raised out of it.
    """

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Cannot open result log {path}: {reason}")
        self.path = path
        self.reason = reason
