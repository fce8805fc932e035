"""
Append-only CSV log of benchmark results.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import IO, Any

from linkbench.errors import LoggingDegraded
from linkbench.metrics import TestResult

logger = logging.getLogger(__name__)

CSV_HEADER = [
    "Timestamp",
    "API",
    "Test Name",
    "Min",
    "Avg",
    "Max",
    "99th Percentile",
    "99.9th Percentile",
    "Unit",
]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class ResultLogger:
    """Appends one row per TestResult to a CSV file.

    The header is written only when the file is new or empty, so any number of
    loggers may be opened against the same file. If the file cannot be opened,
    logging is disabled and ``degraded`` explains why.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.degraded: LoggingDegraded | None = None
        self._file: IO[str] | None = None
        self._writer: Any = None
        self._open()

    def _open(self) -> None:
        try:
            needs_header = not self.path.exists() or self.path.stat().st_size == 0
            self._file = open(self.path, "a", encoding="utf-8", newline="")
        except OSError as e:
            self.degraded = LoggingDegraded(self.path, str(e))
            logger.warning(f"{self.degraded}; CSV logging disabled for this run")
            return

        self._writer = csv.writer(self._file, lineterminator="\n")
        if needs_header:
            self._writer.writerow(CSV_HEADER)
            self._file.flush()
        logger.debug(f"Logging results to {self.path}")

    @property
    def enabled(self) -> bool:
        return self._file is not None

    def log_result(self, result: TestResult, source_label: str) -> None:
        """Append a single result row and flush it to disk."""
        if self._file is None:
            return

        self._writer.writerow([
            result.timestamp.strftime(TIMESTAMP_FORMAT),
            source_label,
            result.name,
            result.min,
            result.avg,
            result.max,
            result.p99,
            result.p999,
            result.unit.value,
        ])
        self._file.flush()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            self._writer = None

    def __enter__(self) -> ResultLogger:
        return self

    def __exit__(self, *args) -> None:
        self.close()
