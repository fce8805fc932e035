"""
Hardware capability consumed by the harness.

A backend supplies device setup plus two operation variants: a timed copy of
a given size in one direction, and an empty command submission.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum


class CopyDirection(str, Enum):
    UPLOAD = "upload"  # host -> device
    DOWNLOAD = "download"  # device -> host

    @property
    def arrow(self) -> str:
        return "CPU -> GPU" if self is CopyDirection.UPLOAD else "GPU -> CPU"


class HardwareOperation(ABC):
    """One repeatable unit of work on a backend.

    ``execute`` must not return until the work has completed on the device.
    It may return the device-measured elapsed time in seconds, or None to let
    the caller's wall clock stand.
    """

    name: str = "operation"
    bytes_per_execute: int = 0

    @abstractmethod
    def execute(self) -> float | None:
        ...

    def close(self) -> None:
        """Release any buffers held by the operation."""

    def __enter__(self) -> HardwareOperation:
        return self

    def __exit__(self, *args) -> None:
        self.close()


class Backend(ABC):
    """Device setup and operation factory for one compute API."""

    # Written to the API column of the result log.
    label: str = "unknown"

    @abstractmethod
    def describe(self) -> str:
        """Human readable name of the selected device."""

    @abstractmethod
    def create_copy(self, direction: CopyDirection, size_bytes: int, copies: int = 1) -> HardwareOperation:
        """Create an operation that performs ``copies`` copies of ``size_bytes``."""

    @abstractmethod
    def create_submission(self) -> HardwareOperation:
        """Create an operation that submits no work and waits for completion."""

    def close(self) -> None:
        """Release the device."""

    def __enter__(self) -> Backend:
        return self

    def __exit__(self, *args) -> None:
        self.close()
