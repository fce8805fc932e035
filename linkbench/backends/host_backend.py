"""
Host-only backend: copies between two CPU tensors.

Lets the full suite run on machines without an accelerator. The figures
describe memory bandwidth, not an interconnect.
"""

from __future__ import annotations

import logging
import platform

import torch

from linkbench.errors import InvalidInputError
from linkbench.operations import Backend, CopyDirection, HardwareOperation

logger = logging.getLogger(__name__)


class HostCopyOperation(HardwareOperation):
    def __init__(self, direction: CopyDirection, size_bytes: int, copies: int):
        self.name = f"{direction.arrow} copy"
        self.bytes_per_execute = size_bytes * copies
        self._copies = copies
        self._src = torch.ones(size_bytes, dtype=torch.uint8)
        self._dst = torch.empty(size_bytes, dtype=torch.uint8)

    def execute(self) -> None:
        for _ in range(self._copies):
            self._dst.copy_(self._src)

    def close(self) -> None:
        self._src = None
        self._dst = None


class HostSubmissionOperation(HardwareOperation):
    name = "command submission"

    def execute(self) -> None:
        torch.empty(0)


class HostBackend(Backend):
    label = "CPU"

    def __init__(self):
        logger.info(f"Using host backend ({torch.get_num_threads()} threads)")

    def describe(self) -> str:
        return f"{platform.processor() or platform.machine()} (host memory)"

    def create_copy(self, direction: CopyDirection, size_bytes: int, copies: int = 1) -> HardwareOperation:
        if size_bytes < 1 or copies < 1:
            raise InvalidInputError(f"Invalid copy of {size_bytes} bytes x {copies}")
        return HostCopyOperation(direction, size_bytes, copies)

    def create_submission(self) -> HardwareOperation:
        return HostSubmissionOperation()
