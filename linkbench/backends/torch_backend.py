"""
CUDA backend built on PyTorch tensors, streams and events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import torch

from linkbench.errors import DeviceSelectionError, InvalidInputError, OperationError
from linkbench.operations import Backend, CopyDirection, HardwareOperation

logger = logging.getLogger(__name__)


@dataclass
class DeviceInfo:
    """A CUDA device visible to PyTorch."""

    index: int
    name: str
    total_memory_bytes: int

    @property
    def total_memory_mb(self) -> int:
        return self.total_memory_bytes // (1024 * 1024)


def list_devices() -> list[DeviceInfo]:
    """Enumerate CUDA devices. Empty when CUDA is unavailable."""
    if not torch.cuda.is_available():
        return []
    devices = []
    for idx in range(torch.cuda.device_count()):
        props = torch.cuda.get_device_properties(idx)
        devices.append(DeviceInfo(index=idx, name=props.name, total_memory_bytes=props.total_memory))
    return devices


class TorchCopyOperation(HardwareOperation):
    """Copies between a pinned host buffer and a device buffer.

    Bandwidth batches are timed with CUDA events around the whole batch, the
    way the GPU sees it. Single copies return None so the harness measures
    submission-to-completion on the host clock.
    """

    def __init__(
        self,
        device: torch.device,
        stream: torch.cuda.Stream,
        direction: CopyDirection,
        size_bytes: int,
        copies: int,
    ):
        self.name = f"{direction.arrow} copy"
        self.bytes_per_execute = size_bytes * copies
        self._stream = stream
        self._copies = copies
        self._device_timed = copies > 1

        host = torch.empty(size_bytes, dtype=torch.uint8, pin_memory=True)
        dev = torch.empty(size_bytes, dtype=torch.uint8, device=device)
        if direction is CopyDirection.UPLOAD:
            self._src, self._dst = host, dev
        else:
            self._src, self._dst = dev, host

    def execute(self) -> float | None:
        with torch.cuda.stream(self._stream):
            if not self._device_timed:
                self._dst.copy_(self._src, non_blocking=True)
                self._stream.synchronize()
                return None

            start = torch.cuda.Event(enable_timing=True)
            end = torch.cuda.Event(enable_timing=True)
            start.record(self._stream)
            for _ in range(self._copies):
                self._dst.copy_(self._src, non_blocking=True)
            end.record(self._stream)
            end.synchronize()
            return start.elapsed_time(end) / 1000.0

    def close(self) -> None:
        self._src = None
        self._dst = None


class TorchSubmissionOperation(HardwareOperation):
    """Submits an empty marker to the stream and waits for it to retire."""

    name = "command submission"

    def __init__(self, stream: torch.cuda.Stream):
        self._stream = stream

    def execute(self) -> None:
        marker = torch.cuda.Event()
        marker.record(self._stream)
        marker.synchronize()


class TorchCudaBackend(Backend):
    """Runs the suite on one CUDA device through PyTorch."""

    label = "CUDA"

    def __init__(self, device_index: int | None = None):
        devices = list_devices()
        if not devices:
            raise DeviceSelectionError("No compatible CUDA device found")

        index = 0 if device_index is None else device_index
        if not 0 <= index < len(devices):
            raise DeviceSelectionError(
                f"Device index {index} out of range; {len(devices)} CUDA device(s) available"
            )

        self.info = devices[index]
        self.device = torch.device("cuda", index)
        self._stream: torch.cuda.Stream | None = torch.cuda.Stream(device=self.device)
        logger.info(f"Using CUDA device {index}: {self.info.name} ({self.info.total_memory_mb} MB)")

    @property
    def stream(self) -> torch.cuda.Stream:
        if self._stream is None:
            raise RuntimeError("Backend has been closed")
        return self._stream

    def describe(self) -> str:
        return f"{self.info.name} (cuda:{self.info.index}, {self.info.total_memory_mb} MB)"

    def create_copy(self, direction: CopyDirection, size_bytes: int, copies: int = 1) -> HardwareOperation:
        if size_bytes < 1 or copies < 1:
            raise InvalidInputError(f"Invalid copy of {size_bytes} bytes x {copies}")
        try:
            return TorchCopyOperation(self.device, self.stream, direction, size_bytes, copies)
        except RuntimeError as e:
            raise OperationError(f"{direction.arrow} copy", f"buffer allocation failed: {e}") from e

    def create_submission(self) -> HardwareOperation:
        return TorchSubmissionOperation(self.stream)

    def close(self) -> None:
        if self._stream is not None:
            self._stream.synchronize()
            self._stream = None
            torch.cuda.empty_cache()
