from __future__ import annotations

from typing import Sequence

import pytest

from linkbench.operations import Backend, CopyDirection, HardwareOperation
from linkbench.timing import GIB


class ScriptedOperation(HardwareOperation):
    """Operation that reports scripted device timings and can fail on demand."""

    def __init__(
        self,
        name: str = "scripted",
        bytes_per_execute: int = 0,
        elapsed_s: float | Sequence[float] | None = None,
        fail_on_call: int | None = None,
    ):
        self.name = name
        self.bytes_per_execute = bytes_per_execute
        self._elapsed = elapsed_s
        self._fail_on_call = fail_on_call
        self.calls = 0
        self.closed = False

    def execute(self) -> float | None:
        self.calls += 1
        if self._fail_on_call is not None and self.calls == self._fail_on_call:
            raise RuntimeError("device lost")
        if self._elapsed is None or isinstance(self._elapsed, (int, float)):
            return self._elapsed
        return self._elapsed[(self.calls - 1) % len(self._elapsed)]

    def close(self) -> None:
        self.closed = True


class FakeBackend(Backend):
    """Backend whose copies run at fixed bandwidths and never touch hardware."""

    label = "FAKE"

    def __init__(
        self,
        upload_gbps: float = 25.0,
        download_gbps: float = 27.0,
        latency_s: float = 10e-6,
        fail_direction: CopyDirection | None = None,
    ):
        self.upload_gbps = upload_gbps
        self.download_gbps = download_gbps
        self.latency_s = latency_s
        self.fail_direction = fail_direction
        self.created: list[ScriptedOperation] = []

    def describe(self) -> str:
        return "fake device"

    def create_copy(self, direction: CopyDirection, size_bytes: int, copies: int = 1) -> HardwareOperation:
        total = size_bytes * copies
        if copies > 1:
            gbps = self.upload_gbps if direction is CopyDirection.UPLOAD else self.download_gbps
            elapsed = (total / GIB) / gbps
        else:
            elapsed = self.latency_s
        op = ScriptedOperation(
            name=f"{direction.arrow} copy",
            bytes_per_execute=total,
            elapsed_s=elapsed,
            fail_on_call=1 if direction is self.fail_direction else None,
        )
        self.created.append(op)
        return op

    def create_submission(self) -> HardwareOperation:
        op = ScriptedOperation(name="command submission", elapsed_s=self.latency_s)
        self.created.append(op)
        return op


class ScriptedCancel:
    """Cancellation signal that fires on the given poll numbers (1-based)."""

    def __init__(self, fire_on: Sequence[int] = ()):
        self.fire_on = set(fire_on)
        self.polls = 0

    def poll(self) -> bool:
        self.polls += 1
        return self.polls in self.fire_on


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def csv_path(tmp_path):
    return tmp_path / "results.csv"
