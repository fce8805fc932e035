"""
Cooperative cancellation signals.

Signals are polled between repetitions and between runs; nothing here ever
interrupts work already in flight.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Protocol

logger = logging.getLogger(__name__)

ESCAPE = "\x1b"


class CancellationSignal(Protocol):
    def poll(self) -> bool:
        """Non-blocking check. Consumes at most one pending interrupt."""
        ...


class CancellationToken:
    """Programmatic cancellation. Each ``cancel()`` is consumed by one poll."""

    def __init__(self) -> None:
        self._pending = 0

    def cancel(self) -> None:
        self._pending += 1

    def poll(self) -> bool:
        if self._pending:
            self._pending -= 1
            return True
        return False


class KeyboardCancel:
    """Cancels on ESC, reading the terminal without blocking.

    Entering the context switches stdin to cbreak mode; the previous terminal
    mode is restored on exit, whatever the reason for leaving. When stdin is
    not a terminal, ``poll`` always returns False.

    Usage:
        with KeyboardCancel() as cancel:
            orchestrator = BenchmarkOrchestrator(config, backend, cancel_signal=cancel)
            orchestrator.run()
    """

    def __init__(self, stream: Any = None):
        self._stream = stream or sys.stdin
        self._saved_attrs: list | None = None
        self._active = False

    def __enter__(self) -> KeyboardCancel:
        if not self._stream.isatty():
            logger.debug("stdin is not a terminal; keyboard cancellation disabled")
            return self

        if os.name == "nt":
            self._active = True
            return self

        import termios
        import tty

        fd = self._stream.fileno()
        self._saved_attrs = termios.tcgetattr(fd)
        tty.setcbreak(fd)
        self._active = True
        return self

    def __exit__(self, *args) -> None:
        if self._saved_attrs is not None:
            import termios

            termios.tcsetattr(self._stream.fileno(), termios.TCSADRAIN, self._saved_attrs)
            self._saved_attrs = None
        self._active = False

    def _read_pending_key(self) -> str | None:
        if os.name == "nt":
            import msvcrt

            if msvcrt.kbhit():
                return msvcrt.getwch()
            return None

        import select

        ready, _, _ = select.select([self._stream], [], [], 0)
        if ready:
            return os.read(self._stream.fileno(), 1).decode(errors="ignore")
        return None

    def poll(self) -> bool:
        if not self._active:
            return False
        return self._read_pending_key() == ESCAPE
