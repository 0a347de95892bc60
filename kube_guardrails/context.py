"""Cancellation context threaded through parsing and evaluation."""

from __future__ import annotations

import threading
import time
from typing import Optional

from .exceptions import ScanCancelled


class ScanContext:
    """Carry a cancellation signal and an optional deadline for one scan.

    The orchestrator never polls the context itself; it hands it to the parser
    and to the engine, which call :meth:`raise_if_cancelled` between units of
    work.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._cancelled = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def raise_if_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise ScanCancelled("scan cancelled")
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise ScanCancelled("scan deadline exceeded")


def background() -> ScanContext:
    """Return a context that is never cancelled and has no deadline."""

    return ScanContext()
