from __future__ import annotations

import threading
from collections.abc import Callable
from enum import Enum
from typing import Protocol

from accountapi.runtime.context import Context


class WaitOutcome(str, Enum):
    FIRED = "fired"
    CANCELLED = "cancelled"


class Timer(Protocol):
    def wait(self, ctx: Context) -> WaitOutcome: ...

    def stop(self) -> bool: ...

    def drain(self) -> None: ...


TimerFactory = Callable[[float], Timer]


class ThreadingTimer:
    """One-shot timer backed by ``threading.Timer`` (monotonic clock).

    ``stop()`` returns ``False`` when the timer already fired; the pending fire
    signal must then be consumed with ``drain()``.
    """

    def __init__(self, duration: float) -> None:
        self.duration = duration
        self._lock = threading.Lock()
        self._fired = threading.Event()
        self._wake = threading.Event()
        self._stopped = False
        self._expired = False
        self._timer = threading.Timer(min(max(duration, 0.0), threading.TIMEOUT_MAX), self._fire)
        self._timer.daemon = True
        self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            if self._stopped:
                return
            self._expired = True
            self._fired.set()
        self._wake.set()

    def wait(self, ctx: Context) -> WaitOutcome:
        ctx.add_waiter(self._wake)
        try:
            while not self._fired.is_set() and not ctx.done():
                self._wake.wait(timeout=ctx.remaining())
                self._wake.clear()
        finally:
            ctx.remove_waiter(self._wake)
        if ctx.done():
            return WaitOutcome.CANCELLED
        self._fired.clear()
        return WaitOutcome.FIRED

    def stop(self) -> bool:
        with self._lock:
            self._stopped = True
            expired = self._expired
        self._timer.cancel()
        return not expired

    def drain(self) -> None:
        self._fired.clear()
        self._wake.clear()


def new_timer(duration: float) -> Timer:
    return ThreadingTimer(duration)
