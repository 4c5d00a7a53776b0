from __future__ import annotations

import threading
import time


class ContextError(Exception):
    pass


class Canceled(ContextError):
    def __init__(self) -> None:
        super().__init__("context canceled")


class DeadlineExceeded(ContextError):
    def __init__(self) -> None:
        super().__init__("context deadline exceeded")


class Context:
    """Per-call cancellation signal with an optional deadline.

    Blocking primitives register a ``threading.Event`` as a waiter so that
    ``cancel()`` wakes them immediately; deadlines are honoured by waiting at
    most ``remaining()`` seconds.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._lock = threading.Lock()
        self._canceled = False
        self._waiters: set[threading.Event] = set()

    @classmethod
    def background(cls) -> Context:
        return cls()

    @property
    def deadline(self) -> float | None:
        return self._deadline

    def cancel(self) -> None:
        with self._lock:
            if self._canceled:
                return
            self._canceled = True
            waiters = list(self._waiters)
        for event in waiters:
            event.set()

    def err(self) -> ContextError | None:
        with self._lock:
            if self._canceled:
                return Canceled()
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return DeadlineExceeded()
        return None

    def done(self) -> bool:
        return self.err() is not None

    def remaining(self) -> float | None:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def add_waiter(self, event: threading.Event) -> None:
        with self._lock:
            self._waiters.add(event)
            canceled = self._canceled
        if canceled:
            event.set()

    def remove_waiter(self, event: threading.Event) -> None:
        with self._lock:
            self._waiters.discard(event)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the context is done or ``timeout`` elapses."""
        wake = threading.Event()
        remaining = self.remaining()
        if remaining is not None:
            timeout = remaining if timeout is None else min(timeout, remaining)
        self.add_waiter(wake)
        try:
            wake.wait(timeout=timeout)
        finally:
            self.remove_waiter(wake)
        return self.done()
