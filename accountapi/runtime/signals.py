from __future__ import annotations

import signal
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from types import FrameType

from accountapi.runtime.context import Context


@dataclass
class SignalState:
    stop_requested: bool = False
    signal_name: str | None = None


def _resolve_signal_name(signum: int) -> str:
    for name in ("SIGINT", "SIGTERM"):
        if getattr(signal, name, None) == signum:
            return name
    return str(signum)


@contextmanager
def cancel_on_signals(ctx: Context) -> Iterator[SignalState]:
    """Cancel ``ctx`` on SIGINT/SIGTERM for the duration of the block.

    Only usable from the main thread; previous handlers are restored on exit.
    """
    state = SignalState()

    def _handler(signum: int, _: FrameType | None) -> None:
        state.stop_requested = True
        state.signal_name = _resolve_signal_name(signum)
        ctx.cancel()

    original_int = signal.getsignal(signal.SIGINT)
    original_term = signal.getsignal(signal.SIGTERM)
    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)
    try:
        yield state
    finally:
        signal.signal(signal.SIGINT, original_int)
        signal.signal(signal.SIGTERM, original_term)
