from __future__ import annotations

import threading
import time

from accountapi.runtime.context import Canceled, Context, DeadlineExceeded


def test_background_context_is_never_done() -> None:
    ctx = Context.background()
    assert ctx.done() is False
    assert ctx.err() is None
    assert ctx.remaining() is None


def test_cancel_is_idempotent() -> None:
    ctx = Context()
    ctx.cancel()
    ctx.cancel()
    assert isinstance(ctx.err(), Canceled)
    assert str(ctx.err()) == "context canceled"


def test_expired_deadline_reports_deadline_exceeded() -> None:
    ctx = Context(timeout=0)
    assert ctx.done() is True
    assert isinstance(ctx.err(), DeadlineExceeded)
    assert ctx.remaining() == 0.0


def test_cancel_wakes_registered_waiters() -> None:
    ctx = Context()
    event = threading.Event()
    ctx.add_waiter(event)
    ctx.cancel()
    assert event.is_set()


def test_waiter_added_after_cancel_is_set_immediately() -> None:
    ctx = Context()
    ctx.cancel()
    event = threading.Event()
    ctx.add_waiter(event)
    assert event.is_set()


def test_wait_returns_when_cancelled_from_another_thread() -> None:
    ctx = Context()
    threading.Timer(0.05, ctx.cancel).start()
    started = time.monotonic()
    assert ctx.wait(timeout=10) is True
    assert time.monotonic() - started < 5.0


def test_wait_times_out_without_cancellation() -> None:
    ctx = Context()
    assert ctx.wait(timeout=0.01) is False
