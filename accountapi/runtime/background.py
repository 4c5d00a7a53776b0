from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any, TypeVar

from accountapi.errors import RequestCancelledError
from accountapi.runtime.context import Canceled, Context

T = TypeVar("T")


def start_background(fn: Callable[..., T], *args: Any) -> Future[T]:
    """Run ``fn(*args)`` on a daemon thread and hand back its future."""
    future: Future[T] = Future()

    def _target() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = fn(*args)
        except BaseException as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)

    threading.Thread(target=_target, name="accountapi-io", daemon=True).start()
    return future


def wait_for(ctx: Context, future: Future[T]) -> T:
    """Return the result of ``future`` unless ``ctx`` finishes first.

    On cancellation or deadline the call is abandoned, not interrupted: it
    keeps running on its own thread and the caller gets
    :class:`RequestCancelledError` right away.
    """
    wake = threading.Event()
    future.add_done_callback(lambda _: wake.set())
    ctx.add_waiter(wake)
    try:
        while not future.done() and not ctx.done():
            wake.wait(timeout=ctx.remaining())
    finally:
        ctx.remove_waiter(wake)
    if future.done():
        return future.result()
    cause = ctx.err() or Canceled()
    raise RequestCancelledError(cause) from cause
