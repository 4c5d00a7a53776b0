from __future__ import annotations

import random
import threading
from enum import Enum

from accountapi.config import BackoffConfig
from accountapi.errors import RequestCancelledError
from accountapi.runtime.context import Canceled, Context
from accountapi.runtime.timer import TimerFactory, WaitOutcome, new_timer


class StatusClass(Enum):
    SUCCESS = "success"
    TRANSIENT = "transient"
    BAD_REQUEST = "bad_request"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    OTHER = "other"


# Closed set: a status missing from this table is OTHER.
_STATUS_CLASSES: dict[int, StatusClass] = {
    200: StatusClass.SUCCESS,
    201: StatusClass.SUCCESS,
    204: StatusClass.SUCCESS,
    429: StatusClass.TRANSIENT,
    500: StatusClass.TRANSIENT,
    503: StatusClass.TRANSIENT,
    504: StatusClass.TRANSIENT,
    400: StatusClass.BAD_REQUEST,
    403: StatusClass.FORBIDDEN,
    404: StatusClass.NOT_FOUND,
    409: StatusClass.CONFLICT,
}

# Longest wait threading primitives accept.
MAX_DELAY_SECONDS = threading.TIMEOUT_MAX

TRANSIENT_STATUS_CODES = frozenset(
    code for code, status_class in _STATUS_CLASSES.items() if status_class is StatusClass.TRANSIENT
)


def classify_status(status_code: int) -> StatusClass:
    return _STATUS_CLASSES.get(status_code, StatusClass.OTHER)


def is_transient_status(status_code: int) -> bool:
    return classify_status(status_code) is StatusClass.TRANSIENT


def compute_backoff_delay(
    attempt: int,
    config: BackoffConfig | None = None,
    rng: random.Random | None = None,
) -> float:
    """Delay in seconds before retrying after ``attempt`` (0-based).

    ``max(min_delay, round(base * factor ** attempt) + jitter)`` evaluated in
    milliseconds, jitter drawn uniformly from ``[-jitter_ms / 2, jitter_ms / 2]``.
    The result never exceeds ``MAX_DELAY_SECONDS``.
    """
    if attempt < 0:
        raise ValueError(f"attempt must be non-negative, got {attempt}")
    cfg = config or BackoffConfig()
    source = rng or random
    try:
        scaled_ms = cfg.base_delay_ms * cfg.growth_factor**attempt
    except OverflowError:
        return MAX_DELAY_SECONDS
    if scaled_ms / 1000.0 >= MAX_DELAY_SECONDS:
        return MAX_DELAY_SECONDS
    base_ms = round(scaled_ms)
    half_jitter = cfg.jitter_ms / 2
    jitter_ms = source.uniform(-half_jitter, half_jitter)
    return min(MAX_DELAY_SECONDS, max(cfg.min_delay_ms, base_ms + jitter_ms) / 1000.0)


class BackoffPolicy:
    def __init__(
        self,
        config: BackoffConfig | None = None,
        timer_factory: TimerFactory = new_timer,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or BackoffConfig()
        self._timer_factory = timer_factory
        self._rng = rng

    def delay_for(self, attempt: int) -> float:
        return compute_backoff_delay(attempt, self.config, self._rng)

    def wait(self, ctx: Context, delay: float) -> None:
        timer = self._timer_factory(delay)
        if timer.wait(ctx) is WaitOutcome.FIRED:
            return
        # Stopping after expiry leaves a pending fire signal behind.
        if not timer.stop():
            timer.drain()
        cause = ctx.err() or Canceled()
        raise RequestCancelledError(cause) from cause

    def sleep(self, ctx: Context, attempt: int) -> float:
        delay = self.delay_for(attempt)
        self.wait(ctx, delay)
        return delay
