from __future__ import annotations

import random

import pytest
from conftest import RecordingTimerFactory

from accountapi.config import BackoffConfig
from accountapi.errors import RequestCancelledError
from accountapi.runtime.context import Canceled, Context
from accountapi.runtime.retry import (
    MAX_DELAY_SECONDS,
    TRANSIENT_STATUS_CODES,
    BackoffPolicy,
    StatusClass,
    classify_status,
    compute_backoff_delay,
    is_transient_status,
)
from accountapi.runtime.timer import WaitOutcome


def test_transient_status_set_is_closed() -> None:
    assert TRANSIENT_STATUS_CODES == frozenset({429, 500, 503, 504})


def test_transient_on_rate_limit_and_server_errors() -> None:
    for code in (429, 500, 503, 504):
        assert is_transient_status(code) is True, f"Expected {code} to be transient"


def test_not_transient_on_other_errors() -> None:
    for code in (400, 401, 403, 404, 409, 418, 501, 502):
        assert is_transient_status(code) is False, f"Expected {code} to be terminal"


def test_classify_status_variants() -> None:
    assert classify_status(200) is StatusClass.SUCCESS
    assert classify_status(201) is StatusClass.SUCCESS
    assert classify_status(204) is StatusClass.SUCCESS
    assert classify_status(400) is StatusClass.BAD_REQUEST
    assert classify_status(403) is StatusClass.FORBIDDEN
    assert classify_status(404) is StatusClass.NOT_FOUND
    assert classify_status(409) is StatusClass.CONFLICT
    assert classify_status(202) is StatusClass.OTHER
    assert classify_status(502) is StatusClass.OTHER


@pytest.mark.parametrize(
    ("attempt", "expected_ms"),
    [
        (0, 500),
        (1, 750),
        (2, 1125),
        (3, 1688),
        (4, 2531),
        (5, 3797),
        (6, 5695),
        (7, 8543),
        (8, 12814),
        (9, 19222),
    ],
)
def test_sleep_requests_expected_duration(attempt: int, expected_ms: int) -> None:
    factory = RecordingTimerFactory()
    policy = BackoffPolicy(timer_factory=factory)

    policy.sleep(Context(), attempt)

    assert len(factory.durations) == 1
    assert abs(factory.durations[0] * 1000 - expected_ms) <= 50


def test_backoff_delay_stays_within_bounds() -> None:
    rng = random.Random(1234)
    for attempt in range(16):
        nominal = 500 * 1.5**attempt
        for _ in range(50):
            delay_ms = compute_backoff_delay(attempt, rng=rng) * 1000
            assert delay_ms >= max(100, nominal - 150)
            assert delay_ms <= nominal + 150


def test_backoff_delay_never_below_floor() -> None:
    config = BackoffConfig(base_delay_ms=1, jitter_ms=100, min_delay_ms=100)
    for _ in range(100):
        assert compute_backoff_delay(0, config) == pytest.approx(0.1)


def test_backoff_delay_increases() -> None:
    config = BackoffConfig(jitter_ms=0)
    d1 = compute_backoff_delay(1, config)
    d2 = compute_backoff_delay(2, config)
    d3 = compute_backoff_delay(3, config)
    assert d1 < d2 < d3


def test_backoff_rejects_negative_attempt() -> None:
    with pytest.raises(ValueError):
        compute_backoff_delay(-1)


def test_sleep_on_cancelled_context_raises_cancellation() -> None:
    factory = RecordingTimerFactory()
    policy = BackoffPolicy(timer_factory=factory)
    ctx = Context()
    ctx.cancel()

    with pytest.raises(RequestCancelledError) as exc_info:
        policy.sleep(ctx, 0)

    assert isinstance(exc_info.value.cause, Canceled)
    assert isinstance(exc_info.value.__cause__, Canceled)


class _RacingTimer:
    """Expired at the same moment the context was cancelled."""

    def __init__(self) -> None:
        self.stopped = False
        self.drained = False

    def wait(self, ctx: Context) -> WaitOutcome:
        return WaitOutcome.CANCELLED

    def stop(self) -> bool:
        self.stopped = True
        return False

    def drain(self) -> None:
        self.drained = True


def test_sleep_drains_timer_that_fired_during_cancellation() -> None:
    timer = _RacingTimer()
    policy = BackoffPolicy(timer_factory=lambda _: timer)
    ctx = Context()
    ctx.cancel()

    with pytest.raises(RequestCancelledError):
        policy.sleep(ctx, 2)

    assert timer.stopped is True
    assert timer.drained is True


def test_sleep_does_not_drain_when_stop_succeeds() -> None:
    class _StoppableTimer(_RacingTimer):
        def stop(self) -> bool:
            self.stopped = True
            return True

    timer = _StoppableTimer()
    policy = BackoffPolicy(timer_factory=lambda _: timer)
    ctx = Context()
    ctx.cancel()

    with pytest.raises(RequestCancelledError):
        policy.sleep(ctx, 0)

    assert timer.stopped is True
    assert timer.drained is False


def test_delay_is_capped_for_very_late_attempts() -> None:
    rng = random.Random(3)
    assert compute_backoff_delay(60, rng=rng) == MAX_DELAY_SECONDS
    assert compute_backoff_delay(5000, rng=rng) == MAX_DELAY_SECONDS
    assert compute_backoff_delay(20, rng=rng) < MAX_DELAY_SECONDS
