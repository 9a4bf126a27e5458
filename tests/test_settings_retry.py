import asyncio
import logging

import pytest

from locatorkit.retry import RetryPolicy
from locatorkit.settings import ReplayTimings


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


def test_timings_read_millisecond_overrides() -> None:
    timings = ReplayTimings.from_env({"LOCATORKIT_STEP_DELAY_MS": "300", "LOCATORKIT_MAX_NAVIGATION_WAIT_MS": "5000"})

    assert timings.step_delay == pytest.approx(0.3)
    assert timings.max_navigation_wait == pytest.approx(5.0)
    assert timings.navigation_recovery_delay == pytest.approx(0.8)


def test_invalid_timing_overrides_fall_back_and_warn(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="locatorkit.settings"):
        timings = ReplayTimings.from_env({"LOCATORKIT_STEP_DELAY_MS": "fast", "LOCATORKIT_SETTLE_DELAY_MS": "-5"})

    assert timings == ReplayTimings()
    assert len(caplog.records) == 2


def test_retry_makes_final_attempt_after_deadline() -> None:
    clock = FakeClock()
    calls: list[float] = []

    def probe() -> str | None:
        calls.append(clock.now)
        return "ok" if len(calls) == 4 else None

    result = RetryPolicy(timeout=1.0, interval=0.5).run(probe, clock=clock, sleep=clock.sleep)

    assert result == "ok"
    assert calls == [0.0, 0.5, 1.0, 1.0]


def test_retry_respects_attempt_limit() -> None:
    clock = FakeClock()
    calls: list[int] = []

    def probe() -> None:
        calls.append(1)
        return None

    assert RetryPolicy(timeout=10.0, max_attempts=2).run(probe, clock=clock, sleep=clock.sleep) is None
    assert len(calls) == 2


def test_retry_returns_first_result_without_sleeping() -> None:
    clock = FakeClock()

    assert RetryPolicy(timeout=5.0).run(lambda: 42, clock=clock, sleep=clock.sleep) == 42
    assert clock.now == 0.0


def test_async_retry_uses_awaitable_sleep() -> None:
    clock = FakeClock()
    calls: list[int] = []

    async def sleep(seconds: float) -> None:
        clock.sleep(seconds)

    def probe() -> str | None:
        calls.append(1)
        return "ready" if len(calls) == 3 else None

    result = asyncio.run(RetryPolicy(timeout=2.0, interval=0.5).run_async(probe, clock=clock, sleep=sleep))

    assert result == "ready"
    assert clock.now == 1.0
