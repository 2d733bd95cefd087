import asyncio

import pytest

from app.services.polling import PollTimeoutError, poll_until


class FakeClock:
    """Manual clock; ``sleep`` advances it instead of waiting."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _poll(fetch, is_terminal, clock, interval=10, deadline=180, **kwargs):
    return asyncio.run(
        poll_until(fetch, is_terminal, interval=interval, deadline=deadline, sleep=clock.sleep, clock=clock, **kwargs)
    )


def test_returns_first_terminal_result():
    clock = FakeClock()
    states = iter(["pending", "pending", "done"])

    async def fetch():
        return next(states)

    assert _poll(fetch, lambda s: s == "done", clock) == "done"
    assert clock.sleeps == [10, 10]


def test_terminal_on_first_attempt_does_not_sleep():
    clock = FakeClock()

    async def fetch():
        return "done"

    assert _poll(fetch, lambda s: s == "done", clock) == "done"
    assert clock.sleeps == []


def test_times_out_at_deadline():
    clock = FakeClock()
    calls = []

    async def fetch():
        calls.append(clock.now)
        return "pending"

    with pytest.raises(PollTimeoutError) as exc_info:
        _poll(fetch, lambda s: s == "done", clock, interval=10, deadline=35)

    assert exc_info.value.attempts == 5
    assert exc_info.value.last_result == "pending"
    assert exc_info.value.elapsed >= 35
    # last sleep is clipped to the remaining time
    assert clock.sleeps == [10, 10, 10, 5]


def test_transient_errors_are_retried():
    clock = FakeClock()
    outcomes = iter([RuntimeError("boom"), ConnectionError("reset"), "done"])

    async def fetch():
        outcome = next(outcomes)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    assert _poll(fetch, lambda s: s == "done", clock) == "done"
    assert len(clock.sleeps) == 2


def test_only_errors_until_deadline_raise_timeout():
    clock = FakeClock()

    async def fetch():
        raise RuntimeError("vendor down")

    with pytest.raises(PollTimeoutError) as exc_info:
        _poll(fetch, lambda s: True, clock, interval=1, deadline=3)
    assert exc_info.value.last_result is None
    assert exc_info.value.attempts == 4


def test_non_transient_errors_propagate():
    clock = FakeClock()

    async def fetch():
        raise KeyError("bug")

    with pytest.raises(KeyError):
        _poll(fetch, lambda s: True, clock, transient=(ConnectionError,))
