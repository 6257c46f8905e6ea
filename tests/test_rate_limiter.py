import asyncio
import time

import pytest

from facilitator.services.rate_limiter import MinIntervalRateLimiter


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.mark.asyncio
async def test_first_call_is_not_delayed():
    clock = FakeClock()
    limiter = MinIntervalRateLimiter(1.0, clock=clock, sleep=clock.sleep)
    await limiter.acquire()
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_back_to_back_calls_wait_for_remaining_window():
    clock = FakeClock()
    limiter = MinIntervalRateLimiter(1.0, clock=clock, sleep=clock.sleep)
    await limiter.acquire()
    clock.now += 0.25
    await limiter.acquire()
    assert clock.sleeps == [pytest.approx(0.75)]


@pytest.mark.asyncio
async def test_no_wait_after_window_elapsed():
    clock = FakeClock()
    limiter = MinIntervalRateLimiter(1.0, clock=clock, sleep=clock.sleep)
    await limiter.acquire()
    clock.now += 1.5
    await limiter.acquire()
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_concurrent_callers_are_spaced_one_second_apart():
    limiter = MinIntervalRateLimiter(1.0)
    starts = []

    async def call():
        await limiter.acquire()
        starts.append(time.monotonic())

    await asyncio.gather(call(), call())
    assert len(starts) == 2
    assert starts[1] - starts[0] >= 0.99
