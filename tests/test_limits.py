import asyncio
import time

import pytest

from frostrpc.limits import RateLimiter, RequestGate


async def _peak_concurrency(gate, n_tasks):
    active = 0
    peak = 0

    async def worker():
        nonlocal active, peak
        async with gate.permit():
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

    await asyncio.gather(*(worker() for _ in range(n_tasks)))
    return peak


@pytest.mark.asyncio
async def test_gate_caps_concurrency():
    gate = RequestGate(max_concurrent_requests=2, max_requests_per_second=None)
    assert await _peak_concurrency(gate, 6) == 2
    assert gate.rate_limiter is None


@pytest.mark.asyncio
async def test_gate_without_limits_runs_everything_at_once():
    gate = RequestGate(None, None)
    assert await _peak_concurrency(gate, 5) == 5
    assert gate.semaphore is None


@pytest.mark.asyncio
async def test_gate_with_rate_limit_still_admits_all():
    gate = RequestGate(max_concurrent_requests=3, max_requests_per_second=100)
    assert await _peak_concurrency(gate, 4) == 3
    assert gate.rate_limiter.per_second == 100


def test_gate_rejects_non_positive_concurrency():
    with pytest.raises(ValueError):
        RequestGate(max_concurrent_requests=0, max_requests_per_second=None)


def test_rate_limiter_rejects_non_positive_rate():
    with pytest.raises(ValueError):
        RateLimiter(0)


@pytest.mark.asyncio
async def test_rate_limiter_allows_burst_then_waits():
    limiter = RateLimiter(20)
    assert limiter.per_second == 20

    start = time.monotonic()
    for _ in range(20):
        await limiter.until_ready()
    burst_elapsed = time.monotonic() - start
    assert burst_elapsed < 0.04

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(limiter.until_ready(), timeout=0.005)