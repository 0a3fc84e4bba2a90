import asyncio

import pytest

from mdnspeer.threading.rate_limiter import NullRateLimiter, RateLimiterImpl


def test_negative_interval_rejected():
    with pytest.raises(ValueError):
        RateLimiterImpl(-0.1)


@pytest.mark.asyncio
async def test_first_pass_is_immediate():
    limiter = RateLimiterImpl(5.0)
    loop = asyncio.get_running_loop()

    start = loop.time()
    assert await limiter.wait_for_pass() is True
    assert loop.time() - start < 0.5


@pytest.mark.asyncio
async def test_second_pass_waits_for_interval():
    limiter = RateLimiterImpl(0.2)
    loop = asyncio.get_running_loop()

    await limiter.wait_for_pass()
    start = loop.time()
    await limiter.wait_for_pass()

    assert loop.time() - start >= 0.15


@pytest.mark.asyncio
async def test_abort_cuts_wait_short():
    limiter = RateLimiterImpl(10.0)
    abort = asyncio.Event()
    loop = asyncio.get_running_loop()

    await limiter.wait_for_pass(abort)
    loop.call_later(0.05, abort.set)

    start = loop.time()
    assert await limiter.wait_for_pass(abort) is False
    assert loop.time() - start < 2.0


@pytest.mark.asyncio
async def test_null_rate_limiter():
    limiter = NullRateLimiter()
    abort = asyncio.Event()

    assert await limiter.wait_for_pass() is True
    assert await limiter.wait_for_pass(abort) is True
    abort.set()
    assert await limiter.wait_for_pass(abort) is False
