"""Provides interruptible rate-limiting for repeated asyncio operations.

This module defines an abstract base class `RateLimiter` and provides
concrete implementations:
  - `RateLimiterImpl`: enforces a minimum time interval between the starts of
    consecutive operations. Waiting may be cut short by an abort signal.
  - `NullRateLimiter`: imposes no restrictions.
"""

import asyncio
from abc import ABC, abstractmethod


class RateLimiter(ABC):
    """Abstract base class for asynchronous rate limiters."""

    @abstractmethod
    async def wait_for_pass(self, abort: asyncio.Event | None = None) -> bool:
        """Waits until the next operation is permitted.

        Args:
            abort: Optional signal. When set, waiting ends immediately.

        Returns:
            True if the operation may proceed, False if `abort` was set first.
        """


class RateLimiterImpl(RateLimiter):
    """Enforces a minimum interval between consecutive passes.

    The first pass is granted immediately. Each later pass is granted no
    earlier than `interval_seconds` after the previous one was granted. Must
    be used from a single event loop.
    """

    def __init__(self, interval_seconds: float) -> None:
        """Initializes the RateLimiterImpl.

        Args:
            interval_seconds: The minimum time interval, in seconds, between
                consecutive passes. Must be non-negative.

        Raises:
            ValueError: If `interval_seconds` is negative.
        """
        if interval_seconds < 0:
            raise ValueError("Interval must be non-negative.")
        self.__interval: float = interval_seconds
        self.__next_allowed_pass_time: float | None = None
        self.__lock: asyncio.Lock = asyncio.Lock()

    @property
    def interval(self) -> float:
        """The configured minimum interval, in seconds."""
        return self.__interval

    async def wait_for_pass(self, abort: asyncio.Event | None = None) -> bool:
        async with self.__lock:
            loop = asyncio.get_running_loop()
            if self.__next_allowed_pass_time is not None:
                time_to_wait = self.__next_allowed_pass_time - loop.time()
                if time_to_wait > 0:
                    if abort is None:
                        await asyncio.sleep(time_to_wait)
                    else:
                        try:
                            await asyncio.wait_for(abort.wait(), time_to_wait)
                        except asyncio.TimeoutError:
                            pass

            if abort is not None and abort.is_set():
                return False

            self.__next_allowed_pass_time = loop.time() + self.__interval
            return True


class NullRateLimiter(RateLimiter):
    """A rate limiter that never delays, used when no interval is set."""

    async def wait_for_pass(self, abort: asyncio.Event | None = None) -> bool:
        return abort is None or not abort.is_set()
