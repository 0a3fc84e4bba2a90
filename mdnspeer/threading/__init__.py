"""asyncio helpers used to pace and interrupt mdnspeer's background tasks."""

from mdnspeer.threading.rate_limiter import (
    NullRateLimiter,
    RateLimiter,
    RateLimiterImpl,
)

__all__ = ["NullRateLimiter", "RateLimiter", "RateLimiterImpl"]
