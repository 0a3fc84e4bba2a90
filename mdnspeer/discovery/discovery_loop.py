"""Defines DiscoveryLoop, which repeats discovery rounds until stopped."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from mdnspeer.discovery.discovered_entry import DiscoveredEntry
from mdnspeer.discovery.mdns.discovery_query import DiscoveryQuery
from mdnspeer.discovery.mdns.query_params import QueryParams
from mdnspeer.discovery.result_channel import ResultChannel
from mdnspeer.errors import QueryError
from mdnspeer.threading.rate_limiter import (
    NullRateLimiter,
    RateLimiter,
    RateLimiterImpl,
)
from mdnspeer.util.stopable import Stopable

_logger = logging.getLogger(__name__)

# Runs one round for the given params, returning when the round ends or the
# given event is set.
QueryRunner = Callable[[QueryParams, asyncio.Event], Awaitable[None]]


async def _run_discovery_query(
    params: QueryParams, cancel: asyncio.Event
) -> None:
    await DiscoveryQuery(params).run(cancel)


class DiscoveryLoop(Stopable):
    """Issues discovery rounds for one service type back to back.

    Every round writes into the same `ResultChannel`; rounds never overlap.
    A failed round (`QueryError`) is logged and counted and the next round
    starts as usual. Any other exception, including `ChannelClosedError`,
    ends the loop and propagates from `run()`.

    The stop signal is checked before every round and handed to the round
    itself, so `stop()` also cuts an in-flight round short.
    """

    def __init__(
        self,
        service_type: str,
        entries: ResultChannel[DiscoveredEntry],
        per_query_timeout: float,
        *,
        min_round_interval: float = 0.0,
        domain: str = "local",
        query_runner: QueryRunner | None = None,
    ) -> None:
        """Initializes the DiscoveryLoop.

        Args:
            service_type: Service type to search for.
            entries: Channel shared by all rounds. Not closed by the loop.
            per_query_timeout: Duration of each round in seconds. Must be
                positive.
            min_round_interval: Minimum time between the starts of two
                rounds, in seconds. 0 means rounds start back to back.
            domain: mDNS domain.
            query_runner: Runs a single round. Defaults to `DiscoveryQuery`.

        Raises:
            ValueError: If a timing argument is out of range or the service
                type is malformed.
        """
        if min_round_interval < 0:
            raise ValueError(
                f"min_round_interval must be non-negative, "
                f"got {min_round_interval}."
            )

        # Validates service_type and per_query_timeout up front.
        self.__params = QueryParams(
            service_type=service_type,
            entries=entries,
            timeout=per_query_timeout,
            domain=domain,
        )
        self.__min_round_interval = min_round_interval
        self.__query_runner: QueryRunner = query_runner or _run_discovery_query

        self.__stop_signal = asyncio.Event()
        self.__stopped = asyncio.Event()
        self.__is_running = False
        self.__round_count = 0
        self.__error_count = 0

    @property
    def round_count(self) -> int:
        """Number of rounds that have finished, successfully or not."""
        return self.__round_count

    @property
    def error_count(self) -> int:
        """Number of rounds that failed with a `QueryError`."""
        return self.__error_count

    @property
    def is_running(self) -> bool:
        return self.__is_running

    async def run(self) -> None:
        """Runs rounds until `stop()` is called.

        Raises:
            RuntimeError: If the loop is already running.
        """
        if self.__is_running:
            raise RuntimeError("DiscoveryLoop is already running.")
        self.__is_running = True
        self.__stopped.clear()

        rate_limiter: RateLimiter = (
            RateLimiterImpl(self.__min_round_interval)
            if self.__min_round_interval > 0
            else NullRateLimiter()
        )

        _logger.info(
            "Discovery loop started for %s (timeout %.1fs per round).",
            self.__params.type_name,
            self.__params.timeout,
        )
        try:
            while not self.__stop_signal.is_set():
                if not await rate_limiter.wait_for_pass(self.__stop_signal):
                    break
                await self.__run_round()
        finally:
            self.__is_running = False
            self.__stopped.set()
            _logger.info(
                "Discovery loop for %s stopped after %d rounds "
                "(%d failed).",
                self.__params.type_name,
                self.__round_count,
                self.__error_count,
            )

    async def stop(self) -> None:
        """Stops the loop and waits until `run()` has returned."""
        self.__stop_signal.set()
        if self.__is_running:
            await self.__stopped.wait()

    async def __run_round(self) -> None:
        try:
            await self.__query_runner(self.__params, self.__stop_signal)
        except QueryError as e:
            self.__error_count += 1
            _logger.warning(
                "Discovery round %d for %s failed: %s",
                self.__round_count + 1,
                self.__params.type_name,
                e,
            )
        finally:
            self.__round_count += 1
