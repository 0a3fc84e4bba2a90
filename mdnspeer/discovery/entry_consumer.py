"""Defines EntryConsumer, which reacts to every discovered entry."""

import inspect
import logging
from collections.abc import Awaitable, Callable

from mdnspeer.discovery.discovered_entry import DiscoveredEntry
from mdnspeer.discovery.result_channel import ResultChannel

_logger = logging.getLogger(__name__)

EntryHandler = Callable[[DiscoveredEntry], Awaitable[None] | None]


def report_entry(entry: DiscoveredEntry) -> None:
    """Default handler: reports the entry through logging."""
    _logger.info(
        "Got new entry: %s at %s:%d (%s) [%s]",
        entry.name,
        entry.host,
        entry.port,
        ", ".join(entry.addresses),
        entry.info,
    )


class EntryConsumer:
    """Drains a `ResultChannel` and hands each entry to a handler.

    The handler may be a plain function or a coroutine function. A handler
    failure is logged and counted; it never reaches the discovery side.
    Handlers are awaited one at a time, so a slow handler only delays
    consumption, and the channel's drop-oldest policy bounds the backlog.
    """

    def __init__(self, on_entry: EntryHandler | None = None) -> None:
        self.__on_entry: EntryHandler = on_entry or report_entry
        self.__entry_count = 0
        self.__failure_count = 0

    @property
    def entry_count(self) -> int:
        return self.__entry_count

    @property
    def failure_count(self) -> int:
        return self.__failure_count

    async def consume(self, channel: ResultChannel[DiscoveredEntry]) -> None:
        """Handles entries until `channel` is closed and drained."""
        async for entry in channel:
            self.__entry_count += 1
            try:
                result = self.__on_entry(entry)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:  # pylint: disable=broad-exception-caught
                self.__failure_count += 1
                _logger.error(
                    "Entry handler failed for %s: %s",
                    entry.name,
                    e,
                    exc_info=True,
                )

        _logger.info(
            "Entry consumer finished after %d entries (%d handler failures).",
            self.__entry_count,
            self.__failure_count,
        )
