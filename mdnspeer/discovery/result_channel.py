"""
Defines ResultChannel, the bounded queue between discovery and consumption.

The channel is written by the discovery loop and read by a single consumer.
Writes never block: when the channel is full the oldest entry is discarded so
that a slow consumer can never stall discovery. Closing the channel lets the
reader drain what is left and then stop; writing afterwards is a shutdown
ordering bug and raises `ChannelClosedError`.
"""

import asyncio
import logging
from collections import deque
from typing import AsyncIterator, Deque, Generic, TypeVar

from mdnspeer.errors import ChannelClosedError

_logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1000

ItemT = TypeVar("ItemT")


class ResultChannel(Generic[ItemT]):
    """A closable, bounded FIFO for use from a single asyncio event loop.

    NOTE: Not thread-safe. All methods must be called from the event loop
    that runs the producer and consumer tasks.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        """Initializes the channel.

        Args:
            capacity: Maximum number of buffered items. Must be positive.

        Raises:
            ValueError: If `capacity` is not positive.
        """
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}.")

        self.__capacity = capacity
        self.__items: Deque[ItemT] = deque()
        self.__available = asyncio.Event()
        self.__closed = False
        self.__dropped_count = 0

    @property
    def capacity(self) -> int:
        return self.__capacity

    @property
    def closed(self) -> bool:
        return self.__closed

    @property
    def dropped_count(self) -> int:
        """Number of items discarded because the channel was full."""
        return self.__dropped_count

    def put(self, item: ItemT) -> None:
        """Appends `item`, discarding the oldest item if the channel is full.

        Raises:
            ChannelClosedError: If the channel has been closed.
        """
        if self.__closed:
            raise ChannelClosedError(
                "Attempted to write to a closed ResultChannel."
            )

        if len(self.__items) >= self.__capacity:
            self.__items.popleft()
            self.__dropped_count += 1
            _logger.warning(
                "ResultChannel full (capacity %d). Dropped oldest entry; "
                "%d dropped so far.",
                self.__capacity,
                self.__dropped_count,
            )

        self.__items.append(item)
        self.__available.set()

    async def get(self) -> ItemT:
        """Waits for and returns the oldest item.

        Items written before `close()` are still returned after it.

        Raises:
            ChannelClosedError: If the channel is closed and fully drained.
        """
        while True:
            if self.__items:
                return self.__items.popleft()
            if self.__closed:
                raise ChannelClosedError("ResultChannel is closed and empty.")

            self.__available.clear()
            await self.__available.wait()

    def close(self) -> None:
        """Closes the channel and wakes the reader. Idempotent."""
        if self.__closed:
            return
        self.__closed = True
        self.__available.set()
        _logger.debug(
            "ResultChannel closed with %d undelivered entries.",
            len(self.__items),
        )

    def __aiter__(self) -> AsyncIterator[ItemT]:
        return self

    async def __anext__(self) -> ItemT:
        try:
            return await self.get()
        except ChannelClosedError as e:
            raise StopAsyncIteration from e

    def __len__(self) -> int:
        return len(self.__items)
