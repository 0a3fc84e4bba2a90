"""Runs one bounded-time mDNS browse round using zeroconf."""

import asyncio
import logging

from zeroconf import Error as ZeroconfError
from zeroconf import ServiceListener, Zeroconf
from zeroconf.asyncio import (
    AsyncServiceBrowser,
    AsyncServiceInfo,
    AsyncZeroconf,
)

from mdnspeer.discovery.discovered_entry import DiscoveredEntry
from mdnspeer.discovery.mdns.query_params import QueryParams
from mdnspeer.errors import ChannelClosedError, QueryError

_logger = logging.getLogger(__name__)

# Lower bound for a single service resolution, in milliseconds.
_MIN_RESOLVE_TIMEOUT_MS = 10


class DiscoveryQuery(ServiceListener):
    """Browses for one service type for at most `params.timeout` seconds.

    Every add or update notification from zeroconf is resolved into a
    `DiscoveredEntry` and written to `params.entries` as soon as it is
    available. Entries are not deduplicated: a peer that is reported again
    within the round is forwarded again.

    A `DiscoveryQuery` runs a single round; create a new one per round.
    """

    def __init__(
        self,
        params: QueryParams,
        *,
        zc_instance: AsyncZeroconf | None = None,
    ) -> None:
        """Initializes the DiscoveryQuery.

        Args:
            params: Options of this round.
            zc_instance: Optional shared `AsyncZeroconf`. When omitted the
                round creates its own instance and closes it when done.
        """
        if params is None:
            raise ValueError("params cannot be None for DiscoveryQuery.")
        super().__init__()

        self.__params: QueryParams = params
        self.__type_name: str = params.type_name
        self.__shared_zc: AsyncZeroconf | None = zc_instance
        self.__zc: AsyncZeroconf | None = None
        self.__deadline: float = 0.0
        self.__pending: set[asyncio.Task[None]] = set()
        self.__closed_channel_error: ChannelClosedError | None = None
        self.__has_run: bool = False
        self.__entry_count: int = 0

    @property
    def entry_count(self) -> int:
        """Number of entries written to the channel by this round."""
        return self.__entry_count

    async def run(self, cancel: asyncio.Event | None = None) -> None:
        """Runs the round until the timeout elapses or `cancel` is set.

        Raises:
            QueryError: If the mDNS transport cannot be opened or the browse
                cannot be started.
            ChannelClosedError: If an entry was produced after
                `params.entries` was closed.
            RuntimeError: If this query already ran.
        """
        if self.__has_run:
            raise RuntimeError("DiscoveryQuery instances run only once.")
        self.__has_run = True

        loop = asyncio.get_running_loop()
        self.__deadline = loop.time() + self.__params.timeout

        owns_zc = self.__shared_zc is None
        self.__zc = self.__shared_zc or self.__create_zeroconf()

        browser: AsyncServiceBrowser | None = None
        try:
            try:
                browser = AsyncServiceBrowser(
                    self.__zc.zeroconf, [self.__type_name], listener=self
                )
            except (OSError, ZeroconfError) as e:
                raise QueryError(
                    f"Cannot browse for {self.__type_name}: {e}"
                ) from e

            await self.__wait_until_done(cancel)
        finally:
            if browser is not None:
                await browser.async_cancel()
            await self.__cancel_pending()
            if owns_zc:
                await self.__zc.async_close()
            self.__zc = None

        _logger.debug(
            "Query for %s finished with %d entries.",
            self.__type_name,
            self.__entry_count,
        )

        if self.__closed_channel_error is not None:
            raise self.__closed_channel_error

    # --- ServiceListener interface methods ---

    def add_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        """Called by `zeroconf` when a new service is discovered."""
        _logger.debug("Service added: type='%s', name='%s'.", type_, name)
        self.__schedule_resolve(type_, name)

    def update_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        """Called by `zeroconf` when a service's records change."""
        _logger.debug("Service updated: type='%s', name='%s'.", type_, name)
        self.__schedule_resolve(type_, name)

    def remove_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        """Called by `zeroconf` when a service goes away. Not reported."""
        _logger.debug("Service removed: type='%s', name='%s'.", type_, name)

    # --- Internals ---

    def __create_zeroconf(self) -> AsyncZeroconf:
        try:
            return AsyncZeroconf(ip_version=self.__params.ip_version)
        except (OSError, ZeroconfError) as e:
            raise QueryError(f"Cannot open mDNS sockets: {e}") from e

    async def __wait_until_done(self, cancel: asyncio.Event | None) -> None:
        if cancel is None:
            await asyncio.sleep(self.__params.timeout)
            return

        try:
            await asyncio.wait_for(cancel.wait(), self.__params.timeout)
        except asyncio.TimeoutError:
            pass

    def __schedule_resolve(self, type_: str, name: str) -> None:
        if type_ != self.__type_name:
            _logger.debug(
                "Ignoring '%s' of type '%s'. Expected '%s'.",
                name,
                type_,
                self.__type_name,
            )
            return
        if self.__zc is None:
            return

        task = asyncio.create_task(self.__resolve(self.__zc, type_, name))
        self.__pending.add(task)
        task.add_done_callback(self.__on_resolve_done)

    def __on_resolve_done(self, task: "asyncio.Task[None]") -> None:
        self.__pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            _logger.warning(
                "Resolving a %s instance failed: %s",
                self.__type_name,
                error,
                exc_info=error,
            )

    async def __resolve(
        self, zc: AsyncZeroconf, type_: str, name: str
    ) -> None:
        remaining = self.__deadline - asyncio.get_running_loop().time()
        timeout_ms = max(int(remaining * 1000), _MIN_RESOLVE_TIMEOUT_MS)

        info = AsyncServiceInfo(type_, name)
        if not await info.async_request(zc.zeroconf, timeout_ms):
            _logger.debug("Failed to resolve '%s' in time.", name)
            return

        try:
            entry = DiscoveredEntry.from_service_info(info)
        except ValueError as e:
            _logger.warning("Skipping incomplete service '%s': %s", name, e)
            return

        try:
            self.__params.entries.put(entry)
        except ChannelClosedError as e:
            _logger.error(
                "Discovered '%s' after the result channel was closed.", name
            )
            if self.__closed_channel_error is None:
                self.__closed_channel_error = e
            return
        self.__entry_count += 1

    async def __cancel_pending(self) -> None:
        pending = list(self.__pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.wait(pending)


async def query(
    params: QueryParams,
    cancel: asyncio.Event | None = None,
    *,
    zc_instance: AsyncZeroconf | None = None,
) -> None:
    """Runs a single discovery round. See `DiscoveryQuery.run()`."""
    await DiscoveryQuery(params, zc_instance=zc_instance).run(cancel)
