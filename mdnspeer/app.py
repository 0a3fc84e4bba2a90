"""DiscoveryApp wires the advertiser, discovery loop and consumer together.

Startup order:
  1. Start advertising and wait until the registration is live.
  2. Create the result channel.
  3. Start the consumer, then the discovery loop, both bound to the channel.

Shutdown order is the reverse: stop the discovery loop (aborting its current
round), close the channel, let the consumer drain it, and finally withdraw
the advertisement. Closing the channel only after the loop has stopped
guarantees that no round writes to a closed channel.
"""

import asyncio
import logging
import signal
from collections.abc import Callable

from mdnspeer.config import DiscoveryConfig
from mdnspeer.discovery.discovered_entry import DiscoveredEntry
from mdnspeer.discovery.discovery_loop import DiscoveryLoop
from mdnspeer.discovery.entry_consumer import EntryConsumer
from mdnspeer.discovery.mdns.service_advertiser import ServiceAdvertiser
from mdnspeer.discovery.result_channel import ResultChannel
from mdnspeer.errors import RegistrationError

_logger = logging.getLogger(__name__)

LoopFactory = Callable[
    [DiscoveryConfig, ResultChannel[DiscoveredEntry]], DiscoveryLoop
]


def _default_loop_factory(
    config: DiscoveryConfig, channel: ResultChannel[DiscoveredEntry]
) -> DiscoveryLoop:
    return DiscoveryLoop(
        config.target_service_type,
        channel,
        config.query_timeout,
        min_round_interval=config.min_round_interval,
        domain=config.domain,
    )


class DiscoveryApp:
    """Advertises one service and reports peers of another service type.

    All collaborators can be injected, which is how tests replace the
    network-facing parts.
    """

    def __init__(
        self,
        config: DiscoveryConfig | None = None,
        *,
        advertiser: ServiceAdvertiser | None = None,
        consumer: EntryConsumer | None = None,
        loop_factory: LoopFactory | None = None,
    ) -> None:
        self.__config = config or DiscoveryConfig()
        self.__advertiser = advertiser or ServiceAdvertiser()
        self.__consumer = consumer or EntryConsumer()
        self.__loop_factory = loop_factory or _default_loop_factory

    @property
    def config(self) -> DiscoveryConfig:
        return self.__config

    async def run(self, shutdown: asyncio.Event) -> None:
        """Runs until `shutdown` is set, then shuts down in order.

        Raises:
            RegistrationError: If the advertisement fails or does not become
                live within `config.ready_timeout`.
            Exception: Whatever ended a background task unexpectedly, after
                every other component has been shut down.
        """
        record = self.__config.make_record()
        advertiser_stop = asyncio.Event()
        ready = asyncio.Event()
        advertiser_task = asyncio.create_task(
            self.__advertiser.serve(record, advertiser_stop, ready),
            name="mdnspeer-advertiser",
        )

        try:
            await self.__wait_until_ready(advertiser_task, ready)
        except BaseException:
            advertiser_stop.set()
            if not advertiser_task.done():
                advertiser_task.cancel()
            await asyncio.wait({advertiser_task})
            raise
        _logger.info("Advertising %s.", record.instance_name)

        channel: ResultChannel[DiscoveredEntry] = ResultChannel(
            self.__config.buffer_size
        )
        discovery_loop = self.__loop_factory(self.__config, channel)
        consumer_task = asyncio.create_task(
            self.__consumer.consume(channel), name="mdnspeer-consumer"
        )
        loop_task = asyncio.create_task(
            discovery_loop.run(), name="mdnspeer-discovery-loop"
        )
        shutdown_task = asyncio.create_task(shutdown.wait())

        try:
            done, _ = await asyncio.wait(
                {shutdown_task, loop_task, consumer_task, advertiser_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if shutdown_task not in done:
                _logger.error(
                    "A background task exited before shutdown was requested."
                )
        finally:
            shutdown_task.cancel()
            _logger.info("Shutting down.")

            await discovery_loop.stop()
            await asyncio.wait({loop_task})

            channel.close()
            await asyncio.wait({consumer_task})

            advertiser_stop.set()
            await asyncio.wait({advertiser_task})

        for task in (loop_task, consumer_task, advertiser_task):
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()  # type: ignore[misc]

    async def __wait_until_ready(
        self,
        advertiser_task: "asyncio.Task[None]",
        ready: asyncio.Event,
    ) -> None:
        ready_task = asyncio.create_task(ready.wait())
        try:
            await asyncio.wait(
                {ready_task, advertiser_task},
                timeout=self.__config.ready_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            ready_task.cancel()

        if ready.is_set():
            return
        if advertiser_task.done():
            # Re-raises the RegistrationError that ended the advertiser.
            advertiser_task.result()
            raise RegistrationError(
                "Advertiser exited before the service was registered."
            )
        raise RegistrationError(
            f"Service not registered within {self.__config.ready_timeout}s."
        )


def install_shutdown_handlers(
    loop: asyncio.AbstractEventLoop,
    shutdown: asyncio.Event,
    signals: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM),
) -> list[signal.Signals]:
    """Makes the first of `signals` set `shutdown`.

    The handlers remove themselves once triggered, so a second signal gets
    the default behavior and can interrupt a shutdown that hangs.

    Returns:
        The signals a handler was installed for.
    """
    installed: list[signal.Signals] = []

    def on_signal(sig: signal.Signals) -> None:
        _logger.info(
            "Received %s, shutting down. Repeat to exit immediately.",
            sig.name,
        )
        shutdown.set()
        for other in installed:
            loop.remove_signal_handler(other)

    for sig in signals:
        try:
            loop.add_signal_handler(sig, on_signal, sig)
        except NotImplementedError:
            # Windows event loops; Ctrl+C then cancels the main task instead.
            _logger.debug("Signal handlers unsupported for %s.", sig)
        else:
            installed.append(sig)
    return installed


async def run_until_signalled(config: DiscoveryConfig) -> None:
    """Runs a `DiscoveryApp` until SIGINT or SIGTERM is received."""
    shutdown = asyncio.Event()
    install_shutdown_handlers(asyncio.get_running_loop(), shutdown)
    await DiscoveryApp(config).run(shutdown)


def main() -> int:
    """Process entry point. Returns the exit status."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(run_until_signalled(DiscoveryConfig()))
    except RegistrationError as e:
        _logger.error("Failed to advertise service: %s", e)
        return 1
    except KeyboardInterrupt:
        _logger.info("Interrupted.")
    return 0
