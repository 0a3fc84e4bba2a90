import asyncio
import signal
from unittest.mock import AsyncMock, MagicMock, call, patch

import pytest
from zeroconf.asyncio import AsyncZeroconf

from mdnspeer.app import DiscoveryApp, install_shutdown_handlers
from mdnspeer.config import DiscoveryConfig
from mdnspeer.discovery.discovered_entry import DiscoveredEntry
from mdnspeer.discovery.discovery_loop import DiscoveryLoop
from mdnspeer.discovery.entry_consumer import EntryConsumer
from mdnspeer.discovery.mdns.service_advertiser import ServiceAdvertiser
from mdnspeer.errors import ChannelClosedError, RegistrationError

ZC_PATH = "mdnspeer.discovery.mdns.service_advertiser.AsyncZeroconf"


def make_mock_zc(events=None):
    """Returns a mock AsyncZeroconf whose unregister yields a goodbye."""
    events = [] if events is None else events
    mock_zc = AsyncMock(spec=AsyncZeroconf)

    async def send_goodbye():
        events.append("goodbye")

    async def unregister(info):
        events.append("unregister")
        return send_goodbye()

    async def close():
        events.append("close")

    mock_zc.async_unregister_service.side_effect = unregister
    mock_zc.async_close.side_effect = close
    return mock_zc


def make_config(**overrides):
    values = dict(service_name="testhost", query_timeout=5.0)
    values.update(overrides)
    return DiscoveryConfig(**values)


def make_advertiser():
    return ServiceAdvertiser(address_provider=lambda: ["127.0.0.1"])


def make_entry(index):
    return DiscoveredEntry(
        name=f"peer{index}._workstation._tcp.local.",
        host=f"peer{index}.local.",
        addresses=("192.168.1.30",),
        port=22,
    )


def loop_factory_with(runner):
    def factory(config, channel):
        return DiscoveryLoop(
            config.target_service_type,
            channel,
            config.query_timeout,
            query_runner=runner,
        )

    return factory


@pytest.mark.asyncio
async def test_run_discovers_and_shuts_down_in_order():
    mock_zc = make_mock_zc()
    shutdown = asyncio.Event()
    seen = []
    round_started = asyncio.Event()

    async def runner(params, cancel):
        # Advertising must already be live when discovery starts.
        mock_zc.async_register_service.assert_awaited_once()
        for index in range(3):
            params.entries.put(make_entry(index))
        round_started.set()
        await cancel.wait()
        # Shutdown stops the loop before the channel is closed.
        assert not params.entries.closed

    def on_entry(entry):
        seen.append(entry.name)
        if len(seen) == 3:
            shutdown.set()

    with patch(ZC_PATH, return_value=mock_zc):
        app = DiscoveryApp(
            make_config(),
            advertiser=make_advertiser(),
            consumer=EntryConsumer(on_entry),
            loop_factory=loop_factory_with(runner),
        )
        await asyncio.wait_for(app.run(shutdown), timeout=5.0)

    assert round_started.is_set()
    assert seen == [
        "peer0._workstation._tcp.local.",
        "peer1._workstation._tcp.local.",
        "peer2._workstation._tcp.local.",
    ]
    mock_zc.async_unregister_service.assert_awaited_once()
    mock_zc.async_close.assert_awaited_once()


@pytest.mark.asyncio
async def test_registration_failure_aborts_startup():
    factory_calls = []

    def factory(config, channel):
        factory_calls.append(channel)
        raise AssertionError("discovery must not start")

    with patch(ZC_PATH, side_effect=OSError("bind failed")):
        app = DiscoveryApp(
            make_config(),
            advertiser=make_advertiser(),
            loop_factory=factory,
        )
        with pytest.raises(RegistrationError):
            await app.run(asyncio.Event())

    assert factory_calls == []


class NeverReadyAdvertiser(ServiceAdvertiser):
    def __init__(self):
        super().__init__()
        self.cancelled = False

    async def serve(self, record, stop_signal, ready=None):
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise


@pytest.mark.asyncio
async def test_ready_timeout_raises_registration_error():
    advertiser = NeverReadyAdvertiser()
    app = DiscoveryApp(make_config(ready_timeout=0.1), advertiser=advertiser)

    with pytest.raises(RegistrationError):
        await asyncio.wait_for(app.run(asyncio.Event()), timeout=2.0)

    assert advertiser.cancelled


@pytest.mark.asyncio
async def test_unexpected_loop_failure_is_raised_after_cleanup():
    mock_zc = make_mock_zc()

    async def runner(params, cancel):
        raise ChannelClosedError("lifecycle bug")

    with patch(ZC_PATH, return_value=mock_zc):
        app = DiscoveryApp(
            make_config(),
            advertiser=make_advertiser(),
            loop_factory=loop_factory_with(runner),
        )
        with pytest.raises(ChannelClosedError):
            await asyncio.wait_for(app.run(asyncio.Event()), timeout=2.0)

    mock_zc.async_unregister_service.assert_awaited_once()
    mock_zc.async_close.assert_awaited_once()


@pytest.mark.asyncio
async def test_shutdown_interrupts_long_round():
    mock_zc = make_mock_zc()
    shutdown = asyncio.Event()
    started = asyncio.Event()

    async def runner(params, cancel):
        started.set()
        await cancel.wait()

    with patch(ZC_PATH, return_value=mock_zc):
        app = DiscoveryApp(
            make_config(query_timeout=600.0),
            advertiser=make_advertiser(),
            loop_factory=loop_factory_with(runner),
        )
        task = asyncio.create_task(app.run(shutdown))
        await asyncio.wait_for(started.wait(), timeout=2.0)

        shutdown.set()
        await asyncio.wait_for(task, timeout=2.0)

    mock_zc.async_close.assert_awaited_once()


def test_default_collaborators():
    app = DiscoveryApp()

    assert app.config == DiscoveryConfig()


def test_first_signal_sets_shutdown_and_restores_default_handling():
    loop = MagicMock(spec=asyncio.AbstractEventLoop)
    shutdown = asyncio.Event()

    installed = install_shutdown_handlers(loop, shutdown)

    assert installed == [signal.SIGINT, signal.SIGTERM]
    assert not shutdown.is_set()
    callback, sig = loop.add_signal_handler.call_args_list[0].args[1:]
    callback(sig)

    assert shutdown.is_set()
    loop.remove_signal_handler.assert_has_calls(
        [call(signal.SIGINT), call(signal.SIGTERM)]
    )


def test_unsupported_signal_handlers_are_skipped():
    loop = MagicMock(spec=asyncio.AbstractEventLoop)
    loop.add_signal_handler.side_effect = NotImplementedError

    installed = install_shutdown_handlers(loop, asyncio.Event())

    assert installed == []
