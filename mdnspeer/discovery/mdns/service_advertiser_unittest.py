import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from zeroconf import IPVersion, NonUniqueNameException
from zeroconf.asyncio import AsyncZeroconf

from mdnspeer.discovery.mdns.service_advertiser import ServiceAdvertiser
from mdnspeer.discovery.service_record import ServiceRecord
from mdnspeer.errors import RegistrationError

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


def make_record(**overrides):
    values = dict(
        instance="testhost",
        service_type="_foobar._tcp",
        port=8080,
        ips=("192.168.1.10",),
        metadata=("My awesome service",),
    )
    values.update(overrides)
    return ServiceRecord(**values)


@pytest.mark.asyncio
async def test_start_then_stop_releases_owned_zeroconf():
    mock_zc = make_mock_zc()

    with patch(ZC_PATH, return_value=mock_zc) as mock_zc_constructor:
        advertiser = ServiceAdvertiser()
        handle = await advertiser.start(make_record())

        mock_zc_constructor.assert_called_once_with(
            ip_version=IPVersion.V4Only
        )
        mock_zc.async_register_service.assert_awaited_once()
        assert not handle.is_released
        assert handle.service_name == "testhost._foobar._tcp.local."

        await advertiser.stop(handle)

    assert handle.is_released
    mock_zc.async_unregister_service.assert_awaited_once()
    mock_zc.async_close.assert_awaited_once()

    # Releasing twice must not touch the network again.
    await advertiser.stop(handle)
    mock_zc.async_unregister_service.assert_awaited_once()
    mock_zc.async_close.assert_awaited_once()


@pytest.mark.asyncio
async def test_stop_sends_goodbye_before_closing_zeroconf():
    events = []
    mock_zc = make_mock_zc(events)

    with patch(ZC_PATH, return_value=mock_zc):
        advertiser = ServiceAdvertiser()
        handle = await advertiser.start(make_record())
        await advertiser.stop(handle)

    assert events == ["unregister", "goodbye", "close"]


@pytest.mark.asyncio
async def test_registered_service_info_matches_record():
    mock_zc = make_mock_zc()

    with patch(ZC_PATH, return_value=mock_zc):
        advertiser = ServiceAdvertiser()
        handle = await advertiser.start(make_record())

    service_info = mock_zc.async_register_service.call_args[0][0]
    assert service_info.type == "_foobar._tcp.local."
    assert service_info.name == "testhost._foobar._tcp.local."
    assert service_info.server == "testhost.local."
    assert service_info.port == 8080
    assert service_info.parsed_addresses() == ["192.168.1.10"]
    assert service_info.text == bytes([18]) + b"My awesome service"

    await advertiser.stop(handle)


@pytest.mark.asyncio
async def test_address_provider_used_when_record_has_no_ips():
    mock_zc = make_mock_zc()
    provider = lambda: ["10.0.0.7"]  # noqa: E731

    with patch(ZC_PATH, return_value=mock_zc):
        advertiser = ServiceAdvertiser(address_provider=provider)
        handle = await advertiser.start(make_record(ips=None))

    service_info = mock_zc.async_register_service.call_args[0][0]
    assert service_info.parsed_addresses() == ["10.0.0.7"]
    await advertiser.stop(handle)


@pytest.mark.asyncio
async def test_shared_zeroconf_is_not_closed():
    shared_zc = make_mock_zc()

    with patch(ZC_PATH) as mock_zc_constructor:
        advertiser = ServiceAdvertiser(zc_instance=shared_zc)
        handle = await advertiser.start(make_record())
        await advertiser.stop(handle)

    mock_zc_constructor.assert_not_called()
    shared_zc.async_register_service.assert_awaited_once()
    shared_zc.async_unregister_service.assert_awaited_once()
    shared_zc.async_close.assert_not_called()


@pytest.mark.asyncio
async def test_malformed_record_raises_registration_error():
    with patch(ZC_PATH) as mock_zc_constructor:
        advertiser = ServiceAdvertiser()
        with pytest.raises(RegistrationError):
            await advertiser.start(make_record(service_type="foobar"))

    mock_zc_constructor.assert_not_called()


@pytest.mark.asyncio
async def test_socket_failure_raises_registration_error():
    with patch(ZC_PATH, side_effect=OSError("Address already in use")):
        advertiser = ServiceAdvertiser()
        with pytest.raises(RegistrationError):
            await advertiser.start(make_record())


@pytest.mark.asyncio
async def test_failed_registration_closes_owned_zeroconf():
    mock_zc = make_mock_zc()
    mock_zc.async_register_service.side_effect = NonUniqueNameException()

    with patch(ZC_PATH, return_value=mock_zc):
        advertiser = ServiceAdvertiser()
        with pytest.raises(RegistrationError):
            await advertiser.start(make_record())

    mock_zc.async_close.assert_awaited_once()


@pytest.mark.asyncio
async def test_stop_without_handle_is_noop():
    advertiser = ServiceAdvertiser()
    await advertiser.stop(None)


@pytest.mark.asyncio
async def test_serve_blocks_until_stop_signal():
    mock_zc = make_mock_zc()
    stop_signal = asyncio.Event()
    ready = asyncio.Event()

    with patch(ZC_PATH, return_value=mock_zc):
        advertiser = ServiceAdvertiser()
        task = asyncio.create_task(
            advertiser.serve(make_record(), stop_signal, ready)
        )
        await asyncio.wait_for(ready.wait(), timeout=1.0)

        await asyncio.sleep(0.05)
        assert not task.done()
        mock_zc.async_unregister_service.assert_not_called()

        stop_signal.set()
        await asyncio.wait_for(task, timeout=1.0)

    mock_zc.async_unregister_service.assert_awaited_once()
    mock_zc.async_close.assert_awaited_once()


@pytest.mark.asyncio
async def test_serve_releases_on_cancellation():
    mock_zc = make_mock_zc()
    ready = asyncio.Event()

    with patch(ZC_PATH, return_value=mock_zc):
        advertiser = ServiceAdvertiser()
        task = asyncio.create_task(
            advertiser.serve(make_record(), asyncio.Event(), ready)
        )
        await asyncio.wait_for(ready.wait(), timeout=1.0)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    mock_zc.async_unregister_service.assert_awaited_once()
    mock_zc.async_close.assert_awaited_once()


@pytest.mark.asyncio
async def test_serve_propagates_registration_error_without_ready():
    ready = asyncio.Event()

    with patch(ZC_PATH, side_effect=OSError("no interface")):
        advertiser = ServiceAdvertiser()
        with pytest.raises(RegistrationError):
            await advertiser.serve(make_record(), asyncio.Event(), ready)

    assert not ready.is_set()
