import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from zeroconf import BadTypeInNameException
from zeroconf.asyncio import AsyncServiceBrowser, AsyncZeroconf

from mdnspeer.discovery.discovered_entry import DiscoveredEntry
from mdnspeer.discovery.mdns.discovery_query import DiscoveryQuery, query
from mdnspeer.discovery.mdns.query_params import QueryParams
from mdnspeer.discovery.result_channel import ResultChannel
from mdnspeer.errors import ChannelClosedError, QueryError

MODULE = "mdnspeer.discovery.mdns.discovery_query"
TYPE_NAME = "_workstation._tcp.local."


def make_owned_zc():
    mock_zc = AsyncMock(spec=AsyncZeroconf)
    mock_zc.zeroconf = MagicMock()
    return mock_zc


def fake_service_info_factory(resolvable=True):
    def factory(type_, name):
        info = MagicMock()
        info.name = name
        info.server = name.split(".")[0] + ".local."
        info.port = 9
        info.text = bytes([18]) + b"My awesome service"
        info.parsed_addresses.return_value = ["192.168.1.50"]
        info.async_request = AsyncMock(return_value=resolvable)
        return info

    return factory


def fake_browser_factory(notifications):
    """Returns a browser constructor replaying (method, type, name) tuples."""
    browser = AsyncMock(spec=AsyncServiceBrowser)

    def factory(zc, types, listener):
        for method, type_, name in notifications:
            getattr(listener, method)(zc, type_, name)
        return browser

    return factory, browser


def add(name, type_=TYPE_NAME):
    return ("add_service", type_, f"{name}.{type_}")


@pytest.mark.asyncio
async def test_entries_are_streamed_in_notification_order():
    channel: ResultChannel[DiscoveredEntry] = ResultChannel(100)
    params = QueryParams("_workstation._tcp", channel, timeout=0.1)
    browser_factory, browser = fake_browser_factory(
        [add("alpha"), add("bravo"), add("charlie")]
    )
    mock_zc = make_owned_zc()

    with patch(f"{MODULE}.AsyncZeroconf", return_value=mock_zc), patch(
        f"{MODULE}.AsyncServiceBrowser", side_effect=browser_factory
    ), patch(
        f"{MODULE}.AsyncServiceInfo", side_effect=fake_service_info_factory()
    ):
        discovery_query = DiscoveryQuery(params)
        await discovery_query.run()

    assert discovery_query.entry_count == 3
    channel.close()
    received = [entry async for entry in channel]
    assert [entry.name for entry in received] == [
        f"alpha.{TYPE_NAME}",
        f"bravo.{TYPE_NAME}",
        f"charlie.{TYPE_NAME}",
    ]
    assert received[0].metadata == ("My awesome service",)
    assert received[0].addresses == ("192.168.1.50",)

    browser.async_cancel.assert_awaited_once()
    mock_zc.async_close.assert_awaited_once()


@pytest.mark.asyncio
async def test_repeated_observations_are_forwarded():
    channel: ResultChannel[DiscoveredEntry] = ResultChannel(100)
    params = QueryParams("_workstation._tcp", channel, timeout=0.1)
    name = f"alpha.{TYPE_NAME}"
    browser_factory, _ = fake_browser_factory(
        [
            ("add_service", TYPE_NAME, name),
            ("update_service", TYPE_NAME, name),
            ("remove_service", TYPE_NAME, name),
        ]
    )

    with patch(f"{MODULE}.AsyncZeroconf", return_value=make_owned_zc()), patch(
        f"{MODULE}.AsyncServiceBrowser", side_effect=browser_factory
    ), patch(
        f"{MODULE}.AsyncServiceInfo", side_effect=fake_service_info_factory()
    ):
        await query(params)

    assert len(channel) == 2


@pytest.mark.asyncio
async def test_other_types_and_unresolved_services_are_skipped():
    channel: ResultChannel[DiscoveredEntry] = ResultChannel(100)
    params = QueryParams("_workstation._tcp", channel, timeout=0.1)
    browser_factory, _ = fake_browser_factory(
        [add("alpha", type_="_other._tcp.local.")]
    )

    with patch(f"{MODULE}.AsyncZeroconf", return_value=make_owned_zc()), patch(
        f"{MODULE}.AsyncServiceBrowser", side_effect=browser_factory
    ), patch(
        f"{MODULE}.AsyncServiceInfo", side_effect=fake_service_info_factory()
    ) as mock_info:
        await query(params)

    mock_info.assert_not_called()
    assert len(channel) == 0

    browser_factory, _ = fake_browser_factory([add("alpha")])
    with patch(f"{MODULE}.AsyncZeroconf", return_value=make_owned_zc()), patch(
        f"{MODULE}.AsyncServiceBrowser", side_effect=browser_factory
    ), patch(
        f"{MODULE}.AsyncServiceInfo",
        side_effect=fake_service_info_factory(resolvable=False),
    ):
        await query(params)

    assert len(channel) == 0


@pytest.mark.asyncio
async def test_returns_within_timeout_when_nothing_found():
    channel: ResultChannel[DiscoveredEntry] = ResultChannel()
    params = QueryParams("_workstation._tcp", channel, timeout=0.2)
    browser_factory, _ = fake_browser_factory([])
    loop = asyncio.get_running_loop()

    with patch(f"{MODULE}.AsyncZeroconf", return_value=make_owned_zc()), patch(
        f"{MODULE}.AsyncServiceBrowser", side_effect=browser_factory
    ):
        start = loop.time()
        await query(params)
        elapsed = loop.time() - start

    assert 0.15 <= elapsed < 1.2


@pytest.mark.asyncio
async def test_cancel_signal_ends_round_early():
    channel: ResultChannel[DiscoveredEntry] = ResultChannel()
    params = QueryParams("_workstation._tcp", channel, timeout=30.0)
    browser_factory, _ = fake_browser_factory([])
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    loop.call_later(0.05, cancel.set)

    with patch(f"{MODULE}.AsyncZeroconf", return_value=make_owned_zc()), patch(
        f"{MODULE}.AsyncServiceBrowser", side_effect=browser_factory
    ):
        start = loop.time()
        await query(params, cancel)

    assert loop.time() - start < 2.0


@pytest.mark.asyncio
async def test_transport_failure_raises_query_error():
    params = QueryParams("_workstation._tcp", ResultChannel(), timeout=0.1)

    with patch(f"{MODULE}.AsyncZeroconf", side_effect=OSError("no interface")):
        with pytest.raises(QueryError):
            await query(params)


@pytest.mark.asyncio
async def test_browser_failure_raises_query_error_and_closes_zeroconf():
    params = QueryParams("_workstation._tcp", ResultChannel(), timeout=0.1)
    mock_zc = make_owned_zc()

    with patch(f"{MODULE}.AsyncZeroconf", return_value=mock_zc), patch(
        f"{MODULE}.AsyncServiceBrowser",
        side_effect=BadTypeInNameException("bad type"),
    ):
        with pytest.raises(QueryError):
            await query(params)

    mock_zc.async_close.assert_awaited_once()


@pytest.mark.asyncio
async def test_shared_zeroconf_is_not_closed():
    params = QueryParams("_workstation._tcp", ResultChannel(), timeout=0.05)
    shared_zc = make_owned_zc()
    browser_factory, _ = fake_browser_factory([])

    with patch(f"{MODULE}.AsyncZeroconf") as mock_constructor, patch(
        f"{MODULE}.AsyncServiceBrowser", side_effect=browser_factory
    ):
        await query(params, zc_instance=shared_zc)

    mock_constructor.assert_not_called()
    shared_zc.async_close.assert_not_called()


@pytest.mark.asyncio
async def test_write_to_closed_channel_is_reported():
    channel: ResultChannel[DiscoveredEntry] = ResultChannel()
    channel.close()
    params = QueryParams("_workstation._tcp", channel, timeout=0.05)
    browser_factory, _ = fake_browser_factory([add("alpha")])

    with patch(f"{MODULE}.AsyncZeroconf", return_value=make_owned_zc()), patch(
        f"{MODULE}.AsyncServiceBrowser", side_effect=browser_factory
    ), patch(
        f"{MODULE}.AsyncServiceInfo", side_effect=fake_service_info_factory()
    ):
        with pytest.raises(ChannelClosedError):
            await query(params)


@pytest.mark.asyncio
async def test_query_runs_only_once():
    params = QueryParams("_workstation._tcp", ResultChannel(), timeout=0.05)
    browser_factory, _ = fake_browser_factory([])

    with patch(f"{MODULE}.AsyncZeroconf", return_value=make_owned_zc()), patch(
        f"{MODULE}.AsyncServiceBrowser", side_effect=browser_factory
    ):
        discovery_query = DiscoveryQuery(params)
        await discovery_query.run()
        with pytest.raises(RuntimeError):
            await discovery_query.run()


@pytest.mark.parametrize("timeout", [0, -1.0])
def test_non_positive_timeout_is_rejected(timeout):
    with pytest.raises(ValueError):
        QueryParams("_workstation._tcp", ResultChannel(), timeout=timeout)


def test_malformed_service_type_is_rejected():
    with pytest.raises(ValueError):
        QueryParams("workstation", ResultChannel())
