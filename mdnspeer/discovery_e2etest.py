import asyncio
import ipaddress
import uuid

import psutil
import pytest
from zeroconf import IPVersion, ServiceStateChange
from zeroconf.asyncio import AsyncServiceBrowser, AsyncZeroconf

from mdnspeer.discovery.discovered_entry import DiscoveredEntry
from mdnspeer.discovery.discovery_loop import DiscoveryLoop
from mdnspeer.discovery.entry_consumer import EntryConsumer
from mdnspeer.discovery.mdns.discovery_query import query
from mdnspeer.discovery.mdns.query_params import QueryParams
from mdnspeer.discovery.mdns.service_advertiser import ServiceAdvertiser
from mdnspeer.discovery.result_channel import ResultChannel
from mdnspeer.discovery.service_record import ServiceRecord


def make_unique_record(port, metadata=("My awesome service",)):
    suffix = uuid.uuid4().hex[:8]
    return ServiceRecord(
        instance=f"TestInstance_{suffix}",
        service_type=f"_e2e-{suffix}._tcp",
        port=port,
        ips=("127.0.0.1",),
        metadata=metadata,
    )


@pytest.mark.asyncio
async def test_self_discovery_round_trips_metadata():
    record = make_unique_record(50101)
    advertiser = ServiceAdvertiser()
    handle = await advertiser.start(record)

    channel: ResultChannel[DiscoveredEntry] = ResultChannel(100)
    try:
        await query(QueryParams(record.service_type, channel, timeout=5.0))
    finally:
        await advertiser.stop(handle)

    assert handle.is_released
    channel.close()
    entries = [entry async for entry in channel]
    matching = [e for e in entries if e.name == record.instance_name]
    assert matching, f"{record.instance_name} not discovered: {entries}"

    entry = matching[0]
    assert entry.port == 50101
    assert list(entry.metadata) == ["My awesome service"]
    assert entry.addresses
    for address in entry.addresses:
        ipaddress.ip_address(address)


@pytest.mark.asyncio
async def test_concurrent_advertise_and_discovery_loop():
    record = make_unique_record(50102)
    advertiser = ServiceAdvertiser()
    stop_advertising = asyncio.Event()
    ready = asyncio.Event()
    advertiser_task = asyncio.create_task(
        advertiser.serve(record, stop_advertising, ready)
    )

    channel: ResultChannel[DiscoveredEntry] = ResultChannel(100)
    found = asyncio.Event()
    found_entries = []

    def on_entry(entry):
        if entry.name == record.instance_name:
            found_entries.append(entry)
            found.set()

    consumer_task = asyncio.create_task(
        EntryConsumer(on_entry).consume(channel)
    )
    loop = DiscoveryLoop(record.service_type, channel, 2.0)
    loop_task = asyncio.create_task(loop.run())

    try:
        await asyncio.wait_for(ready.wait(), timeout=10.0)
        await asyncio.wait_for(found.wait(), timeout=15.0)
    except asyncio.TimeoutError:
        pytest.fail(f"{record.instance_name} not discovered within timeout.")
    finally:
        await loop.stop()
        await loop_task
        channel.close()
        await consumer_task
        stop_advertising.set()
        await advertiser_task

    assert found_entries[0].port == 50102
    assert found_entries[0].metadata == ("My awesome service",)
    assert loop.error_count == 0


async def discover(record, timeout=5.0):
    channel: ResultChannel[DiscoveredEntry] = ResultChannel(100)
    await query(QueryParams(record.service_type, channel, timeout=timeout))
    channel.close()
    return [
        entry
        async for entry in channel
        if entry.name == record.instance_name
    ]


@pytest.mark.asyncio
async def test_metadata_round_trips_verbatim():
    metadata = ("=x", "My awesome service", "My awesome service", "", "a=b")
    record = make_unique_record(50103, metadata)
    advertiser = ServiceAdvertiser()
    handle = await advertiser.start(record)
    try:
        matching = await discover(record)
    finally:
        await advertiser.stop(handle)

    assert matching, f"{record.instance_name} not discovered."
    assert matching[0].metadata == metadata


@pytest.mark.asyncio
async def test_stop_announces_removal_to_browsers():
    record = make_unique_record(50104)
    added = asyncio.Event()
    removed = asyncio.Event()

    def on_state_change(zeroconf, service_type, name, state_change):
        if name != record.instance_name:
            return
        if state_change is ServiceStateChange.Added:
            added.set()
        elif state_change is ServiceStateChange.Removed:
            removed.set()

    browser_zc = AsyncZeroconf(ip_version=IPVersion.V4Only)
    browser = AsyncServiceBrowser(
        browser_zc.zeroconf, [record.type_name], handlers=[on_state_change]
    )
    advertiser = ServiceAdvertiser()
    try:
        handle = await advertiser.start(record)
        try:
            await asyncio.wait_for(added.wait(), timeout=10.0)
        finally:
            await advertiser.stop(handle)

        # Peers drop goodbye records one second after receiving them.
        await asyncio.wait_for(removed.wait(), timeout=5.0)
    finally:
        await browser.async_cancel()
        await browser_zc.async_close()


@pytest.mark.skipif(
    not hasattr(psutil.Process, "num_fds"), reason="POSIX only"
)
@pytest.mark.asyncio
async def test_start_stop_cycles_release_sockets():
    process = psutil.Process()
    advertiser = ServiceAdvertiser()

    # First cycle may load lazily created resources.
    handle = await advertiser.start(make_unique_record(50110))
    await advertiser.stop(handle)
    fds_before = process.num_fds()

    for index in range(5):
        handle = await advertiser.start(make_unique_record(50111 + index))
        await advertiser.stop(handle)
        assert handle.is_released

    assert process.num_fds() == fds_before
