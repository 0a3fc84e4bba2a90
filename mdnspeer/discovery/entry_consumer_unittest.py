import asyncio
import logging

import pytest

from mdnspeer.discovery.discovered_entry import DiscoveredEntry
from mdnspeer.discovery.entry_consumer import EntryConsumer
from mdnspeer.discovery.result_channel import ResultChannel


def make_entry(name, port=8080):
    return DiscoveredEntry(
        name=f"{name}._workstation._tcp.local.",
        host=f"{name}.local.",
        addresses=("192.168.1.2",),
        port=port,
        metadata=("My awesome service",),
    )


@pytest.mark.asyncio
async def test_consume_handles_entries_in_order_until_closed():
    channel: ResultChannel[DiscoveredEntry] = ResultChannel()
    seen = []
    consumer = EntryConsumer(seen.append)
    task = asyncio.create_task(consumer.consume(channel))

    for name in ("a", "b", "c"):
        channel.put(make_entry(name))
    await asyncio.sleep(0.01)
    channel.put(make_entry("d"))
    channel.close()

    await asyncio.wait_for(task, timeout=1.0)

    assert [entry.host for entry in seen] == [
        "a.local.",
        "b.local.",
        "c.local.",
        "d.local.",
    ]
    assert consumer.entry_count == 4
    assert consumer.failure_count == 0


@pytest.mark.asyncio
async def test_async_handler_is_awaited():
    channel: ResultChannel[DiscoveredEntry] = ResultChannel()
    seen = []

    async def handler(entry):
        await asyncio.sleep(0)
        seen.append(entry.port)

    channel.put(make_entry("a", port=1))
    channel.put(make_entry("b", port=2))
    channel.close()

    await EntryConsumer(handler).consume(channel)

    assert seen == [1, 2]


@pytest.mark.asyncio
async def test_handler_failure_does_not_stop_consumption():
    channel: ResultChannel[DiscoveredEntry] = ResultChannel()
    seen = []

    def handler(entry):
        if entry.port == 1:
            raise RuntimeError("reporting sink unavailable")
        seen.append(entry.port)

    for port in (1, 2, 3):
        channel.put(make_entry("x", port=port))
    channel.close()

    consumer = EntryConsumer(handler)
    await consumer.consume(channel)

    assert seen == [2, 3]
    assert consumer.failure_count == 1
    assert consumer.entry_count == 3


@pytest.mark.asyncio
async def test_default_handler_reports_entry(caplog):
    channel: ResultChannel[DiscoveredEntry] = ResultChannel()
    channel.put(make_entry("peer"))
    channel.close()

    with caplog.at_level(logging.INFO):
        await EntryConsumer().consume(channel)

    assert "Got new entry: peer._workstation._tcp.local." in caplog.text
    assert "My awesome service" in caplog.text
