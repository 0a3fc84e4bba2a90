import asyncio

import pytest

from mdnspeer.discovery.result_channel import ResultChannel
from mdnspeer.errors import ChannelClosedError


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        ResultChannel(0)


@pytest.mark.asyncio
async def test_items_are_delivered_in_fifo_order():
    channel: ResultChannel[int] = ResultChannel(10)
    for i in range(5):
        channel.put(i)
    channel.close()

    received = [item async for item in channel]

    assert received == [0, 1, 2, 3, 4]


@pytest.mark.asyncio
async def test_get_waits_for_a_write():
    channel: ResultChannel[str] = ResultChannel()
    getter = asyncio.create_task(channel.get())
    await asyncio.sleep(0)
    assert not getter.done()

    channel.put("entry")

    assert await asyncio.wait_for(getter, timeout=1.0) == "entry"


@pytest.mark.asyncio
async def test_full_channel_drops_oldest_without_blocking():
    channel: ResultChannel[int] = ResultChannel(3)

    for i in range(5):
        channel.put(i)

    assert len(channel) == 3
    assert channel.dropped_count == 2
    channel.close()
    assert [item async for item in channel] == [2, 3, 4]


@pytest.mark.asyncio
async def test_put_after_close_raises():
    channel: ResultChannel[int] = ResultChannel()
    channel.close()
    channel.close()

    assert channel.closed
    with pytest.raises(ChannelClosedError):
        channel.put(1)


@pytest.mark.asyncio
async def test_close_wakes_waiting_reader():
    channel: ResultChannel[int] = ResultChannel()

    async def drain():
        return [item async for item in channel]

    reader = asyncio.create_task(drain())
    await asyncio.sleep(0)
    channel.put(7)
    channel.close()

    assert await asyncio.wait_for(reader, timeout=1.0) == [7]


@pytest.mark.asyncio
async def test_get_on_closed_empty_channel_raises():
    channel: ResultChannel[int] = ResultChannel()
    channel.close()

    with pytest.raises(ChannelClosedError):
        await channel.get()
