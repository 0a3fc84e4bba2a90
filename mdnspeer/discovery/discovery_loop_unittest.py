import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from mdnspeer.discovery.discovery_loop import DiscoveryLoop
from mdnspeer.discovery.result_channel import ResultChannel
from mdnspeer.errors import ChannelClosedError, QueryError


async def wait_for_calls(calls, count, timeout=2.0):
    async def poll():
        while len(calls) < count:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout)


@pytest.mark.asyncio
async def test_loop_continues_after_query_error():
    calls = []

    async def runner(params, cancel):
        calls.append(params)
        await asyncio.sleep(0.01)
        if len(calls) == 1:
            raise QueryError("simulated network failure")

    loop = DiscoveryLoop(
        "_workstation._tcp", ResultChannel(), 10.0, query_runner=runner
    )
    task = asyncio.create_task(loop.run())

    await wait_for_calls(calls, 3)
    await loop.stop()
    await asyncio.wait_for(task, timeout=1.0)

    assert loop.error_count == 1
    assert loop.round_count >= 3
    assert not loop.is_running
    # Every round reuses the same parameters.
    assert all(params is calls[0] for params in calls)
    assert calls[0].timeout == 10.0
    assert calls[0].type_name == "_workstation._tcp.local."


@pytest.mark.asyncio
async def test_stop_interrupts_in_flight_round():
    started = asyncio.Event()

    async def runner(params, cancel):
        started.set()
        await cancel.wait()

    loop = DiscoveryLoop(
        "_workstation._tcp", ResultChannel(), 60.0, query_runner=runner
    )
    task = asyncio.create_task(loop.run())
    await asyncio.wait_for(started.wait(), timeout=1.0)

    await asyncio.wait_for(loop.stop(), timeout=1.0)

    assert task.done()
    assert loop.round_count == 1


@pytest.mark.asyncio
async def test_min_round_interval_spaces_rounds():
    starts = []
    event_loop = asyncio.get_running_loop()

    async def runner(params, cancel):
        starts.append(event_loop.time())

    loop = DiscoveryLoop(
        "_workstation._tcp",
        ResultChannel(),
        1.0,
        min_round_interval=0.1,
        query_runner=runner,
    )
    task = asyncio.create_task(loop.run())

    await wait_for_calls(starts, 3)
    await loop.stop()
    await task

    gaps = [later - earlier for earlier, later in zip(starts, starts[1:])]
    assert all(gap >= 0.09 for gap in gaps)


@pytest.mark.asyncio
async def test_stop_during_interval_wait_is_prompt():
    calls = []

    async def runner(params, cancel):
        calls.append(params)

    loop = DiscoveryLoop(
        "_workstation._tcp",
        ResultChannel(),
        1.0,
        min_round_interval=30.0,
        query_runner=runner,
    )
    task = asyncio.create_task(loop.run())
    await wait_for_calls(calls, 1)

    await asyncio.wait_for(loop.stop(), timeout=1.0)
    await task
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_channel_closed_error_ends_loop():
    async def runner(params, cancel):
        raise ChannelClosedError("closed too early")

    loop = DiscoveryLoop(
        "_workstation._tcp", ResultChannel(), 1.0, query_runner=runner
    )

    with pytest.raises(ChannelClosedError):
        await loop.run()

    assert not loop.is_running
    assert loop.error_count == 0


@pytest.mark.asyncio
async def test_stop_before_run_is_safe():
    runner = AsyncMock()
    loop = DiscoveryLoop(
        "_workstation._tcp", ResultChannel(), 1.0, query_runner=runner
    )

    await loop.stop()
    await loop.run()

    runner.assert_not_called()


@pytest.mark.asyncio
async def test_default_runner_uses_discovery_query(mocker):
    async def fake_run(cancel):
        await cancel.wait()

    mock_query = MagicMock()
    mock_query.run = AsyncMock(side_effect=fake_run)
    mock_query_class = mocker.patch(
        "mdnspeer.discovery.discovery_loop.DiscoveryQuery",
        return_value=mock_query,
    )

    loop = DiscoveryLoop("_workstation._tcp", ResultChannel(), 1.0)
    task = asyncio.create_task(loop.run())
    while mock_query.run.await_count == 0:
        await asyncio.sleep(0.005)

    await loop.stop()
    await asyncio.wait_for(task, timeout=1.0)

    mock_query_class.assert_called_once()
    mock_query.run.assert_awaited_once()


@pytest.mark.asyncio
async def test_concurrent_run_is_rejected():
    async def runner(params, cancel):
        await cancel.wait()

    loop = DiscoveryLoop(
        "_workstation._tcp", ResultChannel(), 1.0, query_runner=runner
    )
    task = asyncio.create_task(loop.run())
    await asyncio.sleep(0)

    with pytest.raises(RuntimeError):
        await loop.run()

    await loop.stop()
    await task


@pytest.mark.parametrize("timeout", [0, -5.0])
def test_non_positive_timeout_rejected(timeout):
    with pytest.raises(ValueError):
        DiscoveryLoop("_workstation._tcp", ResultChannel(), timeout)


def test_negative_interval_rejected():
    with pytest.raises(ValueError):
        DiscoveryLoop(
            "_workstation._tcp",
            ResultChannel(),
            1.0,
            min_round_interval=-1.0,
        )
