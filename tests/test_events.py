"""Snapshot bus tests."""

import asyncio

import pytest
from conftest import ITEMS, Gate, make_step, make_template

from bulkflow.contracts import Execution, ExecutionProgress, ExecutionStatus
from bulkflow.events import SnapshotBus


@pytest.mark.asyncio
async def test_sync_and_async_subscribers_receive_snapshots(engine_for):
    template = make_template(make_step("one"), make_step("two"))
    engine = engine_for(template)
    sync_seen = []
    async_seen = []

    async def record(snapshot):
        async_seen.append(snapshot.status)

    engine.bus.subscribe(lambda s: sync_seen.append(s.status))
    engine.bus.subscribe(record)

    await engine.run(template.id, ITEMS)

    assert sync_seen == async_seen
    assert sync_seen[0] == ExecutionStatus.RUNNING
    assert sync_seen[-1] == ExecutionStatus.COMPLETED


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_break_run(engine_for):
    template = make_template(make_step("one"))
    engine = engine_for(template)

    def broken(snapshot):
        raise ValueError("render failed")

    engine.bus.subscribe(broken)
    execution = await engine.run(template.id, ITEMS)

    assert execution.status == ExecutionStatus.COMPLETED


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery(engine_for):
    template = make_template(make_step("one"))
    engine = engine_for(template)
    seen = []
    unsubscribe = engine.bus.subscribe(seen.append)
    unsubscribe()
    unsubscribe()

    await engine.run(template.id, ITEMS)

    assert seen == []


@pytest.mark.asyncio
async def test_stream_ends_after_terminal_snapshot(engine_for):
    template = make_template(make_step("one"), make_step("two"))
    engine = engine_for(template)
    controller = engine.create(template.id, ITEMS)
    stream = engine.bus.stream(controller.id)

    async def collect():
        return [s async for s in stream]

    collector = asyncio.create_task(collect())
    await controller.run()
    snapshots = await asyncio.wait_for(collector, 1)

    assert snapshots[0].status == ExecutionStatus.RUNNING
    assert snapshots[-1].status == ExecutionStatus.COMPLETED
    assert all(s.id == controller.id for s in snapshots)
    assert stream.closed
    assert engine.bus._queues == []


@pytest.mark.asyncio
async def test_stream_opened_before_iteration_keeps_early_snapshots(engine_for):
    template = make_template(make_step("one"))
    engine = engine_for(template)
    controller = engine.create(template.id, ITEMS)
    stream = engine.bus.stream(controller.id)

    await controller.run()
    snapshots = await asyncio.wait_for(_drain(stream), 1)

    statuses = [s.status for s in snapshots]
    assert statuses[0] == ExecutionStatus.RUNNING
    assert statuses[-1] == ExecutionStatus.COMPLETED


@pytest.mark.asyncio
async def test_stream_of_finished_execution_yields_final_snapshot(engine_for):
    template = make_template(make_step("one"))
    engine = engine_for(template)
    controller = engine.create(template.id, ITEMS)
    await controller.run()

    snapshots = await asyncio.wait_for(_drain(engine.bus.stream(controller.id)), 1)

    assert len(snapshots) == 1
    assert snapshots[0].status == ExecutionStatus.COMPLETED
    assert engine.bus._queues == []


@pytest.mark.asyncio
async def test_stream_joining_mid_run_starts_from_latest_snapshot(engine_for):
    gate = Gate()
    template = make_template(make_step("one", action=gate), make_step("two"))
    engine = engine_for(template)
    controller = engine.start(template.id, ITEMS)
    await asyncio.wait_for(gate.entered.wait(), 1)

    stream = engine.bus.stream(controller.id)
    gate.release.set()
    snapshots = await asyncio.wait_for(_drain(stream), 1)

    assert snapshots[0].current_step == 0
    assert snapshots[0].status == ExecutionStatus.RUNNING
    assert snapshots[-1].status == ExecutionStatus.COMPLETED


@pytest.mark.asyncio
async def test_unfiltered_stream_is_released_on_close():
    bus = SnapshotBus()
    async with bus.stream() as stream:
        assert len(bus._queues) == 1
        await bus.publish(_execution("a"))
        first = await asyncio.wait_for(stream.__anext__(), 1)
    assert first.items == ["a"]
    assert bus._queues == []
    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()


def test_bus_keeps_latest_snapshots_for_recent_executions_only():
    bus = SnapshotBus(keep_latest=2)
    executions = [_execution(f"item-{n}") for n in range(3)]
    for execution in executions:
        asyncio.run(bus.publish(execution))

    assert bus.latest(executions[0].id) is None
    assert bus.latest(executions[2].id).items == ["item-2"]


async def _drain(stream):
    return [s async for s in stream]


def _execution(item):
    return Execution(template_id="t", items=[item], progress=ExecutionProgress(total_steps=1))


@pytest.mark.asyncio
async def test_snapshots_are_copies():
    bus = SnapshotBus()
    received = []
    bus.subscribe(received.append)

    execution = _execution("a")
    await bus.publish(execution.snapshot())
    execution.items.append("b")

    assert received[0].items == ["a"]
