import threading

import anyio
import pytest

from needlepoint.core.executor import ExecutionDriver
from needlepoint.core.graph import GraphModel
from needlepoint.core.model import NodeStatus
from needlepoint.core.planner import ExecutionPlan
from needlepoint.core.result import Result
from needlepoint.utils.events import (
    EventBus,
    ExecutionCancelled,
    ExecutionCompleted,
    ExecutionError,
    ExecutionStarted,
    NodeUpdate,
    WaveCompleted,
    WaveStarted,
)


def _types(bus: EventBus):
    return [type(e) for e in bus.history]


@pytest.mark.anyio
async def test_chain_failure_is_best_effort(chain_graph):
    g, a, b, c = chain_graph
    bus = EventBus()
    seen_upstream = {}

    async def generate_one(node_id: str):
        if node_id == b.id:
            return Result.failure(RuntimeError("Rate limited"))
        deps = [g.node(e.source) for e in g.dependencies(node_id)]
        seen_upstream[node_id] = [d.status for d in deps]
        return Result.success(f"// {g.node(node_id).name}")

    summary = await ExecutionDriver(g, bus).run(ExecutionPlan.from_graph(g), generate_one)

    assert summary.status == "completed"
    assert (summary.total_successful, summary.total_failed) == (2, 1)
    assert g.node(b.id).status is NodeStatus.ERROR
    assert g.node(b.id).error_message == "Rate limited"
    assert g.node(a.id).status is NodeStatus.COMPLETE
    assert g.node(c.id).status is NodeStatus.COMPLETE
    # C still ran, seeing its failed upstream
    assert seen_upstream[c.id] == [NodeStatus.ERROR]
    done = bus.history[-1]
    assert isinstance(done, ExecutionCompleted)
    assert done.to_dict() == {"type": "completed", "totalSuccessful": 2, "totalFailed": 1, "totalSkipped": 0}


@pytest.mark.anyio
async def test_isolated_nodes_run_concurrently():
    g = GraphModel()
    for n in "XYZ":
        g.add_node(name=n, file_path=f"src/{n}.ts")
    bus = EventBus()
    running = 0
    peak = 0

    async def generate_one(node_id: str) -> str:
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await anyio.sleep(0.05)
        running -= 1
        return "ok"

    summary = await ExecutionDriver(g, bus).run(None, generate_one)
    assert summary.total_successful == 3
    assert peak == 3
    assert _types(bus).count(WaveStarted) == 1


@pytest.mark.anyio
async def test_waves_never_overlap(chain_graph):
    g, *_ = chain_graph
    g.add_node(name="solo", file_path="src/solo.ts")
    bus = EventBus()

    async def generate_one(node_id: str) -> str:
        await anyio.sleep(0.01)
        return "x"

    plan = ExecutionPlan.from_graph(g)
    await ExecutionDriver(g, bus).run(plan, generate_one)

    wave_of = plan.wave_index()
    current = -1
    settled = set()
    for evt in bus.history:
        if isinstance(evt, NodeUpdate) and evt.status == "generating":
            w = wave_of[evt.node_id]
            assert w >= current
            if w > current:
                # every node of earlier waves has settled already
                assert all(n in settled for n, wn in wave_of.items() if wn < w)
                current = w
        elif isinstance(evt, NodeUpdate):
            settled.add(evt.node_id)


@pytest.mark.anyio
async def test_event_sequence_and_per_node_order():
    g = GraphModel()
    a = g.add_node(name="a", file_path="src/a.ts")
    bus = EventBus()

    def generate_one(node_id: str) -> str:  # sync callables run in a worker thread
        return "sync body"

    await ExecutionDriver(g, bus).run(None, generate_one)
    assert _types(bus) == [
        ExecutionStarted,
        WaveStarted,
        NodeUpdate,
        NodeUpdate,
        WaveCompleted,
        ExecutionCompleted,
    ]
    gen, done = bus.history[2], bus.history[3]
    assert (gen.status, done.status) == ("generating", "complete")
    assert done.content == "sync body"
    assert g.node(a.id).generated_code == "sync body"


@pytest.mark.anyio
async def test_raising_callback_is_a_node_failure(chain_graph):
    g, a, b, c = chain_graph
    bus = EventBus()

    async def generate_one(node_id: str) -> str:
        if node_id == a.id:
            raise ValueError("prompt too long")
        return "ok"

    summary = await ExecutionDriver(g, bus).run(None, generate_one)
    assert summary.total_failed == 1
    assert summary.outcomes[a.id].error == "prompt too long"
    errors = [e for e in bus.history if isinstance(e, NodeUpdate) and e.status == "error"]
    assert [e.message for e in errors] == ["prompt too long"]


@pytest.mark.anyio
async def test_cancel_stops_after_current_wave(chain_graph):
    g, a, b, c = chain_graph
    bus = EventBus()
    driver = ExecutionDriver(g, bus)

    async def generate_one(node_id: str) -> str:
        if node_id == a.id:
            driver.cancel()
            await anyio.sleep(0.01)
        return "ok"

    summary = await driver.run(None, generate_one)
    assert summary.status == "cancelled"
    assert summary.waves_run == 1
    # the in-flight node still settled
    assert g.node(a.id).status is NodeStatus.COMPLETE
    assert g.node(b.id).status is NodeStatus.PENDING
    assert isinstance(bus.history[-1], ExecutionCancelled)
    assert not any(isinstance(e, ExecutionCompleted) for e in bus.history)
    assert not driver.cancel_requested


@pytest.mark.anyio
async def test_stale_plan_is_rejected(chain_graph):
    g, *_ = chain_graph
    bus = EventBus()
    plan = ExecutionPlan.from_graph(g)
    g.add_node()

    summary = await ExecutionDriver(g, bus).run(plan, lambda nid: "never")
    assert summary.status == "failed"
    assert "recompute the plan" in summary.error
    assert _types(bus) == [ExecutionError]


@pytest.mark.anyio
async def test_no_project_is_fatal():
    bus = EventBus()
    summary = await ExecutionDriver(None, bus).run(None, lambda nid: "never")
    assert summary.status == "failed"
    assert bus.history[0].to_dict() == {"type": "error", "message": "No project loaded"}


@pytest.mark.anyio
async def test_capacity_limit():
    g = GraphModel()
    for i in range(6):
        g.add_node(name=f"n{i}", file_path=f"src/n{i}.ts")
    running = 0
    peak = 0

    async def generate_one(node_id: str) -> str:
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await anyio.sleep(0.02)
        running -= 1
        return "ok"

    summary = await ExecutionDriver(g, EventBus(), max_concurrency=2).run(None, generate_one)
    assert summary.total_successful == 6
    assert peak == 2


def test_run_sync_and_skipped_count():
    g = GraphModel()
    a = g.add_node(name="a", file_path="src/a.ts")
    plan = ExecutionPlan(waves=[], total_nodes=0, skipped_nodes=[a.id], revision=g.revision)
    bus = EventBus()
    summary = ExecutionDriver(g, bus).run_sync(plan, lambda nid: "x")
    assert summary.total_skipped == 1
    assert bus.history[-1].total_skipped == 1


@pytest.mark.anyio
async def test_overlapping_run_does_not_steal_a_generating_node():
    g = GraphModel()
    a = g.add_node(name="a", file_path="src/a.ts")
    bus = EventBus()
    driver = ExecutionDriver(g, bus)
    started = anyio.Event()
    release = anyio.Event()
    summaries = {}

    async def slow(node_id: str) -> str:
        started.set()
        await release.wait()
        return "slow"

    async def first_run():
        summaries["slow"] = await driver.run(None, slow)

    async with anyio.create_task_group() as tg:
        tg.start_soon(first_run)
        await started.wait()
        summaries["fast"] = await driver.run(None, lambda nid: "fast")
        # the refused dispatch left the node with the run that owns it
        assert g.node(a.id).status is NodeStatus.GENERATING
        release.set()

    assert summaries["fast"].total_failed == 1
    assert "cannot move from 'generating'" in summaries["fast"].outcomes[a.id].error
    assert summaries["slow"].total_successful == 1
    node = g.node(a.id)
    assert node.status is NodeStatus.COMPLETE
    assert node.generated_code == "slow"
    assert node.error_message is None
    assert summaries["slow"].run_id != summaries["fast"].run_id


@pytest.mark.anyio
async def test_cancel_during_last_wave_still_completes():
    g = GraphModel()
    g.add_node(name="a", file_path="src/a.ts")
    bus = EventBus()
    driver = ExecutionDriver(g, bus)

    def generate_one(node_id: str) -> str:
        driver.cancel()
        return "ok"

    summary = await driver.run(None, generate_one)
    assert summary.status == "completed"
    assert isinstance(bus.history[-1], ExecutionCompleted)
    assert bus.history[-1].total_successful == 1
    assert not any(isinstance(e, ExecutionCancelled) for e in bus.history)
    assert not driver.cancel_requested


@pytest.mark.anyio
async def test_outputs_go_to_a_worker_thread(chain_graph):
    g, a, b, c = chain_graph
    loop_thread = threading.get_ident()
    written = {}

    def on_output(node_id: str, content: str) -> None:
        written[node_id] = (content, threading.get_ident())

    async def generate_one(node_id: str) -> str:
        if node_id == b.id:
            raise RuntimeError("boom")
        return f"// {node_id}"

    await ExecutionDriver(g, EventBus(), on_output=on_output).run(None, generate_one)

    assert set(written) == {a.id, c.id}
    assert written[a.id][0] == f"// {a.id}"
    assert all(tid != loop_thread for _, tid in written.values())
