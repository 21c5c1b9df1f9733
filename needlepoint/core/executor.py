from __future__ import annotations
"""ExecutionDriver – wave-by-wave concurrent generation runner.

Waves run strictly in order; every node of a wave is dispatched concurrently
in an anyio task group and the next wave only starts once all of them have
settled. Failures are recorded per node and never stop wave-mates or
dependents. Progress is published on an :class:`~needlepoint.utils.events.EventBus`.
"""
import inspect
import threading
from contextlib import nullcontext
from dataclasses import dataclass, field
from logging import getLogger
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import anyio

from .errors import NeedlepointError, NoProjectError, PlanningError, StalePlanError
from .graph import GraphModel
from .model import NodeStatus
from .planner import ExecutionPlan, ExecutionWave
from .result import Result
from ..utils.ids import new_run_id
from ..utils.events import (
    EventBus,
    ExecutionCancelled,
    ExecutionCompleted,
    ExecutionError,
    ExecutionStarted,
    NodeUpdate,
    WaveCompleted,
    WaveStarted,
    default_bus,
)

__all__ = ["ExecutionDriver", "ExecutionSummary", "NodeOutcome", "GenerateOne", "OnOutput"]

log = getLogger(__name__)

GenerateOne = Callable[[str], Union[Result, str, Awaitable[Union[Result, str]]]]
OnOutput = Callable[[str, str], Any]


@dataclass(slots=True)
class NodeOutcome:  # noqa: D101
    node_id: str
    ok: bool
    content: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ExecutionSummary:
    """What a run did. ``status`` is ``completed``, ``cancelled`` or ``failed``."""

    status: str
    total_successful: int = 0
    total_failed: int = 0
    total_skipped: int = 0
    waves_run: int = 0
    outcomes: Dict[str, NodeOutcome] = field(default_factory=dict)
    error: Optional[str] = None
    run_id: str = field(default_factory=new_run_id)


class ExecutionDriver:  # noqa: D101
    def __init__(
        self,
        graph: GraphModel | None = None,
        bus: EventBus | None = None,
        max_concurrency: int = 0,
        on_output: OnOutput | None = None,
    ):
        self.graph = graph
        self.bus = bus or default_bus
        self.max_concurrency = max_concurrency
        # blocking (node_id, content) sink, run in a worker thread per success
        self.on_output = on_output
        self._cancel = threading.Event()

    # ------------------------------------------------------------------ #
    def cancel(self) -> None:
        """Stop after the current wave. Safe to call from any thread.

        In-flight tasks are left to settle; a cancel issued before
        :meth:`run` cancels that run before its first wave.
        """
        self._cancel.set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    # ------------------------------------------------------------------ #
    def run_sync(self, plan: ExecutionPlan | None, generate_one: GenerateOne) -> ExecutionSummary:
        """Blocking wrapper around :meth:`run`."""
        return anyio.run(self.run, plan, generate_one)

    async def run(self, plan: ExecutionPlan | None, generate_one: GenerateOne) -> ExecutionSummary:
        """Execute *plan* (or a fresh plan of the bound graph when None)."""
        try:
            plan = self._prepare(plan)
        except PlanningError as exc:
            log.error("execution aborted: %s", exc)
            self.bus.publish(ExecutionError(message=str(exc)))
            self._cancel.clear()
            return ExecutionSummary(status="failed", error=str(exc))

        summary = ExecutionSummary(status="completed", total_skipped=len(plan.skipped_nodes))
        if plan.skipped_nodes:
            log.warning("%d node(s) could not be placed in any wave: %s",
                        len(plan.skipped_nodes), ", ".join(plan.skipped_nodes))

        log.info("run %s: %d node(s) in %d wave(s)", summary.run_id, plan.total_nodes, plan.total_waves)
        self.bus.publish(ExecutionStarted(total_nodes=plan.total_nodes, total_waves=plan.total_waves))

        stopped_early = False
        for wave in plan.waves:
            if self._cancel.is_set():
                stopped_early = True
                break
            outcomes = await self._run_wave(wave, generate_one)
            ok = sum(1 for o in outcomes if o.ok)
            failed = len(outcomes) - ok
            summary.total_successful += ok
            summary.total_failed += failed
            summary.waves_run += 1
            summary.outcomes.update({o.node_id: o for o in outcomes})
            self.bus.publish(WaveCompleted(wave_number=wave.wave_number, success_count=ok, fail_count=failed))
            log.info("wave %d done: %d ok, %d failed", wave.wave_number, ok, failed)

        # a cancel that arrives during the last wave prevented nothing
        if stopped_early:
            summary.status = "cancelled"
            self.bus.publish(ExecutionCancelled())
            log.info("execution cancelled after %d wave(s)", summary.waves_run)
        else:
            self.bus.publish(ExecutionCompleted(
                total_successful=summary.total_successful,
                total_failed=summary.total_failed,
                total_skipped=summary.total_skipped,
            ))
        self._cancel.clear()
        return summary

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _prepare(self, plan: ExecutionPlan | None) -> ExecutionPlan:
        if plan is None:
            if self.graph is None:
                raise NoProjectError()
            return ExecutionPlan.from_graph(self.graph)
        if self.graph is not None and plan.revision is not None and plan.revision != self.graph.revision:
            raise StalePlanError(plan.revision, self.graph.revision)
        return plan

    async def _run_wave(self, wave: ExecutionWave, generate_one: GenerateOne) -> List[NodeOutcome]:
        self.bus.publish(WaveStarted(wave_number=wave.wave_number, node_ids=list(wave.node_ids)))
        limiter = anyio.CapacityLimiter(self.max_concurrency) if self.max_concurrency > 0 else None
        outcomes: List[NodeOutcome] = []
        async with anyio.create_task_group() as tg:
            for node_id in wave.node_ids:
                tg.start_soon(self._dispatch, node_id, generate_one, limiter, outcomes)
        return outcomes

    async def _dispatch(
        self,
        node_id: str,
        generate_one: GenerateOne,
        limiter: anyio.CapacityLimiter | None,
        outcomes: List[NodeOutcome],
    ) -> None:
        rejected = self._begin(node_id)
        self.bus.publish(NodeUpdate(
            node_id=node_id,
            status=NodeStatus.GENERATING.value,
            message="Starting generation...",
        ))
        if rejected is not None:
            # the node's status belongs to whoever holds it (another run, or nobody)
            self._publish(rejected)
            outcomes.append(rejected)
            return

        async with (limiter if limiter is not None else nullcontext()):
            outcome = await self._call(node_id, generate_one)
        self._record(outcome)
        self._publish(outcome)
        if outcome.ok and self.on_output is not None:
            await anyio.to_thread.run_sync(self.on_output, node_id, outcome.content or "")
        outcomes.append(outcome)

    def _begin(self, node_id: str) -> NodeOutcome | None:
        """Move the node to ``generating``; return a failure outcome if impossible.

        A refused dispatch never writes to the graph: the node may be
        ``generating`` under a concurrent run whose result must still land.
        """
        if self.graph is None:
            return None
        try:
            self.graph.begin_generation(node_id)
        except NeedlepointError as exc:
            log.warning("cannot dispatch %s: %s", node_id, exc)
            return NodeOutcome(node_id=node_id, ok=False, error=str(exc))
        return None

    async def _call(self, node_id: str, generate_one: GenerateOne) -> NodeOutcome:
        try:
            if inspect.iscoroutinefunction(generate_one):
                raw: Any = await generate_one(node_id)
            else:
                raw = await anyio.to_thread.run_sync(generate_one, node_id)
                if inspect.isawaitable(raw):
                    raw = await raw
        except Exception as exc:  # noqa: BLE001 – a node failure is data, not a crash
            log.debug("generation of %s raised", node_id, exc_info=True)
            return NodeOutcome(node_id=node_id, ok=False, error=str(exc) or type(exc).__name__)

        if isinstance(raw, Result):
            if raw.ok:
                return NodeOutcome(node_id=node_id, ok=True, content=_as_text(raw.value))
            return NodeOutcome(node_id=node_id, ok=False, error=raw.message)
        return NodeOutcome(node_id=node_id, ok=True, content=_as_text(raw))

    def _record(self, outcome: NodeOutcome) -> None:
        if self.graph is None:
            return
        try:
            if outcome.ok:
                self.graph.record_success(outcome.node_id, outcome.content or "")
            else:
                self.graph.record_failure(outcome.node_id, outcome.error or "")
        except NeedlepointError as exc:
            # e.g. node deleted while its generation was in flight
            log.warning("could not record outcome for %s: %s", outcome.node_id, exc)

    def _publish(self, outcome: NodeOutcome) -> None:
        if outcome.ok:
            evt = NodeUpdate(
                node_id=outcome.node_id,
                status=NodeStatus.COMPLETE.value,
                message="Generation complete",
                content=outcome.content,
            )
        else:
            evt = NodeUpdate(node_id=outcome.node_id, status=NodeStatus.ERROR.value, message=outcome.error)
        self.bus.publish(evt)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)
