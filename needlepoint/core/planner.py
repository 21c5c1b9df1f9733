from __future__ import annotations
"""Wave planner: layered topological sort of the dependency graph.

Wave 0 holds every node without dependencies; wave k+1 holds the nodes whose
last unsatisfied dependency was in wave k. Nodes in one wave never depend on
each other, so they can be generated concurrently. Anything left over
(only possible if a cycle slipped into the graph) is reported as skipped.
"""
from typing import Dict, Iterable, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .graph import GraphModel

__all__ = ["ExecutionWave", "ExecutionPlan", "plan_waves", "get_execution_plan"]


class _PlanModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ExecutionWave(_PlanModel):
    wave_number: int
    node_ids: List[str]


class ExecutionPlan(_PlanModel):
    """Read-only plan; recompute whenever the graph changes."""

    waves: List[ExecutionWave] = Field(default_factory=list)
    total_nodes: int = 0
    skipped_nodes: List[str] = Field(default_factory=list)
    revision: Optional[int] = Field(default=None, exclude=True)

    # ------------------------------------------------------------------ #
    @classmethod
    def from_graph(cls, graph: GraphModel) -> "ExecutionPlan":
        node_ids, pairs, revision = graph.snapshot()
        waves, skipped = plan_waves(node_ids, pairs)
        return cls(
            waves=[ExecutionWave(wave_number=i, node_ids=w) for i, w in enumerate(waves)],
            total_nodes=sum(len(w) for w in waves),
            skipped_nodes=skipped,
            revision=revision,
        )

    # ------------------------------------------------------------------ #
    @property
    def total_waves(self) -> int:
        return len(self.waves)

    def ordered_node_ids(self) -> List[str]:
        """Flattened node ids in execution order."""
        return [nid for w in self.waves for nid in w.node_ids]

    def contains_node(self, node_id: str) -> bool:
        return any(node_id in w.node_ids for w in self.waves)

    def wave_index(self) -> Dict[str, int]:
        return {nid: w.wave_number for w in self.waves for nid in w.node_ids}

    def restricted_to(self, node_ids: Iterable[str]) -> "ExecutionPlan":
        """Keep only *node_ids*; empty waves are dropped, wave numbers kept."""
        keep = set(node_ids)
        waves = [
            ExecutionWave(wave_number=w.wave_number, node_ids=[n for n in w.node_ids if n in keep])
            for w in self.waves
        ]
        waves = [w for w in waves if w.node_ids]
        return ExecutionPlan(
            waves=waves,
            total_nodes=sum(len(w.node_ids) for w in waves),
            skipped_nodes=[n for n in self.skipped_nodes if n in keep],
            revision=self.revision,
        )

    def to_wire(self) -> dict:
        """``{waves: [{waveNumber, nodeIds}], totalNodes, skippedNodes}``."""
        return self.model_dump(mode="json", by_alias=True)


# --------------------------------------------------------------------------- #
# Core algorithm (pure)
# --------------------------------------------------------------------------- #

def plan_waves(
    node_ids: Iterable[str],
    edges: Iterable[Tuple[str, str]],
) -> Tuple[List[List[str]], List[str]]:
    """Kahn-style layering. Returns ``(waves, skipped)``.

    Duplicate pairs count once and edges with unknown endpoints are ignored.
    Ids inside a wave are sorted so the output is stable for display.
    """
    nodes = list(dict.fromkeys(node_ids))
    known = set(nodes)
    dependents: Dict[str, Set[str]] = {n: set() for n in nodes}
    in_degree: Dict[str, int] = {n: 0 for n in nodes}
    for src, dst in set(edges):
        if src in known and dst in known:
            dependents[src].add(dst)
            in_degree[dst] += 1

    waves: List[List[str]] = []
    ready = sorted(n for n in nodes if in_degree[n] == 0)
    while ready:
        waves.append(ready)
        nxt: List[str] = []
        for nid in ready:
            for dep in dependents[nid]:
                in_degree[dep] -= 1
                if in_degree[dep] == 0:
                    nxt.append(dep)
        ready = sorted(nxt)

    placed = {n for w in waves for n in w}
    skipped = [n for n in nodes if n not in placed]
    return waves, skipped


def get_execution_plan(graph: GraphModel) -> dict:
    """Side-effect-free preview of how *graph* would be executed."""
    return ExecutionPlan.from_graph(graph).to_wire()
