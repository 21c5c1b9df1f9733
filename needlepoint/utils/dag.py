from __future__ import annotations

"""Plan rendering helpers (no side-effects).

iter_nodes(plan) yields (wave_number, node_id) in execution order.
build_rich_tree(plan, graph) returns a Rich *Tree* ready for printing.
"""
from typing import Iterator, Optional, Tuple

from needlepoint.core.graph import GraphModel
from needlepoint.core.model import NodeStatus
from needlepoint.core.planner import ExecutionPlan

__all__ = [
    "iter_nodes",
    "build_rich_tree",
]

_STATUS_STYLE = {
    NodeStatus.PENDING: "dim",
    NodeStatus.GENERATING: "yellow",
    NodeStatus.COMPLETE: "green",
    NodeStatus.ERROR: "red",
    NodeStatus.WARNING: "magenta",
}


def iter_nodes(plan: ExecutionPlan) -> Iterator[Tuple[int, str]]:  # noqa: D401
    """Yield *(wave_number, node_id)* for every planned node."""
    for wave in plan.waves:
        for nid in wave.node_ids:
            yield wave.wave_number, nid


def _label(node_id: str, graph: Optional[GraphModel]) -> str:
    node = graph.node(node_id) if graph is not None else None
    if node is None:
        return f"[cyan]{node_id}[/]"
    style = _STATUS_STYLE.get(node.status, "dim")
    return f"[cyan]{node.name}[/] [dim]{node.file_path}[/] [{style}]{node.status.value}[/]"


def build_rich_tree(plan: ExecutionPlan, graph: Optional[GraphModel] = None):  # noqa: D401
    """Return a *rich.tree.Tree* visualisation of *plan* (side-effect-free)."""
    from rich.tree import Tree  # local import keeps this module lightweight

    tree = Tree(f"[bold]Execution plan[/] [dim]{plan.total_nodes} node(s), {plan.total_waves} wave(s)[/]")
    branches = {}
    for wave_number, nid in iter_nodes(plan):
        if wave_number not in branches:
            branches[wave_number] = tree.add(f"[magenta]wave {wave_number}[/]")
        branches[wave_number].add(_label(nid, graph))
    if plan.skipped_nodes:
        skipped = tree.add("[red]skipped (cycle)[/]")
        for nid in plan.skipped_nodes:
            skipped.add(_label(nid, graph))
    return tree
