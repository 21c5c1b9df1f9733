from __future__ import annotations
"""Static checks over a whole project graph (cycles, dangling edges, paths…).

GraphModel already rejects bad edits one at a time; this module audits graphs
that arrived some other way, such as a hand-edited project file.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List

from .cycles import find_cycle
from .graph import GraphModel

__all__ = ["Issue", "ValidationReport", "validate_project", "apply_warnings"]


@dataclass(slots=True)
class Issue:  # noqa: D101
    code: str
    message: str
    node_ids: List[str] = field(default_factory=list)


@dataclass
class ValidationReport:  # noqa: D101
    errors: List[Issue] = field(default_factory=list)
    warnings: List[Issue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


def validate_project(graph: GraphModel) -> ValidationReport:
    """Return errors (cycle, missing node, duplicate path) and warnings."""
    report = ValidationReport()
    nodes = graph.nodes()
    edges = graph.edges()
    ids = {n.id for n in nodes}

    for e in edges:
        for endpoint in (e.source, e.target):
            if endpoint not in ids:
                report.errors.append(Issue(
                    "missing_node", f"Edge {e.id} references missing node '{endpoint}'", [endpoint]
                ))

    cycle = find_cycle(ids, [e.pair for e in edges])
    if cycle:
        names = {n.id: n.name for n in nodes}
        pretty = " → ".join(names.get(nid, nid) for nid in cycle)
        report.errors.append(Issue("cycle", f"Cyclic dependency: {pretty}", cycle[:-1]))

    by_path: Dict[str, List[str]] = defaultdict(list)
    for n in nodes:
        by_path[n.file_path].append(n.id)
    for path, owners in by_path.items():
        if len(owners) > 1:
            report.errors.append(Issue("duplicate_path", f"File path '{path}' used by {len(owners)} nodes", owners))

    connected = {e.source for e in edges} | {e.target for e in edges}
    for n in nodes:
        if len(nodes) > 1 and n.id not in connected:
            report.warnings.append(Issue("unconnected", f"'{n.name}' has no dependencies or dependents", [n.id]))
        if not n.description:
            report.warnings.append(Issue("empty_description", f"'{n.name}' has no description", [n.id]))
        if not n.exports:
            report.warnings.append(Issue("no_exports", f"'{n.name}' declares no exports", [n.id]))

    return report


def apply_warnings(graph: GraphModel, report: ValidationReport) -> List[str]:
    """Flag every node named in a warning with ``warning`` status; return their ids."""
    flagged: List[str] = []
    for issue in report.warnings:
        for nid in issue.node_ids:
            if nid in graph and nid not in flagged:
                graph.mark_warning(nid)
                flagged.append(nid)
    return flagged
