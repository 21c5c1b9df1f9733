from __future__ import annotations
"""GraphModel: owner of the node/edge collections of one project.

Nodes and edges are stored in id-indexed dicts; relationships are plain id
pairs, never object references. Every public mutation either commits fully
with the DAG invariant intact or leaves the graph untouched.
"""
import threading
from logging import getLogger
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from pydantic import ValidationError

from .cycles import would_create_cycle
from .errors import (
    CycleError,
    DuplicateEdgeError,
    GraphError,
    NodeNotFoundError,
    PathConflictError,
    SelfLoopError,
    UnknownNodeError,
)
from .model import CodeEdge, CodeNode, NodeDraft, Project
from .result import Result
from . import status as _status
from ..utils.ids import new_id, unique_name, unique_path

__all__ = ["GraphModel", "GraphSnapshot"]

log = getLogger(__name__)

GraphSnapshot = Tuple[List[str], List[Tuple[str, str]], int]

_READONLY_FIELDS = {"id", "status"}


class GraphModel:  # noqa: D101
    def __init__(self, nodes: Iterable[CodeNode] = (), edges: Iterable[CodeEdge] = ()):
        self._lock = threading.RLock()
        self._nodes: Dict[str, CodeNode] = {}
        self._edges: Dict[str, CodeEdge] = {}
        self._revision = 0
        # Bulk load without validation; the validator and planner report anomalies.
        for n in nodes:
            self._nodes[n.id] = n
        for e in edges:
            self._edges[e.id] = e

    # ------------------------------------------------------------------ #
    # Conversion
    # ------------------------------------------------------------------ #
    @classmethod
    def from_project(cls, project: Project) -> "GraphModel":
        return cls(project.nodes, project.edges)

    def to_project(self, base: Optional[Project] = None) -> Project:
        """Return a :class:`Project` holding copies of the current nodes/edges."""
        with self._lock:
            nodes = [n.snapshot() for n in self._nodes.values()]
            edges = [e.model_copy() for e in self._edges.values()]
        if base is None:
            return Project(nodes=nodes, edges=edges)
        return base.model_copy(update={"nodes": nodes, "edges": edges})

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #
    @property
    def revision(self) -> int:
        """Counter bumped on every change to the node or edge set."""
        return self._revision

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def node(self, node_id: str) -> Optional[CodeNode]:
        return self._nodes.get(node_id)

    def edge(self, edge_id: str) -> Optional[CodeEdge]:
        return self._edges.get(edge_id)

    def nodes(self) -> List[CodeNode]:
        with self._lock:
            return list(self._nodes.values())

    def edges(self) -> List[CodeEdge]:
        with self._lock:
            return list(self._edges.values())

    def node_ids(self) -> List[str]:
        with self._lock:
            return list(self._nodes)

    def find_by_path(self, file_path: str) -> Optional[CodeNode]:
        with self._lock:
            for n in self._nodes.values():
                if n.file_path == file_path:
                    return n
        return None

    def dependencies(self, node_id: str) -> List[CodeEdge]:
        """Edges pointing *to* ``node_id`` (what it depends on)."""
        with self._lock:
            return [e for e in self._edges.values() if e.target == node_id]

    def dependents(self, node_id: str) -> List[CodeEdge]:
        """Edges leaving ``node_id`` (what depends on it)."""
        with self._lock:
            return [e for e in self._edges.values() if e.source == node_id]

    def incident_edges(self, node_ids: Iterable[str]) -> List[CodeEdge]:
        """Edges touching any of *node_ids*, each listed once."""
        ids = set(node_ids)
        with self._lock:
            return [e for e in self._edges.values() if e.source in ids or e.target in ids]

    def snapshot(self) -> GraphSnapshot:
        """Return ``(node_ids, edge_pairs, revision)`` taken atomically."""
        with self._lock:
            return (
                list(self._nodes),
                [e.pair for e in self._edges.values()],
                self._revision,
            )

    # ------------------------------------------------------------------ #
    # Node mutations
    # ------------------------------------------------------------------ #
    def add_node(self, draft: NodeDraft | None = None, **fields: Any) -> CodeNode:
        """Insert a new node built from *draft* (or keyword fields).

        A fresh id is assigned and name/file path get a numeric suffix
        until neither collides with an existing node.
        """
        data = draft.model_dump() if draft is not None else NodeDraft().model_dump()
        data.update(fields)
        for key in ("id", "status", "generated_code", "error_message"):
            data.pop(key, None)
        with self._lock:
            names = {n.name for n in self._nodes.values()}
            paths = {n.file_path for n in self._nodes.values()}
            data["name"] = unique_name(data["name"], names)
            data["file_path"] = unique_path(data["file_path"], paths)
            node = CodeNode.model_validate({**data, "id": new_id()})
            self._nodes[node.id] = node
            self._revision += 1
        log.debug("added node %s (%s)", node.id, node.file_path)
        return node

    def update_node(self, node_id: str, **fields: Any) -> Result[CodeNode]:
        """Apply a partial user edit; returns the updated node or the rejection."""
        bad = _READONLY_FIELDS.intersection(fields)
        if bad:
            return Result.failure(GraphError(f"Field(s) {sorted(bad)} cannot be edited directly"))
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                return Result.failure(NodeNotFoundError(node_id))
            unknown = set(fields) - set(CodeNode.model_fields)
            if unknown:
                return Result.failure(GraphError(f"Unknown node field(s): {sorted(unknown)}"))
            new_path = fields.get("file_path")
            if new_path is not None and new_path != node.file_path:
                for other in self._nodes.values():
                    if other.id != node_id and other.file_path == new_path:
                        return Result.failure(PathConflictError(new_path, other.id))
            try:
                updated = CodeNode.model_validate({**node.model_dump(), **fields})
            except ValidationError as exc:
                return Result.failure(GraphError(f"Invalid node update: {exc}"))
            self._nodes[node_id] = updated
        return Result.success(updated)

    def delete_node(self, node_id: str) -> Tuple[List[CodeNode], List[CodeEdge]]:
        return self.delete_nodes([node_id])

    def delete_nodes(self, node_ids: Iterable[str]) -> Tuple[List[CodeNode], List[CodeEdge]]:
        """Remove nodes and all incident edges; return what was removed.

        Unknown ids are ignored.
        """
        with self._lock:
            ids = [nid for nid in dict.fromkeys(node_ids) if nid in self._nodes]
            if not ids:
                return [], []
            idset = set(ids)
            removed_edges = [
                e for e in self._edges.values() if e.source in idset or e.target in idset
            ]
            for e in removed_edges:
                del self._edges[e.id]
            removed_nodes = [self._nodes.pop(nid) for nid in ids]
            self._revision += 1
        log.debug("deleted %d node(s), %d edge(s)", len(removed_nodes), len(removed_edges))
        return removed_nodes, removed_edges

    def restore(
        self,
        nodes: Iterable[CodeNode],
        edges: Iterable[CodeEdge],
    ) -> Tuple[List[CodeNode], List[CodeEdge]]:
        """Re-insert previously removed nodes and the edges that are still valid.

        A node whose id is already live is skipped; one whose file path has
        since been taken gets a suffixed path. An edge is restored only when
        both endpoints are present, its pair is not already connected and it
        does not close a cycle. Returns the nodes and edges actually inserted.
        """
        restored_nodes: List[CodeNode] = []
        restored_edges: List[CodeEdge] = []
        with self._lock:
            for node in nodes:
                if node.id in self._nodes:
                    continue
                paths = {n.file_path for n in self._nodes.values()}
                node = node.snapshot()
                if node.file_path in paths:
                    node.file_path = unique_path(node.file_path, paths)
                self._nodes[node.id] = node
                restored_nodes.append(node)

            pairs: Set[Tuple[str, str]] = {e.pair for e in self._edges.values()}
            for edge in edges:
                if edge.id in self._edges or edge.pair in pairs:
                    continue
                if edge.source not in self._nodes or edge.target not in self._nodes:
                    log.debug("dropping dangling edge %s on restore", edge.id)
                    continue
                if edge.source == edge.target or would_create_cycle(
                    self._nodes, pairs, edge.source, edge.target
                ):
                    continue
                self._edges[edge.id] = edge.model_copy()
                pairs.add(edge.pair)
                restored_edges.append(edge)

            if restored_nodes or restored_edges:
                self._revision += 1
        return restored_nodes, restored_edges

    # ------------------------------------------------------------------ #
    # Edge mutations
    # ------------------------------------------------------------------ #
    def add_edge(self, source: str, target: str, label: str = "") -> Result[CodeEdge]:
        """Validated edge insertion (self-loop, duplicate and cycle checks)."""
        with self._lock:
            for endpoint in (source, target):
                if endpoint not in self._nodes:
                    return Result.failure(UnknownNodeError(endpoint))
            if source == target:
                return Result.failure(SelfLoopError())
            pairs = [e.pair for e in self._edges.values()]
            if (source, target) in pairs:
                return Result.failure(DuplicateEdgeError())
            if would_create_cycle(self._nodes, pairs, source, target):
                return Result.failure(CycleError())
            edge = CodeEdge(source=source, target=target, label=label)
            self._edges[edge.id] = edge
            self._revision += 1
        log.debug("added edge %s → %s", source, target)
        return Result.success(edge)

    def update_edge(self, edge_id: str, label: str) -> Optional[CodeEdge]:
        """Change an edge's label; returns the edge or None if unknown."""
        with self._lock:
            edge = self._edges.get(edge_id)
            if edge is not None:
                edge.label = label
            return edge

    def delete_edge(self, edge_id: str) -> Optional[CodeEdge]:
        with self._lock:
            edge = self._edges.pop(edge_id, None)
            if edge is not None:
                self._revision += 1
            return edge

    # ------------------------------------------------------------------ #
    # Engine-side status updates
    # ------------------------------------------------------------------ #
    def _live(self, node_id: str) -> CodeNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def begin_generation(self, node_id: str) -> CodeNode:
        with self._lock:
            node = self._live(node_id)
            _status.begin_generation(node)
            return node

    def record_success(self, node_id: str, content: str) -> CodeNode:
        with self._lock:
            node = self._live(node_id)
            _status.complete_generation(node, content)
            return node

    def record_failure(self, node_id: str, message: str) -> CodeNode:
        with self._lock:
            node = self._live(node_id)
            _status.fail_generation(node, message)
            return node

    def mark_warning(self, node_id: str) -> None:
        """Validator hook: flag a node that is not in flight."""
        with self._lock:
            node = self._live(node_id)
            if node.status is not _status.S.GENERATING:
                node.status = _status.S.WARNING
