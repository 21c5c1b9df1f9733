from __future__ import annotations

"""ProjectSession – the editing surface that ties the engine together.

A session owns one project's :class:`GraphModel`, an injected
:class:`UndoEngine`, a storage collaborator and an :class:`ExecutionDriver`.
It mirrors graph edits onto disk and records destructive edits for undo.

Storage failures never roll back the graph: they are logged and published
as :class:`~needlepoint.utils.events.Notice` events.
"""

from logging import getLogger
from pathlib import Path
from typing import Any, Iterable, List, Optional

import anyio

from needlepoint.core.errors import NoProjectError
from needlepoint.core.executor import ExecutionDriver, ExecutionSummary, GenerateOne
from needlepoint.core.graph import GraphModel
from needlepoint.core.model import CodeEdge, CodeNode, NodeDraft, Project
from needlepoint.core.planner import ExecutionPlan
from needlepoint.core.result import Result
from needlepoint.core.undo import DeletedNodeRecord, UndoAction, UndoEngine
from needlepoint.core.validation import ValidationReport, validate_project
from needlepoint.io.project_file import create_project, load_project, save_project
from needlepoint.io.storage import FileStorage, Storage
from needlepoint.settings import Settings
from needlepoint.utils.events import EventBus, Notice

__all__ = ["ProjectSession"]

log = getLogger(__name__)


class ProjectSession:  # noqa: D101
    def __init__(
        self,
        project: Project | None = None,
        *,
        storage: Storage | None = None,
        undo: UndoEngine | None = None,
        bus: EventBus | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings if settings is not None else Settings.from_env()
        self.bus = bus or EventBus()
        self.project = project
        self.graph: GraphModel | None = GraphModel.from_project(project) if project is not None else None
        if storage is None and project is not None and project.project_path:
            storage = FileStorage(project.project_path, trash_dir=self.settings.trash_dir)
        self.storage = storage
        self.undo_engine = undo or UndoEngine(self.settings.max_undo)
        self.driver = ExecutionDriver(
            self.graph,
            self.bus,
            max_concurrency=self.settings.max_concurrency,
            on_output=self._persist_output,
        )

    # ------------------------------------------------------------------ #
    # Project lifecycle
    # ------------------------------------------------------------------ #
    @classmethod
    def load(cls, path: str | Path, **kwargs: Any) -> "ProjectSession":
        """Load ``needlepoint.yaml`` from *path* (directory or file)."""
        return cls(load_project(path), **kwargs)

    @classmethod
    def create(cls, directory: str | Path, name: str = "New Project", **kwargs: Any) -> "ProjectSession":
        return cls(create_project(directory, name), **kwargs)

    def save(self) -> Path:
        graph = self._require_graph()
        self.project = graph.to_project(self.project)
        return save_project(self.project)

    def _require_graph(self) -> GraphModel:
        if self.graph is None:
            raise NoProjectError()
        return self.graph

    # ------------------------------------------------------------------ #
    # Storage helpers
    # ------------------------------------------------------------------ #
    def _report(self, result: Result, what: str) -> Result:
        if not result.ok:
            message = f"{what}: {result.message}"
            log.warning("%s", message)
            self.bus.publish(Notice(message=message))
        return result

    def _persist_output(self, node_id: str, content: str) -> None:
        """Write a generated file. Runs in a worker thread, off the event loop."""
        if self.storage is None or self.graph is None:
            return
        node = self.graph.node(node_id)
        if node is not None:
            self._report(self.storage.write_file(node.file_path, content), f"Could not write {node.file_path}")

    # ------------------------------------------------------------------ #
    # Node / edge edits
    # ------------------------------------------------------------------ #
    def add_node(self, draft: NodeDraft | None = None, **fields: Any) -> CodeNode:
        node = self._require_graph().add_node(draft, **fields)
        if self.storage is not None:
            self._report(self.storage.create_file(node.file_path), f"Could not create {node.file_path}")
        return node

    def update_node(self, node_id: str, **fields: Any) -> Result[CodeNode]:
        graph = self._require_graph()
        before = graph.node(node_id)
        old_path = before.file_path if before is not None else None
        res = graph.update_node(node_id, **fields)
        if res.ok and self.storage is not None and old_path and res.value.file_path != old_path:
            self._report(
                self.storage.rename(old_path, res.value.file_path),
                f"Could not rename {old_path} to {res.value.file_path}",
            )
        return res

    def add_edge(self, source: str, target: str, label: str = "") -> Result[CodeEdge]:
        return self._require_graph().add_edge(source, target, label)

    def update_edge(self, edge_id: str, label: str) -> Optional[CodeEdge]:
        return self._require_graph().update_edge(edge_id, label)

    def delete_edge(self, edge_id: str) -> Optional[CodeEdge]:
        return self._require_graph().delete_edge(edge_id)

    # ------------------------------------------------------------------ #
    # Reversible deletion
    # ------------------------------------------------------------------ #
    def delete_nodes(self, node_ids: Iterable[str]) -> Optional[UndoAction]:
        """Delete nodes (edges included), trash their files and record an undo action."""
        graph = self._require_graph()
        removed_nodes, removed_edges = graph.delete_nodes(node_ids)
        if not removed_nodes:
            return None
        records = [
            DeletedNodeRecord(
                node=node.snapshot(),
                connected_edges=_incident(removed_edges, node.id),
                trash_handle=self._trash(node.file_path),
            )
            for node in removed_nodes
        ]
        log.info("deleted %d node(s)", len(records))
        return self.undo_engine.record_delete(records)

    def delete_node(self, node_id: str) -> Optional[UndoAction]:
        return self.delete_nodes([node_id])

    def undo(self) -> Optional[UndoAction]:
        """Bring back the most recently deleted batch (graph first, then files)."""
        graph = self._require_graph()
        action = self.undo_engine.undo()
        if action is None:
            return None
        edges = [e for r in action.deleted_nodes for e in r.connected_edges]
        restored_nodes, restored_edges = graph.restore([r.node for r in action.deleted_nodes], edges)
        restored = {n.id: n for n in restored_nodes}
        for record in action.deleted_nodes:
            node = restored.get(record.node.id)
            if node is None or not record.trash_handle or self.storage is None:
                continue
            self._report(
                self.storage.restore(record.trash_handle, node.file_path),
                f"Could not restore {node.file_path} from trash",
            )
        log.info("undo: restored %d node(s), %d edge(s)", len(restored_nodes), len(restored_edges))
        return action

    def redo(self) -> Optional[UndoAction]:
        """Delete the same batch again; each record gets its new trash handle."""
        graph = self._require_graph()
        action = self.undo_engine.redo()
        if action is None:
            return None
        removed_nodes, removed_edges = graph.delete_nodes(action.node_ids)
        removed = {n.id: n for n in removed_nodes}
        for record in action.deleted_nodes:
            node = removed.get(record.node.id)
            if node is None:
                continue
            record.node = node.snapshot()
            record.connected_edges = _incident(removed_edges, node.id)
            record.trash_handle = self._trash(node.file_path)
        log.info("redo: deleted %d node(s)", len(removed_nodes))
        return action

    def _trash(self, file_path: str) -> str:
        if self.storage is None:
            return ""
        res = self._report(self.storage.soft_delete(file_path), f"Could not move {file_path} to trash")
        return res.value_or("") or ""

    # ------------------------------------------------------------------ #
    # Planning / execution
    # ------------------------------------------------------------------ #
    def plan(self) -> ExecutionPlan:
        return ExecutionPlan.from_graph(self._require_graph())

    def get_execution_plan(self) -> dict:
        """Side-effect-free ``{waves, totalNodes, skippedNodes}`` preview."""
        return self.plan().to_wire()

    def validate(self) -> ValidationReport:
        return validate_project(self._require_graph())

    async def generate(
        self,
        node_ids: Iterable[str] | None = None,
        generate_one: GenerateOne | None = None,
    ) -> ExecutionSummary:
        """Generate every node (or only *node_ids*) wave by wave."""
        if self.graph is None:
            return await self.driver.run(None, generate_one or _unavailable)
        plan = ExecutionPlan.from_graph(self.graph)
        if node_ids is not None:
            plan = plan.restricted_to(node_ids)
        if generate_one is None:
            from needlepoint.llm.generation import make_generator

            generate_one = make_generator(self.graph, self.settings)
        return await self.driver.run(plan, generate_one)

    async def generate_all(self, generate_one: GenerateOne | None = None) -> ExecutionSummary:
        return await self.generate(None, generate_one)

    async def generate_nodes(
        self,
        node_ids: Iterable[str],
        generate_one: GenerateOne | None = None,
    ) -> ExecutionSummary:
        return await self.generate(list(node_ids), generate_one)

    def generate_sync(
        self,
        node_ids: Iterable[str] | None = None,
        generate_one: GenerateOne | None = None,
    ) -> ExecutionSummary:
        return anyio.run(self.generate, node_ids, generate_one)

    def cancel(self) -> None:
        self.driver.cancel()


def _incident(edges: List[CodeEdge], node_id: str) -> List[CodeEdge]:
    return [e for e in edges if e.source == node_id or e.target == node_id]


async def _unavailable(node_id: str) -> Result[str]:
    return Result.failure(NoProjectError())
