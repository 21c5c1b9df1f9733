from __future__ import annotations
"""UndoEngine – bounded undo/redo history for destructive node edits.

Only batch node deletion is undoable today. Each deleted node is captured as
a :class:`DeletedNodeRecord` (snapshot, incident edges, trash handle) so the
graph and the file on disk can both be brought back.

The engine only manages the stacks; re-inserting into the graph and calling
the storage collaborator is the caller's job (see
:class:`needlepoint.session.ProjectSession`).
"""
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional

from .model import CodeEdge, CodeNode

__all__ = ["DeletedNodeRecord", "UndoAction", "UndoEngine", "DEFAULT_MAX_DEPTH"]

DEFAULT_MAX_DEPTH = 50


@dataclass
class DeletedNodeRecord:  # noqa: D101
    node: CodeNode
    connected_edges: List[CodeEdge] = field(default_factory=list)
    # "" when there was no file to move to the trash
    trash_handle: str = ""


@dataclass
class UndoAction:  # noqa: D101
    deleted_nodes: List[DeletedNodeRecord]
    kind: str = "delete_nodes"
    timestamp: float = field(default_factory=time.time)

    @property
    def node_ids(self) -> List[str]:
        return [r.node.id for r in self.deleted_nodes]


class UndoEngine:
    """Two bounded LIFO stacks; the oldest entry is evicted once *max_depth* is reached.

    Every push/pop happens under one lock, so callers on different threads
    never observe a half-moved action.
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        if max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {max_depth}")
        self.max_depth = max_depth
        self._undo: Deque[UndoAction] = deque(maxlen=max_depth)
        self._redo: Deque[UndoAction] = deque(maxlen=max_depth)
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ #
    def record_delete(self, records: List[DeletedNodeRecord]) -> UndoAction:
        """Push a new delete action and forget everything that could be redone."""
        action = UndoAction(deleted_nodes=list(records))
        with self._lock:
            self._undo.append(action)
            self._redo.clear()
        return action

    def undo(self) -> Optional[UndoAction]:
        """Move the newest action onto the redo stack and return it (None if empty)."""
        with self._lock:
            if not self._undo:
                return None
            action = self._undo.pop()
            self._redo.append(action)
            return action

    def redo(self) -> Optional[UndoAction]:
        """Mirror of :meth:`undo`."""
        with self._lock:
            if not self._redo:
                return None
            action = self._redo.pop()
            self._undo.append(action)
            return action

    def clear_history(self) -> None:
        with self._lock:
            self._undo.clear()
            self._redo.clear()

    # ------------------------------------------------------------------ #
    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def peek_undo(self) -> Optional[UndoAction]:
        with self._lock:
            return self._undo[-1] if self._undo else None

    def peek_redo(self) -> Optional[UndoAction]:
        with self._lock:
            return self._redo[-1] if self._redo else None

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)
