from __future__ import annotations
"""Error hierarchy for Needlepoint.

Structural rejections are returned inside a :class:`~needlepoint.core.result.Result`;
the remaining classes are raised where a caller cannot sensibly continue.
"""
from typing import List, Sequence

__all__ = [
    "NeedlepointError",
    "GraphError",
    "NodeNotFoundError",
    "PathConflictError",
    "EdgeError",
    "SelfLoopError",
    "DuplicateEdgeError",
    "CycleError",
    "UnknownNodeError",
    "InvalidTransitionError",
    "PlanningError",
    "StalePlanError",
    "NoProjectError",
    "StorageError",
    "ProviderError",
    "ProviderNotConfiguredError",
    "ProjectFileError",
]


class NeedlepointError(Exception):
    """Base class for every error raised or returned by Needlepoint."""


# --------------------------------------------------------------------------- #
# Graph structure
# --------------------------------------------------------------------------- #
class GraphError(NeedlepointError):
    """A graph mutation was rejected; the graph is unchanged."""


class NodeNotFoundError(GraphError):
    def __init__(self, node_id: str):
        super().__init__(f"Node '{node_id}' not found")
        self.node_id = node_id


class PathConflictError(GraphError):
    def __init__(self, file_path: str, existing_id: str):
        super().__init__(f"File path '{file_path}' is already used by node '{existing_id}'")
        self.file_path = file_path
        self.existing_id = existing_id


class EdgeError(GraphError):
    """Base for add-edge rejections."""


class SelfLoopError(EdgeError):
    def __init__(self) -> None:
        super().__init__("Cannot create an edge from a node to itself")


class DuplicateEdgeError(EdgeError):
    def __init__(self) -> None:
        super().__init__("Edge already exists")


class CycleError(EdgeError):
    def __init__(self, path: Sequence[str] = ()):
        super().__init__("Adding this edge would create a circular dependency")
        self.path: List[str] = list(path)


class UnknownNodeError(EdgeError):
    def __init__(self, node_id: str):
        super().__init__(f"Edge endpoint '{node_id}' does not exist")
        self.node_id = node_id


# --------------------------------------------------------------------------- #
# Status machine
# --------------------------------------------------------------------------- #
class InvalidTransitionError(NeedlepointError):
    def __init__(self, node_id: str, current: str, target: str):
        super().__init__(f"Node '{node_id}' cannot move from '{current}' to '{target}'")
        self.node_id = node_id
        self.current = current
        self.target = target


# --------------------------------------------------------------------------- #
# Planning / execution setup
# --------------------------------------------------------------------------- #
class PlanningError(NeedlepointError):
    """Fatal setup failure: the run is aborted before any wave starts."""


class StalePlanError(PlanningError):
    def __init__(self, plan_revision: int, graph_revision: int):
        super().__init__(
            f"Execution plan was computed for graph revision {plan_revision} "
            f"but the graph is now at revision {graph_revision}; recompute the plan"
        )
        self.plan_revision = plan_revision
        self.graph_revision = graph_revision


class NoProjectError(PlanningError):
    def __init__(self) -> None:
        super().__init__("No project loaded")


# --------------------------------------------------------------------------- #
# Collaborators
# --------------------------------------------------------------------------- #
class StorageError(NeedlepointError):
    """A filesystem operation failed. Non-fatal: the in-memory graph stays authoritative."""


class ProviderError(NeedlepointError):
    """An LLM provider call failed."""


class ProviderNotConfiguredError(ProviderError):
    def __init__(self, provider: str):
        super().__init__(f"{provider} is not configured. Please set your API key.")
        self.provider = provider


class ProjectFileError(NeedlepointError):
    """The project file could not be read, parsed or written."""
