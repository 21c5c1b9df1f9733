"""Needlepoint: plan and generate a dependency graph of source files.

Main components:
* `GraphModel`: nodes (files) and edges (dependencies), kept acyclic
* `ExecutionPlan`: dependency-ordered waves of independent nodes
* `ExecutionDriver`: runs a plan wave by wave, nodes of a wave concurrently
* `UndoEngine`: bounded undo/redo of node deletions
* `ProjectSession`: ties the above to a project directory on disk
"""

# Version info
__version__ = "0.1.0"

# Core components
from needlepoint.core.model import (
    CodeEdge,
    CodeNode,
    ExportSignature,
    Language,
    LLMConfig,
    LLMProvider,
    NodeDraft,
    NodeStatus,
    Project,
)
from needlepoint.core.result import Result
from needlepoint.core.graph import GraphModel
from needlepoint.core.planner import ExecutionPlan, ExecutionWave, get_execution_plan
from needlepoint.core.executor import ExecutionDriver, ExecutionSummary
from needlepoint.core.undo import UndoEngine
from needlepoint.core.validation import validate_project

# Session & settings
from needlepoint.session import ProjectSession
from needlepoint.settings import Settings

# Events
from needlepoint.utils.events import EventBus

__all__ = [
    # Model
    "CodeEdge",
    "CodeNode",
    "ExportSignature",
    "Language",
    "LLMConfig",
    "LLMProvider",
    "NodeDraft",
    "NodeStatus",
    "Project",
    "Result",

    # Engine
    "GraphModel",
    "ExecutionPlan",
    "ExecutionWave",
    "get_execution_plan",
    "ExecutionDriver",
    "ExecutionSummary",
    "UndoEngine",
    "validate_project",

    # Session
    "ProjectSession",
    "Settings",
    "EventBus",
]
