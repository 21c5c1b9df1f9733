from __future__ import annotations

"""Data model for the Needlepoint graph.

Nodes are files to generate, edges are dependencies between them. The wire
form (YAML project file, event payloads) uses camelCase keys; Python code uses
the snake_case attribute names.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from needlepoint.utils.ids import new_id

__all__ = [
    "NodeStatus",
    "LLMProvider",
    "Language",
    "Position",
    "ExportSignature",
    "LLMConfig",
    "NodeDraft",
    "CodeNode",
    "CodeEdge",
    "DefaultLLM",
    "ProjectManifest",
    "Project",
    "DEFAULT_MODEL",
]

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class _Wire(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
        validate_assignment=True,
    )

    def to_wire(self) -> dict:
        """Return the camelCase JSON-compatible representation."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class NodeStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"
    WARNING = "warning"


class LLMProvider(str, Enum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    OLLAMA = "ollama"


class Language(str, Enum):
    TYPESCRIPT = "typescript"
    JAVASCRIPT = "javascript"
    PYTHON = "python"
    RUST = "rust"
    GO = "go"

    @property
    def display_name(self) -> str:
        return {
            "typescript": "TypeScript",
            "javascript": "JavaScript",
            "python": "Python",
            "rust": "Rust",
            "go": "Go",
        }[self.value]


class Position(_Wire):
    x: float = 0.0
    y: float = 0.0


class ExportSignature(_Wire):
    name: str
    type_signature: str = Field(default="", alias="type")
    description: str = ""


class LLMConfig(_Wire):
    provider: LLMProvider = LLMProvider.ANTHROPIC
    model: str = DEFAULT_MODEL
    system_prompt: Optional[str] = None
    constraints: List[str] = Field(default_factory=list)


class NodeDraft(_Wire):
    """Everything a user supplies when creating a node (identity is assigned on insert)."""

    name: str = "NewFile"
    file_path: str = "src/new-file.ts"
    language: Language = Language.TYPESCRIPT
    description: str = ""
    purpose: str = ""
    exports: List[ExportSignature] = Field(default_factory=list)
    llm_config: LLMConfig = Field(default_factory=LLMConfig)
    position: Position = Field(default_factory=Position)


class CodeNode(NodeDraft):
    """A file node in the graph."""

    id: str = Field(default_factory=new_id)
    status: NodeStatus = NodeStatus.PENDING
    generated_code: Optional[str] = None
    error_message: Optional[str] = None

    def snapshot(self) -> "CodeNode":
        """Deep copy used when the node must outlive its presence in the graph."""
        return self.model_copy(deep=True)


class CodeEdge(_Wire):
    """Directed dependency: *target* depends on *source*."""

    id: str = Field(default_factory=new_id)
    source: str
    target: str
    label: str = ""

    @property
    def pair(self) -> tuple[str, str]:
        return self.source, self.target


class DefaultLLM(_Wire):
    provider: LLMProvider = LLMProvider.ANTHROPIC
    model: str = DEFAULT_MODEL
    api_key_env: str = "ANTHROPIC_API_KEY"


class ProjectManifest(_Wire):
    name: str = "New Project"
    version: str = "0.1.0"
    entry_point: Optional[str] = None
    default_llm: DefaultLLM = Field(default_factory=DefaultLLM)


class Project(_Wire):
    """Serializable project: manifest plus the node/edge collections."""

    manifest: ProjectManifest = Field(default_factory=ProjectManifest)
    nodes: List[CodeNode] = Field(default_factory=list)
    edges: List[CodeEdge] = Field(default_factory=list)
    project_path: str = ""
