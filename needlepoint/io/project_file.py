from __future__ import annotations
"""Project file (``needlepoint.yaml``) loading and saving.

The file is the camelCase dump of :class:`~needlepoint.core.model.Project`
without ``projectPath``; the path is always taken from the file's location.

```yaml
manifest:
  name: Demo
  version: 0.1.0
nodes:
  - id: 6f0c…
    name: api
    filePath: src/api.ts
    language: typescript
edges:
  - id: 1b2e…
    source: 6f0c…
    target: 9a41…
    label: imports types from
```
"""
from pathlib import Path
from typing import Any, Dict

import yaml
from jsonschema import ValidationError as SchemaError
from jsonschema import validate as _js_validate
from pydantic import ValidationError

from needlepoint.core.errors import ProjectFileError
from needlepoint.core.model import NodeStatus, Project

__all__ = ["PROJECT_FILE_NAME", "load_project", "save_project", "create_project", "is_project_directory"]

PROJECT_FILE_NAME = "needlepoint.yaml"


def _project_file(path: str | Path) -> Path:
    p = Path(path)
    return p / PROJECT_FILE_NAME if p.is_dir() else p


def load_project(path: str | Path) -> Project:
    """Load a project from a directory or from the YAML file itself."""
    file = _project_file(path)
    try:
        data = yaml.safe_load(file.read_text(encoding="utf-8")) or {}
    except OSError as exc:
        raise ProjectFileError(f"Failed to read project file {file}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ProjectFileError(f"Failed to parse project file {file}: {exc}") from exc

    try:
        _js_validate(instance=data, schema=_SCHEMA)
        project = Project.model_validate(data)
    except (SchemaError, ValidationError) as exc:
        raise ProjectFileError(f"Invalid project file {file}: {exc}") from exc

    project.project_path = str(file.parent)
    # A saved "generating" status means the previous run was interrupted.
    for node in project.nodes:
        if node.status is NodeStatus.GENERATING:
            node.status = NodeStatus.PENDING
    return project


def save_project(project: Project) -> Path:
    """Write *project* to ``<project_path>/needlepoint.yaml``; return the file path."""
    if not project.project_path:
        raise ProjectFileError("Project has no project_path; cannot save")
    file = Path(project.project_path) / PROJECT_FILE_NAME
    data = project.to_wire()
    data.pop("projectPath", None)
    try:
        file.parent.mkdir(parents=True, exist_ok=True)
        file.write_text(yaml.safe_dump(data, sort_keys=False, allow_unicode=True), encoding="utf-8")
    except OSError as exc:
        raise ProjectFileError(f"Failed to write project file {file}: {exc}") from exc
    return file


def create_project(directory: str | Path, name: str = "New Project") -> Project:
    """Create and save an empty project in *directory*."""
    project = Project(project_path=str(directory))
    project.manifest.name = name
    save_project(project)
    return project


def is_project_directory(path: str | Path) -> bool:
    return (Path(path) / PROJECT_FILE_NAME).exists()


# --------------------------------------------------------------------------- #
# Minimal JSON Schema for the project file
# --------------------------------------------------------------------------- #

_OBJECT_LIST = {"type": "array", "items": {"type": "object"}}

_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "manifest": {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "version": {"type": "string"},
            },
        },
        "nodes": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "name", "filePath"],
                "properties": {
                    "id": {"type": "string"},
                    "name": {"type": "string"},
                    "filePath": {"type": "string", "minLength": 1},
                    "status": {"enum": ["pending", "generating", "complete", "error", "warning"]},
                    "exports": _OBJECT_LIST,
                },
            },
        },
        "edges": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["source", "target"],
                "properties": {
                    "id": {"type": "string"},
                    "source": {"type": "string"},
                    "target": {"type": "string"},
                    "label": {"type": "string"},
                },
            },
        },
    },
}
