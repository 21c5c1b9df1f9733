"""REST API routes over a :class:`~needlepoint.session.ProjectSession`.

One project is open per app. Structural rejections come back as 4xx with a
``detail`` message; generation failures are reported per node.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from needlepoint import __version__
from needlepoint.core.errors import (
    NeedlepointError,
    NodeNotFoundError,
    PathConflictError,
    UnknownNodeError,
)
from needlepoint.core.model import Language, LLMProvider
from needlepoint.core.result import Result
from needlepoint.llm.context import build_prompt
from needlepoint.session import ProjectSession
from needlepoint.settings import ApiKeys, Settings
from needlepoint.utils.events import EventBus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


class ApiState:
    """What the app holds between requests: the open session and the settings."""

    def __init__(self, settings: Settings, session: ProjectSession | None = None):
        self.settings = settings
        self.bus = session.bus if session is not None else EventBus()
        self.session = session

    def open(self, session: ProjectSession) -> ProjectSession:
        self.session = session
        return session

    def require_session(self) -> ProjectSession:
        if self.session is None or self.session.graph is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No project loaded")
        return self.session


def _state(request: Request) -> ApiState:
    return request.app.state.needlepoint


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class NewProjectRequest(_Body):
    path: str
    name: str = "New Project"


class LoadProjectRequest(_Body):
    path: str


class CreateNodeRequest(_Body):
    name: str
    file_path: str
    language: Language = Language.TYPESCRIPT
    description: str = ""
    purpose: str = ""


class CreateEdgeRequest(_Body):
    source: str
    target: str
    label: str = ""


class GenerateRequest(_Body):
    api_key: Optional[str] = None


class ApiKeysRequest(_Body):
    anthropic: Optional[str] = None
    openai: Optional[str] = None
    ollama_base_url: Optional[str] = None


# node fields a client may change through PUT /nodes/{id}
_EDITABLE = {
    "name": "name",
    "filePath": "file_path",
    "language": "language",
    "description": "description",
    "purpose": "purpose",
    "exports": "exports",
    "llmConfig": "llm_config",
    "position": "position",
}


def _raise_for(res: Result) -> None:
    if res.ok:
        return
    err = res.error
    if isinstance(err, (NodeNotFoundError, UnknownNodeError)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(err, PathConflictError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    raise HTTPException(status_code=code, detail=res.message)


def _node_or_404(session: ProjectSession, node_id: str):
    node = session.graph.node(node_id)
    if node is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Node '{node_id}' not found")
    return node


# ---------------------------------------------------------------------------
# Status & project
# ---------------------------------------------------------------------------

@router.get("/status", tags=["project"])
async def get_status(request: Request) -> Dict[str, Any]:
    s = _state(request).session
    loaded = s is not None and s.project is not None
    return {
        "status": "ok",
        "version": __version__,
        "projectLoaded": loaded,
        "projectName": s.project.manifest.name if loaded else None,
    }


@router.get("/project", tags=["project"])
async def get_project(request: Request) -> Dict[str, Any]:
    session = _state(request).require_session()
    return session.graph.to_project(session.project).to_wire()


@router.post("/project/new", tags=["project"])
async def new_project(req: NewProjectRequest, request: Request) -> Dict[str, Any]:
    state = _state(request)
    try:
        session = ProjectSession.create(req.path, req.name, settings=state.settings, bus=state.bus)
    except NeedlepointError as e:
        logger.error(f"Failed to create project: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return state.open(session).project.to_wire()


@router.post("/project/load", tags=["project"])
async def load_project(req: LoadProjectRequest, request: Request) -> Dict[str, Any]:
    state = _state(request)
    try:
        session = ProjectSession.load(req.path, settings=state.settings, bus=state.bus)
    except NeedlepointError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return state.open(session).project.to_wire()


@router.post("/project/save", tags=["project"])
async def save_project(request: Request) -> Dict[str, Any]:
    session = _state(request).require_session()
    try:
        path = session.save()
    except NeedlepointError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return {"saved": True, "path": str(path)}


# ---------------------------------------------------------------------------
# Nodes & edges
# ---------------------------------------------------------------------------

@router.get("/nodes", tags=["graph"])
async def list_nodes(request: Request) -> List[Dict[str, Any]]:
    return [n.to_wire() for n in _state(request).require_session().graph.nodes()]


@router.post("/nodes", tags=["graph"], status_code=status.HTTP_201_CREATED)
async def create_node(req: CreateNodeRequest, request: Request) -> Dict[str, Any]:
    session = _state(request).require_session()
    return session.add_node(**req.model_dump()).to_wire()


@router.get("/nodes/{node_id}", tags=["graph"])
async def get_node(node_id: str, request: Request) -> Dict[str, Any]:
    return _node_or_404(_state(request).require_session(), node_id).to_wire()


@router.put("/nodes/{node_id}", tags=["graph"])
async def update_node(node_id: str, updates: Dict[str, Any], request: Request) -> Dict[str, Any]:
    session = _state(request).require_session()
    unknown = set(updates) - set(_EDITABLE)
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Field(s) {sorted(unknown)} cannot be edited",
        )
    res = session.update_node(node_id, **{_EDITABLE[k]: v for k, v in updates.items()})
    _raise_for(res)
    return res.value.to_wire()


@router.delete("/nodes/{node_id}", tags=["graph"])
async def delete_node(node_id: str, request: Request) -> Dict[str, Any]:
    session = _state(request).require_session()
    if session.delete_node(node_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Node '{node_id}' not found")
    return {"deleted": True}


@router.get("/edges", tags=["graph"])
async def list_edges(request: Request) -> List[Dict[str, Any]]:
    return [e.to_wire() for e in _state(request).require_session().graph.edges()]


@router.post("/edges", tags=["graph"], status_code=status.HTTP_201_CREATED)
async def create_edge(req: CreateEdgeRequest, request: Request) -> Dict[str, Any]:
    res = _state(request).require_session().add_edge(req.source, req.target, req.label)
    _raise_for(res)
    return res.value.to_wire()


@router.delete("/edges/{edge_id}", tags=["graph"])
async def delete_edge(edge_id: str, request: Request) -> Dict[str, Any]:
    if _state(request).require_session().delete_edge(edge_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Edge '{edge_id}' not found")
    return {"deleted": True}


@router.post("/undo", tags=["graph"])
async def undo(request: Request) -> Dict[str, Any]:
    action = _state(request).require_session().undo()
    return {"restored": action.node_ids if action is not None else []}


@router.post("/redo", tags=["graph"])
async def redo(request: Request) -> Dict[str, Any]:
    action = _state(request).require_session().redo()
    return {"deleted": action.node_ids if action is not None else []}


# ---------------------------------------------------------------------------
# Planning & generation
# ---------------------------------------------------------------------------

@router.get("/execution-plan", tags=["generation"])
async def get_execution_plan(request: Request) -> Dict[str, Any]:
    return _state(request).require_session().get_execution_plan()


@router.get("/prompt/{node_id}", tags=["generation"])
async def preview_prompt(node_id: str, request: Request) -> Dict[str, str]:
    session = _state(request).require_session()
    prompt = build_prompt(session.graph, node_id)
    if prompt is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Node '{node_id}' not found")
    return {"prompt": prompt}


@router.post("/generate/{node_id}", tags=["generation"])
async def generate_node(node_id: str, request: Request, req: Optional[GenerateRequest] = None) -> Dict[str, Any]:
    """Generate one node from its upstream context (dependencies are not regenerated)."""
    session = _state(request).require_session()
    node = _node_or_404(session, node_id)

    generate_one = None
    if req is not None and req.api_key and node.llm_config.provider is not LLMProvider.OLLAMA:
        from needlepoint.llm.generation import make_generator

        keys = dataclasses.replace(session.settings.api_keys, **{node.llm_config.provider.value: req.api_key})
        generate_one = make_generator(session.graph, session.settings, api_keys=keys)

    summary = await session.generate_nodes([node_id], generate_one)
    if summary.status == "failed":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=summary.error)
    outcome = summary.outcomes.get(node_id)
    if outcome is None or not outcome.ok:
        detail = outcome.error if outcome is not None else "Generation did not run"
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)
    return {"code": outcome.content, "nodeId": node_id}


@router.post("/generate-all", tags=["generation"])
async def generate_all(request: Request) -> Dict[str, Any]:
    session = _state(request).require_session()
    summary = await session.generate_all()
    if summary.status == "failed":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=summary.error)
    return {
        "status": summary.status,
        "totalSuccessful": summary.total_successful,
        "totalFailed": summary.total_failed,
        "totalSkipped": summary.total_skipped,
        "errors": {o.node_id: o.error for o in summary.outcomes.values() if not o.ok},
        "project": session.graph.to_project(session.project).to_wire(),
    }


@router.post("/api-keys", tags=["generation"])
async def set_api_keys(req: ApiKeysRequest, request: Request) -> Dict[str, bool]:
    """Replace provider credentials for this app (and the open project)."""
    state = _state(request)
    keys = ApiKeys(anthropic=req.anthropic, openai=req.openai, ollama_base_url=req.ollama_base_url)
    state.settings = dataclasses.replace(state.settings, api_keys=keys)
    if state.session is not None:
        state.session.settings = state.settings
    return {"updated": True}
