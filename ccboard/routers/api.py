"""Read-only dashboard API for renderers."""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from ccboard.models import AgentState, ChangeSource, DashboardSnapshot, ErrorRecord, SelectedTask
from ccboard.runtime import DashboardRuntime

dashboard_router = APIRouter(prefix="/api", tags=["dashboard"])


class MoveSelectionRequest(BaseModel):
    index: int = 0
    delta: int = 1


class ReloadRequest(BaseModel):
    source: ChangeSource


def _get_runtime(request: Request) -> DashboardRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if not runtime:
        raise HTTPException(status_code=503, detail="Dashboard runtime not initialized")
    return runtime


@dashboard_router.get("/snapshot", response_model=DashboardSnapshot)
async def get_snapshot(request: Request):
    return _get_runtime(request).state.snapshot()


@dashboard_router.get("/agents", response_model=list[AgentState])
async def list_agents(request: Request):
    return _get_runtime(request).state.snapshot().agents


@dashboard_router.get("/agents/{agent_id}", response_model=AgentState)
async def get_agent(agent_id: str, request: Request):
    agent = _get_runtime(request).state.agents.get(agent_id)
    if agent is None:
        raise HTTPException(status_code=404, detail=f"Unknown agent: {agent_id}")
    return agent.model_copy()


@dashboard_router.get("/errors", response_model=list[ErrorRecord])
async def list_errors(request: Request, limit: int = Query(50, ge=1, le=500)):
    errors = list(_get_runtime(request).state.recent_errors)
    return errors[-limit:]


@dashboard_router.get("/selection")
async def get_selection(request: Request) -> dict[str, Any]:
    state = _get_runtime(request).state
    return {
        "totalItems": state.total_items,
        "items": [item.model_dump() for item in state.flatten_for_selection()],
    }


def _resolution(state, index: int) -> dict[str, Any]:
    selected: Optional[SelectedTask] = state.selected_task(index)
    return {
        "index": index,
        "totalItems": state.total_items,
        "task": selected.model_dump() if selected else None,
    }


@dashboard_router.get("/selection/{index}")
async def resolve_selection(index: int, request: Request) -> dict[str, Any]:
    return _resolution(_get_runtime(request).state, index)


@dashboard_router.post("/selection/move")
async def move_selection(req: MoveSelectionRequest, request: Request) -> dict[str, Any]:
    state = _get_runtime(request).state
    return _resolution(state, state.move_selection(req.index, req.delta))


@dashboard_router.post("/reload", status_code=202)
async def request_reload(req: ReloadRequest, request: Request) -> dict[str, Any]:
    runtime = _get_runtime(request)
    runtime.notify(req.source)
    return {"queued": req.source, "pending": runtime.notifications.qsize()}
