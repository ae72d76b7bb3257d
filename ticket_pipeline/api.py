"""
Dashboard API.

Keeps one pipeline orchestrator per opened ticket and exposes its view,
its actions and its notifications as JSON.
"""

from __future__ import annotations

import importlib.metadata
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .config import get_settings
from .context import ProjectContext
from .core.orchestrator import PipelineOrchestrator
from .enums import EnvHandling, SessionMode
from .errors import (
    ActionRejectedError,
    InvalidActionInput,
    NotFoundError,
    PipelineError,
    StageBusyError,
    StageLockedError,
    TransientFetchError,
)
from .integrations.pipeline_api import PipelineApiClient
from .registry import PipelineRegistry
from .schemas import Project

logger = structlog.get_logger()

# Global registry, created in the lifespan
registry: Optional[PipelineRegistry] = None

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    global registry
    logger.info("Starting ticket pipeline dashboard", backend=settings.api_base_url)

    client = PipelineApiClient.from_settings(settings)
    projects = ProjectContext(settings.state_dir)
    projects.load()
    registry = PipelineRegistry(client, projects, settings)

    yield

    logger.info("Shutting down ticket pipeline dashboard")
    await registry.close_all()
    await client.close()
    registry = None
    logger.info("Shutdown complete")


def get_version() -> str:
    return importlib.metadata.version("ticket-pipeline")


app = FastAPI(
    title="Ticket Pipeline Control",
    description="Drive a ticket through analysis, implementation, verification and testing",
    version=get_version(),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_registry() -> PipelineRegistry:
    if registry is None:
        raise HTTPException(status_code=503, detail="Pipeline registry not initialized")
    return registry


def error_status(error: PipelineError) -> int:
    """HTTP status for a pipeline error."""
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, (StageLockedError, StageBusyError)):
        return 409
    if isinstance(error, InvalidActionInput):
        return 422
    if isinstance(error, ActionRejectedError):
        return 502
    if isinstance(error, TransientFetchError):
        return 503
    return 500


def to_http(error: PipelineError) -> HTTPException:
    return HTTPException(status_code=error_status(error), detail=error.to_dict())


class ActionRequest(BaseModel):
    """Parameters for a pipeline action. Each action reads only the fields it needs."""

    custom_instructions: Optional[str] = None
    mode: SessionMode = SessionMode.CONTEXT
    additional_instructions: Optional[str] = None
    instructions: Optional[str] = None
    force: bool = False
    options: Optional[Dict[str, Any]] = None
    subfolder: str = "backend"
    base_branch: str = "main"
    custom_base_branch: Optional[str] = None
    env_handling: EnvHandling = EnvHandling.LINK
    share_node_modules: bool = False
    delete_branch: bool = False
    notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    completion_notes: Optional[str] = None
    annotation_id: Optional[str] = None
    content: Optional[str] = None
    author_name: Optional[str] = None


ActionHandler = Callable[[PipelineOrchestrator, ActionRequest], Awaitable[Any]]

ACTIONS: Dict[str, ActionHandler] = {
    "analyze": lambda p, r: p.trigger_analysis(),
    "generate-branch": lambda p, r: p.generate_branch(r.options),
    "create-worktree": lambda p, r: p.create_worktree(
        subfolder=r.subfolder,
        base_branch=r.base_branch,
        custom_base_branch=r.custom_base_branch,
        env_handling=r.env_handling,
        share_node_modules=r.share_node_modules,
    ),
    "delete-worktree": lambda p, r: p.delete_worktree(
        delete_branch=r.delete_branch, force=r.force
    ),
    "start-session": lambda p, r: p.start_session(
        r.mode, r.additional_instructions, force=r.force
    ),
    "stop-session": lambda p, r: p.stop_session(),
    "verify": lambda p, r: p.trigger_verification(r.custom_instructions),
    "review-notes": lambda p, r: p.add_review_notes(r.notes or "", r.reviewed_by or ""),
    "approve-pr": lambda p, r: p.approve_for_pr(),
    "start-resolution": lambda p, r: p.start_resolution(
        r.mode, r.instructions, force=r.force
    ),
    "stop-resolution": lambda p, r: p.stop_resolution(),
    "complete-resolution": lambda p, r: p.complete_resolution(r.completion_notes),
    "re-verify": lambda p, r: p.re_verify(),
    "integration-test": lambda p, r: p.trigger_integration_test(r.custom_instructions),
    "approve-tests": lambda p, r: p.approve_integration_tests(),
    "add-annotation": lambda p, r: p.add_annotation(r.content or "", r.author_name),
    "edit-annotation": lambda p, r: p.edit_annotation(r.annotation_id or "", r.content or ""),
    "delete-annotation": lambda p, r: p.delete_annotation(r.annotation_id or ""),
}


def _serialize(result: Any) -> Any:
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    return result


# Health and Info Endpoints
@app.get("/healthz")
def healthz() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/version")
def version() -> dict[str, str]:
    """Return the version of the application."""
    return {"version": get_version()}


# Selected project
@app.get("/project")
def get_project(reg: PipelineRegistry = Depends(get_registry)) -> Dict[str, Any]:
    project = reg.projects.project
    if project is None:
        raise HTTPException(status_code=404, detail="No project selected")
    return project.model_dump(mode="json")


@app.put("/project")
def select_project(
    project: Project, reg: PipelineRegistry = Depends(get_registry)
) -> Dict[str, Any]:
    reg.projects.save(project)
    return project.model_dump(mode="json")


@app.delete("/project")
def clear_project(reg: PipelineRegistry = Depends(get_registry)) -> Dict[str, str]:
    reg.projects.clear()
    return {"status": "cleared"}


# Pipelines
@app.get("/pipelines")
def list_pipelines(reg: PipelineRegistry = Depends(get_registry)) -> List[str]:
    return reg.ticket_ids()


@app.get("/pipelines/{ticket_id}")
async def get_pipeline(
    ticket_id: str,
    refresh: bool = False,
    reg: PipelineRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """Open (or return) the pipeline for a ticket."""
    try:
        pipeline = await reg.open(ticket_id)
        view = await pipeline.refresh() if refresh else pipeline.view()
    except PipelineError as e:
        raise to_http(e)
    return view.model_dump(mode="json")


@app.delete("/pipelines/{ticket_id}")
async def close_pipeline(
    ticket_id: str, reg: PipelineRegistry = Depends(get_registry)
) -> Dict[str, str]:
    if not await reg.close(ticket_id):
        raise HTTPException(status_code=404, detail="Pipeline not open")
    return {"status": "closed", "ticket_id": ticket_id}


@app.post("/pipelines/{ticket_id}/actions/{action}")
async def run_action(
    ticket_id: str,
    action: str,
    request: Optional[ActionRequest] = None,
    reg: PipelineRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """Run a stage action on an open pipeline."""
    handler = ACTIONS.get(action)
    if handler is None:
        raise HTTPException(status_code=404, detail=f"Unknown action: {action}")

    try:
        pipeline = await reg.open(ticket_id)
        result = await handler(pipeline, request or ActionRequest())
    except PipelineError as e:
        logger.warning("action_failed", ticket_id=ticket_id, action=action, error=e.code)
        raise to_http(e)

    return {
        "action": action,
        "result": _serialize(result),
        "pipeline": pipeline.view().model_dump(mode="json"),
    }


@app.get("/pipelines/{ticket_id}/notifications")
def get_notifications(
    ticket_id: str, reg: PipelineRegistry = Depends(get_registry)
) -> List[Dict[str, Any]]:
    """Hand out (and clear) the pipeline's pending notifications."""
    pipeline = reg.get(ticket_id)
    if pipeline is None:
        raise HTTPException(status_code=404, detail="Pipeline not open")
    return [item.model_dump(mode="json") for item in pipeline.notifications.drain()]
