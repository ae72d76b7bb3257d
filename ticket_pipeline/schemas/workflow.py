"""
WorkflowRecord schema and the request bodies that mutate it.

The WorkflowRecord is the single source of truth for how far a ticket has
progressed. It is owned by the backend: the client never edits it locally,
it only replaces its copy with the latest response.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import Field

from ..enums import EnvHandling, SessionMode
from .primitives import SessionMetadata, Timestamp, WireModel


class BranchNameMetadata(WireModel):
    """How a branch name was generated."""

    type: Optional[str] = None
    confidence: Optional[str] = None
    reasoning: Optional[str] = None
    alternatives: List[str] = Field(default_factory=list)
    generated_at: Optional[Timestamp] = None


class WorktreeMetadata(WireModel):
    """Where the ticket's worktree lives on disk."""

    worktree_path: Optional[str] = None
    subfolder: Optional[str] = None
    base_branch: Optional[str] = None


class WorkflowRecord(WireModel):
    """Server-side aggregate of a ticket's progress through the pipeline.

    Invariants:
    - A branch name is only generated after an automated analysis exists.
    - A worktree is only created after a branch name exists.
    - Deleting a worktree clears only the worktree fields.
    """

    id: str
    ticket_id: str
    project_id: Optional[str] = None

    # Analysis
    analysis_session_id: Optional[str] = None

    # Branch
    generated_branch_name: Optional[str] = None
    branch_name_metadata: Optional[BranchNameMetadata] = None

    # Worktree
    worktree_id: Optional[str] = None
    metadata: Optional[WorktreeMetadata] = None

    # AI session
    happy_session_id: Optional[str] = None
    happy_process_id: Optional[int] = None
    happy_session_metadata: Optional[SessionMetadata] = None

    # Downstream results
    verification_result_id: Optional[str] = None
    verification_resolution_session_id: Optional[str] = None
    integration_test_result_id: Optional[str] = None
    pull_request_id: Optional[str] = None

    created_at: Optional[Timestamp] = None
    updated_at: Optional[Timestamp] = None

    @property
    def branch_name(self) -> Optional[str]:
        return self.generated_branch_name or None

    @property
    def has_worktree(self) -> bool:
        return bool(self.worktree_id)

    @property
    def worktree_path(self) -> Optional[str]:
        return self.metadata.worktree_path if self.metadata else None


class AnalysisRequest(WireModel):
    project_id: str
    ticket_id: str


class AnalysisAck(WireModel):
    """Response of the analysis trigger; the job itself runs in the background."""

    ticket_id: Optional[str] = None
    ticket_key: Optional[str] = None
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    status: Optional[str] = None
    message: Optional[str] = None


class BranchNameRequest(WireModel):
    ticket_id: str
    project_id: str
    options: Optional[Dict[str, Any]] = None


class WorktreeRequest(WireModel):
    ticket_id: str
    subfolder: str = "backend"
    base_branch: str = "main"
    env_handling: EnvHandling = EnvHandling.LINK
    share_node_modules: bool = False


class WorktreeDeleteRequest(WireModel):
    delete_branch: bool = False
    force: bool = False


class SessionStartRequest(WireModel):
    mode: SessionMode = SessionMode.CONTEXT
    additional_instructions: Optional[str] = None
