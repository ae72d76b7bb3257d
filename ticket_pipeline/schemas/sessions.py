"""
AI-session and verification-resolution session schemas.

Both sessions hand the developer a pair of resume commands; the session
itself runs outside the pipeline.
"""

from __future__ import annotations

from typing import Optional

from ..enums import SessionMode
from .primitives import ResumeCommands, SessionMetadata, WireModel


class SessionStartResponse(WireModel):
    """Response of ``POST /workflows/ticket/{id}/happy/start``."""

    happy_session_id: Optional[str] = None
    happy_process_id: Optional[int] = None
    happy_session_metadata: Optional[SessionMetadata] = None
    resume_commands: Optional[ResumeCommands] = None


class AISessionState(WireModel):
    """Last server-reported state of the AI session.

    ``status`` is kept as the raw wire string; the AI-session resolver maps
    it into ``AISessionStatus``.
    """

    status: str = "not_started"
    session_id: Optional[str] = None
    process_id: Optional[int] = None
    resume_commands: Optional[ResumeCommands] = None
    metadata: Optional[SessionMetadata] = None


class ResolutionStartRequest(WireModel):
    mode: SessionMode = SessionMode.CONTEXT
    instructions: Optional[str] = None
    verification_id: Optional[str] = None


class ResolutionStartResponse(WireModel):
    """Response of ``POST /workflows/ticket/{id}/verification/resolve``."""

    verification_resolution_session_id: Optional[str] = None
    verification_resolution_metadata: Optional[SessionMetadata] = None
    resume_commands: Optional[ResumeCommands] = None


class ResolutionState(WireModel):
    """Last server-reported state of the verification-resolution session."""

    status: str = "not_started"
    session_id: Optional[str] = None
    resume_commands: Optional[ResumeCommands] = None
    metadata: Optional[SessionMetadata] = None
    verification_id: Optional[str] = None
    worktree_path: Optional[str] = None


class ResolutionCompleteRequest(WireModel):
    completion_notes: str = "Resolution completed successfully"
