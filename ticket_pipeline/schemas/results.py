"""
Background-job result schemas: verification and integration testing.

Each run creates a new result. Re-runs supersede earlier results, and the
client only ever looks at the latest one.
"""

from __future__ import annotations

from typing import Optional

from ..enums import TriggerStatus
from .primitives import Timestamp, WireModel


class TriggerAck(WireModel):
    """``{"status": "processing" | "already_running"}`` from a job trigger."""

    status: TriggerStatus
    message: Optional[str] = None


class VerificationResult(WireModel):
    """A generated verification report, optionally with human review notes."""

    id: str
    ticket_workflow_id: Optional[str] = None
    worktree_id: Optional[str] = None
    report: str = ""
    review_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[Timestamp] = None
    created_at: Optional[Timestamp] = None
    updated_at: Optional[Timestamp] = None


class IntegrationTestResult(WireModel):
    """Outcome of the integration-testing agent run."""

    id: str
    ticket_workflow_id: Optional[str] = None
    worktree_id: Optional[str] = None
    server_status: Optional[str] = None
    server_port: Optional[int] = None
    server_pid: Optional[int] = None
    endpoints_tested: int = 0
    endpoints_passed: int = 0
    endpoints_failed: int = 0
    avg_response_time_ms: Optional[float] = None
    db_operations_count: int = 0
    cleanup_status: Optional[str] = None
    cleanup_issues: Optional[str] = None
    full_report: str = ""
    created_at: Optional[Timestamp] = None


class JobTriggerRequest(WireModel):
    custom_instructions: Optional[str] = None


class ReviewNotesRequest(WireModel):
    notes: str
    reviewed_by: str
