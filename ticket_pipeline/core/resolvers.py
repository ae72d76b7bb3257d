"""
Stage status resolvers.

Each resolver maps the last record the backend reported for a stage (or its
absence) onto the stage's closed set of display states. Resolvers are pure:
the same record always yields the same status, and a missing record always
yields the stage's initial state.
"""

from __future__ import annotations

from typing import Iterable, Optional

from ..enums import (
    AISessionStatus,
    AnalysisStatus,
    BranchStatus,
    IntegrationOutcome,
    JobStatus,
    ResolutionStatus,
    WorktreeStatus,
)
from ..schemas import (
    AISessionState,
    Annotation,
    ExternalComment,
    IntegrationTestResult,
    ResolutionState,
    VerificationResult,
    WorkflowRecord,
)
from .staleness import DEFAULT_TOLERANCE_MS, detect_staleness


def _normalize(raw: Optional[str]) -> str:
    return (raw or "").strip().lower().replace("-", "_").replace(" ", "_")


def resolve_analysis(
    annotations: Iterable[Annotation],
    comments: Iterable[ExternalComment] = (),
    tolerance_ms: int = DEFAULT_TOLERANCE_MS,
) -> AnalysisStatus:
    return detect_staleness(annotations, comments, tolerance_ms).status


def resolve_branch(workflow: Optional[WorkflowRecord]) -> BranchStatus:
    if workflow is not None and workflow.branch_name:
        return BranchStatus.GENERATED
    return BranchStatus.NOT_GENERATED


def resolve_worktree(workflow: Optional[WorkflowRecord]) -> WorktreeStatus:
    if workflow is not None and workflow.has_worktree:
        return WorktreeStatus.CREATED
    return WorktreeStatus.NOT_CREATED


_AI_SESSION_STATUSES = {status.value: status for status in AISessionStatus}


def resolve_ai_session(state: Optional[AISessionState]) -> AISessionStatus:
    """Map the AI session wire status; unknown values read as not started."""
    if state is None:
        return AISessionStatus.NOT_STARTED
    return _AI_SESSION_STATUSES.get(_normalize(state.status), AISessionStatus.NOT_STARTED)


def resolve_verification(
    result: Optional[VerificationResult], polling: bool = False
) -> JobStatus:
    """Verification is running while a poll is active, completed once a result exists."""
    if polling:
        return JobStatus.RUNNING
    if result is not None:
        return JobStatus.COMPLETED
    return JobStatus.NOT_STARTED


_RESOLUTION_STATUSES = {status.value: status for status in ResolutionStatus}


def resolve_resolution(state: Optional[ResolutionState]) -> ResolutionStatus:
    if state is None:
        return ResolutionStatus.NOT_STARTED
    return _RESOLUTION_STATUSES.get(_normalize(state.status), ResolutionStatus.NOT_STARTED)


def resolve_integration_test(
    result: Optional[IntegrationTestResult], polling: bool = False
) -> JobStatus:
    if polling:
        return JobStatus.RUNNING
    if result is not None:
        return JobStatus.COMPLETED
    return JobStatus.NOT_STARTED


def resolve_integration_outcome(
    result: Optional[IntegrationTestResult],
) -> IntegrationOutcome:
    """
    Summarize an integration test run.

    passed: no endpoint failed and cleanup succeeded
    partial: at least one endpoint passed
    failed: anything else
    """
    if result is None:
        return IntegrationOutcome.NONE
    if result.endpoints_failed == 0 and _normalize(result.cleanup_status) == "success":
        return IntegrationOutcome.PASSED
    if result.endpoints_passed > 0:
        return IntegrationOutcome.PARTIAL
    return IntegrationOutcome.FAILED
