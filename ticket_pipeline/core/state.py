"""
Aggregate state of one ticket's pipeline.

The orchestrator owns a single PipelineState; stage controllers write the
records they fetch into it. Server-owned records are replaced wholesale on
every fetch and never edited locally.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ..enums import AnalysisStatus
from ..schemas import (
    AISessionState,
    Annotation,
    IntegrationTestResult,
    Project,
    ResolutionState,
    Ticket,
    VerificationResult,
    WorkflowRecord,
)
from .staleness import DEFAULT_TOLERANCE_MS, StalenessReport, detect_staleness


@dataclass
class PipelineState:
    ticket_id: str
    project: Optional[Project] = None
    ticket: Optional[Ticket] = None
    workflow: Optional[WorkflowRecord] = None
    annotations: List[Annotation] = field(default_factory=list)
    staleness: StalenessReport = field(
        default_factory=lambda: StalenessReport(status=AnalysisStatus.NONE)
    )
    ai_session: Optional[AISessionState] = None
    verification: Optional[VerificationResult] = None
    resolution: Optional[ResolutionState] = None
    integration_test: Optional[IntegrationTestResult] = None

    @property
    def ticket_loaded(self) -> bool:
        return self.ticket is not None

    @property
    def analysis_status(self) -> AnalysisStatus:
        return self.staleness.status

    @property
    def branch_name(self) -> Optional[str]:
        return self.workflow.branch_name if self.workflow else None

    @property
    def has_worktree(self) -> bool:
        return self.workflow is not None and self.workflow.has_worktree

    @property
    def project_id(self) -> Optional[str]:
        if self.workflow is not None and self.workflow.project_id:
            return self.workflow.project_id
        return self.project.id if self.project else None

    def reclassify(self, tolerance_ms: int = DEFAULT_TOLERANCE_MS) -> StalenessReport:
        """Recompute analysis staleness from the current annotations and comments."""
        comments = self.ticket.comments if self.ticket else []
        self.staleness = detect_staleness(self.annotations, comments, tolerance_ms)
        return self.staleness
