"""Read-only snapshot of a pipeline, for the CLI and the dashboard API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..enums import AnalysisStatus, Stage


class StageView(BaseModel):
    stage: Stage
    status: str
    enabled: bool
    complete: bool
    polling: bool = False
    locked_reason: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class PipelineView(BaseModel):
    ticket_id: str
    ticket_key: Optional[str] = None
    summary: Optional[str] = None
    ticket_status: Optional[str] = None
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    analysis: AnalysisStatus = AnalysisStatus.NONE
    analysis_content: Optional[str] = None
    branch_name: Optional[str] = None
    worktree_path: Optional[str] = None
    verification_report: Optional[str] = None
    integration_report: Optional[str] = None
    stages: List[StageView] = Field(default_factory=list)
    pending_notifications: int = 0

    def stage(self, stage: Stage) -> StageView:
        for item in self.stages:
            if item.stage == stage:
                return item
        raise KeyError(stage)
