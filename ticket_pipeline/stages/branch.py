"""Branch-name generation stage."""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..core.resolvers import resolve_branch
from ..enums import Stage
from ..schemas import WorkflowRecord
from .base import StageController


class BranchStage(StageController):
    stage = Stage.BRANCH

    def status(self) -> str:
        return resolve_branch(self.state.workflow).value

    def details(self) -> Dict[str, Any]:
        workflow = self.state.workflow
        metadata = workflow.branch_name_metadata if workflow else None
        return {
            "branch_name": self.state.branch_name,
            "confidence": metadata.confidence if metadata else None,
            "alternatives": metadata.alternatives if metadata else [],
        }

    async def generate(self, options: Optional[Dict[str, Any]] = None) -> WorkflowRecord:
        """Ask the backend to derive a branch name from the ticket and its analysis."""
        project_id = self.state.project_id
        if not project_id:
            raise self.reject("Select a project before generating a branch name")

        workflow = await self.act(
            "Branch name generation",
            self.client.generate_branch_name(self.state.ticket_id, project_id, options),
        )
        self.state.workflow = workflow
        self.notifications.success(f"Branch name: {workflow.branch_name}", self.stage)
        await self.completed()
        return workflow
