"""
Worktree stage: create or remove the git worktree for the ticket's branch.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..core.resolvers import resolve_worktree
from ..enums import EnvHandling, Stage
from ..schemas import WorkflowRecord, WorktreeDeleteRequest, WorktreeRequest
from .base import StageController

OTHER_BASE_BRANCH = "other"


class WorktreeStage(StageController):
    stage = Stage.WORKTREE

    def status(self) -> str:
        return resolve_worktree(self.state.workflow).value

    def details(self) -> Dict[str, Any]:
        workflow = self.state.workflow
        metadata = workflow.metadata if workflow else None
        return {
            "worktree_id": workflow.worktree_id if workflow else None,
            "worktree_path": metadata.worktree_path if metadata else None,
            "subfolder": metadata.subfolder if metadata else None,
            "base_branch": metadata.base_branch if metadata else None,
        }

    def build_request(
        self,
        subfolder: str = "backend",
        base_branch: str = "main",
        custom_base_branch: Optional[str] = None,
        env_handling: EnvHandling = EnvHandling.LINK,
        share_node_modules: bool = False,
    ) -> WorktreeRequest:
        """
        Validate worktree options.

        ``base_branch="other"`` means "use ``custom_base_branch``", which
        must then be given.
        """
        subfolder = (subfolder or "").strip()
        if not subfolder:
            raise self.reject("Subfolder is required")

        base = (base_branch or "").strip()
        if base == OTHER_BASE_BRANCH:
            base = (custom_base_branch or "").strip()
            if not base:
                raise self.reject("Enter a custom base branch name")
        if not base:
            raise self.reject("Base branch is required")

        return WorktreeRequest(
            ticket_id=self.state.ticket_id,
            subfolder=subfolder,
            base_branch=base,
            env_handling=env_handling,
            share_node_modules=share_node_modules,
        )

    async def create(self, **options: Any) -> WorkflowRecord:
        request = self.build_request(**options)
        workflow = await self.act("Worktree creation", self.client.create_worktree(request))
        self.state.workflow = workflow
        self.notifications.success(
            f"Worktree created at {workflow.worktree_path or request.subfolder}", self.stage
        )
        await self.completed()
        return workflow

    async def delete(self, delete_branch: bool = False, force: bool = False) -> WorkflowRecord:
        if not self.state.has_worktree:
            raise self.reject("There is no worktree to delete")

        workflow = await self.act(
            "Worktree deletion",
            self.client.delete_worktree(
                self.state.ticket_id,
                WorktreeDeleteRequest(delete_branch=delete_branch, force=force),
            ),
        )
        self.state.workflow = workflow
        self.notifications.success("Worktree deleted", self.stage)
        return workflow
