"""Verification-resolution stage: an AI session that works through a verification report."""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..core.resolvers import resolve_resolution
from ..enums import ResolutionStatus, SessionMode, Stage
from ..schemas import ResolutionStartResponse, ResolutionState
from .base import StageController


class ResolutionStage(StageController):
    stage = Stage.RESOLUTION

    async def fetch(self) -> None:
        self.state.resolution = await self.fetch_optional(
            lambda: self.client.get_resolution_status(self.state.ticket_id)
        )

    def status(self) -> str:
        return resolve_resolution(self.state.resolution).value

    def details(self) -> Dict[str, Any]:
        resolution = self.state.resolution
        if resolution is None:
            return {"session_id": None, "resume_commands": None}
        metadata = resolution.metadata
        return {
            "session_id": resolution.session_id,
            "verification_id": resolution.verification_id,
            "worktree_path": resolution.worktree_path,
            "resolution_notes": metadata.resolution_notes if metadata else None,
            "resume_commands": (
                resolution.resume_commands.model_dump()
                if resolution.resume_commands
                else None
            ),
        }

    async def start(
        self,
        mode: SessionMode = SessionMode.CONTEXT,
        instructions: Optional[str] = None,
        force: bool = False,
    ) -> ResolutionStartResponse:
        self.claim(force)
        verification = self.state.verification
        verification_id = verification.id if verification else None

        response = await self.act(
            "Resolution start",
            self.client.start_resolution(
                self.state.ticket_id, mode, instructions, verification_id
            ),
        )

        metadata = response.verification_resolution_metadata
        self.state.resolution = ResolutionState(
            status=(metadata.status if metadata and metadata.status else "not_started"),
            session_id=response.verification_resolution_session_id,
            resume_commands=response.resume_commands,
            metadata=metadata,
            verification_id=verification_id,
            worktree_path=self.state.workflow.worktree_path if self.state.workflow else None,
        )
        self.notifications.info("Resolution session starting", self.stage)

        async def check() -> Optional[ResolutionState]:
            return await self.client.get_resolution_status(self.state.ticket_id)

        def started(state: ResolutionState) -> bool:
            return resolve_resolution(state) != ResolutionStatus.NOT_STARTED

        async def on_complete(state: ResolutionState) -> None:
            self.state.resolution = state

        self.poller.start(check, started, on_complete)
        return response

    async def stop(self) -> None:
        await self.act(
            "Resolution stop", self.client.stop_resolution(self.state.ticket_id)
        )
        self.poller.cancel()
        self.notifications.info("Resolution session stopped", self.stage)
        await self.fetch()

    async def complete(self, completion_notes: Optional[str] = None) -> None:
        await self.act(
            "Resolution completion",
            self.client.complete_resolution(self.state.ticket_id, completion_notes),
        )
        self.poller.cancel()
        await self.fetch()
        self.notifications.success("Resolution marked complete", self.stage)
        await self.completed()
