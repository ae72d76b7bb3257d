"""
AI coding session stage.

The session runs outside the pipeline; the backend starts it in the ticket's
worktree and hands back resume commands. After a start the stage polls the
session status until the backend reports it past ``not_started``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..core.resolvers import resolve_ai_session
from ..enums import AISessionStatus, SessionMode, Stage
from ..schemas import AISessionState, SessionStartResponse
from .base import StageController


class AISessionStage(StageController):
    stage = Stage.AI_SESSION

    async def fetch(self) -> None:
        self.state.ai_session = await self.fetch_optional(
            lambda: self.client.get_session_status(self.state.ticket_id)
        )

    def status(self) -> str:
        return resolve_ai_session(self.state.ai_session).value

    def details(self) -> Dict[str, Any]:
        session = self.state.ai_session
        commands = session.resume_commands if session else None
        return {
            "session_id": session.session_id if session else None,
            "process_id": session.process_id if session else None,
            "resume_commands": commands.model_dump() if commands else None,
        }

    async def start(
        self,
        mode: SessionMode = SessionMode.CONTEXT,
        additional_instructions: Optional[str] = None,
        force: bool = False,
    ) -> SessionStartResponse:
        """
        Start an AI session.

        Args:
            mode: context only, or context plus implementation
            additional_instructions: Extra text appended to the session prompt
            force: Send new context even while waiting on a previous start
        """
        self.claim(force)
        response = await self.act(
            "AI session start",
            self.client.start_session(self.state.ticket_id, mode, additional_instructions),
        )

        metadata = response.happy_session_metadata
        self.state.ai_session = AISessionState(
            status=(metadata.status if metadata and metadata.status else "not_started"),
            session_id=response.happy_session_id,
            process_id=response.happy_process_id,
            resume_commands=response.resume_commands,
            metadata=metadata,
        )
        self.notifications.info(f"AI session starting ({mode.value} mode)", self.stage)

        async def check() -> Optional[AISessionState]:
            return await self.client.get_session_status(self.state.ticket_id)

        def started(state: AISessionState) -> bool:
            return resolve_ai_session(state) != AISessionStatus.NOT_STARTED

        async def on_complete(state: AISessionState) -> None:
            self.state.ai_session = state
            await self.completed()

        self.poller.start(check, started, on_complete)
        return response

    async def stop(self) -> None:
        await self.act("AI session stop", self.client.stop_session(self.state.ticket_id))
        self.poller.cancel()
        self.notifications.info("AI session stopped", self.stage)
        await self.fetch()
