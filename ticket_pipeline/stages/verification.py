"""
Verification stage.

Verification runs as a background job. A trigger answers either with the
finished report or with ``processing`` / ``already_running``, in which case
the stage polls for a report newer than the one it already had. A re-verify
from the resolution stage lands here too, as a fresh run.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional, Union

from ..core.resolvers import resolve_verification
from ..enums import Stage, TriggerStatus
from ..schemas import TriggerAck, VerificationResult
from .base import StageController

VerificationResponse = Union[TriggerAck, VerificationResult]


class VerificationStage(StageController):
    stage = Stage.VERIFICATION

    async def fetch(self) -> None:
        self.state.verification = await self.fetch_optional(
            lambda: self.client.get_verification(self.state.ticket_id)
        )

    def status(self) -> str:
        return resolve_verification(self.state.verification, self.polling).value

    def details(self) -> Dict[str, Any]:
        result = self.state.verification
        if result is None:
            return {"verification_id": None}
        return {
            "verification_id": result.id,
            "reviewed_by": result.reviewed_by,
            "has_review_notes": bool(result.review_notes),
            "created_at": result.created_at.isoformat() if result.created_at else None,
        }

    async def trigger(self, custom_instructions: Optional[str] = None) -> VerificationResponse:
        self.ensure_idle()
        return await self.follow(
            "Verification",
            lambda: self.client.trigger_verification(
                self.state.ticket_id, custom_instructions
            ),
        )

    async def follow(
        self,
        action: str,
        trigger: Callable[[], Awaitable[Optional[VerificationResponse]]],
    ) -> VerificationResponse:
        """
        Fire ``trigger`` and wait for a verification newer than the current one.

        Only a result with a different id ends the wait, so a report left over
        from an earlier run cannot be mistaken for the new one.
        """
        previous_id = self.state.verification.id if self.state.verification else None

        async def fire() -> VerificationResponse:
            response = await self.act(action, trigger())
            if response is None:
                return TriggerAck(status=TriggerStatus.PROCESSING)
            return response

        async def check() -> Optional[VerificationResult]:
            return await self.client.get_verification(self.state.ticket_id)

        def is_new(result: VerificationResult) -> bool:
            return result.id != previous_id

        response = await self.poller.run(fire, check, is_new, self._on_complete)
        if isinstance(response, TriggerAck):
            if response.status == TriggerStatus.ALREADY_RUNNING:
                self.notifications.info(
                    "Verification is already running; waiting for the report", self.stage
                )
            else:
                self.notifications.info("Verification started", self.stage)
        return response

    async def _on_complete(self, result: VerificationResult) -> None:
        self.state.verification = result
        self.notifications.success("Verification report ready", self.stage)
        await self.completed()

    async def add_review_notes(self, notes: str, reviewed_by: str) -> VerificationResult:
        if not notes.strip() or not reviewed_by.strip():
            raise self.reject("Review notes and reviewer name are both required")
        if self.state.verification is None:
            raise self.reject("There is no verification report to review")

        result = await self.act(
            "Saving review notes",
            self.client.add_review_notes(
                self.state.verification.id, notes.strip(), reviewed_by.strip()
            ),
        )
        self.state.verification = result
        self.notifications.success("Review notes saved", self.stage)
        return result

    async def approve_for_pr(self) -> None:
        if self.state.verification is None:
            raise self.reject("There is no verification report to approve")
        await self.act(
            "Approval for pull request",
            self.client.approve_for_pr(self.state.ticket_id),
        )
        self.notifications.success("Approved for pull request", self.stage)
