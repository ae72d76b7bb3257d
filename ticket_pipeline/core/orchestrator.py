"""
Pipeline orchestrator for a single ticket.

The orchestrator owns the ticket's aggregate state, checks every action
against the gating table before handing it to the stage controller, and
routes stage completions. Stage failures are reported by the stage that
failed and never change another stage's gating.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Union

import structlog

from ..config import Settings, get_settings
from ..enums import SessionMode, Stage
from ..errors import NotFoundError, StageLockedError, TransientFetchError
from ..integrations.pipeline_api import PipelineApiClient
from ..notifications import NotificationCenter
from ..schemas import (
    AnalysisAck,
    Annotation,
    IntegrationTestResult,
    Project,
    ResolutionStartResponse,
    SessionStartResponse,
    Ticket,
    TriggerAck,
    VerificationResult,
    WorkflowRecord,
)
from ..stages import (
    AISessionStage,
    AnalysisStage,
    BranchStage,
    IntegrationTestStage,
    ResolutionStage,
    StageContext,
    StageController,
    VerificationStage,
    WorktreeStage,
)
from .gating import STAGE_GATES, is_complete, is_enabled, require_enabled
from .staleness import format_analysis_for_display
from .state import PipelineState
from .view import PipelineView, StageView

logger = structlog.get_logger()

# Completing these stages changes fields on the server-side WorkflowRecord.
_WORKFLOW_UPDATING_STAGES = {
    Stage.ANALYSIS,
    Stage.AI_SESSION,
    Stage.VERIFICATION,
    Stage.RESOLUTION,
    Stage.INTEGRATION_TEST,
}


class PipelineOrchestrator:
    """
    Drives one ticket through the pipeline.

    Typical use::

        orchestrator = PipelineOrchestrator("10042", client, project=project)
        await orchestrator.open()
        await orchestrator.trigger_verification()
        ...
        await orchestrator.close()
    """

    def __init__(
        self,
        ticket_id: str,
        client: PipelineApiClient,
        project: Optional[Project] = None,
        settings: Optional[Settings] = None,
        notifications: Optional[NotificationCenter] = None,
        ticket: Optional[Ticket] = None,
    ):
        self.client = client
        self.settings = settings or get_settings()
        # A handed-off ticket renders until open() fetches the live one
        self.state = PipelineState(ticket_id=ticket_id, project=project, ticket=ticket)
        self.notifications = notifications or NotificationCenter(ticket_id)
        self.completions: List[Stage] = []
        self.is_open = False
        self.log = logger.bind(ticket_id=ticket_id)

        context = StageContext(
            state=self.state,
            client=client,
            settings=self.settings,
            notifications=self.notifications,
            on_complete=self._on_stage_complete,
        )
        self.analysis = AnalysisStage(context)
        self.branch = BranchStage(context)
        self.worktree = WorktreeStage(context)
        self.ai_session = AISessionStage(context)
        self.verification = VerificationStage(context)
        self.resolution = ResolutionStage(context)
        self.integration_test = IntegrationTestStage(context)

        self.stages: Dict[Stage, StageController] = {
            stage.stage: stage
            for stage in (
                self.analysis,
                self.branch,
                self.worktree,
                self.ai_session,
                self.verification,
                self.resolution,
                self.integration_test,
            )
        }

    @property
    def ticket_id(self) -> str:
        return self.state.ticket_id

    @property
    def is_polling(self) -> bool:
        return any(stage.polling for stage in self.stages.values())

    # Lifecycle

    async def open(self) -> PipelineView:
        """
        Load everything the pipeline shows, in parallel.

        Raises:
            NotFoundError: The ticket does not exist
        """
        self.log.info("pipeline_opening")
        failures = await self._load()
        self.is_open = True
        self.log.info("pipeline_opened", failures=len(failures))
        return self.view()

    async def refresh(self) -> PipelineView:
        """
        Re-fetch every record.

        Unlike polling, a manual refresh surfaces transient failures.
        """
        failures = await self._load()
        if failures:
            raise failures[0]
        return self.view()

    async def close(self) -> None:
        """Tear down every stage, cancelling any polling loop."""
        for controller in self.stages.values():
            controller.poller.cancel()
        results = await asyncio.gather(
            *(controller.close() for controller in self.stages.values()),
            return_exceptions=True,
        )
        for stage, result in zip(self.stages, results):
            if isinstance(result, Exception):
                self.log.warning("stage_close_failed", stage=stage.value, error=repr(result))
        self.is_open = False
        self.log.info("pipeline_closed")

    async def wait_idle(self) -> None:
        """Wait until no stage is polling."""
        await asyncio.gather(*(stage.poller.wait() for stage in self.stages.values()))

    async def _load(self) -> List[TransientFetchError]:
        results = await asyncio.gather(
            self._fetch_ticket(),
            self._fetch_workflow(),
            *(stage.fetch() for stage in self.stages.values()),
            return_exceptions=True,
        )

        failures: List[TransientFetchError] = []
        for result in results:
            if isinstance(result, TransientFetchError):
                failures.append(result)
                self.notifications.error(f"Could not load pipeline data: {result.message}")
            elif isinstance(result, BaseException):
                raise result

        self.state.reclassify(self.settings.staleness_tolerance_ms)
        return failures

    async def _fetch_ticket(self) -> None:
        self.state.ticket = await self.client.get_ticket_details(self.ticket_id)

    async def _fetch_workflow(self) -> None:
        try:
            self.state.workflow = await self.client.get_workflow(self.ticket_id)
        except NotFoundError:
            self.state.workflow = None

    async def _on_stage_complete(self, stage: Stage) -> None:
        self.completions.append(stage)
        self.log.info("stage_complete_routed", stage=stage.value)
        if stage in _WORKFLOW_UPDATING_STAGES:
            try:
                await self._fetch_workflow()
            except TransientFetchError as e:
                self.log.debug("workflow_refresh_failed", error=e.message)

    # Gating

    def is_enabled(self, stage: Stage) -> bool:
        return is_enabled(stage, self.state)

    def is_complete(self, stage: Stage) -> bool:
        return is_complete(stage, self.state)

    def _require(self, stage: Stage) -> None:
        try:
            require_enabled(stage, self.state)
        except StageLockedError as e:
            self.notifications.warning(e.message, stage)
            raise

    # View

    def view(self) -> PipelineView:
        state = self.state
        stages = []
        for stage, controller in self.stages.items():
            enabled = self.is_enabled(stage)
            stages.append(
                StageView(
                    stage=stage,
                    status=controller.status(),
                    enabled=enabled,
                    complete=self.is_complete(stage),
                    polling=controller.polling,
                    locked_reason=None if enabled else STAGE_GATES[stage].locked_reason,
                    details=controller.details(),
                )
            )

        latest = state.staleness.latest_analysis
        ticket = state.ticket
        return PipelineView(
            ticket_id=state.ticket_id,
            ticket_key=ticket.key if ticket else None,
            summary=ticket.summary if ticket else None,
            ticket_status=ticket.status if ticket else None,
            project_id=state.project_id,
            project_name=state.project.name if state.project else None,
            analysis=state.analysis_status,
            analysis_content=format_analysis_for_display(latest.content) if latest else None,
            branch_name=state.branch_name,
            worktree_path=state.workflow.worktree_path if state.workflow else None,
            verification_report=state.verification.report if state.verification else None,
            integration_report=(
                state.integration_test.full_report if state.integration_test else None
            ),
            stages=stages,
            pending_notifications=len(self.notifications),
        )

    # Analysis

    async def trigger_analysis(self) -> AnalysisAck:
        self._require(Stage.ANALYSIS)
        return await self.analysis.trigger()

    async def add_annotation(self, content: str, author_name: Optional[str] = None) -> Annotation:
        return await self.analysis.add_annotation(content, author_name=author_name)

    async def edit_annotation(self, annotation_id: str, content: str) -> Annotation:
        return await self.analysis.edit_annotation(annotation_id, content)

    async def delete_annotation(self, annotation_id: str) -> None:
        await self.analysis.delete_annotation(annotation_id)

    # Branch and worktree

    async def generate_branch(self, options: Optional[Dict[str, Any]] = None) -> WorkflowRecord:
        self._require(Stage.BRANCH)
        return await self.branch.generate(options)

    async def create_worktree(self, **options: Any) -> WorkflowRecord:
        self._require(Stage.WORKTREE)
        return await self.worktree.create(**options)

    async def delete_worktree(self, delete_branch: bool = False, force: bool = False) -> WorkflowRecord:
        self._require(Stage.WORKTREE)
        return await self.worktree.delete(delete_branch=delete_branch, force=force)

    # AI session

    async def start_session(
        self,
        mode: SessionMode = SessionMode.CONTEXT,
        additional_instructions: Optional[str] = None,
        force: bool = False,
    ) -> SessionStartResponse:
        self._require(Stage.AI_SESSION)
        return await self.ai_session.start(mode, additional_instructions, force=force)

    async def stop_session(self) -> None:
        self._require(Stage.AI_SESSION)
        await self.ai_session.stop()

    # Verification

    async def trigger_verification(
        self, custom_instructions: Optional[str] = None
    ) -> Union[TriggerAck, VerificationResult]:
        self._require(Stage.VERIFICATION)
        return await self.verification.trigger(custom_instructions)

    async def add_review_notes(self, notes: str, reviewed_by: str) -> VerificationResult:
        self._require(Stage.RESOLUTION)
        return await self.verification.add_review_notes(notes, reviewed_by)

    async def approve_for_pr(self) -> None:
        self._require(Stage.RESOLUTION)
        await self.verification.approve_for_pr()

    # Verification resolution

    async def start_resolution(
        self,
        mode: SessionMode = SessionMode.CONTEXT,
        instructions: Optional[str] = None,
        force: bool = False,
    ) -> ResolutionStartResponse:
        self._require(Stage.RESOLUTION)
        return await self.resolution.start(mode, instructions, force=force)

    async def stop_resolution(self) -> None:
        self._require(Stage.RESOLUTION)
        await self.resolution.stop()

    async def complete_resolution(self, completion_notes: Optional[str] = None) -> None:
        self._require(Stage.RESOLUTION)
        await self.resolution.complete(completion_notes)

    async def re_verify(self) -> Union[TriggerAck, VerificationResult]:
        """
        Send the ticket back from resolution to verification.

        This is the one backward edge in the pipeline. It is a fresh
        verification run: the previous report stays visible until the
        new one arrives.
        """
        self._require(Stage.RESOLUTION)
        self.verification.ensure_idle()
        return await self.verification.follow(
            "Re-verification", lambda: self.client.re_verify(self.ticket_id)
        )

    # Integration testing

    async def trigger_integration_test(
        self, custom_instructions: Optional[str] = None
    ) -> Union[TriggerAck, IntegrationTestResult]:
        self._require(Stage.INTEGRATION_TEST)
        return await self.integration_test.trigger(custom_instructions)

    async def approve_integration_tests(self) -> None:
        self._require(Stage.INTEGRATION_TEST)
        await self.integration_test.approve()
