"""
Base class for pipeline stage controllers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import structlog

from ..config import Settings
from ..core.polling import PollingController
from ..core.state import PipelineState
from ..enums import Stage
from ..errors import (
    ActionRejectedError,
    InvalidActionInput,
    NotFoundError,
    StageBusyError,
)
from ..integrations.pipeline_api import PipelineApiClient
from ..notifications import NotificationCenter

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class StageContext:
    """What every stage controller shares with its orchestrator."""

    state: PipelineState
    client: PipelineApiClient
    settings: Settings
    notifications: NotificationCenter
    on_complete: Callable[[Stage], Awaitable[None]]


class StageController(ABC):
    """
    Abstract base class for stage controllers.

    A stage controller fetches its own status, fires its own background
    action, owns its polling loop and reports its own failures. It writes
    results into the shared PipelineState but never decides gating: the
    orchestrator checks the gate before delegating an action.
    """

    stage: Stage
    poll_interval_setting = "poll_interval"

    def __init__(self, context: StageContext):
        self.context = context
        self.log = logger.bind(ticket_id=context.state.ticket_id, stage=self.stage.value)
        self.poller: PollingController = PollingController(
            name=self.stage.value,
            interval=getattr(context.settings, self.poll_interval_setting),
            startup_delay=context.settings.poll_startup_delay,
            log=self.log,
        )

    @property
    def state(self) -> PipelineState:
        return self.context.state

    @property
    def client(self) -> PipelineApiClient:
        return self.context.client

    @property
    def notifications(self) -> NotificationCenter:
        return self.context.notifications

    @property
    def polling(self) -> bool:
        return self.poller.is_polling

    async def fetch(self) -> None:
        """Fetch this stage's record into the shared state.

        Stages that only read the shared WorkflowRecord have nothing of
        their own to fetch.
        """

    @abstractmethod
    def status(self) -> str:
        """Current display status of the stage."""

    def details(self) -> Dict[str, Any]:
        """Extra stage data for the pipeline view."""
        return {}

    async def close(self) -> None:
        await self.poller.close()

    async def completed(self) -> None:
        self.log.info("stage_completed")
        await self.context.on_complete(self.stage)

    def ensure_idle(self) -> None:
        if self.poller.is_polling:
            error = StageBusyError(self.stage.value)
            self.notifications.warning(error.message, self.stage)
            raise error

    def claim(self, force: bool = False) -> None:
        """Make way for a new trigger; ``force`` replaces a running poll."""
        if force:
            self.poller.cancel()
        else:
            self.ensure_idle()

    def reject(self, message: str) -> InvalidActionInput:
        """Report invalid action input and return the error to raise."""
        self.notifications.error(message, self.stage)
        return InvalidActionInput(message)

    async def fetch_optional(self, fetch: Callable[[], Awaitable[T]]) -> Optional[T]:
        """Run a read, treating not-found as "no record yet"."""
        try:
            return await fetch()
        except NotFoundError:
            return None

    async def act(self, action: str, call: Awaitable[T]) -> T:
        """Await an action, reporting a rejection with the server's message."""
        try:
            result = await call
        except ActionRejectedError as e:
            self.log.warning("action_rejected", action=action, error=e.message)
            self.notifications.error(f"{action} failed: {e.message}", self.stage)
            raise
        self.log.info("action_succeeded", action=action)
        return result
