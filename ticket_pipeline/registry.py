"""
Open pipelines, one orchestrator per ticket.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

import structlog

from .config import Settings
from .context import HandoffStore, ProjectContext
from .core.orchestrator import PipelineOrchestrator
from .integrations.pipeline_api import PipelineApiClient

logger = structlog.get_logger()


class PipelineRegistry:
    """Keeps one open orchestrator per ticket and tears them all down on close."""

    def __init__(
        self,
        client: PipelineApiClient,
        projects: ProjectContext,
        settings: Settings,
        handoffs: Optional[HandoffStore] = None,
    ):
        self.client = client
        self.projects = projects
        self.settings = settings
        self.handoffs = handoffs or HandoffStore(settings.state_dir)
        self.pipelines: Dict[str, PipelineOrchestrator] = {}
        self._lock = asyncio.Lock()

    def ticket_ids(self) -> List[str]:
        return sorted(self.pipelines)

    def get(self, ticket_id: str) -> Optional[PipelineOrchestrator]:
        return self.pipelines.get(ticket_id)

    async def open(self, ticket_id: str) -> PipelineOrchestrator:
        """Return the open pipeline for ``ticket_id``, opening it if needed.

        A pending handoff for the ticket supplies the project; otherwise the
        currently selected project is used.
        """
        async with self._lock:
            pipeline = self.pipelines.get(ticket_id)
            if pipeline is not None:
                return pipeline

            project = self.projects.project
            ticket = None
            handoff = self.handoffs.take(ticket_id)
            if handoff is not None:
                ticket = handoff.ticket
                if handoff.selected_project is not None:
                    project = handoff.selected_project

            pipeline = PipelineOrchestrator(
                ticket_id, self.client, project=project, settings=self.settings, ticket=ticket
            )
            await pipeline.open()
            self.pipelines[ticket_id] = pipeline
            logger.info("pipeline_registered", ticket_id=ticket_id)
            return pipeline

    async def close(self, ticket_id: str) -> bool:
        pipeline = self.pipelines.pop(ticket_id, None)
        if pipeline is None:
            return False
        await pipeline.close()
        return True

    async def close_all(self) -> None:
        for ticket_id in list(self.pipelines):
            await self.close(ticket_id)
