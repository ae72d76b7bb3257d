"""
Local client state: the selected project and pipeline handoffs.

Both live as small JSON files under ``settings.state_dir``:

    ~/.ticket-pipeline/
    ├── selected_project.json       # ProjectContext
    └── handoffs/
        └── pipeline-{ticket_id}.json   # HandoffStore, read once then removed
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import structlog
from pydantic import BaseModel, ValidationError

from .schemas import Project, Ticket

logger = structlog.get_logger()

PROJECT_FILE = "selected_project.json"
HANDOFF_DIR = "handoffs"


class ProjectContext:
    """The currently selected project, persisted across runs."""

    def __init__(self, state_dir: Path):
        self.path = Path(state_dir) / PROJECT_FILE
        self.project: Optional[Project] = None

    def load(self) -> Optional[Project]:
        """Load the persisted project; a missing or unreadable file means none."""
        if not self.path.exists():
            self.project = None
            return None
        try:
            self.project = Project.model_validate_json(self.path.read_text(encoding="utf-8"))
        except ValidationError as e:
            logger.warning("project_context_unreadable", path=str(self.path), error=str(e))
            self.project = None
        return self.project

    def save(self, project: Optional[Project]) -> None:
        """Persist ``project``; ``None`` clears the selection."""
        self.project = project
        if project is None:
            self.path.unlink(missing_ok=True)
            logger.info("project_cleared")
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(project.to_wire(), indent=2), encoding="utf-8")
        logger.info("project_selected", project_id=project.id, name=project.name)

    def clear(self) -> None:
        self.save(None)


class PipelineHandoff(BaseModel):
    """What one view passes to a newly opened pipeline view."""

    ticket: Ticket
    selected_project: Optional[Project] = None


class HandoffStore:
    """
    One-shot handoffs keyed by ticket.

    The opener of a pipeline reads its handoff and removes it, so a second
    read finds nothing. Two pipelines opened for the same ticket are not
    coordinated.
    """

    def __init__(self, state_dir: Path):
        self.directory = Path(state_dir) / HANDOFF_DIR

    @staticmethod
    def key(ticket_id: str) -> str:
        return f"pipeline-{ticket_id}"

    def _path(self, ticket_id: str) -> Path:
        return self.directory / f"{self.key(ticket_id)}.json"

    def write(self, ticket: Ticket, project: Optional[Project] = None) -> Path:
        path = self._path(ticket.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        handoff = PipelineHandoff(ticket=ticket, selected_project=project)
        path.write_text(
            json.dumps(handoff.model_dump(mode="json", by_alias=True), indent=2),
            encoding="utf-8",
        )
        logger.info("handoff_written", ticket_id=ticket.id, path=str(path))
        return path

    def take(self, ticket_id: str) -> Optional[PipelineHandoff]:
        """Read the handoff for ``ticket_id`` and remove it."""
        path = self._path(ticket_id)
        if not path.exists():
            return None
        try:
            handoff = PipelineHandoff.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            logger.warning("handoff_unreadable", ticket_id=ticket_id, error=str(e))
            handoff = None
        path.unlink(missing_ok=True)
        return handoff
