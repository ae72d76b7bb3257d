"""Test configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from ticket_pipeline.config import Settings
from ticket_pipeline.core.orchestrator import PipelineOrchestrator
from ticket_pipeline.enums import AuthorType
from ticket_pipeline.errors import NotFoundError
from ticket_pipeline.integrations.pipeline_api import PipelineApiClient
from ticket_pipeline.schemas import (
    Annotation,
    ExternalComment,
    Project,
    Ticket,
    VerificationResult,
    WorkflowRecord,
    WorktreeMetadata,
)

BASE_TIME = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
TICKET_ID = "10042"


def at(ms: int) -> datetime:
    """Timestamp ``ms`` milliseconds after a fixed base time."""
    return BASE_TIME + timedelta(milliseconds=ms)


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with near-instant polling and an isolated state dir."""
    return Settings(
        poll_interval=0.01,
        poll_startup_delay=0.01,
        integration_test_poll_interval=0.01,
        state_dir=tmp_path / "state",
    )


@pytest.fixture
def project() -> Project:
    return Project(id="proj-1", name="Billing Service", key="BILL")


@pytest.fixture
def make_annotation() -> Callable[..., Annotation]:
    def build(
        annotation_id: str,
        ms: int,
        author_type: AuthorType = AuthorType.AUTOMATED,
        content: str = "1. UNDERSTANDING CONFIRMATION\nLooks good.",
    ) -> Annotation:
        return Annotation(
            id=annotation_id,
            ticket_id=TICKET_ID,
            content=content,
            author_type=author_type,
            author_name="analyzer" if author_type == AuthorType.AUTOMATED else "dana",
            created_at=at(ms),
        )

    return build


@pytest.fixture
def make_comment() -> Callable[..., ExternalComment]:
    def build(comment_id: str, ms: int) -> ExternalComment:
        return ExternalComment(id=comment_id, body="A comment", created_at=at(ms))

    return build


@pytest.fixture
def make_ticket() -> Callable[..., Ticket]:
    def build(comments=()) -> Ticket:
        return Ticket(
            id=TICKET_ID,
            key="BILL-42",
            summary="Invoices are rounded twice",
            status="In Progress",
            comments=list(comments),
        )

    return build


@pytest.fixture
def make_workflow() -> Callable[..., WorkflowRecord]:
    def build(branch: Optional[str] = None, worktree: bool = False) -> WorkflowRecord:
        return WorkflowRecord(
            id="wf-1",
            ticket_id=TICKET_ID,
            project_id="proj-1",
            generated_branch_name=branch,
            worktree_id="wt-1" if worktree else None,
            metadata=(
                WorktreeMetadata(worktree_path="/work/BILL-42", subfolder="backend")
                if worktree
                else None
            ),
        )

    return build


@pytest.fixture
def make_verification() -> Callable[..., VerificationResult]:
    def build(result_id: str = "ver-1", report: str = "All checks pass") -> VerificationResult:
        return VerificationResult(id=result_id, report=report, created_at=at(5000))

    return build


@pytest.fixture
def api(make_ticket) -> AsyncMock:
    """Backend client double for a freshly created ticket with no pipeline records."""
    client = AsyncMock(spec=PipelineApiClient)
    client.get_ticket_details.return_value = make_ticket()
    client.list_annotations.return_value = []
    client.get_workflow.side_effect = NotFoundError("no workflow")
    client.get_session_status.side_effect = NotFoundError("no session")
    client.get_verification.side_effect = NotFoundError("no verification")
    client.get_resolution_status.side_effect = NotFoundError("no resolution")
    client.get_latest_integration_test.side_effect = NotFoundError("no test run")
    return client


@pytest_asyncio.fixture
async def pipeline(api, project, settings) -> PipelineOrchestrator:
    """Create an orchestrator for the test ticket; closed after the test."""
    orchestrator = PipelineOrchestrator(TICKET_ID, api, project=project, settings=settings)
    yield orchestrator
    await orchestrator.close()


@pytest.fixture
def ready_for_verification(api, make_annotation, make_workflow):
    """Backend state where verification is unlocked."""
    api.list_annotations.return_value = [make_annotation("a1", 100)]
    api.get_workflow.side_effect = None
    api.get_workflow.return_value = make_workflow(branch="feature/BILL-42-rounding", worktree=True)
    return api
