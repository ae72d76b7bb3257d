"""Tests for the open-pipeline registry."""

import pytest

from ticket_pipeline.context import HandoffStore, ProjectContext
from ticket_pipeline.registry import PipelineRegistry
from ticket_pipeline.schemas import Project


@pytest.fixture
def projects(settings, project) -> ProjectContext:
    context = ProjectContext(settings.state_dir)
    context.save(project)
    return context


@pytest.fixture
def registry(api, projects, settings):
    return PipelineRegistry(api, projects, settings)


class TestPipelineRegistry:
    @pytest.mark.asyncio
    async def test_open_reuses_pipeline(self, registry, api):
        first = await registry.open("10042")
        second = await registry.open("10042")

        assert first is second
        api.get_ticket_details.assert_awaited_once()
        assert registry.ticket_ids() == ["10042"]
        await registry.close_all()
        assert registry.ticket_ids() == []

    @pytest.mark.asyncio
    async def test_selected_project_used_without_handoff(self, registry):
        pipeline = await registry.open("10042")
        assert pipeline.state.project.id == "proj-1"
        await registry.close_all()

    @pytest.mark.asyncio
    async def test_handoff_seeds_ticket_and_project(
        self, registry, api, settings, make_ticket, monkeypatch
    ):
        handed_off = make_ticket()
        HandoffStore(settings.state_dir).write(handed_off, Project(id="proj-9", name="Ledger"))
        seen = {}

        async def open_pipeline(self):
            seen["ticket"] = self.state.ticket
            return self.view()

        monkeypatch.setattr("ticket_pipeline.registry.PipelineOrchestrator.open", open_pipeline)
        pipeline = await registry.open("10042")

        assert seen["ticket"] == handed_off
        assert pipeline.state.project.id == "proj-9"
        assert HandoffStore(settings.state_dir).take("10042") is None
        await registry.close_all()

    @pytest.mark.asyncio
    async def test_close_unknown_pipeline(self, registry):
        assert await registry.close("nope") is False
