"""Tests for the selected-project context and pipeline handoffs."""

import pytest

from ticket_pipeline.context import HandoffStore, ProjectContext


class TestProjectContext:
    def test_nothing_selected(self, settings):
        context = ProjectContext(settings.state_dir)
        assert context.load() is None
        assert context.project is None

    def test_selection_survives_reload(self, settings, project):
        ProjectContext(settings.state_dir).save(project)

        loaded = ProjectContext(settings.state_dir).load()

        assert loaded == project

    def test_clear(self, settings, project):
        context = ProjectContext(settings.state_dir)
        context.save(project)
        context.clear()

        assert context.project is None
        assert not context.path.exists()
        assert ProjectContext(settings.state_dir).load() is None

    def test_unreadable_file_means_no_project(self, settings):
        context = ProjectContext(settings.state_dir)
        context.path.parent.mkdir(parents=True)
        context.path.write_text('{"name": 42}', encoding="utf-8")

        assert context.load() is None


class TestHandoffStore:
    @pytest.fixture
    def store(self, settings) -> HandoffStore:
        return HandoffStore(settings.state_dir)

    def test_key(self):
        assert HandoffStore.key("10042") == "pipeline-10042"

    def test_take_reads_once(self, store, make_ticket, project):
        path = store.write(make_ticket(), project)
        assert path.name == "pipeline-10042.json"

        handoff = store.take("10042")

        assert handoff.ticket.key == "BILL-42"
        assert handoff.selected_project.id == "proj-1"
        assert not path.exists()
        assert store.take("10042") is None

    def test_handoff_without_project(self, store, make_ticket):
        store.write(make_ticket())
        assert store.take("10042").selected_project is None

    def test_missing_handoff(self, store):
        assert store.take("99999") is None
