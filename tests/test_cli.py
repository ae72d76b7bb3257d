"""Tests for the command line interface."""

import pytest
from typer.testing import CliRunner

from ticket_pipeline.cli import app
from ticket_pipeline.context import HandoffStore, ProjectContext
from ticket_pipeline.errors import NotFoundError

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_settings(monkeypatch, settings):
    monkeypatch.setattr("ticket_pipeline.cli.get_settings", lambda: settings)
    return settings


@pytest.fixture
def backend(monkeypatch, api):
    """Route the CLI's backend client to the test double."""
    api.__aenter__.return_value = api
    monkeypatch.setattr(
        "ticket_pipeline.cli.PipelineApiClient.from_settings", lambda settings: api
    )
    return api


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "Ticket Pipeline Control" in result.stdout


class TestProjectCommands:
    def test_show_without_selection(self):
        result = runner.invoke(app, ["project", "show"])
        assert result.exit_code == 1
        assert "No project selected" in result.stdout

    def test_select_show_clear(self, cli_settings):
        result = runner.invoke(
            app, ["project", "select", "proj-1", "--name", "Billing", "--key", "BILL"]
        )
        assert result.exit_code == 0
        assert ProjectContext(cli_settings.state_dir).load().key == "BILL"

        result = runner.invoke(app, ["project", "show"])
        assert result.exit_code == 0
        assert "Billing" in result.stdout

        result = runner.invoke(app, ["project", "clear"])
        assert result.exit_code == 0
        assert ProjectContext(cli_settings.state_dir).load() is None


class TestPipelineCommands:
    def test_show(self, backend):
        result = runner.invoke(app, ["show", "10042"])

        assert result.exit_code == 0
        assert "BILL-42" in result.stdout
        backend.get_ticket_details.assert_awaited_once_with("10042")

    def test_show_unknown_ticket(self, backend):
        backend.get_ticket_details.side_effect = NotFoundError("Ticket not found")

        result = runner.invoke(app, ["show", "99999"])

        assert result.exit_code == 1
        assert "Ticket not found" in result.stdout

    def test_locked_action_fails(self, backend):
        result = runner.invoke(app, ["branch", "10042"])

        assert result.exit_code == 1
        backend.generate_branch_name.assert_not_awaited()

    def test_handoff_written(self, backend, cli_settings):
        result = runner.invoke(app, ["handoff", "10042"])

        assert result.exit_code == 0
        handoff = HandoffStore(cli_settings.state_dir).take("10042")
        assert handoff.ticket.summary == "Invoices are rounded twice"
