"""
Command Line Interface for Ticket Pipeline Control.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import typer
import uvicorn
from rich import print as rprint
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from ..config import get_settings
from ..context import HandoffStore, ProjectContext
from ..core.orchestrator import PipelineOrchestrator
from ..core.view import PipelineView
from ..enums import EnvHandling, SessionMode, Stage
from ..errors import PipelineError
from ..integrations.pipeline_api import PipelineApiClient
from ..logs import configure_logging
from ..notifications import Notification
from ..schemas import Project

app = typer.Typer(help="Ticket Pipeline Control - drive a ticket from analysis to pull request")
worktree_app = typer.Typer(help="Create or delete the ticket's worktree")
session_app = typer.Typer(help="Control the AI coding session")
resolve_app = typer.Typer(help="Control the verification-resolution session")
annotations_app = typer.Typer(help="Manage hidden annotations on a ticket")
project_app = typer.Typer(help="Select the project pipelines run against")

app.add_typer(worktree_app, name="worktree")
app.add_typer(session_app, name="session")
app.add_typer(resolve_app, name="resolve")
app.add_typer(annotations_app, name="annotations")
app.add_typer(project_app, name="project")

console = Console()

STATUS_EMOJI = {
    "none": "⚪",
    "pending": "🟡",
    "complete": "✅",
    "completed": "✅",
    "not_generated": "⚪",
    "generated": "✅",
    "not_created": "⚪",
    "created": "✅",
    "not_started": "⚪",
    "context_sent": "🟡",
    "running": "🔵",
    "in_progress": "🔵",
    "stopped": "⏹️",
    "crashed": "❌",
}

LEVEL_STYLE = {
    "info": "cyan",
    "success": "green",
    "warning": "yellow",
    "error": "red",
}

PipelineAction = Callable[[PipelineOrchestrator], Awaitable[Any]]


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show pipeline logs"),
):
    """Ticket Pipeline Control."""
    settings = get_settings()
    configure_logging(settings.log_level if verbose else "WARNING", settings.log_format)


def _fail(error: PipelineError) -> None:
    console.print(f"❌ {error.message}", style="red")
    raise typer.Exit(code=1)


def _print_notifications(notifications: List[Notification]) -> None:
    for item in notifications:
        style = LEVEL_STYLE.get(item.level.value, "white")
        console.print(f"[{style}]• {item.message}[/{style}]")


def _print_view(view: PipelineView) -> None:
    title = f"{view.ticket_key or view.ticket_id}: {view.summary or ''}".strip()
    subtitle = f"Project: {view.project_name or view.project_id or 'none selected'}"
    rprint(Panel.fit(title, subtitle=subtitle, style="bold blue"))

    table = Table(title="Pipeline", show_header=True, header_style="bold magenta")
    table.add_column("Stage", style="cyan")
    table.add_column("Status")
    table.add_column("Available")
    table.add_column("Details")

    for stage in view.stages:
        emoji = STATUS_EMOJI.get(stage.status, "❓")
        status = f"{emoji} {stage.status.replace('_', ' ').title()}"
        if stage.polling:
            status += " ⏳"
        available = "yes" if stage.enabled else f"no ({stage.locked_reason})"
        details = ", ".join(
            f"{key}={value}" for key, value in stage.details.items() if value not in (None, [], {})
        )
        table.add_row(stage.stage.value.replace("_", " "), status, available, details)

    console.print(table)
    if view.branch_name:
        console.print(f"🌿 Branch: {view.branch_name}")
    if view.worktree_path:
        console.print(f"📁 Worktree: {view.worktree_path}")


def _open_project(settings) -> Optional[Project]:
    return ProjectContext(settings.state_dir).load()


def _run(
    ticket_id: str,
    action: Optional[PipelineAction] = None,
    wait: bool = False,
) -> Tuple[PipelineView, Any]:
    """Open a pipeline, run ``action`` on it and tear it down again."""
    settings = get_settings()

    async def runner() -> Tuple[PipelineView, Any, List[Notification]]:
        project = _open_project(settings)
        ticket = None
        handoff = HandoffStore(settings.state_dir).take(ticket_id)
        if handoff is not None:
            ticket = handoff.ticket
            if handoff.selected_project is not None:
                project = handoff.selected_project

        async with PipelineApiClient.from_settings(settings) as client:
            pipeline = PipelineOrchestrator(
                ticket_id, client, project=project, settings=settings, ticket=ticket
            )
            try:
                await pipeline.open()
                result = await action(pipeline) if action else None
                if wait and pipeline.is_polling:
                    console.print("⏳ Waiting for the background job to finish (Ctrl+C to stop)")
                    await pipeline.wait_idle()
                return pipeline.view(), result, pipeline.notifications.drain()
            finally:
                await pipeline.close()

    try:
        view, result, notifications = asyncio.run(runner())
    except PipelineError as e:
        _fail(e)
    _print_notifications(notifications)
    return view, result


def _print_resume_commands(commands: Optional[dict]) -> None:
    if not commands:
        return
    console.print("Resume locally with:")
    console.print(f"  {commands['cd']}", style="bold")
    console.print(f"  {commands['happy']}", style="bold")


@app.command()
def show(
    ticket_id: str = typer.Argument(..., help="Ticket id"),
    analysis: bool = typer.Option(False, help="Also print the latest analysis"),
):
    """Show the pipeline for a ticket."""
    view, _ = _run(ticket_id)
    _print_view(view)
    if analysis and view.analysis_content:
        console.print(Panel(Markdown(view.analysis_content), title="Analysis"))


@app.command()
def watch(
    ticket_id: str = typer.Argument(..., help="Ticket id"),
    interval: float = typer.Option(5.0, help="Seconds between refreshes"),
):
    """Keep refreshing the pipeline until interrupted."""
    settings = get_settings()

    async def runner() -> None:
        async with PipelineApiClient.from_settings(settings) as client:
            pipeline = PipelineOrchestrator(
                ticket_id, client, project=_open_project(settings), settings=settings
            )
            try:
                await pipeline.open()
                while True:
                    try:
                        view = await pipeline.refresh()
                    except PipelineError as e:
                        console.print(f"⚠️ {e.message}", style="yellow")
                    else:
                        console.clear()
                        _print_view(view)
                    _print_notifications(pipeline.notifications.drain())
                    await asyncio.sleep(interval)
            finally:
                await pipeline.close()

    try:
        asyncio.run(runner())
    except KeyboardInterrupt:
        console.print("\n🛑 Stopped watching")
    except PipelineError as e:
        _fail(e)


@app.command()
def analyze(
    ticket_id: str = typer.Argument(..., help="Ticket id"),
    wait: bool = typer.Option(True, help="Wait for the analysis to land"),
):
    """Run an automated analysis of the ticket."""
    view, _ = _run(ticket_id, lambda p: p.trigger_analysis(), wait=wait)
    _print_view(view)


@app.command()
def branch(ticket_id: str = typer.Argument(..., help="Ticket id")):
    """Generate a branch name for the ticket."""
    view, _ = _run(ticket_id, lambda p: p.generate_branch())
    _print_view(view)


@worktree_app.command("create")
def worktree_create(
    ticket_id: str = typer.Argument(..., help="Ticket id"),
    subfolder: str = typer.Option("backend", help="Repository subfolder to work in"),
    base_branch: str = typer.Option("main", help="Base branch, or 'other'"),
    custom_base_branch: Optional[str] = typer.Option(None, help="Base branch when --base-branch=other"),
    env_handling: EnvHandling = typer.Option(EnvHandling.LINK, help="How to carry .env files over"),
    share_node_modules: bool = typer.Option(False, help="Symlink node_modules from the main checkout"),
):
    """Create the worktree for the ticket's branch."""
    view, _ = _run(
        ticket_id,
        lambda p: p.create_worktree(
            subfolder=subfolder,
            base_branch=base_branch,
            custom_base_branch=custom_base_branch,
            env_handling=env_handling,
            share_node_modules=share_node_modules,
        ),
    )
    _print_view(view)


@worktree_app.command("delete")
def worktree_delete(
    ticket_id: str = typer.Argument(..., help="Ticket id"),
    delete_branch: bool = typer.Option(False, help="Also delete the branch"),
    force: bool = typer.Option(False, help="Delete even with uncommitted changes"),
):
    """Delete the ticket's worktree."""
    view, _ = _run(ticket_id, lambda p: p.delete_worktree(delete_branch=delete_branch, force=force))
    _print_view(view)


@session_app.command("start")
def session_start(
    ticket_id: str = typer.Argument(..., help="Ticket id"),
    mode: SessionMode = typer.Option(SessionMode.CONTEXT, help="context or implementation"),
    instructions: Optional[str] = typer.Option(None, help="Additional instructions"),
    force: bool = typer.Option(False, help="Send new context even if a start is pending"),
    wait: bool = typer.Option(True, help="Wait until the session reports in"),
):
    """Start an AI coding session in the worktree."""
    view, _ = _run(ticket_id, lambda p: p.start_session(mode, instructions, force=force), wait=wait)
    _print_view(view)
    _print_resume_commands(view.stage(Stage.AI_SESSION).details.get("resume_commands"))


@session_app.command("stop")
def session_stop(ticket_id: str = typer.Argument(..., help="Ticket id")):
    """Stop the AI coding session."""
    _run(ticket_id, lambda p: p.stop_session())
    console.print("⏹️ AI session stopped")


@session_app.command("status")
def session_status(ticket_id: str = typer.Argument(..., help="Ticket id")):
    """Show the AI coding session status."""
    view, _ = _run(ticket_id)
    stage = view.stage(Stage.AI_SESSION)
    console.print(f"{STATUS_EMOJI.get(stage.status, '❓')} AI session: {stage.status}")
    _print_resume_commands(stage.details.get("resume_commands"))


@app.command()
def verify(
    ticket_id: str = typer.Argument(..., help="Ticket id"),
    instructions: Optional[str] = typer.Option(None, help="Custom verification instructions"),
    wait: bool = typer.Option(True, help="Wait for the verification report"),
):
    """Verify the implementation in the worktree."""
    view, _ = _run(ticket_id, lambda p: p.trigger_verification(instructions), wait=wait)
    _print_view(view)
    if view.verification_report:
        console.print(Panel(Markdown(view.verification_report), title="Verification report"))


@app.command("review-notes")
def review_notes(
    ticket_id: str = typer.Argument(..., help="Ticket id"),
    notes: str = typer.Option(..., help="Review notes"),
    reviewer: str = typer.Option(..., help="Reviewer name"),
):
    """Attach review notes to the latest verification report."""
    _run(ticket_id, lambda p: p.add_review_notes(notes, reviewer))


@app.command("approve-pr")
def approve_pr(ticket_id: str = typer.Argument(..., help="Ticket id")):
    """Approve the verified work for a pull request."""
    _run(ticket_id, lambda p: p.approve_for_pr())


@resolve_app.command("start")
def resolve_start(
    ticket_id: str = typer.Argument(..., help="Ticket id"),
    mode: SessionMode = typer.Option(SessionMode.CONTEXT, help="context or implementation"),
    instructions: Optional[str] = typer.Option(None, help="Resolution instructions"),
    force: bool = typer.Option(False, help="Send new context even if a start is pending"),
    wait: bool = typer.Option(True, help="Wait until the session reports in"),
):
    """Start a session that resolves the verification findings."""
    view, _ = _run(ticket_id, lambda p: p.start_resolution(mode, instructions, force=force), wait=wait)
    _print_view(view)
    _print_resume_commands(view.stage(Stage.RESOLUTION).details.get("resume_commands"))


@resolve_app.command("stop")
def resolve_stop(ticket_id: str = typer.Argument(..., help="Ticket id")):
    """Stop the resolution session."""
    _run(ticket_id, lambda p: p.stop_resolution())


@resolve_app.command("complete")
def resolve_complete(
    ticket_id: str = typer.Argument(..., help="Ticket id"),
    notes: Optional[str] = typer.Option(None, help="Completion notes"),
):
    """Mark the resolution session complete."""
    _run(ticket_id, lambda p: p.complete_resolution(notes))


@resolve_app.command("status")
def resolve_status(ticket_id: str = typer.Argument(..., help="Ticket id")):
    """Show the resolution session status."""
    view, _ = _run(ticket_id)
    stage = view.stage(Stage.RESOLUTION)
    console.print(f"{STATUS_EMOJI.get(stage.status, '❓')} Resolution: {stage.status}")
    _print_resume_commands(stage.details.get("resume_commands"))


@app.command("re-verify")
def re_verify(
    ticket_id: str = typer.Argument(..., help="Ticket id"),
    wait: bool = typer.Option(True, help="Wait for the new verification report"),
):
    """Send the ticket back to verification after resolving findings."""
    view, _ = _run(ticket_id, lambda p: p.re_verify(), wait=wait)
    _print_view(view)


@app.command("integration-test")
def integration_test(
    ticket_id: str = typer.Argument(..., help="Ticket id"),
    instructions: Optional[str] = typer.Option(None, help="Custom test instructions"),
    wait: bool = typer.Option(True, help="Wait for the test results"),
):
    """Run integration tests against the worktree."""
    view, _ = _run(ticket_id, lambda p: p.trigger_integration_test(instructions), wait=wait)
    _print_view(view)


@app.command("approve-tests")
def approve_tests(ticket_id: str = typer.Argument(..., help="Ticket id")):
    """Approve the latest integration test results."""
    _run(ticket_id, lambda p: p.approve_integration_tests())


@annotations_app.command("list")
def annotations_list(ticket_id: str = typer.Argument(..., help="Ticket id")):
    """List the ticket's annotations, newest first."""

    async def collect(pipeline: PipelineOrchestrator):
        return sorted(pipeline.state.annotations, key=lambda a: a.created_at, reverse=True)

    view, annotations = _run(ticket_id, collect)

    table = Table(title=f"Annotations ({view.analysis.value})", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan")
    table.add_column("Author")
    table.add_column("Created")
    table.add_column("Content")
    for annotation in annotations:
        author = "🤖 " if annotation.is_automated else "👤 "
        author += annotation.author_name or annotation.author_type.value
        preview = annotation.content.strip().splitlines()[0] if annotation.content.strip() else ""
        table.add_row(annotation.id, author, annotation.created_at.isoformat(), preview[:80])
    console.print(table)


@annotations_app.command("add")
def annotations_add(
    ticket_id: str = typer.Argument(..., help="Ticket id"),
    content: str = typer.Argument(..., help="Annotation text"),
    author: Optional[str] = typer.Option(None, help="Author name"),
):
    """Add a human annotation."""
    view, annotation = _run(ticket_id, lambda p: p.add_annotation(content, author))
    console.print(f"✅ Added annotation {annotation.id} (analysis: {view.analysis.value})")


@annotations_app.command("edit")
def annotations_edit(
    ticket_id: str = typer.Argument(..., help="Ticket id"),
    annotation_id: str = typer.Argument(..., help="Annotation id"),
    content: str = typer.Argument(..., help="New annotation text"),
):
    """Edit an annotation's content."""
    view, _ = _run(ticket_id, lambda p: p.edit_annotation(annotation_id, content))
    console.print(f"✅ Updated annotation {annotation_id} (analysis: {view.analysis.value})")


@annotations_app.command("delete")
def annotations_delete(
    ticket_id: str = typer.Argument(..., help="Ticket id"),
    annotation_id: str = typer.Argument(..., help="Annotation id"),
):
    """Delete an annotation."""
    view, _ = _run(ticket_id, lambda p: p.delete_annotation(annotation_id))
    console.print(f"🗑️ Deleted annotation {annotation_id} (analysis: {view.analysis.value})")


@project_app.command("show")
def project_show():
    """Show the selected project."""
    project = _open_project(get_settings())
    if project is None:
        console.print("❌ No project selected")
        raise typer.Exit(code=1)
    table = Table(title="Selected project", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for field, value in project.model_dump().items():
        if value is not None:
            table.add_row(field, str(value))
    console.print(table)


@project_app.command("select")
def project_select(
    project_id: str = typer.Argument(..., help="Project id"),
    name: str = typer.Option(..., help="Project name"),
    key: Optional[str] = typer.Option(None, help="Project key"),
    local_path: Optional[str] = typer.Option(None, help="Local repository path"),
    jira_key: Optional[str] = typer.Option(None, help="Issue tracker project key"),
):
    """Select the project new pipelines run against."""
    project = Project(id=project_id, name=name, key=key, local_path=local_path, jira_key=jira_key)
    ProjectContext(get_settings().state_dir).save(project)
    console.print(f"✅ Selected project {name}")


@project_app.command("clear")
def project_clear():
    """Clear the selected project."""
    ProjectContext(get_settings().state_dir).clear()
    console.print("✅ Project selection cleared")


@app.command()
def handoff(ticket_id: str = typer.Argument(..., help="Ticket id")):
    """Stage a ticket and the selected project for the next pipeline opened on it."""
    settings = get_settings()

    async def fetch():
        async with PipelineApiClient.from_settings(settings) as client:
            return await client.get_ticket_details(ticket_id)

    try:
        ticket = asyncio.run(fetch())
    except PipelineError as e:
        _fail(e)
    path = HandoffStore(settings.state_dir).write(ticket, _open_project(settings))
    console.print(f"✅ Handoff {HandoffStore.key(ticket_id)} written to {path}")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host to bind the dashboard API to"),
    port: Optional[int] = typer.Option(None, help="Port to run the dashboard API on"),
):
    """Run the dashboard API."""
    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    rprint(Panel.fit(f"🚀 Ticket Pipeline dashboard on http://{host}:{port}", style="bold blue"))
    uvicorn.run("ticket_pipeline.main:app", host=host, port=port, reload=settings.debug)


@app.command()
def version():
    """Show version information."""
    from .. import __version__

    rprint(Panel.fit(f"Ticket Pipeline Control v{__version__}", style="bold green"))


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
