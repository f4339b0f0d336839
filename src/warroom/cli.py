"""
warroom CLI - run and serve multi-agent deliberations.

Commands:
    warroom serve              Start the HTTP/WebSocket server
    warroom agents             List the agent roster
    warroom phases             Show the phase plan
    warroom sessions           List stored sessions
    warroom run "<problem>"    Run a deliberation in the terminal
"""

import asyncio
import sys
import threading
from pathlib import Path

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from .agents.roster import default_registry
from .config import DeliberationConfig
from .events.sink import DeliberationEvent, EventHub, EventType
from .llm import create_client
from .logging_config import configure_logging
from .orchestration.errors import WarRoomError
from .orchestration.phases import default_phase_plan
from .orchestration.session_manager import SessionManager
from .search import create_search_client
from .security.validators import ValidationError
from .storage.store import SessionStore

app = typer.Typer(help="War room: multi-agent deliberation orchestrator")
console = Console()


# =============================================================================
# SERVE
# =============================================================================


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload on code changes"),
    log_level: str = typer.Option("info", help="Log level"),
):
    """Start the API server (REST + WebSocket)."""
    import uvicorn

    configure_logging(log_level)
    console.print(f"\n[bold blue]War Room[/bold blue] on http://{host}:{port}\n")
    uvicorn.run(
        "warroom.api.gateway:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level.lower(),
    )


# =============================================================================
# ROSTER
# =============================================================================


@app.command()
def agents():
    """List the agents every deliberation uses."""
    table = Table(title="Agents")
    table.add_column("", no_wrap=True)
    table.add_column("Id", style="bold")
    table.add_column("Name")
    table.add_column("Role")
    table.add_column("Search")
    for agent in default_registry().all():
        table.add_row(
            agent.glyph, agent.id, agent.name, agent.role, "yes" if agent.can_search else ""
        )
    console.print(table)


@app.command()
def phases():
    """Show the phase plan in order."""
    plan = default_phase_plan()
    table = Table(title=f"Phase plan ({plan.total_turns} turns)")
    table.add_column("#", style="bold")
    table.add_column("Phase")
    table.add_column("Agents")
    for phase in plan:
        table.add_row(str(phase.index), phase.name, ", ".join(phase.agent_ids))
    console.print(table)


@app.command()
def sessions(
    db: Path = typer.Option(None, help="Database path (default: WARROOM_DB_PATH)"),
    limit: int = typer.Option(20, help="How many sessions to show"),
    search: str = typer.Option(None, help="Keyword filter over problems and transcripts"),
):
    """List stored sessions, newest first."""
    config = DeliberationConfig.from_env()
    store = SessionStore(db or config.db_path)
    if search:
        found = store.search_sessions(search, limit=limit)
    else:
        found = store.list_sessions(limit=limit)
    table = Table(title="Sessions")
    table.add_column("Id", style="bold")
    table.add_column("Created")
    table.add_column("Status")
    table.add_column("Problem")
    for session in found:
        status = "[green]active[/green]" if session.active else "done"
        problem = session.problem if len(session.problem) <= 60 else session.problem[:57] + "..."
        table.add_row(session.id, session.created_at[:19], status, problem)
    console.print(table)


# =============================================================================
# RUN
# =============================================================================


def _print_event(event: DeliberationEvent) -> None:
    data = event.data
    if event.type == EventType.PHASE_CHANGE:
        console.rule(f"[bold blue]{data['phase_name']}[/bold blue]")
    elif event.type == EventType.MESSAGE:
        console.print(
            Panel(
                Markdown(data["content"]),
                title=f"{data.get('glyph', '')} {data.get('agent_name', 'Human')}",
                title_align="left",
            )
        )
    elif event.type == EventType.ESCALATION:
        console.print(
            f"[bold yellow]? {data['agent_name']} asks:[/bold yellow] {data['question']}"
        )
    elif event.type == EventType.SEARCH_STARTED:
        console.print(f"[cyan]Searching:[/cyan] {'; '.join(data['queries'])}")
    elif event.type == EventType.ESCALATION_TIMEOUT:
        console.print("[yellow]No answer in time -- proceeding without it[/yellow]")
    elif event.type == EventType.ERROR:
        console.print(f"[bold red]Error:[/bold red] {data['message']}")
    elif event.type == EventType.DELIBERATION_COMPLETE:
        summary = data["summary"]
        console.print(
            f"\n[bold green]Deliberation {data['outcome']}[/bold green] -- "
            f"{summary['message_count']} messages, session {event.session_id}"
        )


def _read_stdin(loop: asyncio.AbstractEventLoop, lines: asyncio.Queue) -> None:
    """Daemon thread: forward stdin lines into the event loop."""
    for line in sys.stdin:
        try:
            loop.call_soon_threadsafe(lines.put_nowait, line.rstrip("\n"))
        except RuntimeError:
            return


async def _answer_escalations(manager: SessionManager, queue: asyncio.Queue) -> None:
    """Ask for an answer to each escalation as it arrives."""
    lines: asyncio.Queue = asyncio.Queue()
    threading.Thread(
        target=_read_stdin, args=(asyncio.get_running_loop(), lines), daemon=True
    ).start()
    while True:
        event = await queue.get()
        if event.type != EventType.ESCALATION:
            continue
        console.print(f"Answer for {event.data['agent_name']} (blank to skip): ", end="")
        answer = await lines.get()
        if not answer.strip():
            continue
        try:
            manager.submit_escalation_answer(event.session_id, event.data["id"], answer)
        except (WarRoomError, ValidationError) as e:
            console.print(f"[red]{e}[/red]")


async def _run(problem: str, config: DeliberationConfig, interactive: bool) -> None:
    hub = EventHub()
    manager = SessionManager.build(
        create_client(max_tokens=config.max_tokens),
        sink=hub,
        config=config,
        search=create_search_client(),
    )
    hub.add_listener(_print_event)

    answerer = None
    if interactive:
        answerer = asyncio.create_task(_answer_escalations(manager, hub.subscribe()))

    session = await manager.create_session(problem)
    console.print(f"[dim]Session {session.id}[/dim]")
    try:
        await manager.wait_for(session.id)
    finally:
        if answerer is not None:
            answerer.cancel()
        await manager.shutdown()


@app.command()
def run(
    problem: str = typer.Argument(..., help="Problem statement or research question"),
    interactive: bool = typer.Option(True, help="Prompt for answers to agent questions"),
    escalation_timeout: float = typer.Option(None, help="Seconds to wait for answers"),
    log_level: str = typer.Option("warning", help="Log level"),
):
    """Run one deliberation in the terminal and print it as it happens."""
    configure_logging(log_level)
    config = DeliberationConfig.from_env()
    if escalation_timeout is not None:
        config.escalation_timeout_seconds = escalation_timeout
    try:
        asyncio.run(_run(problem, config, interactive))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(130)


if __name__ == "__main__":
    app()
