"""Pomoflow CLI - track focus sessions from the terminal."""

from contextlib import contextmanager
from typing import Annotated, Iterator, Optional

import typer
from rich.console import Console
from rich.table import Table

from pomoflow import __version__, config
from pomoflow.core.identity import Identity, RequestContext, resolve_identity
from pomoflow.errors import PomoflowError
from pomoflow.storage.models import Pomodoro, Preset, Session
from pomoflow.storage.store import FocusStore

app = typer.Typer(
    name="pomoflow",
    help="Track focused-work sessions made of pomodoros.",
    no_args_is_help=True,
)
session_app = typer.Typer(help="Create, list and end sessions.")
pomodoro_app = typer.Typer(help="Start and advance pomodoros.")
task_app = typer.Typer(help="Tasks logged against a pomodoro.")
preset_app = typer.Typer(help="Reusable focus/break durations.")
mcp_app = typer.Typer(help="MCP server management.")

app.add_typer(session_app, name="session")
app.add_typer(pomodoro_app, name="pomodoro")
app.add_typer(task_app, name="task")
app.add_typer(preset_app, name="preset")
app.add_typer(mcp_app, name="mcp")

console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"pomoflow {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    user: Annotated[
        Optional[str],
        typer.Option("--user", "-u", envvar=config.USER_ENV_VAR, help="Identity to act as"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", help="Debug logging to stderr")] = False,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
) -> None:
    """Pomoflow - focus sessions, pomodoros, tasks and presets."""
    config.configure_logging(verbose)
    ctx.obj = RequestContext(user_id=user)


def _identity(ctx: typer.Context) -> Identity | None:
    return resolve_identity(ctx.obj)


@contextmanager
def _store() -> Iterator[FocusStore]:
    """Open the store and turn Pomoflow errors into a clean exit."""
    store = FocusStore()
    try:
        yield store
    except PomoflowError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        store.close()


def _fmt_time(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def _fmt_seconds(seconds: int) -> str:
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}m" if not secs else f"{minutes}m{secs:02d}s"


def _session_table(title: str, sessions: list[Session]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Started")
    table.add_column("Ended")
    for s in sessions:
        table.add_row(s.id, s.name, _fmt_time(s.start_time), _fmt_time(s.end_time))
    return table


def _pomodoro_table(title: str, pomodoros: list[Pomodoro]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Focus")
    table.add_column("Break")
    table.add_column("Started")
    table.add_column("Ended")
    for p in pomodoros:
        table.add_row(
            p.id,
            p.status.value,
            _fmt_seconds(p.focus_duration),
            _fmt_seconds(p.break_duration),
            _fmt_time(p.start_time),
            _fmt_time(p.end_time),
        )
    return table


def _preset_table(title: str, presets: list[Preset]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Focus")
    table.add_column("Break")
    for p in presets:
        table.add_row(p.id, p.name, _fmt_seconds(p.focus_duration), _fmt_seconds(p.break_duration))
    return table


# ── Session commands ─────────────────────────────────────────────


@session_app.command("new")
def session_new(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Name for the session")],
) -> None:
    """Start a new session."""
    from pomoflow.core.sessions import SessionManager

    with _store() as store:
        session = SessionManager(store).create_session(_identity(ctx), name)
    console.print(f"[green]Created session:[/green] {session.name} ({session.id})")


@session_app.command("list")
def session_list(
    ctx: typer.Context,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum sessions to show")] = 20,
) -> None:
    """List your sessions, newest first."""
    from pomoflow.core.sessions import SessionManager

    with _store() as store:
        sessions = SessionManager(store).list_sessions(_identity(ctx), limit=limit)
    if not sessions:
        console.print("[dim]No sessions yet. Start one with:[/dim]")
        console.print("  pomoflow session new <name>")
        return
    console.print(_session_table("Sessions", sessions))


@session_app.command("show")
def session_show(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID")],
) -> None:
    """Show a session and its pomodoros."""
    from pomoflow.core.pomodoros import PomodoroEngine

    with _store() as store:
        engine = PomodoroEngine(store)
        session = engine.sessions.get_session(_identity(ctx), session_id)
        if session is None:
            console.print(f"[red]Session not found:[/red] {session_id}")
            raise typer.Exit(1)
        pomodoros = engine.list_pomodoros(_identity(ctx), session_id)
    console.print(_session_table(session.name, [session]))
    if pomodoros:
        console.print(_pomodoro_table("Pomodoros", pomodoros))


@session_app.command("search")
def session_search(
    ctx: typer.Context,
    query: Annotated[str, typer.Argument(help="Text to search session names for")],
) -> None:
    """Search your sessions by name."""
    from pomoflow.core.sessions import SessionManager

    with _store() as store:
        sessions = SessionManager(store).search_sessions(_identity(ctx), query)
    if not sessions:
        console.print(f"[yellow]No sessions match:[/yellow] {query}")
        return
    console.print(_session_table(f"Sessions matching '{query}'", sessions))


@session_app.command("end")
def session_end(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID")],
) -> None:
    """Mark a session as finished."""
    from pomoflow.core.sessions import SessionManager

    with _store() as store:
        session = SessionManager(store).end_session(_identity(ctx), session_id)
    console.print(f"[green]Ended session:[/green] {session.name}")


# ── Pomodoro commands ────────────────────────────────────────────


@pomodoro_app.command("start")
def pomodoro_start(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session to start the pomodoro in")],
    focus: Annotated[Optional[int], typer.Option("--focus", "-f", help="Focus seconds")] = None,
    break_: Annotated[Optional[int], typer.Option("--break", "-b", help="Break seconds")] = None,
    preset: Annotated[
        Optional[str], typer.Option("--preset", "-p", help="Preset ID for missing durations")
    ] = None,
) -> None:
    """Start a pomodoro. It begins in focus."""
    from pomoflow.core.pomodoros import PomodoroEngine

    with _store() as store:
        pomodoro = PomodoroEngine(store).start_pomodoro(
            _identity(ctx),
            session_id,
            focus_duration=focus,
            break_duration=break_,
            preset_id=preset,
        )
    console.print(
        f"[green]Started pomodoro:[/green] {pomodoro.id} "
        f"({_fmt_seconds(pomodoro.focus_duration)} focus, {_fmt_seconds(pomodoro.break_duration)} break)"
    )


@pomodoro_app.command("break")
def pomodoro_break(
    ctx: typer.Context,
    pomodoro_id: Annotated[str, typer.Argument(help="Pomodoro ID")],
) -> None:
    """Move a pomodoro from focus to break."""
    from pomoflow.core.pomodoros import PomodoroEngine

    with _store() as store:
        pomodoro = PomodoroEngine(store).advance_to_break(_identity(ctx), pomodoro_id)
    console.print(f"[green]On break:[/green] {pomodoro.id}")


@pomodoro_app.command("complete")
def pomodoro_complete(
    ctx: typer.Context,
    pomodoro_id: Annotated[str, typer.Argument(help="Pomodoro ID")],
) -> None:
    """Finish a pomodoro."""
    from pomoflow.core.pomodoros import PomodoroEngine

    with _store() as store:
        pomodoro = PomodoroEngine(store).complete_pomodoro(_identity(ctx), pomodoro_id)
    console.print(f"[green]Completed pomodoro:[/green] {pomodoro.id}")


@pomodoro_app.command("list")
def pomodoro_list(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID")],
) -> None:
    """List a session's pomodoros, newest first."""
    from pomoflow.core.pomodoros import PomodoroEngine

    with _store() as store:
        pomodoros = PomodoroEngine(store).list_pomodoros(_identity(ctx), session_id)
    if not pomodoros:
        console.print("[dim]No pomodoros in this session.[/dim]")
        return
    console.print(_pomodoro_table("Pomodoros", pomodoros))


@pomodoro_app.command("show")
def pomodoro_show(
    ctx: typer.Context,
    pomodoro_id: Annotated[str, typer.Argument(help="Pomodoro ID")],
) -> None:
    """Show a pomodoro with its tasks and reflection."""
    from pomoflow.core.tasks import TaskBoard

    with _store() as store:
        board = TaskBoard(store)
        pomodoro = board.engine.get_pomodoro(_identity(ctx), pomodoro_id)
        if pomodoro is None:
            console.print(f"[red]Pomodoro not found:[/red] {pomodoro_id}")
            raise typer.Exit(1)
        tasks = board.list_tasks(_identity(ctx), pomodoro_id)
        reflection = board.get_reflection(_identity(ctx), pomodoro_id)

    console.print(_pomodoro_table(f"Pomodoro {pomodoro.id}", [pomodoro]))
    for task in tasks:
        mark = "[green]✓[/green]" if task.completed else "[dim]·[/dim]"
        console.print(f"  {mark} {task.description} [dim]({task.id})[/dim]")
    if reflection:
        rating = f"{reflection.rating}/{config.RATING_MAX}" if reflection.rating else "unrated"
        console.print(f"\n[bold]Reflection:[/bold] {rating}")
        if reflection.description:
            console.print(f"  {reflection.description}")


@app.command("reflect")
def reflect(
    ctx: typer.Context,
    pomodoro_id: Annotated[str, typer.Argument(help="Pomodoro ID")],
    rating: Annotated[Optional[int], typer.Option("--rating", "-r", help="Rating 1-5")] = None,
    note: Annotated[Optional[str], typer.Option("--note", "-n", help="Reflection note")] = None,
) -> None:
    """Write or replace a pomodoro's reflection."""
    from pomoflow.core.tasks import TaskBoard

    with _store() as store:
        TaskBoard(store).set_reflection(_identity(ctx), pomodoro_id, rating=rating, description=note)
    console.print(f"[green]Saved reflection for:[/green] {pomodoro_id}")


# ── Task commands ────────────────────────────────────────────────


@task_app.command("add")
def task_add(
    ctx: typer.Context,
    pomodoro_id: Annotated[str, typer.Argument(help="Pomodoro ID")],
    description: Annotated[str, typer.Argument(help="What to work on")],
) -> None:
    """Add a task to a pomodoro."""
    from pomoflow.core.tasks import TaskBoard

    with _store() as store:
        task = TaskBoard(store).add_task(_identity(ctx), pomodoro_id, description)
    console.print(f"[green]Added task:[/green] {task.description} ({task.id})")


@task_app.command("toggle")
def task_toggle(
    ctx: typer.Context,
    task_id: Annotated[str, typer.Argument(help="Task ID")],
) -> None:
    """Mark a task done, or not done again."""
    from pomoflow.core.tasks import TaskBoard

    with _store() as store:
        task = TaskBoard(store).toggle_task(_identity(ctx), task_id)
    state = "done" if task.completed else "not done"
    console.print(f"[green]Task {state}:[/green] {task.description}")


@task_app.command("list")
def task_list(
    ctx: typer.Context,
    pomodoro_id: Annotated[str, typer.Argument(help="Pomodoro ID")],
) -> None:
    """List a pomodoro's tasks."""
    from pomoflow.core.tasks import TaskBoard

    with _store() as store:
        tasks = TaskBoard(store).list_tasks(_identity(ctx), pomodoro_id)
    if not tasks:
        console.print("[dim]No tasks for this pomodoro.[/dim]")
        return
    table = Table(title="Tasks")
    table.add_column("ID", style="cyan")
    table.add_column("Done")
    table.add_column("Description")
    for task in tasks:
        table.add_row(task.id, "✓" if task.completed else "", task.description)
    console.print(table)


# ── Preset commands ──────────────────────────────────────────────


@preset_app.command("add")
def preset_add(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Preset name")],
    focus: Annotated[int, typer.Option("--focus", "-f", help="Focus seconds")] = 1500,
    break_: Annotated[int, typer.Option("--break", "-b", help="Break seconds")] = 300,
) -> None:
    """Save a preset."""
    from pomoflow.core.presets import PresetRegistry

    with _store() as store:
        preset = PresetRegistry(store).create_preset(_identity(ctx), name, focus, break_)
    console.print(f"[green]Created preset:[/green] {preset.name} ({preset.id})")


@preset_app.command("list")
def preset_list(ctx: typer.Context) -> None:
    """List your presets."""
    from pomoflow.core.presets import PresetRegistry

    with _store() as store:
        presets = PresetRegistry(store).list_presets(_identity(ctx))
    if not presets:
        console.print("[dim]No presets. Add one with:[/dim]")
        console.print("  pomoflow preset add <name> --focus 1500 --break 300")
        return
    console.print(_preset_table("Presets", presets))


@preset_app.command("search")
def preset_search(
    ctx: typer.Context,
    query: Annotated[str, typer.Argument(help="Text to search preset names for")],
) -> None:
    """Search your presets by name."""
    from pomoflow.core.presets import PresetRegistry

    with _store() as store:
        presets = PresetRegistry(store).search_presets_by_name(_identity(ctx), query)
    if not presets:
        console.print(f"[yellow]No presets match:[/yellow] {query}")
        return
    console.print(_preset_table(f"Presets matching '{query}'", presets))


@preset_app.command("update")
def preset_update(
    ctx: typer.Context,
    preset_id: Annotated[str, typer.Argument(help="Preset ID")],
    name: Annotated[Optional[str], typer.Option("--name", help="New name")] = None,
    focus: Annotated[Optional[int], typer.Option("--focus", "-f", help="Focus seconds")] = None,
    break_: Annotated[Optional[int], typer.Option("--break", "-b", help="Break seconds")] = None,
) -> None:
    """Change a preset."""
    from pomoflow.core.presets import PresetRegistry

    with _store() as store:
        preset = PresetRegistry(store).update_preset(
            _identity(ctx), preset_id, name=name, focus_duration=focus, break_duration=break_
        )
    console.print(f"[green]Updated preset:[/green] {preset.name}")


@preset_app.command("remove")
def preset_remove(
    ctx: typer.Context,
    preset_id: Annotated[str, typer.Argument(help="Preset ID")],
) -> None:
    """Delete a preset."""
    from pomoflow.core.presets import PresetRegistry

    with _store() as store:
        PresetRegistry(store).delete_preset(_identity(ctx), preset_id)
    console.print(f"[green]Removed preset:[/green] {preset_id}")


# ── MCP commands ─────────────────────────────────────────────────


@mcp_app.command("serve")
def mcp_serve() -> None:
    """Start the MCP server (stdio transport)."""
    from pomoflow.mcp.server import mcp

    mcp.run()
