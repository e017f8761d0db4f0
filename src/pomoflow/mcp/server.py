"""MCP server exposing sessions, pomodoros, tasks and presets as tools.

The caller's identity comes from the ``POMOFLOW_USER`` environment variable
of the server process.
"""

from mcp.server.fastmcp import FastMCP

from pomoflow import config
from pomoflow.core.identity import Identity, RequestContext, resolve_identity
from pomoflow.core.pomodoros import PomodoroEngine
from pomoflow.core.presets import PresetRegistry
from pomoflow.core.sessions import SessionManager
from pomoflow.core.tasks import TaskBoard
from pomoflow.storage.store import FocusStore

mcp = FastMCP("pomoflow")
store = FocusStore()


def _identity() -> Identity | None:
    return resolve_identity(RequestContext(user_id=config.current_user()))


# ── Sessions ─────────────────────────────────────────────────────


@mcp.tool()
def create_session(name: str) -> dict:
    """Start a new focus session.

    Args:
        name: Short name for the session (e.g. "Writing", "Thesis chapter 2")
    """
    session = SessionManager(store).create_session(_identity(), name)
    return {"id": session.id, "status": "created", "name": session.name}


@mcp.tool()
def list_sessions(limit: int = 20) -> list[dict]:
    """List your sessions, newest first.

    Args:
        limit: Maximum results to return (default 20)
    """
    sessions = SessionManager(store).list_sessions(_identity(), limit=limit)
    return [s.model_dump(mode="json") for s in sessions]


@mcp.tool()
def get_session(session_id: str) -> dict | str:
    """Get a session by ID.

    Args:
        session_id: The session ID to retrieve
    """
    session = SessionManager(store).get_session(_identity(), session_id)
    if not session:
        return f"Session {session_id} not found"
    return session.model_dump(mode="json")


@mcp.tool()
def search_sessions(query: str, limit: int = 10) -> list[dict]:
    """Search your sessions by name.

    Args:
        query: Words to look for in session names (prefix matches count)
        limit: Maximum results to return (default 10)
    """
    sessions = SessionManager(store).search_sessions(_identity(), query, limit=limit)
    return [s.model_dump(mode="json") for s in sessions]


@mcp.tool()
def end_session(session_id: str) -> dict:
    """Mark one of your sessions as finished.

    Args:
        session_id: The session to end
    """
    return SessionManager(store).end_session(_identity(), session_id).model_dump(mode="json")


# ── Pomodoros ────────────────────────────────────────────────────


@mcp.tool()
def start_pomodoro(
    session_id: str,
    focus_duration: int | None = None,
    break_duration: int | None = None,
    preset_id: str | None = None,
) -> dict:
    """Start a pomodoro in one of your sessions. It begins in focus.

    Each call creates a new pomodoro, so do not retry on success.

    Args:
        session_id: Session to start the pomodoro in
        focus_duration: Planned focus time in seconds (e.g. 1500)
        break_duration: Planned break time in seconds (e.g. 300, 0 for none)
        preset_id: Optional preset supplying any durations left out
    """
    pomodoro = PomodoroEngine(store).start_pomodoro(
        _identity(),
        session_id,
        focus_duration=focus_duration,
        break_duration=break_duration,
        preset_id=preset_id,
    )
    return {"id": pomodoro.id, "status": pomodoro.status.value, "session_id": pomodoro.session_id}


@mcp.tool()
def advance_to_break(pomodoro_id: str) -> dict:
    """Move a pomodoro from focus into its break.

    Args:
        pomodoro_id: A pomodoro currently in focus
    """
    return PomodoroEngine(store).advance_to_break(_identity(), pomodoro_id).model_dump(mode="json")


@mcp.tool()
def complete_pomodoro(pomodoro_id: str) -> dict:
    """Finish a pomodoro, from focus (skipping the break) or from break.

    Args:
        pomodoro_id: The pomodoro to complete
    """
    return PomodoroEngine(store).complete_pomodoro(_identity(), pomodoro_id).model_dump(mode="json")


@mcp.tool()
def get_pomodoro(pomodoro_id: str) -> dict | str:
    """Get a pomodoro by ID, including its status and phase instants.

    Args:
        pomodoro_id: The pomodoro ID to retrieve
    """
    pomodoro = PomodoroEngine(store).get_pomodoro(_identity(), pomodoro_id)
    if not pomodoro:
        return f"Pomodoro {pomodoro_id} not found"
    return pomodoro.model_dump(mode="json")


@mcp.tool()
def list_pomodoros(session_id: str) -> list[dict]:
    """List the pomodoros of a session, newest first.

    Args:
        session_id: The session whose pomodoros to list
    """
    pomodoros = PomodoroEngine(store).list_pomodoros(_identity(), session_id)
    return [p.model_dump(mode="json") for p in pomodoros]


# ── Tasks and reflections ────────────────────────────────────────


@mcp.tool()
def add_task(pomodoro_id: str, description: str) -> dict:
    """Log a task against a pomodoro that has not completed.

    Args:
        pomodoro_id: The pomodoro to attach the task to
        description: What you intend to do
    """
    return TaskBoard(store).add_task(_identity(), pomodoro_id, description).model_dump(mode="json")


@mcp.tool()
def toggle_task(task_id: str) -> dict:
    """Flip a task between done and not done.

    Args:
        task_id: The task to toggle
    """
    return TaskBoard(store).toggle_task(_identity(), task_id).model_dump(mode="json")


@mcp.tool()
def list_tasks(pomodoro_id: str) -> list[dict]:
    """List a pomodoro's tasks in the order they were added.

    Args:
        pomodoro_id: The pomodoro whose tasks to list
    """
    return [t.model_dump(mode="json") for t in TaskBoard(store).list_tasks(_identity(), pomodoro_id)]


@mcp.tool()
def set_reflection(
    pomodoro_id: str,
    rating: int | None = None,
    description: str | None = None,
) -> dict:
    """Write or replace the reflection for a pomodoro in break or completed.

    Args:
        pomodoro_id: The pomodoro to reflect on
        rating: Optional rating from 1 to 5
        description: Optional free-text note
    """
    reflection = TaskBoard(store).set_reflection(
        _identity(), pomodoro_id, rating=rating, description=description
    )
    return reflection.model_dump(mode="json")


@mcp.tool()
def get_reflection(pomodoro_id: str) -> dict | str:
    """Get the reflection written for a pomodoro.

    Args:
        pomodoro_id: The pomodoro whose reflection to retrieve
    """
    reflection = TaskBoard(store).get_reflection(_identity(), pomodoro_id)
    if not reflection:
        return f"No reflection for pomodoro {pomodoro_id}"
    return reflection.model_dump(mode="json")


# ── Presets ──────────────────────────────────────────────────────


@mcp.tool()
def create_preset(name: str, focus_duration: int, break_duration: int) -> dict:
    """Save a reusable pair of durations.

    Args:
        name: Preset name (e.g. "Deep Work")
        focus_duration: Focus time in seconds
        break_duration: Break time in seconds
    """
    preset = PresetRegistry(store).create_preset(_identity(), name, focus_duration, break_duration)
    return {"id": preset.id, "status": "created", "name": preset.name}


@mcp.tool()
def list_presets() -> list[dict]:
    """List your presets."""
    return [p.model_dump(mode="json") for p in PresetRegistry(store).list_presets(_identity())]


@mcp.tool()
def search_presets(query: str) -> list[dict]:
    """Search your presets by name, best matches first.

    Args:
        query: Words to look for in preset names
    """
    presets = PresetRegistry(store).search_presets_by_name(_identity(), query)
    return [p.model_dump(mode="json") for p in presets]


@mcp.tool()
def get_preset(preset_id: str) -> dict | str:
    """Get one of your presets by ID.

    Args:
        preset_id: The preset ID to retrieve
    """
    preset = PresetRegistry(store).get_preset(_identity(), preset_id)
    if not preset:
        return f"Preset {preset_id} not found"
    return preset.model_dump(mode="json")


@mcp.tool()
def update_preset(
    preset_id: str,
    name: str | None = None,
    focus_duration: int | None = None,
    break_duration: int | None = None,
) -> dict:
    """Change the name or durations of one of your presets.

    Args:
        preset_id: The preset to change
        name: Optional new name
        focus_duration: Optional new focus time in seconds
        break_duration: Optional new break time in seconds
    """
    preset = PresetRegistry(store).update_preset(
        _identity(),
        preset_id,
        name=name,
        focus_duration=focus_duration,
        break_duration=break_duration,
    )
    return preset.model_dump(mode="json")


@mcp.tool()
def delete_preset(preset_id: str) -> dict:
    """Delete one of your presets.

    Args:
        preset_id: The preset to delete
    """
    PresetRegistry(store).delete_preset(_identity(), preset_id)
    return {"id": preset_id, "status": "deleted"}
