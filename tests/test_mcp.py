"""Tests for MCP server tools."""

import pytest

from pomoflow.errors import InvalidArgument, InvalidState, PermissionDenied, Unauthenticated
from pomoflow.storage.store import FocusStore


@pytest.fixture(autouse=True)
def mock_store(tmp_path, monkeypatch):
    """Replace the MCP server's store with a temp one."""
    import pomoflow.config as config

    monkeypatch.setattr(config, "POMOFLOW_DIR", tmp_path)
    monkeypatch.setenv(config.USER_ENV_VAR, "alice")
    store = FocusStore(db_path=tmp_path / "test.db")

    import pomoflow.mcp.server as server_mod

    monkeypatch.setattr(server_mod, "store", store)
    yield store
    store.close()


class TestMCPTools:
    def test_create_and_get_session(self):
        from pomoflow.mcp.server import create_session, get_session

        result = create_session(name="Writing")
        assert result["status"] == "created"
        assert result["name"] == "Writing"

        session = get_session(result["id"])
        assert isinstance(session, dict)
        assert session["owner_id"] == "alice"
        assert session["end_time"] is None

    def test_get_session_not_found(self):
        from pomoflow.mcp.server import get_session

        result = get_session("nonexistent")
        assert isinstance(result, str)
        assert "not found" in result

    def test_list_sessions_unauthenticated(self, monkeypatch):
        from pomoflow.mcp.server import create_session, list_sessions

        create_session(name="Writing")
        assert len(list_sessions()) == 1

        monkeypatch.delenv("POMOFLOW_USER")
        assert list_sessions() == []

    def test_create_session_unauthenticated(self, monkeypatch):
        from pomoflow.mcp.server import create_session

        monkeypatch.delenv("POMOFLOW_USER")
        with pytest.raises(Unauthenticated):
            create_session(name="Writing")

    def test_pomodoro_cycle(self):
        from pomoflow.mcp.server import (
            add_task,
            advance_to_break,
            complete_pomodoro,
            create_session,
            list_pomodoros,
            list_tasks,
            set_reflection,
            start_pomodoro,
            toggle_task,
        )

        session_id = create_session(name="Writing")["id"]
        started = start_pomodoro(session_id=session_id, focus_duration=1500, break_duration=300)
        assert started["status"] == "in_focus"
        pomodoro_id = started["id"]

        task = add_task(pomodoro_id=pomodoro_id, description="Outline chapter")
        assert toggle_task(task_id=task["id"])["completed"] is True

        assert advance_to_break(pomodoro_id=pomodoro_id)["status"] == "in_break"
        reflection = set_reflection(pomodoro_id=pomodoro_id, rating=4, description="Good")
        assert reflection["rating"] == 4

        done = complete_pomodoro(pomodoro_id=pomodoro_id)
        assert done["status"] == "completed"
        assert done["end_time"] is not None

        with pytest.raises(InvalidState):
            add_task(pomodoro_id=pomodoro_id, description="Too late")

        assert [p["id"] for p in list_pomodoros(session_id=session_id)] == [pomodoro_id]
        assert [t["description"] for t in list_tasks(pomodoro_id=pomodoro_id)] == ["Outline chapter"]

    def test_other_user_cannot_complete(self, monkeypatch):
        from pomoflow.mcp.server import complete_pomodoro, create_session, start_pomodoro

        session_id = create_session(name="Writing")["id"]
        pomodoro_id = start_pomodoro(session_id=session_id, focus_duration=1500, break_duration=300)["id"]

        monkeypatch.setenv("POMOFLOW_USER", "bob")
        with pytest.raises(PermissionDenied):
            complete_pomodoro(pomodoro_id=pomodoro_id)

    def test_presets(self, monkeypatch):
        from pomoflow.mcp.server import create_preset, list_presets, search_presets

        create_preset(name="Deep Work", focus_duration=2700, break_duration=600)
        results = search_presets(query="deep")
        assert len(results) == 1
        assert results[0]["name"] == "Deep Work"
        assert len(list_presets()) == 1

        monkeypatch.setenv("POMOFLOW_USER", "bob")
        assert search_presets(query="deep") == []

    def test_search_and_end_session(self):
        from pomoflow.mcp.server import create_session, end_session, search_sessions

        session_id = create_session(name="Thesis chapter two")["id"]
        create_session(name="Inbox zero")

        results = search_sessions(query="thesis")
        assert [s["id"] for s in results] == [session_id]

        ended = end_session(session_id=session_id)
        assert ended["end_time"] is not None

    def test_get_pomodoro_and_reflection(self):
        from pomoflow.mcp.server import (
            complete_pomodoro,
            create_session,
            get_pomodoro,
            get_reflection,
            set_reflection,
            start_pomodoro,
        )

        session_id = create_session(name="Writing")["id"]
        pomodoro_id = start_pomodoro(session_id=session_id, focus_duration=1500, break_duration=300)["id"]

        pomodoro = get_pomodoro(pomodoro_id)
        assert isinstance(pomodoro, dict)
        assert pomodoro["status"] == "in_focus"
        assert pomodoro["focus_duration"] == 1500

        assert "No reflection" in get_reflection(pomodoro_id)

        complete_pomodoro(pomodoro_id=pomodoro_id)
        set_reflection(pomodoro_id=pomodoro_id, rating=5)
        reflection = get_reflection(pomodoro_id)
        assert isinstance(reflection, dict)
        assert reflection["rating"] == 5

    def test_get_pomodoro_not_found(self):
        from pomoflow.mcp.server import get_pomodoro

        result = get_pomodoro("nonexistent")
        assert isinstance(result, str)
        assert "not found" in result

    def test_preset_get_update_delete(self, monkeypatch):
        from pomoflow.mcp.server import create_preset, delete_preset, get_preset, update_preset

        preset_id = create_preset(name="Classic", focus_duration=1500, break_duration=300)["id"]
        assert get_preset(preset_id)["name"] == "Classic"

        updated = update_preset(preset_id=preset_id, focus_duration=1800)
        assert updated["focus_duration"] == 1800
        assert updated["break_duration"] == 300

        with pytest.raises(InvalidArgument):
            update_preset(preset_id=preset_id, break_duration=-1)

        monkeypatch.setenv("POMOFLOW_USER", "bob")
        assert "not found" in get_preset(preset_id)
        with pytest.raises(PermissionDenied):
            delete_preset(preset_id=preset_id)

        monkeypatch.setenv("POMOFLOW_USER", "alice")
        assert delete_preset(preset_id=preset_id)["status"] == "deleted"
        assert "not found" in get_preset(preset_id)
