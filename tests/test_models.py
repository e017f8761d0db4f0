"""Tests for record model constraints."""

import pytest
from pydantic import ValidationError

from pomoflow.errors import InvalidArgument, validating
from pomoflow.storage.models import Pomodoro, Preset, Reflection, Session, Task


class TestRecordConstraints:
    def test_session_name_required(self):
        with pytest.raises(ValidationError):
            Session(owner_id="alice", name="")
        with pytest.raises(ValidationError):
            Session(owner_id="alice", name="   ")

    def test_session_name_stripped(self):
        assert Session(owner_id="alice", name="  Writing ").name == "Writing"

    def test_blank_owner_refused(self):
        with pytest.raises(ValidationError):
            Session(owner_id="  ", name="Writing")

    @pytest.mark.parametrize(
        "focus, brk",
        [(0, 300), (-1, 300), (1500, -5), (1500.0, 300), (True, 300), ("1500", 300)],
    )
    def test_pomodoro_durations(self, focus, brk):
        with pytest.raises(ValidationError):
            Pomodoro(owner_id="alice", session_id="s1", focus_duration=focus, break_duration=brk)

    def test_pomodoro_zero_break(self):
        pomodoro = Pomodoro(owner_id="alice", session_id="s1", focus_duration=1, break_duration=0)
        assert pomodoro.break_duration == 0

    @pytest.mark.parametrize("rating", [0, 6, 99, -1, True, 3.0])
    def test_reflection_rating_refused(self, rating):
        with pytest.raises(ValidationError):
            Reflection(pomodoro_id="p1", rating=rating)

    @pytest.mark.parametrize("rating", [None, 1, 3, 5])
    def test_reflection_rating_accepted(self, rating):
        assert Reflection(pomodoro_id="p1", rating=rating).rating == rating

    def test_reflection_blank_note_refused(self):
        with pytest.raises(ValidationError):
            Reflection(pomodoro_id="p1", description=" ")

    def test_task_description_required(self):
        with pytest.raises(ValidationError):
            Task(pomodoro_id="p1", description="")

    def test_preset_constraints(self):
        with pytest.raises(ValidationError):
            Preset(owner_id="alice", name="", focus_duration=1500, break_duration=300)
        with pytest.raises(ValidationError):
            Preset(owner_id="alice", name="Classic", focus_duration=-1, break_duration=300)


class TestValidating:
    def test_converts_to_invalid_argument(self):
        with pytest.raises(InvalidArgument) as exc_info:
            with validating():
                Preset(owner_id="alice", name="Classic", focus_duration=0, break_duration=300)
        assert "focus_duration" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, ValidationError)

    def test_passes_other_errors_through(self):
        with pytest.raises(KeyError):
            with validating():
                raise KeyError("x")
