"""Record models for sessions, pomodoros, tasks, reflections and presets."""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated
from uuid import uuid4

from pydantic import BaseModel, Field, StringConstraints

from pomoflow import config

# Non-empty once surrounding whitespace is removed
Text = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

# Whole seconds; bools and floats are refused
FocusSeconds = Annotated[int, Field(gt=0, strict=True)]
BreakSeconds = Annotated[int, Field(ge=0, strict=True)]
Rating = Annotated[int, Field(ge=config.RATING_MIN, le=config.RATING_MAX, strict=True)]


def new_id() -> str:
    return uuid4().hex[:12]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PomodoroStatus(str, Enum):
    """Lifecycle phase of a pomodoro."""

    IN_FOCUS = "in_focus"
    IN_BREAK = "in_break"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return not TRANSITIONS[self]

    def can_transition_to(self, target: "PomodoroStatus") -> bool:
        return target in TRANSITIONS[self]


# Every status must appear as a key; the engine looks transitions up here.
TRANSITIONS: dict[PomodoroStatus, frozenset[PomodoroStatus]] = {
    PomodoroStatus.IN_FOCUS: frozenset({PomodoroStatus.IN_BREAK, PomodoroStatus.COMPLETED}),
    PomodoroStatus.IN_BREAK: frozenset({PomodoroStatus.COMPLETED}),
    PomodoroStatus.COMPLETED: frozenset(),
}


class Session(BaseModel):
    """A span of focused work holding a history of pomodoros."""

    id: str = Field(default_factory=new_id)
    owner_id: Text = Field(description="Identity that owns this session")
    name: Text = Field(description="Short name for the session (e.g. Writing)")
    start_time: datetime = Field(default_factory=utcnow)
    end_time: datetime | None = None

    @property
    def is_ended(self) -> bool:
        return self.end_time is not None


class Pomodoro(BaseModel):
    """One focus/break cycle inside a session.

    ``owner_id`` is copied from the parent session at creation and never
    changes, so ownership checks do not need the session.
    """

    id: str = Field(default_factory=new_id)
    owner_id: Text
    session_id: str
    focus_duration: FocusSeconds = Field(description="Planned focus length in seconds")
    break_duration: BreakSeconds = Field(description="Planned break length in seconds")
    status: PomodoroStatus = PomodoroStatus.IN_FOCUS
    start_time: datetime = Field(default_factory=utcnow)
    break_started_at: datetime | None = None
    end_time: datetime | None = None

    @property
    def focus_seconds(self) -> float | None:
        """Actual focus time, once the focus phase has ended."""
        focus_end = self.break_started_at or self.end_time
        if focus_end is None:
            return None
        return (focus_end - self.start_time).total_seconds()

    @property
    def break_seconds(self) -> float | None:
        """Actual break time, once the break has ended. 0 if it was skipped."""
        if self.end_time is None:
            return None
        if self.break_started_at is None:
            return 0.0
        return (self.end_time - self.break_started_at).total_seconds()


class Task(BaseModel):
    """A piece of intended work logged against a pomodoro."""

    id: str = Field(default_factory=new_id)
    pomodoro_id: str
    description: Text
    completed: bool = False


class Reflection(BaseModel):
    """Post-cycle rating and note. At most one per pomodoro."""

    id: str = Field(default_factory=new_id)
    pomodoro_id: str
    rating: Rating | None = None
    description: Text | None = None


class Preset(BaseModel):
    """A named, reusable pair of focus and break durations."""

    id: str = Field(default_factory=new_id)
    owner_id: Text
    name: Text
    focus_duration: FocusSeconds
    break_duration: BreakSeconds
    created_at: datetime = Field(default_factory=utcnow)
