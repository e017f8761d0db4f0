"""Pomodoro engine: the focus/break/completed state machine.

The engine runs no timers. Durations are what the caller intends; the engine
records the instants at which the caller moves a pomodoro between phases::

    in_focus ──> in_break ──> completed
        └───────────────────────^
"""

import logging

from pomoflow.core.identity import Identity, require_identity
from pomoflow.core.sessions import SessionManager
from pomoflow.errors import (
    InvalidArgument,
    InvalidState,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    validating,
)
from pomoflow.storage.models import Pomodoro, PomodoroStatus, utcnow
from pomoflow.storage.store import FocusStore

logger = logging.getLogger(__name__)


class PomodoroEngine:
    """Creates pomodoros under sessions and drives their lifecycle."""

    def __init__(self, store: FocusStore):
        self.store = store
        self.sessions = SessionManager(store)

    def start_pomodoro(
        self,
        identity: Identity | None,
        session_id: str,
        focus_duration: int | None = None,
        break_duration: int | None = None,
        preset_id: str | None = None,
    ) -> Pomodoro:
        """Start a new pomodoro in the caller's session.

        Durations given explicitly win; any that are missing are taken from
        ``preset_id``. Every call creates a new pomodoro.
        """
        owner_id = require_identity(identity)

        if preset_id is not None and (focus_duration is None or break_duration is None):
            preset = self.store.get_preset(preset_id)
            if preset is None:
                raise NotFound(f"Preset {preset_id} not found")
            if preset.owner_id != owner_id:
                raise PermissionDenied(f"Preset {preset_id} belongs to another user")
            if focus_duration is None:
                focus_duration = preset.focus_duration
            if break_duration is None:
                break_duration = preset.break_duration

        if focus_duration is None or break_duration is None:
            raise InvalidArgument("focus_duration and break_duration are required without a preset")
        with validating():
            pomodoro = Pomodoro(
                owner_id=owner_id,
                session_id=session_id,
                focus_duration=focus_duration,
                break_duration=break_duration,
            )

        session = self.sessions.owned_session(owner_id, session_id)
        if session.is_ended:
            raise InvalidState(f"Session {session_id} has ended")

        self.store.insert_pomodoro(pomodoro)
        logger.info(
            "Started pomodoro %s in session %s (%ds focus, %ds break)",
            pomodoro.id,
            session.id,
            focus_duration,
            break_duration,
        )
        return pomodoro

    def get_pomodoro(self, identity: Identity | None, pomodoro_id: str) -> Pomodoro | None:
        if not identity:
            return None
        return self.store.get_pomodoro(pomodoro_id)

    def list_pomodoros(self, identity: Identity | None, session_id: str) -> list[Pomodoro]:
        """Pomodoros of a session, newest first. Not ownership-scoped."""
        if not identity:
            return []
        return self.store.pomodoros_by_session(session_id)

    def owned_pomodoro(self, identity: Identity, pomodoro_id: str) -> Pomodoro:
        """Load a pomodoro the caller owns, or raise."""
        pomodoro = self.store.get_pomodoro(pomodoro_id)
        if pomodoro is None:
            raise NotFound(f"Pomodoro {pomodoro_id} not found")
        if pomodoro.owner_id != identity:
            logger.warning("%s denied access to pomodoro %s", identity, pomodoro_id)
            raise PermissionDenied(f"Pomodoro {pomodoro_id} belongs to another user")
        return pomodoro

    def advance_to_break(self, identity: Identity | None, pomodoro_id: str) -> Pomodoro:
        """Move a pomodoro from focus to break."""
        return self._transition(identity, pomodoro_id, PomodoroStatus.IN_BREAK)

    def complete_pomodoro(self, identity: Identity | None, pomodoro_id: str) -> Pomodoro:
        """Finish a pomodoro from focus or break."""
        return self._transition(identity, pomodoro_id, PomodoroStatus.COMPLETED)

    def _transition(
        self, identity: Identity | None, pomodoro_id: str, target: PomodoroStatus
    ) -> Pomodoro:
        owner_id = require_identity(identity)
        pomodoro = self.owned_pomodoro(owner_id, pomodoro_id)
        current = pomodoro.status

        if not current.can_transition_to(target):
            raise InvalidTransition(
                f"Pomodoro {pomodoro_id} cannot go from {current.value} to {target.value}"
            )

        # Never stamp an instant earlier than the phase it closes.
        at = max(utcnow(), pomodoro.break_started_at or pomodoro.start_time)
        if not self.store.transition_pomodoro(pomodoro_id, current, target, at):
            latest = self.store.get_pomodoro(pomodoro_id)
            status = latest.status.value if latest else "missing"
            raise InvalidTransition(
                f"Pomodoro {pomodoro_id} changed to {status} before {target.value} could apply"
            )

        if target is PomodoroStatus.COMPLETED:
            update = {"status": target, "end_time": at}
        else:
            update = {"status": target, "break_started_at": at}
        logger.info("Pomodoro %s: %s -> %s", pomodoro_id, current.value, target.value)
        return pomodoro.model_copy(update=update)
