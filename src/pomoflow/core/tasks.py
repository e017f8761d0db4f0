"""Tasks and reflections attached to a pomodoro."""

import logging

from pomoflow.core.identity import Identity, require_identity
from pomoflow.core.pomodoros import PomodoroEngine
from pomoflow.errors import InvalidState, NotFound, validating
from pomoflow.storage.models import Pomodoro, PomodoroStatus, Reflection, Task
from pomoflow.storage.store import FocusStore

logger = logging.getLogger(__name__)

# Phases in which a reflection may be written
REFLECTABLE = frozenset({PomodoroStatus.IN_BREAK, PomodoroStatus.COMPLETED})


class TaskBoard:
    """Tasks and the reflection of each pomodoro.

    Tasks may be added or toggled until their pomodoro completes. A
    reflection can be written once the pomodoro leaves focus.
    """

    def __init__(self, store: FocusStore):
        self.store = store
        self.engine = PomodoroEngine(store)

    def _open_pomodoro(self, owner_id: Identity, pomodoro_id: str) -> Pomodoro:
        pomodoro = self.engine.owned_pomodoro(owner_id, pomodoro_id)
        if pomodoro.status is PomodoroStatus.COMPLETED:
            raise InvalidState(f"Pomodoro {pomodoro_id} is completed; its tasks are frozen")
        return pomodoro

    def add_task(self, identity: Identity | None, pomodoro_id: str, description: str) -> Task:
        owner_id = require_identity(identity)
        with validating():
            task = Task(pomodoro_id=pomodoro_id, description=description)
        self._open_pomodoro(owner_id, pomodoro_id)

        if not self.store.insert_task(task):
            raise InvalidState(f"Pomodoro {pomodoro_id} is completed; its tasks are frozen")
        logger.info("Added task %s to pomodoro %s", task.id, pomodoro_id)
        return task

    def toggle_task(self, identity: Identity | None, task_id: str) -> Task:
        owner_id = require_identity(identity)
        task = self.store.get_task(task_id)
        if task is None:
            raise NotFound(f"Task {task_id} not found")
        self._open_pomodoro(owner_id, task.pomodoro_id)

        if not self.store.toggle_task(task_id):
            raise InvalidState(f"Pomodoro {task.pomodoro_id} is completed; its tasks are frozen")
        logger.debug("Toggled task %s", task_id)
        return task.model_copy(update={"completed": not task.completed})

    def list_tasks(self, identity: Identity | None, pomodoro_id: str) -> list[Task]:
        """Tasks in the order they were added."""
        if not identity:
            return []
        return self.store.tasks_by_pomodoro(pomodoro_id)

    def set_reflection(
        self,
        identity: Identity | None,
        pomodoro_id: str,
        rating: int | None = None,
        description: str | None = None,
    ) -> Reflection:
        """Create or replace the single reflection of a pomodoro."""
        owner_id = require_identity(identity)
        with validating():
            reflection = Reflection(pomodoro_id=pomodoro_id, rating=rating, description=description)
        pomodoro = self.engine.owned_pomodoro(owner_id, pomodoro_id)
        if pomodoro.status not in REFLECTABLE:
            raise InvalidState(f"Pomodoro {pomodoro_id} is still in focus")

        reflection = self.store.upsert_reflection(reflection)
        logger.info("Saved reflection %s for pomodoro %s", reflection.id, pomodoro_id)
        return reflection

    def get_reflection(self, identity: Identity | None, pomodoro_id: str) -> Reflection | None:
        if not identity:
            return None
        return self.store.reflection_by_pomodoro(pomodoro_id)
