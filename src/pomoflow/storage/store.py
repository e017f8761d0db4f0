"""SQLite storage with secondary indexes and FTS5 name search."""

import logging
import re
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from pomoflow import config
from pomoflow.storage.models import (
    Pomodoro,
    PomodoroStatus,
    Preset,
    Reflection,
    Session,
    Task,
)

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    name TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT
);

CREATE TABLE IF NOT EXISTS pomodoros (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    session_id TEXT NOT NULL REFERENCES sessions(id),
    focus_duration INTEGER NOT NULL,
    break_duration INTEGER NOT NULL,
    status TEXT NOT NULL,
    start_time TEXT NOT NULL,
    break_started_at TEXT,
    end_time TEXT
);

CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    pomodoro_id TEXT NOT NULL REFERENCES pomodoros(id),
    description TEXT NOT NULL,
    completed INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS reflections (
    id TEXT PRIMARY KEY,
    pomodoro_id TEXT NOT NULL REFERENCES pomodoros(id),
    rating INTEGER,
    description TEXT
);

CREATE TABLE IF NOT EXISTS presets (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    name TEXT NOT NULL,
    focus_duration INTEGER NOT NULL,
    break_duration INTEGER NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_owner ON sessions(owner_id, start_time);
CREATE INDEX IF NOT EXISTS idx_pomodoros_session ON pomodoros(session_id, start_time);
CREATE INDEX IF NOT EXISTS idx_pomodoros_owner ON pomodoros(owner_id);
CREATE INDEX IF NOT EXISTS idx_tasks_pomodoro ON tasks(pomodoro_id);
CREATE UNIQUE INDEX IF NOT EXISTS idx_reflections_pomodoro ON reflections(pomodoro_id);
CREATE INDEX IF NOT EXISTS idx_presets_owner ON presets(owner_id, created_at);

CREATE VIRTUAL TABLE IF NOT EXISTS sessions_fts USING fts5(
    id UNINDEXED,
    name,
    content=sessions,
    content_rowid=rowid
);

CREATE TRIGGER IF NOT EXISTS sessions_ai AFTER INSERT ON sessions BEGIN
    INSERT INTO sessions_fts(rowid, id, name) VALUES (new.rowid, new.id, new.name);
END;

CREATE TRIGGER IF NOT EXISTS sessions_ad AFTER DELETE ON sessions BEGIN
    INSERT INTO sessions_fts(sessions_fts, rowid, id, name)
    VALUES ('delete', old.rowid, old.id, old.name);
END;

CREATE TRIGGER IF NOT EXISTS sessions_au AFTER UPDATE OF name ON sessions BEGIN
    INSERT INTO sessions_fts(sessions_fts, rowid, id, name)
    VALUES ('delete', old.rowid, old.id, old.name);
    INSERT INTO sessions_fts(rowid, id, name) VALUES (new.rowid, new.id, new.name);
END;

CREATE VIRTUAL TABLE IF NOT EXISTS presets_fts USING fts5(
    id UNINDEXED,
    name,
    content=presets,
    content_rowid=rowid
);

CREATE TRIGGER IF NOT EXISTS presets_ai AFTER INSERT ON presets BEGIN
    INSERT INTO presets_fts(rowid, id, name) VALUES (new.rowid, new.id, new.name);
END;

CREATE TRIGGER IF NOT EXISTS presets_ad AFTER DELETE ON presets BEGIN
    INSERT INTO presets_fts(presets_fts, rowid, id, name)
    VALUES ('delete', old.rowid, old.id, old.name);
END;

CREATE TRIGGER IF NOT EXISTS presets_au AFTER UPDATE OF name ON presets BEGIN
    INSERT INTO presets_fts(presets_fts, rowid, id, name)
    VALUES ('delete', old.rowid, old.id, old.name);
    INSERT INTO presets_fts(rowid, id, name) VALUES (new.rowid, new.id, new.name);
END;
"""

_WORD = re.compile(r"\w+", re.UNICODE)


def _ts(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def match_expression(query: str) -> str | None:
    """Turn free text into an FTS5 query of quoted prefix terms.

    Returns None when the text holds no searchable words.
    """
    terms = _WORD.findall(query or "")
    if not terms:
        return None
    return " ".join(f'"{term}"*' for term in terms)


class FocusStore:
    """SQLite-backed storage for every Pomoflow record.

    Each write runs in a single transaction, so the secondary indexes and the
    FTS tables never disagree with the primary rows.
    """

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or config.DB_PATH
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            config.ensure_dirs()
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(SCHEMA)
            logger.debug("Opened store at %s", self.db_path)
        return self._conn

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    # ── Row mapping ──────────────────────────────────────────────

    def _row_to_session(self, row: sqlite3.Row) -> Session:
        return Session(
            id=row["id"],
            owner_id=row["owner_id"],
            name=row["name"],
            start_time=_dt(row["start_time"]),
            end_time=_dt(row["end_time"]),
        )

    def _row_to_pomodoro(self, row: sqlite3.Row) -> Pomodoro:
        return Pomodoro(
            id=row["id"],
            owner_id=row["owner_id"],
            session_id=row["session_id"],
            focus_duration=row["focus_duration"],
            break_duration=row["break_duration"],
            status=PomodoroStatus(row["status"]),
            start_time=_dt(row["start_time"]),
            break_started_at=_dt(row["break_started_at"]),
            end_time=_dt(row["end_time"]),
        )

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            pomodoro_id=row["pomodoro_id"],
            description=row["description"],
            completed=bool(row["completed"]),
        )

    def _row_to_reflection(self, row: sqlite3.Row) -> Reflection:
        return Reflection(
            id=row["id"],
            pomodoro_id=row["pomodoro_id"],
            rating=row["rating"],
            description=row["description"],
        )

    def _row_to_preset(self, row: sqlite3.Row) -> Preset:
        return Preset(
            id=row["id"],
            owner_id=row["owner_id"],
            name=row["name"],
            focus_duration=row["focus_duration"],
            break_duration=row["break_duration"],
            created_at=_dt(row["created_at"]),
        )

    # ── Sessions ─────────────────────────────────────────────────

    def insert_session(self, session: Session) -> Session:
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT INTO sessions (id, owner_id, name, start_time, end_time) VALUES (?, ?, ?, ?, ?)",
                (
                    session.id,
                    session.owner_id,
                    session.name,
                    _ts(session.start_time),
                    _ts(session.end_time),
                ),
            )
        return session

    def get_session(self, session_id: str) -> Session | None:
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return self._row_to_session(row) if row else None

    def sessions_by_owner(self, owner_id: str, limit: int | None = None) -> list[Session]:
        """Sessions owned by ``owner_id``, newest first."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM sessions WHERE owner_id = ? ORDER BY start_time DESC, rowid DESC LIMIT ?",
            (owner_id, -1 if limit is None else limit),
        ).fetchall()
        return [self._row_to_session(r) for r in rows]

    def search_sessions(self, owner_id: str, query: str, limit: int | None = None) -> list[Session]:
        """Full-text search over session names, restricted to one owner."""
        expression = match_expression(query)
        if expression is None:
            return []
        conn = self._get_conn()
        rows = conn.execute(
            """
            SELECT s.* FROM sessions s
            JOIN (
                SELECT rowid, bm25(sessions_fts) AS score FROM sessions_fts WHERE sessions_fts MATCH ?
            ) m ON s.rowid = m.rowid
            WHERE s.owner_id = ?
            ORDER BY m.score, s.start_time DESC, s.rowid DESC
            LIMIT ?
            """,
            (expression, owner_id, -1 if limit is None else limit),
        ).fetchall()
        return [self._row_to_session(r) for r in rows]

    def end_session(self, session_id: str, end_time: datetime) -> bool:
        """Stamp ``end_time`` if the session is still open."""
        conn = self._get_conn()
        with conn:
            cursor = conn.execute(
                "UPDATE sessions SET end_time = ? WHERE id = ? AND end_time IS NULL",
                (_ts(end_time), session_id),
            )
        return cursor.rowcount > 0

    # ── Pomodoros ────────────────────────────────────────────────

    def insert_pomodoro(self, pomodoro: Pomodoro) -> Pomodoro:
        conn = self._get_conn()
        with conn:
            conn.execute(
                """INSERT INTO pomodoros
                (id, owner_id, session_id, focus_duration, break_duration, status,
                 start_time, break_started_at, end_time)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    pomodoro.id,
                    pomodoro.owner_id,
                    pomodoro.session_id,
                    pomodoro.focus_duration,
                    pomodoro.break_duration,
                    pomodoro.status.value,
                    _ts(pomodoro.start_time),
                    _ts(pomodoro.break_started_at),
                    _ts(pomodoro.end_time),
                ),
            )
        return pomodoro

    def get_pomodoro(self, pomodoro_id: str) -> Pomodoro | None:
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM pomodoros WHERE id = ?", (pomodoro_id,)).fetchone()
        return self._row_to_pomodoro(row) if row else None

    def pomodoros_by_session(self, session_id: str, limit: int | None = None) -> list[Pomodoro]:
        """Pomodoros of a session, newest first."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM pomodoros WHERE session_id = ? ORDER BY start_time DESC, rowid DESC LIMIT ?",
            (session_id, -1 if limit is None else limit),
        ).fetchall()
        return [self._row_to_pomodoro(r) for r in rows]

    def transition_pomodoro(
        self,
        pomodoro_id: str,
        from_status: PomodoroStatus,
        to_status: PomodoroStatus,
        at: datetime,
    ) -> bool:
        """Move a pomodoro from ``from_status`` to ``to_status``.

        The update only applies while the stored status still equals
        ``from_status``; returns False if another writer got there first.
        """
        column = "end_time" if to_status is PomodoroStatus.COMPLETED else "break_started_at"
        conn = self._get_conn()
        with conn:
            cursor = conn.execute(
                f"UPDATE pomodoros SET status = ?, {column} = ? WHERE id = ? AND status = ?",
                (to_status.value, _ts(at), pomodoro_id, from_status.value),
            )
        return cursor.rowcount > 0

    # ── Tasks ────────────────────────────────────────────────────

    def insert_task(self, task: Task) -> bool:
        """Insert a task unless its pomodoro has completed."""
        conn = self._get_conn()
        with conn:
            cursor = conn.execute(
                """INSERT INTO tasks (id, pomodoro_id, description, completed)
                SELECT ?, ?, ?, ?
                WHERE EXISTS (SELECT 1 FROM pomodoros WHERE id = ? AND status != ?)""",
                (
                    task.id,
                    task.pomodoro_id,
                    task.description,
                    int(task.completed),
                    task.pomodoro_id,
                    PomodoroStatus.COMPLETED.value,
                ),
            )
        return cursor.rowcount > 0

    def get_task(self, task_id: str) -> Task | None:
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return self._row_to_task(row) if row else None

    def tasks_by_pomodoro(self, pomodoro_id: str) -> list[Task]:
        """Tasks of a pomodoro in insertion order."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM tasks WHERE pomodoro_id = ? ORDER BY rowid ASC",
            (pomodoro_id,),
        ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def toggle_task(self, task_id: str) -> bool:
        """Flip a task's completed flag unless its pomodoro has completed."""
        conn = self._get_conn()
        with conn:
            cursor = conn.execute(
                """UPDATE tasks SET completed = 1 - completed
                WHERE id = ? AND pomodoro_id IN (SELECT id FROM pomodoros WHERE status != ?)""",
                (task_id, PomodoroStatus.COMPLETED.value),
            )
        return cursor.rowcount > 0

    # ── Reflections ──────────────────────────────────────────────

    def upsert_reflection(self, reflection: Reflection) -> Reflection:
        """Create or replace the reflection of a pomodoro.

        An existing reflection keeps its id; only rating and description change.
        """
        conn = self._get_conn()
        with conn:
            conn.execute(
                """INSERT INTO reflections (id, pomodoro_id, rating, description)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(pomodoro_id) DO UPDATE SET
                    rating = excluded.rating,
                    description = excluded.description""",
                (
                    reflection.id,
                    reflection.pomodoro_id,
                    reflection.rating,
                    reflection.description,
                ),
            )
        return self.reflection_by_pomodoro(reflection.pomodoro_id) or reflection

    def reflection_by_pomodoro(self, pomodoro_id: str) -> Reflection | None:
        conn = self._get_conn()
        row = conn.execute(
            "SELECT * FROM reflections WHERE pomodoro_id = ?", (pomodoro_id,)
        ).fetchone()
        return self._row_to_reflection(row) if row else None

    # ── Presets ──────────────────────────────────────────────────

    def insert_preset(self, preset: Preset) -> Preset:
        conn = self._get_conn()
        with conn:
            conn.execute(
                """INSERT INTO presets (id, owner_id, name, focus_duration, break_duration, created_at)
                VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    preset.id,
                    preset.owner_id,
                    preset.name,
                    preset.focus_duration,
                    preset.break_duration,
                    _ts(preset.created_at),
                ),
            )
        return preset

    def get_preset(self, preset_id: str) -> Preset | None:
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM presets WHERE id = ?", (preset_id,)).fetchone()
        return self._row_to_preset(row) if row else None

    def presets_by_owner(self, owner_id: str) -> list[Preset]:
        """Presets owned by ``owner_id``, newest first."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM presets WHERE owner_id = ? ORDER BY created_at DESC, rowid DESC",
            (owner_id,),
        ).fetchall()
        return [self._row_to_preset(r) for r in rows]

    def search_presets(self, owner_id: str, query: str, limit: int | None = None) -> list[Preset]:
        """Full-text search over preset names, restricted to one owner."""
        expression = match_expression(query)
        if expression is None:
            return []
        conn = self._get_conn()
        rows = conn.execute(
            """
            SELECT p.* FROM presets p
            JOIN (
                SELECT rowid, bm25(presets_fts) AS score FROM presets_fts WHERE presets_fts MATCH ?
            ) m ON p.rowid = m.rowid
            WHERE p.owner_id = ?
            ORDER BY m.score, p.created_at DESC, p.rowid DESC
            LIMIT ?
            """,
            (expression, owner_id, -1 if limit is None else limit),
        ).fetchall()
        return [self._row_to_preset(r) for r in rows]

    def update_preset(self, preset: Preset) -> Preset:
        conn = self._get_conn()
        with conn:
            conn.execute(
                "UPDATE presets SET name = ?, focus_duration = ?, break_duration = ? WHERE id = ?",
                (preset.name, preset.focus_duration, preset.break_duration, preset.id),
            )
        return preset

    def delete_preset(self, preset_id: str) -> bool:
        conn = self._get_conn()
        with conn:
            cursor = conn.execute("DELETE FROM presets WHERE id = ?", (preset_id,))
        return cursor.rowcount > 0
