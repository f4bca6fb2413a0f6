"""SQLite-based note storage.

The editor's only contract with the note store is ``load`` and ``save`` of
a note's block array. ``SqliteNoteStore`` is the reference implementation:
one ``notes`` row per note, the block array stored as JSON in ``content``,
and a ``parent_id`` column for the note hierarchy that ``page`` transforms
extend.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Protocol, runtime_checkable
from uuid import uuid4

from .errors import NoteNotFoundError, PersistenceFailedError, Result
from .settings import settings

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


@runtime_checkable
class NoteStore(Protocol):
    """Load/save contract between the editor and wherever notes live."""

    def load(self, note_id: str) -> list[dict[str, Any]]:
        """Return the persisted block array of a note.

        Raises:
            NoteNotFoundError: If the note does not exist.
        """
        ...

    def save(self, note_id: str, title: str, blocks: list[dict[str, Any]]) -> Result[None]:
        """Persist a note's title and block array; never raises."""
        ...


@runtime_checkable
class NoteHierarchy(Protocol):
    """Creates child notes when a block is turned into a page."""

    def create_child_note(self, parent_id: str, title: str = "") -> str:
        """Create a note under ``parent_id`` and return its id."""
        ...


def _now_iso() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def _new_id(prefix: str) -> str:
    """Generate a new unique ID with prefix."""
    return f"{prefix}-{uuid4().hex[:12]}"


def _default_db_path() -> Path:
    """Get the path to the notes database."""
    base = Path(os.environ.get("FOLIO_DATA_DIR", settings.data_dir))
    return base / "notes" / "notes.db"


class SqliteNoteStore:
    """Note store backed by a local SQLite file.

    Connections are thread-local because autosave writes happen on timer
    threads while loads happen on the UI thread.
    """

    def __init__(self, db_path: Path | str | None = None) -> None:
        self._db_path = Path(db_path) if db_path else _default_db_path()
        self._local = threading.local()
        self._schema_ready = False
        self._schema_lock = threading.Lock()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _get_connection(self) -> sqlite3.Connection:
        """Get a thread-local database connection."""
        if getattr(self._local, "conn", None) is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            # WAL mode for better concurrent access
            conn.execute("PRAGMA journal_mode = WAL")
            self._local.conn = conn
        self._init_schema()
        return self._local.conn

    def close(self) -> None:
        """Close this thread's connection.

        Primarily used for testing to ensure clean state between tests.
        """
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def _init_schema(self) -> None:
        if self._schema_ready:
            return
        with self._schema_lock:
            if self._schema_ready:
                return
            conn = self._local.conn
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER NOT NULL
                );

                CREATE TABLE IF NOT EXISTS notes (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    content TEXT NOT NULL DEFAULT '[]',
                    parent_id TEXT REFERENCES notes(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_notes_parent ON notes(parent_id);
            """)
            row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
            if row is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            conn.commit()
            self._schema_ready = True

    # -------------------------------------------------------------------------
    # Note records
    # -------------------------------------------------------------------------

    def create_note(
        self,
        title: str = "",
        *,
        parent_id: str | None = None,
        content: list[dict[str, Any]] | None = None,
    ) -> str:
        """Create a note and return its id.

        Raises:
            NoteNotFoundError: If ``parent_id`` does not exist.
        """
        note_id = _new_id("note")
        now = _now_iso()

        with self._transaction() as conn:
            if parent_id is not None:
                exists = conn.execute("SELECT 1 FROM notes WHERE id = ?", (parent_id,)).fetchone()
                if exists is None:
                    raise NoteNotFoundError(parent_id)
            cursor = conn.execute(
                "SELECT COALESCE(MAX(position), -1) + 1 FROM notes WHERE parent_id IS ?",
                (parent_id,),
            )
            position = cursor.fetchone()[0]
            conn.execute("""
                INSERT INTO notes (id, title, content, parent_id, position, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (note_id, title, json.dumps(content or []), parent_id, position, now, now))

        logger.info("Created note %s (parent=%s)", note_id, parent_id)
        return note_id

    def get_note(self, note_id: str) -> dict[str, Any] | None:
        """Get a note record with its decoded content, or None."""
        conn = self._get_connection()
        row = conn.execute("""
            SELECT id, title, content, parent_id, position, created_at, updated_at
            FROM notes WHERE id = ?
        """, (note_id,)).fetchone()
        if row is None:
            return None
        return _row_to_note(row)

    def list_children(self, parent_id: str) -> list[dict[str, Any]]:
        """Child notes of a note, ordered by position."""
        conn = self._get_connection()
        rows = conn.execute("""
            SELECT id, title, content, parent_id, position, created_at, updated_at
            FROM notes WHERE parent_id = ?
            ORDER BY position ASC
        """, (parent_id,)).fetchall()
        return [_row_to_note(row) for row in rows]

    # -------------------------------------------------------------------------
    # NoteStore / NoteHierarchy
    # -------------------------------------------------------------------------

    def load(self, note_id: str) -> list[dict[str, Any]]:
        note = self.get_note(note_id)
        if note is None:
            raise NoteNotFoundError(note_id)
        return note["content"]

    def save(self, note_id: str, title: str, blocks: list[dict[str, Any]]) -> Result[None]:
        try:
            payload = json.dumps(blocks)
            with self._transaction() as conn:
                cursor = conn.execute(
                    "UPDATE notes SET title = ?, content = ?, updated_at = ? WHERE id = ?",
                    (title, payload, _now_iso(), note_id),
                )
                updated = cursor.rowcount
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.warning("Saving note %s failed: %s", note_id, e)
            return Result.fail(
                PersistenceFailedError(f"Could not save note: {e}", note_id=note_id, reason=str(e))
            )

        if updated == 0:
            return Result.fail(
                PersistenceFailedError("Note no longer exists", note_id=note_id, reason="not_found")
            )
        logger.debug("Saved note %s (%d top-level blocks)", note_id, len(blocks))
        return Result.ok()

    def create_child_note(self, parent_id: str, title: str = "") -> str:
        return self.create_note(title, parent_id=parent_id)


def _row_to_note(row: sqlite3.Row) -> dict[str, Any]:
    try:
        content = json.loads(row["content"] or "[]")
    except json.JSONDecodeError:
        logger.warning("Note %s has unreadable content; treating as empty", row["id"])
        content = []
    if not isinstance(content, list):
        content = []
    return {
        "id": row["id"],
        "title": row["title"],
        "content": content,
        "parent_id": row["parent_id"],
        "position": row["position"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }
