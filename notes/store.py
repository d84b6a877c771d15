"""
notes/store.py -- SQLAlchemy Core persistence for notes.

Pattern: Repository + Data Mapper, same as auth/store.py.

Ownership: every read and write is filtered by owner_id in the WHERE clause.
A note that exists but belongs to someone else is indistinguishable from a
note that does not exist -- update and delete both report "not found", so
callers cannot probe other users' note ids.

Usage:
    store = NoteStore()
    note = store.save(Note(owner_id=user_id, title="Groceries"))
    notes = store.list_by_owner(user_id)
    store.delete_owned(note.id, user_id)
    store.close()
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, Index, MetaData, String, Table, Text, select
from sqlalchemy.engine import Engine

from auth.errors import NotFoundError
from auth.store import create_store_engine, store_errors, to_iso
from core.config import get_settings
from notes.models import Note

logger = logging.getLogger("noteauth.notes")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_notes = Table(
    "notes",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("owner_id", String(32), nullable=False),
    Column("title", String(255), nullable=False),
    Column("content", Text, nullable=False, server_default=""),
    Column("color", BigInteger, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Index("ix_notes_owner_id", "owner_id"),
)


class NoteStore:
    """Repository for Note records, scoped by owner."""

    def __init__(self, db_url: str | None = None, timeout: float | None = None) -> None:
        self.engine: Engine = create_store_engine(db_url or get_settings().auth_db_url, timeout)
        with store_errors("create_schema"):
            _metadata.create_all(self.engine)

    def save(self, note: Note) -> Note:
        """Insert a new note, or update title/content/color of an existing one.

        An existing id is only updated when it belongs to note.owner_id.
        Raises NotFoundError if the id exists under a different owner.
        """
        with store_errors("save_note"), self.engine.begin() as conn:
            existing = conn.execute(
                select(_notes.c.owner_id, _notes.c.created_at).where(_notes.c.id == note.id)
            ).fetchone()
            if existing is None:
                created_at = to_iso(datetime.now(timezone.utc))
                conn.execute(
                    _notes.insert().values(
                        id=note.id,
                        owner_id=note.owner_id,
                        title=note.title,
                        content=note.content,
                        color=note.color,
                        created_at=created_at,
                    )
                )
            elif existing.owner_id != note.owner_id:
                logger.warning("User %s attempted to overwrite note %s owned by another user", note.owner_id, note.id)
                raise NotFoundError("Note not found.")
            else:
                created_at = existing.created_at
                conn.execute(
                    _notes.update()
                    .where((_notes.c.id == note.id) & (_notes.c.owner_id == note.owner_id))
                    .values(title=note.title, content=note.content, color=note.color)
                )
        return Note(
            id=note.id,
            owner_id=note.owner_id,
            title=note.title,
            content=note.content,
            color=note.color,
            created_at=created_at,
        )

    def list_by_owner(self, owner_id: str) -> list[Note]:
        """Return the owner's notes, newest first."""
        with store_errors("list_notes"), self.engine.connect() as conn:
            rows = conn.execute(
                _notes.select().where(_notes.c.owner_id == owner_id).order_by(_notes.c.created_at.desc())
            ).fetchall()
        return [_row_to_note(r) for r in rows]

    def delete_owned(self, note_id: str, owner_id: str) -> bool:
        """Delete a note. Both id and owner must match.

        Returns True if a note was deleted, False if not found or wrong owner.
        """
        with store_errors("delete_note"), self.engine.begin() as conn:
            result = conn.execute(_notes.delete().where((_notes.c.id == note_id) & (_notes.c.owner_id == owner_id)))
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_note(row) -> Note:
    return Note(
        id=row.id,
        owner_id=row.owner_id,
        title=row.title,
        content=row.content,
        color=row.color,
        created_at=row.created_at,
    )
