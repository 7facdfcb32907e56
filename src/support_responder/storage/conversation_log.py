"""Append-only per-session transcript."""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from support_responder.types import ChatMessage, Role


class ConversationLog(Protocol):
    """Operations the responder needs from transcript storage."""

    def ensure_session(self, session_id: str) -> None:
        """Create the session row if it does not exist."""

    def append_message(self, session_id: str, role: Role, content: str) -> None:
        """Append one message to the session transcript."""

    def append_messages(
        self, session_id: str, entries: Sequence[tuple[Role, str]]
    ) -> None:
        """Ensure the session and append all entries atomically."""

    def recent_messages(self, session_id: str, limit: int) -> list[ChatMessage]:
        """Return up to `limit` messages, newest first."""

    def all_messages(self, session_id: str) -> list[ChatMessage]:
        """Return the full transcript, oldest first."""


class SqliteConversationLog:
    """Transcript stored in the `sessions` and `messages` tables.

    Messages are ordered by their auto-increment id, so two messages written in
    the same second still come back in insertion order.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_file = Path(db_path)

    def ensure_session(self, session_id: str) -> None:
        with sqlite3.connect(self._db_file) as conn:
            conn.execute("INSERT OR IGNORE INTO sessions(id) VALUES(?)", (session_id,))
            conn.commit()

    def append_message(self, session_id: str, role: Role, content: str) -> None:
        with sqlite3.connect(self._db_file) as conn:
            conn.execute(
                "INSERT INTO messages(session_id, role, content) VALUES(?, ?, ?)",
                (session_id, Role(role).value, content),
            )
            conn.execute(
                "UPDATE sessions SET updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (session_id,),
            )
            conn.commit()

    def append_messages(
        self, session_id: str, entries: Sequence[tuple[Role, str]]
    ) -> None:
        rows = [(session_id, Role(role).value, content) for role, content in entries]
        # The connection context manager rolls back if any statement fails.
        with sqlite3.connect(self._db_file) as conn:
            conn.execute("INSERT OR IGNORE INTO sessions(id) VALUES(?)", (session_id,))
            conn.executemany(
                "INSERT INTO messages(session_id, role, content) VALUES(?, ?, ?)", rows
            )
            conn.execute(
                "UPDATE sessions SET updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (session_id,),
            )

    def recent_messages(self, session_id: str, limit: int) -> list[ChatMessage]:
        if limit <= 0:
            return []
        with sqlite3.connect(self._db_file) as conn:
            rows = conn.execute(
                "SELECT session_id, role, content, created_at FROM messages "
                "WHERE session_id = ? ORDER BY id DESC LIMIT ?",
                (session_id, limit),
            ).fetchall()
        return [_to_message(row) for row in rows]

    def all_messages(self, session_id: str) -> list[ChatMessage]:
        with sqlite3.connect(self._db_file) as conn:
            rows = conn.execute(
                "SELECT session_id, role, content, created_at FROM messages "
                "WHERE session_id = ? ORDER BY id ASC",
                (session_id,),
            ).fetchall()
        return [_to_message(row) for row in rows]

    def session_exists(self, session_id: str) -> bool:
        with sqlite3.connect(self._db_file) as conn:
            row = conn.execute("SELECT 1 FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return row is not None


def _to_message(row: tuple[str, str, str, str | None]) -> ChatMessage:
    session_id, role, content, created_at = row
    return ChatMessage(
        session_id=session_id,
        role=Role(role),
        content=content,
        created_at=created_at or "",
    )
