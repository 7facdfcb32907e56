"""Persistent embedding cache keyed by content fingerprint."""

from __future__ import annotations

import hashlib
import json
import sqlite3
from pathlib import Path
from typing import Protocol


def fingerprint(text: str) -> str:
    """SHA-256 hex digest of the exact text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class EmbeddingCache(Protocol):
    """Minimal cache contract used by the embedding client."""

    def get(self, text: str) -> list[float] | None:
        """Return the cached vector for `text`, if any."""

    def put(self, text: str, vector: list[float]) -> None:
        """Store a vector; existing entries are never overwritten."""


class SqliteEmbeddingCache:
    """Embedding cache stored in the `embedding_cache` table.

    Errors are raised to the caller. The embedding client decides how to
    degrade when the cache cannot be read or written.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_file = Path(db_path)

    def get(self, text: str) -> list[float] | None:
        with sqlite3.connect(self._db_file) as conn:
            row = conn.execute(
                "SELECT embedding FROM embedding_cache WHERE content_hash = ?",
                (fingerprint(text),),
            ).fetchone()
        if row is None:
            return None
        return [float(value) for value in json.loads(row[0])]

    def put(self, text: str, vector: list[float]) -> None:
        with sqlite3.connect(self._db_file) as conn:
            conn.execute(
                "INSERT OR IGNORE INTO embedding_cache(content_hash, embedding) VALUES(?, ?)",
                (fingerprint(text), json.dumps(vector)),
            )
            conn.commit()

    def __len__(self) -> int:
        with sqlite3.connect(self._db_file) as conn:
            (count,) = conn.execute("SELECT COUNT(*) FROM embedding_cache").fetchone()
        return int(count)
