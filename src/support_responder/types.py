"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ReplyRoute(str, Enum):
    """How a turn was answered."""

    INTENT = "intent"
    REFUSAL = "refusal"
    GENERATED = "generated"


@dataclass(frozen=True, slots=True)
class Document:
    """A knowledge-base entry as loaded from disk."""

    content: str
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True, slots=True)
class IndexedDocument:
    """A document paired with its embedding; empty when the provider degraded."""

    document: Document
    embedding: tuple[float, ...]


@dataclass(frozen=True, slots=True)
class MatchResult:
    """Ranker output for one query."""

    document: Document | None
    score: float
    raw_score: float
    overridden: bool = False
    usable: bool = False


@dataclass(slots=True)
class ChatMessage:
    """One persisted transcript entry."""

    session_id: str
    role: Role
    content: str
    created_at: str = ""


@dataclass(slots=True)
class ChatReply:
    """Result of routing one user message."""

    reply: str
    tokens_used: int
    route: ReplyRoute
    score: float | None = None
