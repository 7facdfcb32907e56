"""Configuration models for the support responder."""

from __future__ import annotations

import os
from typing import Literal

from pydantic import BaseModel, Field

DEFAULT_REFUSAL = (
    "I'm sorry, I only have information on shipping and refunds. "
    "Could you please rephrase your question?"
)


class OverrideRule(BaseModel):
    """Forces the best match score when both terms are present.

    `query_term` is looked up in the lowercased query and `document_term` in the
    lowercased content of the best-ranked document.
    """

    query_term: str = Field(min_length=1)
    document_term: str = Field(min_length=1)
    forced_score: float = Field(ge=0.0, le=1.0)


class EmbeddingConfig(BaseModel):
    """Configures the embedding provider (`openai` remote or offline `hashing`)."""

    provider: Literal["openai", "hashing"] = "openai"
    model: str = "text-embedding-3-small"
    timeout_seconds: float = Field(default=15.0, gt=0.0)


class IntentConfig(BaseModel):
    """Configures the fuzzy canned-intent matcher."""

    max_edits: int = Field(default=1, ge=0)
    min_fuzzy_length: int = Field(default=5, ge=1)


class RetrievalConfig(BaseModel):
    """Configures ranking, keyword overrides and the relevance guardrail."""

    relevance_threshold: float = Field(default=0.22, ge=-1.0, le=1.0)
    override_rules: list[OverrideRule] = Field(
        default_factory=lambda: [
            OverrideRule(query_term="return", document_term="refund", forced_score=0.5)
        ]
    )


class GenerationConfig(BaseModel):
    """Configures grounded generation and history assembly."""

    model: str = "openai/gpt-4o-mini"
    persona: str = "Sam"
    history_limit: int = Field(default=10, ge=0)
    timeout_seconds: float = Field(default=30.0, gt=0.0)
    refusal_message: str = DEFAULT_REFUSAL


class AppConfig(BaseModel):
    """Top-level settings consumed by the API composition root."""

    db_path: str = "support_assistant.db"
    docs_path: str = "docs.json"
    api_key: str | None = None
    base_url: str = "https://openrouter.ai/api/v1"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    intents: IntentConfig = Field(default_factory=IntentConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)

    @classmethod
    def from_env(cls) -> "AppConfig":
        embedding = EmbeddingConfig(
            provider=os.getenv("EMBED_PROVIDER", "openai"),
            model=os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"),
            timeout_seconds=float(os.getenv("EMBEDDING_TIMEOUT_SECONDS", "15")),
        )
        retrieval = RetrievalConfig(
            relevance_threshold=float(os.getenv("RELEVANCE_THRESHOLD", "0.22")),
        )
        generation = GenerationConfig(
            model=os.getenv("CHAT_MODEL", "openai/gpt-4o-mini"),
            history_limit=int(os.getenv("HISTORY_LIMIT", "10")),
            timeout_seconds=float(os.getenv("GENERATION_TIMEOUT_SECONDS", "30")),
        )
        origins = [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        ]
        return cls(
            db_path=os.getenv("SUPPORT_DB_PATH", "support_assistant.db"),
            docs_path=os.getenv("SUPPORT_DOCS_PATH", "docs.json"),
            api_key=os.getenv("OPENROUTER_API_KEY") or os.getenv("OPENAI_API_KEY"),
            base_url=os.getenv("OPENAI_BASE_URL", "https://openrouter.ai/api/v1"),
            cors_origins=origins or ["*"],
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            embedding=embedding,
            retrieval=retrieval,
            generation=generation,
        )
