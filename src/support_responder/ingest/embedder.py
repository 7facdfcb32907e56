"""Embedding provider client with persistent caching.

Lookups go to the cache first; on a miss the provider is called once and the
vector is stored. Provider failures degrade to an empty vector so that an
outage turns semantic search off instead of failing the request.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from dataclasses import dataclass
from enum import Enum
from hashlib import blake2b
from math import sqrt
from typing import Any

from langchain_core.embeddings import Embeddings
from openai import OpenAIError

from support_responder.config import AppConfig
from support_responder.storage.embedding_cache import EmbeddingCache, fingerprint

logger = logging.getLogger(__name__)

_PROVIDER_ERRORS: tuple[type[BaseException], ...] = (
    asyncio.TimeoutError,
    OSError,
    OpenAIError,
    ValueError,
    LookupError,
    TypeError,
)
_CACHE_ERRORS: tuple[type[BaseException], ...] = (sqlite3.Error, ValueError, TypeError)


class EmbeddingSource(str, Enum):
    CACHE = "cache"
    PROVIDER = "provider"
    DEGRADED = "degraded"


@dataclass(frozen=True, slots=True)
class EmbeddingResult:
    vector: list[float]
    source: EmbeddingSource

    @property
    def degraded(self) -> bool:
        return self.source is EmbeddingSource.DEGRADED


class CachedEmbeddingClient:
    """Turns text into vectors, consulting the cache before the provider."""

    def __init__(
        self,
        embeddings: Embeddings,
        cache: EmbeddingCache | None = None,
        *,
        timeout_seconds: float = 15.0,
    ) -> None:
        self.embeddings = embeddings
        self.cache = cache
        self.timeout_seconds = timeout_seconds

    async def embed(self, text: str) -> list[float]:
        result = await self.embed_with_source(text)
        return result.vector

    async def embed_with_source(self, text: str) -> EmbeddingResult:
        cached = await self._cache_get(text)
        if cached is not None:
            return EmbeddingResult(vector=cached, source=EmbeddingSource.CACHE)

        try:
            raw = await asyncio.wait_for(
                self.embeddings.aembed_query(text), timeout=self.timeout_seconds
            )
            vector = _validate_vector(raw)
        except _PROVIDER_ERRORS as exc:
            logger.warning(
                "Embedding provider failed for %s (%s: %s); semantic search disabled for this text",
                fingerprint(text)[:12],
                type(exc).__name__,
                exc,
            )
            return EmbeddingResult(vector=[], source=EmbeddingSource.DEGRADED)
        except Exception:
            logger.exception(
                "Unexpected embedding provider error for %s; semantic search disabled for this text",
                fingerprint(text)[:12],
            )
            return EmbeddingResult(vector=[], source=EmbeddingSource.DEGRADED)

        await self._cache_put(text, vector)
        return EmbeddingResult(vector=vector, source=EmbeddingSource.PROVIDER)

    async def _cache_get(self, text: str) -> list[float] | None:
        if self.cache is None:
            return None
        try:
            return await asyncio.to_thread(self.cache.get, text)
        except _CACHE_ERRORS as exc:
            logger.warning("Embedding cache read failed, treating as miss: %s", exc)
            return None

    async def _cache_put(self, text: str, vector: list[float]) -> None:
        if self.cache is None:
            return
        try:
            await asyncio.to_thread(self.cache.put, text, vector)
        except _CACHE_ERRORS as exc:
            logger.warning("Embedding cache write failed, continuing uncached: %s", exc)


class HashingEmbeddings(Embeddings):
    """Deterministic token-hashing embeddings without external model calls.

    Used for local runs without provider credentials and for tests. Production
    deployments use `OpenAIEmbeddings` via `create_provider_embeddings`.
    """

    def __init__(self, dimension: int = 256) -> None:
        self.dimension = dimension

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._embed(text) for text in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._embed(text)

    def _embed(self, text: str) -> list[float]:
        vector = [0.0 for _ in range(self.dimension)]
        tokens = text.lower().split()
        if not tokens:
            return vector

        for token in tokens:
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            idx = int.from_bytes(digest[:4], "little") % self.dimension
            sign = -1.0 if digest[4] % 2 else 1.0
            vector[idx] += sign

        norm = sqrt(sum(value * value for value in vector))
        if norm == 0:
            return vector
        return [value / norm for value in vector]


def create_provider_embeddings(config: AppConfig) -> Embeddings | None:
    """Build the configured embedding provider.

    Returns None for the remote provider when no API key is set.
    """

    if config.embedding.provider == "hashing":
        return HashingEmbeddings()
    if not config.api_key:
        return None

    from langchain_openai import OpenAIEmbeddings

    # Raw text goes to the provider; client-side tokenization is OpenAI specific.
    return OpenAIEmbeddings(
        model=config.embedding.model,
        api_key=config.api_key,
        base_url=config.base_url,
        check_embedding_ctx_length=False,
        max_retries=0,
    )


def _validate_vector(raw: Any) -> list[float]:
    if not isinstance(raw, (list, tuple)) or not raw:
        raise ValueError("provider returned no embedding")
    return [float(value) for value in raw]
