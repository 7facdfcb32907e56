"""Immutable knowledge-base index built once before serving."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from support_responder.ingest.embedder import CachedEmbeddingClient
from support_responder.types import Document, IndexedDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class KnowledgeIndex:
    """Ordered, fully embedded documents. Order is load order."""

    entries: tuple[IndexedDocument, ...]

    def __iter__(self) -> Iterator[IndexedDocument]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


async def build_index(
    documents: Sequence[Document], client: CachedEmbeddingClient
) -> KnowledgeIndex:
    """Embed every document exactly once, sequentially, in load order."""

    entries: list[IndexedDocument] = []
    degraded = 0
    for document in documents:
        result = await client.embed_with_source(document.content)
        if result.degraded:
            degraded += 1
        entries.append(IndexedDocument(document=document, embedding=tuple(result.vector)))

    if degraded:
        logger.warning(
            "Knowledge base indexed with %d of %d documents lacking embeddings",
            degraded,
            len(entries),
        )
    else:
        logger.info("Knowledge base indexed: %d documents", len(entries))
    return KnowledgeIndex(entries=tuple(entries))
