import asyncio
import json
from math import sqrt
from pathlib import Path

import pytest
from langchain_core.embeddings import Embeddings
from langchain_core.messages import AIMessage

from support_responder.agent.generator import GroundedGenerator
from support_responder.agent.intents import IntentMatcher
from support_responder.agent.responder import SupportResponder
from support_responder.config import GenerationConfig, RetrievalConfig
from support_responder.ingest.embedder import CachedEmbeddingClient
from support_responder.obs.tracing import TraceStore
from support_responder.retrieval.index import build_index
from support_responder.retrieval.ranker import SemanticRanker
from support_responder.storage.conversation_log import SqliteConversationLog
from support_responder.storage.db import init_db
from support_responder.storage.embedding_cache import SqliteEmbeddingCache
from support_responder.types import Document

SHIPPING = "Shipping takes 3-5 business days and is free over $50."
REFUND = "Refund requests are accepted within 30 days of delivery."

SCENARIO_VECTORS = {
    SHIPPING: [0.0, 1.0, 0.0],
    REFUND: [1.0, 0.0, 0.0],
    "what is your refund policy": [0.6, 0.0, 0.8],
    "banana": [0.1, 0.0, sqrt(1 - 0.1**2)],
    "i want a return": [0.05, 0.0, sqrt(1 - 0.05**2)],
    "how long does shipping take": [0.0, 0.9, sqrt(1 - 0.9**2)],
}


class FakeEmbeddings(Embeddings):
    """Looks vectors up by exact text and counts provider calls."""

    def __init__(self, vectors=None, default=(0.0, 0.0, 1.0), error=None):
        self.vectors = dict(vectors or {})
        self.default = list(default)
        self.error = error
        self.calls = []

    def embed_documents(self, texts):
        return [self.embed_query(text) for text in texts]

    def embed_query(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return list(self.vectors.get(text, self.default))


class FakeChatModel:
    """Records prompts and answers with a fixed AI message."""

    def __init__(self, reply="Refunds are accepted within 30 days.", total_tokens=42, error=None):
        self.reply = reply
        self.total_tokens = total_tokens
        self.error = error
        self.calls = []

    async def ainvoke(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return AIMessage(
            content=self.reply,
            usage_metadata={
                "input_tokens": self.total_tokens - 2,
                "output_tokens": 2,
                "total_tokens": self.total_tokens,
            },
        )


@pytest.fixture
def documents():
    return [Document(content=SHIPPING), Document(content=REFUND)]


@pytest.fixture
def docs_file(tmp_path: Path) -> Path:
    path = tmp_path / "docs.json"
    path.write_text(
        json.dumps([{"title": "Shipping", "content": SHIPPING}, {"title": "Refunds", "content": REFUND}]),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return init_db(tmp_path / "support.db")


@pytest.fixture
def embeddings():
    return FakeEmbeddings(SCENARIO_VECTORS)


@pytest.fixture
def chat_model():
    return FakeChatModel()


@pytest.fixture
def conversation_log(db_path):
    return SqliteConversationLog(db_path)


@pytest.fixture
def trace_store():
    return TraceStore()


@pytest.fixture
def make_responder(db_path, documents, embeddings, chat_model, conversation_log, trace_store):
    def _make(*, llm=None, embedder=None):
        client = CachedEmbeddingClient(embedder or embeddings, SqliteEmbeddingCache(db_path))
        index = asyncio.run(build_index(documents, client))
        retrieval = RetrievalConfig()
        return SupportResponder(
            index=index,
            intent_matcher=IntentMatcher(),
            embedding_client=client,
            ranker=SemanticRanker(retrieval),
            generator=GroundedGenerator(
                llm or chat_model, override_rules=retrieval.override_rules
            ),
            conversation_log=conversation_log,
            config=GenerationConfig(),
            trace_store=trace_store,
        )

    return _make
