"""FastAPI entrypoint for chat, conversation history and metrics."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from langchain_core.embeddings import Embeddings
from pydantic import BaseModel, ConfigDict, Field

from support_responder.agent.generator import (
    GenerationError,
    GroundedGenerator,
    create_chat_model,
)
from support_responder.agent.intents import IntentMatcher
from support_responder.agent.responder import SupportResponder
from support_responder.config import AppConfig
from support_responder.ingest.embedder import CachedEmbeddingClient, create_provider_embeddings
from support_responder.ingest.loader import load_documents
from support_responder.obs.tracing import TraceStore
from support_responder.retrieval.index import build_index
from support_responder.retrieval.ranker import SemanticRanker
from support_responder.storage.conversation_log import SqliteConversationLog
from support_responder.storage.db import init_db
from support_responder.storage.embedding_cache import SqliteEmbeddingCache

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str | None = Field(default=None, alias="sessionId")
    message: str | None = None


def _server_error() -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": "Server Error"})


async def build_responder(
    config: AppConfig,
    *,
    embeddings: Embeddings | None = None,
    llm: Any | None = None,
    trace_store: TraceStore | None = None,
) -> SupportResponder:
    """Build phase: storage, providers and the fully embedded index."""

    embeddings = embeddings or create_provider_embeddings(config)
    llm = llm or create_chat_model(config)
    if embeddings is None or llm is None:
        raise RuntimeError("OPENROUTER_API_KEY (or OPENAI_API_KEY) is not set")

    db_file = init_db(config.db_path)
    embedding_client = CachedEmbeddingClient(
        embeddings,
        SqliteEmbeddingCache(db_file),
        timeout_seconds=config.embedding.timeout_seconds,
    )
    index = await build_index(load_documents(config.docs_path), embedding_client)

    return SupportResponder(
        index=index,
        intent_matcher=IntentMatcher(config=config.intents),
        embedding_client=embedding_client,
        ranker=SemanticRanker(config.retrieval),
        generator=GroundedGenerator(
            llm,
            config=config.generation,
            override_rules=config.retrieval.override_rules,
        ),
        conversation_log=SqliteConversationLog(db_file),
        config=config.generation,
        trace_store=trace_store,
    )


def create_app(
    config: AppConfig | None = None,
    *,
    embeddings: Embeddings | None = None,
    llm: Any | None = None,
) -> FastAPI:
    """Composition root. Requests are accepted only after the index is built."""

    config = config or AppConfig.from_env()
    trace_store = TraceStore()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logging.basicConfig(
            level=config.log_level.upper(),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        app.state.responder = await build_responder(
            config, embeddings=embeddings, llm=llm, trace_store=trace_store
        )
        yield

    app = FastAPI(title="Support Responder", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "Missing data"})

    def _responder(request: Request) -> SupportResponder:
        return request.app.state.responder

    @app.get("/health")
    def health(request: Request) -> dict[str, Any]:
        responder = _responder(request)
        return {
            "status": "ok",
            "documents_indexed": len(responder.index),
            "relevance_threshold": config.retrieval.relevance_threshold,
        }

    @app.post("/api/chat")
    async def chat(payload: ChatRequest, request: Request) -> Any:
        session_id = (payload.session_id or "").strip()
        message = payload.message or ""
        if not session_id or not message.strip():
            return JSONResponse(status_code=400, content={"error": "Missing data"})

        try:
            reply = await _responder(request).respond(session_id, message)
        except GenerationError:
            return _server_error()
        except Exception:
            logger.exception("Chat turn failed for session=%s", session_id)
            return _server_error()
        return {"reply": reply.reply, "tokensUsed": reply.tokens_used}

    @app.get("/api/conversations/{session_id}")
    async def conversation(session_id: str, request: Request) -> Any:
        try:
            messages = await _responder(request).history(session_id)
        except Exception:
            logger.exception("History read failed for session=%s", session_id)
            return _server_error()
        return [{"role": item.role.value, "content": item.content} for item in messages]

    @app.get("/traces")
    def traces(limit: int = 20) -> dict[str, Any]:
        records = [asdict(record) for record in trace_store.list_recent(limit=limit)]
        return {"items": records}

    @app.get("/traces/{trace_id}")
    def trace_detail(trace_id: str) -> dict[str, Any]:
        try:
            record = trace_store.get(trace_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.get("/metrics")
    def metrics() -> dict[str, Any]:
        return trace_store.summary()

    return app


app = create_app()
