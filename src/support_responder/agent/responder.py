"""Per-message routing: canned intent, refusal, or grounded generation."""

from __future__ import annotations

import asyncio
import logging

from support_responder.agent.generator import GenerationError, GroundedGenerator
from support_responder.agent.intents import IntentMatcher
from support_responder.config import GenerationConfig
from support_responder.ingest.embedder import CachedEmbeddingClient
from support_responder.obs.tracing import Timer, TraceStore
from support_responder.retrieval.index import KnowledgeIndex
from support_responder.retrieval.ranker import SemanticRanker
from support_responder.storage.conversation_log import ConversationLog
from support_responder.types import ChatMessage, ChatReply, ReplyRoute, Role

logger = logging.getLogger(__name__)


class SupportResponder:
    """Routes one user message through the cheapest path that can answer it.

    The responder is only constructed from an already built `KnowledgeIndex`,
    so no request can be served before indexing has finished.

    Turns of the same session are not serialized. Two concurrent messages of
    one session may be logged in provider-completion order.
    """

    def __init__(
        self,
        *,
        index: KnowledgeIndex,
        intent_matcher: IntentMatcher,
        embedding_client: CachedEmbeddingClient,
        ranker: SemanticRanker,
        generator: GroundedGenerator,
        conversation_log: ConversationLog,
        config: GenerationConfig | None = None,
        trace_store: TraceStore | None = None,
    ) -> None:
        self.index = index
        self.intent_matcher = intent_matcher
        self.embedding_client = embedding_client
        self.ranker = ranker
        self.generator = generator
        self.conversation_log = conversation_log
        self.config = config or GenerationConfig()
        self.trace_store = trace_store

    async def respond(self, session_id: str, message: str) -> ChatReply:
        """Answer one message.

        Raises:
            GenerationError: the completion provider failed; nothing was logged.
        """

        with Timer() as timer:
            reply = await self._route(session_id, message)

        logger.info(
            "session=%s route=%s score=%s tokens=%d",
            session_id,
            reply.route.value,
            "n/a" if reply.score is None else f"{reply.score:.4f}",
            reply.tokens_used,
        )
        if self.trace_store is not None:
            self.trace_store.create_record(
                session_id=session_id,
                route=reply.route,
                score=reply.score,
                tokens_used=reply.tokens_used,
                latency_ms=timer.elapsed_ms,
            )
        return reply

    async def history(self, session_id: str) -> list[ChatMessage]:
        return await asyncio.to_thread(self.conversation_log.all_messages, session_id)

    async def _route(self, session_id: str, message: str) -> ChatReply:
        normalized = message.lower().strip()

        intent = self.intent_matcher.match(normalized)
        if intent is not None:
            await self._log(session_id, (Role.ASSISTANT, intent.reply))
            return ChatReply(
                reply=intent.reply,
                tokens_used=0,
                route=ReplyRoute.INTENT,
                score=intent.score,
            )

        query_vector = await self.embedding_client.embed(normalized)
        match = self.ranker.rank(normalized, query_vector, self.index)
        if not match.usable or match.document is None:
            return ChatReply(
                reply=self.config.refusal_message,
                tokens_used=0,
                route=ReplyRoute.REFUSAL,
                score=match.score,
            )

        recent = await asyncio.to_thread(
            self.conversation_log.recent_messages, session_id, self.config.history_limit
        )
        history = list(reversed(recent))
        try:
            result = await self.generator.respond(message, match.document, history)
        except GenerationError:
            logger.exception("Generation failed for session=%s", session_id)
            raise

        await self._log(session_id, (Role.USER, message), (Role.ASSISTANT, result.reply))
        return ChatReply(
            reply=result.reply,
            tokens_used=result.tokens_used,
            route=ReplyRoute.GENERATED,
            score=match.score,
        )

    async def _log(self, session_id: str, *entries: tuple[Role, str]) -> None:
        await asyncio.to_thread(self.conversation_log.append_messages, session_id, entries)
