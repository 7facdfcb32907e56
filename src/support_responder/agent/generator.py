"""Grounded prompt assembly and the chat-completion call."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from langchain_core.messages import BaseMessage
from langchain_core.prompts import ChatPromptTemplate

from support_responder.config import AppConfig, GenerationConfig, OverrideRule
from support_responder.types import ChatMessage, Document

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """
You are {persona}, a customer support assistant.
Use ONLY the following information to answer: {document}
{rules}
If the information does not answer the question, say you don't know.

Context:
{history}
""".strip()


class GenerationError(RuntimeError):
    """Raised when the completion provider fails or returns an unusable reply."""


@dataclass(frozen=True, slots=True)
class GenerationResult:
    reply: str
    tokens_used: int


class GroundedGenerator:
    """Builds a document-restricted prompt and calls the chat model once."""

    def __init__(
        self,
        llm: Any,
        *,
        config: GenerationConfig | None = None,
        override_rules: Sequence[OverrideRule] = (),
    ) -> None:
        self.llm = llm
        self.config = config or GenerationConfig()
        self.override_rules = tuple(override_rules)
        self.prompt = ChatPromptTemplate.from_messages(
            [("system", _SYSTEM_PROMPT), ("human", "{message}")]
        )

    def build_messages(
        self, message: str, document: Document, history: Sequence[ChatMessage]
    ) -> list[BaseMessage]:
        """History must be chronological; it is rendered as `role: content` lines."""

        return self.prompt.format_messages(
            persona=self.config.persona,
            document=document.content,
            rules=render_rules(self.override_rules),
            history=render_history(history),
            message=message,
        )

    async def respond(
        self, message: str, document: Document, history: Sequence[ChatMessage]
    ) -> GenerationResult:
        messages = self.build_messages(message, document, history)
        try:
            response = await asyncio.wait_for(
                self.llm.ainvoke(messages), timeout=self.config.timeout_seconds
            )
        except asyncio.TimeoutError as exc:
            raise GenerationError(
                f"generation timed out after {self.config.timeout_seconds}s"
            ) from exc
        except Exception as exc:
            raise GenerationError(f"generation provider failed: {exc}") from exc

        content = getattr(response, "content", None)
        if not isinstance(content, str):
            raise GenerationError("generation provider returned no text content")
        return GenerationResult(reply=content, tokens_used=extract_total_tokens(response))


def render_history(history: Sequence[ChatMessage]) -> str:
    return "\n".join(f"{item.role.value}: {item.content}" for item in history)


def render_rules(rules: Sequence[OverrideRule]) -> str:
    return "\n".join(
        f"If a user asks about '{rule.query_term}', use the {rule.document_term} information."
        for rule in rules
    )


def extract_total_tokens(response: Any) -> int:
    usage = getattr(response, "usage_metadata", None) or {}
    total = usage.get("total_tokens")
    if total is None:
        metadata = getattr(response, "response_metadata", None) or {}
        total = (metadata.get("token_usage") or {}).get("total_tokens")
    return int(total or 0)


def create_chat_model(config: AppConfig) -> Any | None:
    """Build the remote chat model, or None when no API key is set."""

    if not config.api_key:
        return None

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=config.generation.model,
        api_key=config.api_key,
        base_url=config.base_url,
        max_retries=0,
    )
