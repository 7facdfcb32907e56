"""Zero-cost canned replies matched with typo-tolerant fuzzy matching."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from difflib import SequenceMatcher

from support_responder.config import IntentConfig


@dataclass(frozen=True, slots=True)
class Intent:
    name: str
    triggers: tuple[str, ...]
    reply: str


@dataclass(frozen=True, slots=True)
class IntentMatch:
    intent: Intent
    trigger: str
    score: float

    @property
    def reply(self) -> str:
        return self.intent.reply


DEFAULT_INTENTS: tuple[Intent, ...] = (
    Intent(
        name="greeting",
        triggers=("hi", "hello", "hey", "hlo", "greetings"),
        reply="Hi! I'm Sam. How can I help you with our product guides today?",
    ),
    Intent(
        name="farewell",
        triggers=("bye", "goodbye", "exit", "see ya", "tata"),
        reply="Goodbye! Feel free to reach out if you have more questions.",
    ),
    Intent(
        name="thanks",
        triggers=("thanks", "thank you", "thx"),
        reply="You're very welcome! Is there anything else you need?",
    ),
)


_TOKEN_PATTERN = re.compile(r"\w+", flags=re.UNICODE)


class IntentMatcher:
    """Matches a normalized message against a fixed, ordered intent table.

    The message and each trigger are split into word tokens and compared token
    by token; the token counts must agree. Tokens shorter than
    `min_fuzzy_length` must match exactly, longer ones may differ by up to
    `max_edits` edits. Score is the share of unedited characters. The best
    score wins and earlier intents win ties.
    """

    def __init__(
        self,
        intents: Sequence[Intent] = DEFAULT_INTENTS,
        config: IntentConfig | None = None,
    ) -> None:
        self.intents = tuple(intents)
        self.config = config or IntentConfig()

    def match(self, message: str) -> IntentMatch | None:
        tokens = _TOKEN_PATTERN.findall(message.lower())
        if not tokens:
            return None

        best: IntentMatch | None = None
        for intent in self.intents:
            for trigger in intent.triggers:
                score = self._score(tokens, _TOKEN_PATTERN.findall(trigger.lower()))
                if score is None:
                    continue
                if best is None or score > best.score:
                    best = IntentMatch(intent=intent, trigger=trigger, score=score)
        return best

    def _score(self, tokens: list[str], trigger_tokens: list[str]) -> float | None:
        if len(tokens) != len(trigger_tokens):
            return None

        edits = 0
        for token, trigger_token in zip(tokens, trigger_tokens):
            distance = edit_distance(token, trigger_token)
            short = min(len(token), len(trigger_token)) < self.config.min_fuzzy_length
            budget = 0 if short else self.config.max_edits
            if distance > budget:
                return None
            edits += distance

        length = max(sum(map(len, tokens)), sum(map(len, trigger_tokens)))
        return 1.0 - edits / length


def edit_distance(a: str, b: str) -> int:
    """Edit count from difflib opcodes: each differing block costs its longer side."""

    if a == b:
        return 0
    return sum(
        max(i2 - i1, j2 - j1)
        for tag, i1, i2, j1, j2 in SequenceMatcher(None, a, b).get_opcodes()
        if tag != "equal"
    )
