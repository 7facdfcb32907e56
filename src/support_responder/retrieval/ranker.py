"""Semantic ranking with keyword overrides and a relevance guardrail."""

from __future__ import annotations

from collections.abc import Sequence
from math import sqrt

from support_responder.config import OverrideRule, RetrievalConfig
from support_responder.retrieval.index import KnowledgeIndex
from support_responder.types import IndexedDocument, MatchResult


class SemanticRanker:
    """Selects the single best document for a query vector.

    Ranking steps:
    1. Cosine similarity against every indexed document, floored at 0.
    2. Highest score wins; ties keep the earlier document in index order.
    3. The first matching override rule rewrites the score once. An empty
       query vector carries no signal, so no rule applies to it.
    4. Scores below `relevance_threshold` are reported as unusable.
    """

    def __init__(self, config: RetrievalConfig | None = None) -> None:
        self.config = config or RetrievalConfig()

    def rank(
        self,
        query: str,
        query_vector: Sequence[float],
        index: KnowledgeIndex,
    ) -> MatchResult:
        best: IndexedDocument | None = None
        best_score = 0.0
        for entry in index:
            score = max(0.0, cosine_similarity(query_vector, entry.embedding))
            if best is None or score > best_score:
                best, best_score = entry, score

        if best is None:
            return MatchResult(document=None, score=0.0, raw_score=0.0)

        score = best_score
        rule = None
        if query_vector:
            rule = self._matching_rule(query, best.document.content)
        if rule is not None:
            score = rule.forced_score

        return MatchResult(
            document=best.document,
            score=score,
            raw_score=best_score,
            overridden=rule is not None,
            usable=score >= self.config.relevance_threshold,
        )

    def _matching_rule(self, query: str, content: str) -> OverrideRule | None:
        lowered_query = query.lower()
        lowered_content = content.lower()
        for rule in self.config.override_rules:
            if (
                rule.query_term.lower() in lowered_query
                and rule.document_term.lower() in lowered_content
            ):
                return rule
        return None


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity; 0.0 when either vector is empty or has zero magnitude.

    Components missing from the shorter vector count as zero.
    """

    if not a or not b:
        return 0.0
    numerator = sum(x * y for x, y in zip(a, b))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)
