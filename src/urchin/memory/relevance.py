"""Relevance filter - ranks memory entries against the current input.

Semantic ranking is a best-effort enhancement over an always-available
keyword baseline; nothing here may block the reasoning loop.
"""

from typing import Any

from urchin.core.logging import get_logger
from urchin.core.types import RelevanceCandidate
from urchin.core.typing import Vector
from urchin.memory.accessor import MemoryAccessor
from urchin.memory.embeddings import Embedder, cosine_similarity

logger = get_logger("memory.relevance")

TOP_K = 10
MIN_TERM_LENGTH = 3

# Standalone recall (SEARCH_MEMORY) and context composition use different cutoffs
SEARCH_THRESHOLD = 0.25
COMPOSE_THRESHOLD = 0.2

# Applied to keyword scores whenever they stand in for an embedding score
KEYWORD_DISCOUNT = 0.5


def _entry_text(key: str, value: Any) -> str:
    return f"{key}: {value}"


def query_terms(query: str) -> list[str]:
    return [t for t in query.lower().split() if len(t) >= MIN_TERM_LENGTH]


def keyword_score(terms: list[str], key: str, value: Any) -> float:
    if not terms:
        return 0.0
    haystack = _entry_text(key, value).lower()
    matched = sum(1 for t in terms if t in haystack)
    return matched / len(terms)


def _rank(candidates: list[RelevanceCandidate], limit: int) -> list[RelevanceCandidate]:
    # sorted() is stable, so ties keep their original order
    return sorted(candidates, key=lambda c: c.score, reverse=True)[:limit]


def filter_by_keyword(
    query: str,
    entries: dict[str, Any],
    limit: int = TOP_K,
    discount: float = 1.0,
) -> list[RelevanceCandidate]:
    """Score entries by the fraction of query terms they contain."""
    terms = query_terms(query)
    candidates = []
    for key, value in entries.items():
        score = keyword_score(terms, key, value)
        if score > 0:
            candidates.append(RelevanceCandidate(key=key, value=value, score=score * discount))
    return _rank(candidates, limit)


class RelevanceFilter:
    """Ranks memory candidates semantically, degrading to keywords."""

    def __init__(self, embedder: Embedder | None, memory: MemoryAccessor):
        self.embedder = embedder
        self.memory = memory

    @property
    def can_embed(self) -> bool:
        return self.embedder is not None and self.embedder.available

    async def rank(
        self,
        query: str,
        entries: dict[str, Any],
        threshold: float = SEARCH_THRESHOLD,
        limit: int = TOP_K,
    ) -> list[RelevanceCandidate]:
        """Pick the semantic path when embeddings are configured, else keywords."""
        if not entries:
            return []
        if not self.can_embed:
            return filter_by_keyword(query, entries, limit)
        return await self.filter_by_similarity(query, entries, threshold, limit)

    async def filter_by_similarity(
        self,
        query: str,
        entries: dict[str, Any],
        threshold: float = SEARCH_THRESHOLD,
        limit: int = TOP_K,
    ) -> list[RelevanceCandidate]:
        """Cosine-rank entries against the query, caching entry vectors by key.

        If the query cannot be embedded the whole call degrades to discounted
        keyword ranking. Entries whose own embedding fails fall back to a
        discounted keyword score for that entry only.
        """
        if self.embedder is None:
            return filter_by_keyword(query, entries, limit)

        query_vector = await self.embedder.embed(query)
        if query_vector is None:
            logger.debug("Query embedding unavailable, using keyword ranking")
            return filter_by_keyword(query, entries, limit, discount=KEYWORD_DISCOUNT)

        cache = await self.memory.get_embedding_cache()
        cache_dirty = False
        terms = query_terms(query)
        candidates = []

        for key, value in entries.items():
            vector: Vector | None = cache.get(key)
            if vector is None:
                vector = await self.embedder.embed(_entry_text(key, value))
                if vector is not None:
                    cache[key] = vector
                    cache_dirty = True

            if vector is not None:
                score = cosine_similarity(query_vector, vector)
            else:
                score = keyword_score(terms, key, value) * KEYWORD_DISCOUNT

            if score > threshold:
                candidates.append(RelevanceCandidate(key=key, value=value, score=score))

        if cache_dirty:
            await self.memory.save_embedding_cache(cache)

        return _rank(candidates, limit)
