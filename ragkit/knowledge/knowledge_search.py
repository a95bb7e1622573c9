# ==============================
# Knowledge Search Engine
# ==============================
"""
Search over a KnowledgeStore.

- semantic: embed the query, cosine-score every item that carries an
  embedding, highest first.
- text (fallback): used when no embed function is configured or embedding the
  query fails. Lowercase terms longer than 2 chars; an item matches when its
  content or any string metadata value contains a term. Most recent first.

Stored embeddings are not pre-normalized, so scoring uses the full
dot / (|a| * |b|) formula.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from ragkit.contracts.knowledge_schema import KnowledgeHit, KnowledgeItem, KnowledgeSearchResult
from ragkit.knowledge.store import KnowledgeStore
from ragkit.knowledge.vectors import cosine_similarity

logger = logging.getLogger(__name__)

EmbedFn = Callable[[str], List[float]]

MIN_TERM_LENGTH = 3


def query_terms(query: str) -> List[str]:
    return [t for t in query.lower().split() if len(t) >= MIN_TERM_LENGTH]


def _matches(item: KnowledgeItem, terms: List[str]) -> bool:
    haystacks = [item.content.lower()]
    haystacks.extend(v.lower() for v in item.metadata.values() if isinstance(v, str))
    return any(term in text for term in terms for text in haystacks)


class KnowledgeSearchEngine:
    def __init__(self, store: KnowledgeStore, *, embed: Optional[EmbedFn] = None) -> None:
        self.store = store
        self.embed = embed

    def search(self, query: str, limit: int, *, embed: Optional[EmbedFn] = None) -> KnowledgeSearchResult:
        if limit <= 0:
            return KnowledgeSearchResult(hits=[], search_type="text")

        embed_fn = embed or self.embed
        if embed_fn is not None:
            try:
                return self.semantic_search(embed_fn(query), limit)
            except Exception as exc:
                logger.warning("Semantic search failed, falling back to text search: %s", exc)

        return self.text_search(query, limit)

    def semantic_search(self, query_embedding: List[float], limit: int) -> KnowledgeSearchResult:
        scored = [
            KnowledgeHit(item=item, score=cosine_similarity(query_embedding, item.embedding or []))
            for item in self.store.list()
            if item.has_embedding
        ]
        # sort() is stable: equal scores keep insertion order
        scored.sort(key=lambda h: h.score or 0.0, reverse=True)
        return KnowledgeSearchResult(hits=scored[:limit], search_type="semantic")

    def text_search(self, query: str, limit: int) -> KnowledgeSearchResult:
        terms = query_terms(query)
        if not terms:
            return KnowledgeSearchResult(hits=[], search_type="text")
        matched = [item for item in self.store.list() if _matches(item, terms)]
        matched.sort(key=lambda i: i.timestamp, reverse=True)
        return KnowledgeSearchResult(hits=[KnowledgeHit(item=i) for i in matched[:limit]], search_type="text")
