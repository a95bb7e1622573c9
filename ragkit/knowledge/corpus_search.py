# ==============================
# Corpus Search Engine
# ==============================
"""
Query -> embedding -> corpus (cached) -> index (cached) -> ranked hits.

Contract:
- Results are sorted by descending score (ties keep corpus order), capped at
  top_k, and every score is >= threshold.
- Never raises: any failure in the pipeline is logged and returns [] so the
  calling agent can continue without grounding.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ragkit.config.schema import Settings
from ragkit.contracts.knowledge_schema import SearchHit, VectorRecord
from ragkit.knowledge.corpus_loader import CorpusLoader
from ragkit.knowledge.index import BruteForceIndex, IndexCache, default_index_builder
from ragkit.knowledge.vectors import l2_normalize, safe_score
from ragkit.models.providers.openai_provider import OpenAIEmbeddingProvider

logger = logging.getLogger(__name__)

RESULT_SEPARATOR = "\n\n---\n\n"


class CorpusSearchEngine:
    def __init__(
        self,
        *,
        provider: OpenAIEmbeddingProvider,
        loader: Optional[CorpusLoader] = None,
        indexes: Optional[IndexCache] = None,
    ) -> None:
        self.provider = provider
        self.loader = loader or CorpusLoader()
        self.indexes = indexes or IndexCache()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        provider: Optional[OpenAIEmbeddingProvider] = None,
    ) -> "CorpusSearchEngine":
        return cls(
            provider=provider or OpenAIEmbeddingProvider.from_settings(settings),
            indexes=IndexCache(default_index_builder(settings.rag.corpus.ann)),
        )

    def search(
        self,
        query: str,
        *,
        vector_files: Sequence[str],
        api_key: str,
        model: str,
        top_k: int,
        threshold: float,
    ) -> List[SearchHit]:
        try:
            return self._search(
                query,
                vector_files=vector_files,
                api_key=api_key,
                model=model,
                top_k=top_k,
                threshold=threshold,
            )
        except Exception as exc:
            logger.warning("RAG search failed: %s", exc, exc_info=True)
            return []

    def _search(
        self,
        query: str,
        *,
        vector_files: Sequence[str],
        api_key: str,
        model: str,
        top_k: int,
        threshold: float,
    ) -> List[SearchHit]:
        if top_k <= 0:
            return []

        raw = self.provider.embed(query, model=model, api_key=api_key)
        q = l2_normalize(raw).astype(np.float32)

        corpus = self.loader.load(vector_files)
        if corpus.total == 0:
            return []
        index = self.indexes.get_or_build(corpus)

        try:
            neighbors = index.query(q, top_k)
        except Exception as exc:
            if isinstance(index, BruteForceIndex):
                raise
            logger.warning("%s query failed (%s); falling back to brute force", index.kind, exc)
            neighbors = BruteForceIndex(corpus.matrix).query(q, top_k)

        scored: List[Tuple[int, float]] = []
        for pos, distance in neighbors:
            score = safe_score(1.0 - distance)
            if score >= threshold:
                scored.append((pos, score))
        scored.sort(key=lambda p: (-p[1], p[0]))

        return [_to_hit(corpus.records[pos], score) for pos, score in scored[:top_k]]


def _to_hit(record: VectorRecord, score: float) -> SearchHit:
    return SearchHit(id=record.id, text=record.text, score=score, metadata=record.metadata.model_dump())


def format_results(query: str, hits: Sequence[SearchHit]) -> str:
    if not hits:
        return f'No relevant results found for query "{query}".'
    blocks = [
        f"Result {i} (Score: {hit.score:.3f}):\n"
        f"Source: {hit.metadata.get('source', '')}\n"
        f"Title: {hit.metadata.get('title', '')}\n"
        f"Content: {hit.text}"
        for i, hit in enumerate(hits, start=1)
    ]
    return f'Found {len(hits)} relevant results for "{query}":\n\n' + RESULT_SEPARATOR.join(blocks)
