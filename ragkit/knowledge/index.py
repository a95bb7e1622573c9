# ==============================
# Similarity Index
# ==============================
"""
Nearest-neighbor strategies over a loaded Corpus.

- HnswIndexBuilder: faiss HNSW graph, inner-product metric over unit vectors
  (inner product == cosine). Favors recall: M=16, efConstruction=200, efSearch=100.
- BruteForceIndexBuilder: plain matrix @ query over the normalized matrix.
  A query whose dimension differs from the corpus is scored by cosine over
  the overlapping leading components; HNSW rejects it and the engine
  retries on brute force.

Both answer query(q, top_k) -> [(record_index, distance)] with
distance = 1 - cosine similarity.

IndexCache builds at most one index per corpus cache key. A failed HNSW build
is not retried: the key is pinned to brute force for the process lifetime.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

import faiss
import numpy as np

from ragkit.config.schema import AnnConfig
from ragkit.knowledge.corpus_loader import Corpus
from ragkit.knowledge.errors import IndexBuildError
from ragkit.knowledge.vectors import sanitize_scores

logger = logging.getLogger(__name__)

Neighbor = Tuple[int, float]


class SimilarityIndex(ABC):
    kind: str

    @abstractmethod
    def query(self, query: np.ndarray, top_k: int) -> List[Neighbor]:
        raise NotImplementedError


def _overlap_cosine(matrix: np.ndarray, q: np.ndarray) -> np.ndarray:
    """Cosine over the first min(len) components; rows or query with zero norm there score 0."""
    n = min(matrix.shape[1], q.shape[0])
    if n == 0:
        return np.zeros(matrix.shape[0], dtype=np.float64)
    head = matrix[:, :n].astype(np.float64)
    qh = q[:n].astype(np.float64)
    norms = np.linalg.norm(head, axis=1) * np.linalg.norm(qh)
    dots = head @ qh
    return np.where(norms > 0, dots / np.where(norms > 0, norms, 1.0), 0.0)


class BruteForceIndex(SimilarityIndex):
    kind = "brute_force"

    def __init__(self, matrix: np.ndarray) -> None:
        self.matrix = matrix

    def query(self, query: np.ndarray, top_k: int) -> List[Neighbor]:
        if top_k <= 0 or self.matrix.shape[0] == 0:
            return []
        q = np.asarray(query, dtype=np.float32).reshape(-1)
        with np.errstate(invalid="ignore", over="ignore", divide="ignore"):
            if q.shape[0] == self.matrix.shape[1]:
                raw = (self.matrix @ q).astype(np.float64)
            else:
                raw = _overlap_cosine(self.matrix, q)
            scores = sanitize_scores(raw)
        # stable: equal scores keep corpus order
        order = np.argsort(-scores, kind="stable")[:top_k]
        return [(int(i), 1.0 - float(scores[i])) for i in order]


class HnswIndex(SimilarityIndex):
    kind = "hnsw"

    def __init__(self, index: "faiss.IndexHNSWFlat", *, dimension: int) -> None:
        self.index = index
        self.dimension = dimension

    def query(self, query: np.ndarray, top_k: int) -> List[Neighbor]:
        total = int(self.index.ntotal)
        if top_k <= 0 or total == 0:
            return []
        q = np.ascontiguousarray(np.asarray(query, dtype=np.float32).reshape(1, -1))
        if q.shape[1] != self.dimension:
            raise ValueError(f"Query dimension {q.shape[1]} does not match corpus dimension {self.dimension}")
        scores, ids = self.index.search(q, min(top_k, total))
        return [(int(i), 1.0 - float(s)) for s, i in zip(scores[0], ids[0]) if i >= 0]


# ==============================
# Builders (strategy)
# ==============================
class SimilarityIndexBuilder(ABC):
    name: str

    @abstractmethod
    def build(self, corpus: Corpus) -> SimilarityIndex:
        raise NotImplementedError


class BruteForceIndexBuilder(SimilarityIndexBuilder):
    name = "brute_force"

    def build(self, corpus: Corpus) -> SimilarityIndex:
        return BruteForceIndex(corpus.matrix)


class HnswIndexBuilder(SimilarityIndexBuilder):
    name = "hnsw"

    def __init__(self, *, m: int = 16, ef_construction: int = 200, ef_search: int = 100) -> None:
        self.m = m
        self.ef_construction = ef_construction
        self.ef_search = ef_search

    @classmethod
    def from_config(cls, ann: AnnConfig) -> "HnswIndexBuilder":
        return cls(m=ann.m, ef_construction=ann.ef_construction, ef_search=ann.ef_search)

    def build(self, corpus: Corpus) -> SimilarityIndex:
        if corpus.total == 0 or corpus.dimension == 0:
            raise IndexBuildError("HNSW index needs at least one vector")
        try:
            index = faiss.IndexHNSWFlat(corpus.dimension, self.m, faiss.METRIC_INNER_PRODUCT)
            index.hnsw.efConstruction = self.ef_construction
            index.hnsw.efSearch = self.ef_search
            index.add(np.ascontiguousarray(corpus.matrix, dtype=np.float32))
        except Exception as exc:
            raise IndexBuildError(f"HNSW build failed: {exc}") from exc
        return HnswIndex(index, dimension=corpus.dimension)


def default_index_builder(ann: Optional[AnnConfig] = None) -> SimilarityIndexBuilder:
    """Resolve the index strategy once, at wiring time."""
    ann = ann or AnnConfig()
    if ann.enabled:
        return HnswIndexBuilder.from_config(ann)
    return BruteForceIndexBuilder()


# ==============================
# Index Cache
# ==============================
class IndexCache:
    """
    corpus.key -> SimilarityIndex. Unlocked, like CorpusLoader: concurrent
    first builds for one key may both run; the last writer wins.
    """

    def __init__(self, builder: Optional[SimilarityIndexBuilder] = None) -> None:
        self.builder = builder or default_index_builder()
        self._indexes: Dict[str, SimilarityIndex] = {}
        self.build_count = 0

    def get_or_build(self, corpus: Corpus) -> SimilarityIndex:
        cached = self._indexes.get(corpus.key)
        if cached is not None:
            return cached
        try:
            index = self.builder.build(corpus)
        except IndexBuildError as exc:
            logger.info("%s; using brute force for %d vectors", exc, corpus.total)
            index = BruteForceIndex(corpus.matrix)
        self.build_count += 1
        self._indexes[corpus.key] = index
        return index

    def get(self, key: str) -> Optional[SimilarityIndex]:
        return self._indexes.get(key)
