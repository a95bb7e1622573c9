# ==============================
# Corpus Loader
# ==============================
"""
Loads precomputed embedding files into one in-memory Corpus.

File shape:
  {"metadata": {"embeddingModel"?: str, ...},
   "vectors": [{"id", "text", "embedding": [float], "metadata": {"source", "title", ...}}]}

Caching (two tiers, process lifetime, no eviction):
- per file: keyed by absolute path, so a file shared by several combinations
  is parsed once
- per combination: keyed by corpus_cache_key(paths)

No locking: two callers racing on the same uncached key may both parse and
the last writer wins. Parsing is idempotent over immutable files.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

import numpy as np
from pydantic import ValidationError

from ragkit.contracts.knowledge_schema import VectorRecord
from ragkit.knowledge.errors import ConfigError, CorpusFormatError
from ragkit.knowledge.vectors import l2_normalize

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "|"


def corpus_cache_key(paths: Iterable[str]) -> str:
    """
    Canonical key for a set of files: sorted, de-duplicated absolute paths.
    Order and relative/absolute spelling do not matter.
    """
    resolved = sorted({os.path.abspath(os.path.expanduser(p)) for p in paths if p})
    if not resolved:
        raise ConfigError("No vector files provided")
    return KEY_SEPARATOR.join(resolved)


@dataclass(frozen=True)
class ParsedFile:
    path: str
    records: Tuple[VectorRecord, ...]
    embedding_model: Optional[str]
    dimension: Optional[int]


@dataclass
class Corpus:
    key: str
    sources: List[str]
    records: List[VectorRecord]
    matrix: np.ndarray
    embedding_model: Optional[str] = None

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def dimension(self) -> int:
        return int(self.matrix.shape[1]) if self.matrix.ndim == 2 else 0


def _parse_file(path: str) -> ParsedFile:
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise CorpusFormatError(path, f"cannot read file ({exc.strerror or exc})") from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CorpusFormatError(path, f"invalid JSON ({exc.msg} at line {exc.lineno})") from exc

    if not isinstance(data, dict) or not isinstance(data.get("vectors"), list):
        raise CorpusFormatError(path, "Invalid vector file format: missing vectors array")

    file_meta = data.get("metadata")
    embedding_model = None
    if isinstance(file_meta, dict) and isinstance(file_meta.get("embeddingModel"), str):
        embedding_model = file_meta["embeddingModel"] or None

    records: List[VectorRecord] = []
    dimension: Optional[int] = None
    for pos, raw_record in enumerate(data["vectors"]):
        try:
            record = VectorRecord.model_validate(raw_record)
        except ValidationError as exc:
            first = exc.errors()[0]
            where = ".".join(str(p) for p in first.get("loc", ()))
            raise CorpusFormatError(path, f"invalid vector at index {pos} ({where}: {first.get('msg')})") from exc

        if not record.embedding:
            raise CorpusFormatError(path, f"vector {record.id!r} has an empty embedding")
        if dimension is None:
            dimension = len(record.embedding)
        elif len(record.embedding) != dimension:
            raise CorpusFormatError(
                path,
                f"vector {record.id!r} has dimension {len(record.embedding)}, expected {dimension}",
            )

        meta = record.metadata
        if not meta.source:
            meta = meta.model_copy(update={"source": path})
        records.append(
            record.model_copy(update={"embedding": l2_normalize(record.embedding).tolist(), "metadata": meta})
        )

    return ParsedFile(path=path, records=tuple(records), embedding_model=embedding_model, dimension=dimension)


class CorpusLoader:
    def __init__(self) -> None:
        self._files: Dict[str, ParsedFile] = {}
        self._corpora: Dict[str, Corpus] = {}
        self.parse_count = 0

    def load(self, paths: Iterable[str]) -> Corpus:
        key = corpus_cache_key(paths)
        cached = self._corpora.get(key)
        if cached is not None:
            return cached

        sources = key.split(KEY_SEPARATOR)
        records: List[VectorRecord] = []
        seen: Set[str] = set()
        embedding_model: Optional[str] = None
        dimension: Optional[int] = None

        for path in sources:
            parsed = self.load_file(path)
            if parsed.dimension is not None:
                if dimension is None:
                    dimension = parsed.dimension
                elif parsed.dimension != dimension:
                    raise CorpusFormatError(
                        path,
                        f"embedding dimension {parsed.dimension} does not match {dimension} of other files",
                    )
            for record in parsed.records:
                if record.id in seen:
                    # cross-file collision: first occurrence wins
                    logger.warning("Duplicate vector id %r in %s skipped", record.id, path)
                    continue
                seen.add(record.id)
                records.append(record)
            embedding_model = parsed.embedding_model or embedding_model

        if records:
            matrix = np.asarray([r.embedding for r in records], dtype=np.float32)
        else:
            matrix = np.zeros((0, dimension or 0), dtype=np.float32)

        corpus = Corpus(
            key=key,
            sources=sources,
            records=records,
            matrix=matrix,
            embedding_model=embedding_model,
        )
        self._corpora[key] = corpus
        logger.info("Loaded corpus: %d vectors from %d file(s)", corpus.total, len(sources))
        return corpus

    def load_file(self, path: str) -> ParsedFile:
        abs_path = os.path.abspath(os.path.expanduser(path))
        cached = self._files.get(abs_path)
        if cached is not None:
            return cached
        parsed = _parse_file(abs_path)
        self.parse_count += 1
        self._files[abs_path] = parsed
        return parsed

    def cached(self, paths: Iterable[str]) -> Optional[Corpus]:
        return self._corpora.get(corpus_cache_key(paths))
