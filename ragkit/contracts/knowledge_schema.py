# ==============================
# Knowledge Contracts
# ==============================
"""
Data contracts for the retrieval core.

Two families live here:
- Corpus records loaded from precomputed embedding files (read-only at runtime).
- Knowledge items managed at runtime by a KnowledgeStore, plus the envelopes
  used to export, save and load them.

Wire formats use camelCase keys (exportedAt, totalItems, ...); Python code uses
snake_case attributes. Dump with by_alias=True when writing files.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator
from pydantic.alias_generators import to_camel

Metadata = Dict[str, JsonValue]
SearchType = Literal["semantic", "text"]
ExportFormat = Literal["json", "buffer"]


def now_ms() -> int:
    return int(time.time() * 1000)


# ==============================
# Corpus Records
# ==============================
class RecordMetadata(BaseModel):
    """
    Metadata of a corpus record. 'source' and 'title' are reserved and always
    present; any other keys from the file are kept as extras.
    """
    model_config = ConfigDict(extra="allow")

    source: str = Field(default="", description="Originating document; defaults to the corpus file path.")
    title: str = Field(default="")

    @field_validator("source", "title", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class VectorRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    text: str = Field(default="")
    embedding: List[float]
    metadata: RecordMetadata = Field(default_factory=RecordMetadata)

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_none(cls, v: Any) -> Any:
        return {} if v is None else v


class SearchHit(BaseModel):
    """Public result shape of a corpus search."""
    model_config = ConfigDict(extra="forbid")

    id: str
    text: str
    score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


# ==============================
# Knowledge Items
# ==============================
class KnowledgeItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default="", description="Empty means: let the store generate one.")
    content: str
    metadata: Metadata = Field(default_factory=dict)
    embedding: Optional[List[float]] = Field(default=None)
    timestamp: int = Field(default_factory=now_ms, description="Epoch milliseconds.")

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    def to_record(self, *, include_embedding: bool = True) -> Dict[str, Any]:
        """Export shape: {id, content, metadata, timestamp, embedding?}."""
        out = self.model_dump(mode="json", exclude={"embedding"})
        if include_embedding and self.embedding:
            out["embedding"] = list(self.embedding)
        return out


class KnowledgeHit(BaseModel):
    model_config = ConfigDict(extra="forbid")

    item: KnowledgeItem
    score: Optional[float] = Field(default=None, description="Cosine score; only set for semantic search.")


class KnowledgeSearchResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    hits: List[KnowledgeHit] = Field(default_factory=list)
    search_type: SearchType = Field(default="text")


# ==============================
# Persistence Envelopes
# ==============================
class _CamelModel(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ExportMetadata(_CamelModel):
    exported_at: Optional[str] = None
    saved_at: Optional[str] = None
    total_items: int
    format: ExportFormat = "json"
    includes_embeddings: bool = True


class ExportDocument(_CamelModel):
    knowledge: List[Dict[str, Any]] = Field(default_factory=list)
    metadata: ExportMetadata

    def to_wire(self) -> Dict[str, Any]:
        # item records are already wire-shaped; None metadata values must survive
        return {"knowledge": list(self.knowledge), "metadata": self.metadata.to_wire()}


class ExportResult(_CamelModel):
    format: ExportFormat
    document: ExportDocument
    buffer: Optional[bytes] = None

    @property
    def buffer_size(self) -> Optional[int]:
        return None if self.buffer is None else len(self.buffer)


class FileResult(_CamelModel):
    file_path: str
    format: ExportFormat
    total_items: int
    file_size: int


class LoadResult(_CamelModel):
    load_count: int
    file_name: str
    file_type: str
    items: List[KnowledgeItem] = Field(default_factory=list)


class BulkItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    content: Optional[str] = None
    metadata: Metadata = Field(default_factory=dict)
    id: Optional[str] = None
    embedding: Optional[List[float]] = None

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_none(cls, v: Any) -> Any:
        return {} if v is None else v


class BulkItemResult(_CamelModel):
    success: bool
    id: Optional[str] = None
    has_embedding: Optional[bool] = None
    error: Optional[str] = None


class BulkLoadResult(_CamelModel):
    load_count: int
    total_items: int
    results: List[BulkItemResult] = Field(default_factory=list)
