# ==============================
# Knowledge Persistence
# ==============================
"""
Moves KnowledgeStore contents in and out of the process.

Operations:
- export(format, include_embeddings)   -> ExportResult (document, plus UTF-8 bytes for "buffer")
- save_to_file(path, format, ...)      -> FileResult
- load_file(path)                      -> LoadResult
- load_bulk(items)                     -> BulkLoadResult (per-item results, batch never aborts)

Notes:
- Both formats write the same pretty-printed JSON; "buffer" only changes what
  export() hands back.
- load_file keeps ids, metadata and integer timestamps found in the file, so
  save_to_file -> load_file restores the same items.
- Missing embeddings are generated when an embed function is configured. A
  failed generation is logged and the item is stored without one.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from ragkit.contracts.knowledge_schema import (
    BulkItem,
    BulkItemResult,
    BulkLoadResult,
    ExportDocument,
    ExportFormat,
    ExportMetadata,
    ExportResult,
    FileResult,
    KnowledgeItem,
    LoadResult,
    now_ms,
)
from ragkit.knowledge.knowledge_search import EmbedFn
from ragkit.knowledge.store import KnowledgeStore, generate_knowledge_id

logger = logging.getLogger(__name__)


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _dump(document: ExportDocument) -> bytes:
    return json.dumps(document.to_wire(), indent=2, ensure_ascii=False).encode("utf-8")


def _as_embedding(value: Any) -> Optional[List[float]]:
    if not isinstance(value, list) or not value:
        return None
    if not all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in value):
        return None
    return [float(x) for x in value]


def _as_timestamp(value: Any) -> Optional[int]:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


class PersistenceGateway:
    def __init__(self, store: KnowledgeStore, *, embed: Optional[EmbedFn] = None) -> None:
        self.store = store
        self.embed = embed

    # ------------------------------
    # Export / Save
    # ------------------------------
    def _document(self, fmt: ExportFormat, include_embeddings: bool, *, saved: bool) -> ExportDocument:
        items = self.store.list()
        stamp = _iso_now()
        return ExportDocument(
            knowledge=[item.to_record(include_embedding=include_embeddings) for item in items],
            metadata=ExportMetadata(
                exported_at=None if saved else stamp,
                saved_at=stamp if saved else None,
                total_items=len(items),
                format=fmt,
                includes_embeddings=include_embeddings,
            ),
        )

    def export(self, fmt: ExportFormat = "json", *, include_embeddings: bool = True) -> ExportResult:
        document = self._document(fmt, include_embeddings, saved=False)
        buffer = _dump(document) if fmt == "buffer" else None
        return ExportResult(format=fmt, document=document, buffer=buffer)

    def save_to_file(
        self,
        path: str,
        fmt: ExportFormat = "json",
        *,
        include_embeddings: bool = True,
    ) -> FileResult:
        abs_path = Path(os.path.abspath(os.path.expanduser(path)))
        document = self._document(fmt, include_embeddings, saved=True)
        abs_path.parent.mkdir(parents=True, exist_ok=True)
        abs_path.write_bytes(_dump(document))
        logger.info("Saved %d knowledge items to %s", document.metadata.total_items, abs_path)
        return FileResult(
            file_path=str(abs_path),
            format=fmt,
            total_items=document.metadata.total_items,
            file_size=abs_path.stat().st_size,
        )

    # ------------------------------
    # Load
    # ------------------------------
    def _embed_or_none(self, content: str, item_id: str, embed: Optional[EmbedFn]) -> Optional[List[float]]:
        if embed is None:
            return None
        try:
            return embed(content)
        except Exception as exc:
            logger.warning("Failed to generate embedding for item %s: %s", item_id, exc)
            return None

    def load_file(self, path: str, *, embed: Optional[EmbedFn] = None) -> LoadResult:
        embed = embed or self.embed
        abs_path = Path(os.path.abspath(os.path.expanduser(path)))
        if not abs_path.is_file():
            raise FileNotFoundError(f"File not found: {abs_path}")

        ext = abs_path.suffix.lower()
        raw_items = _file_items(abs_path, ext)

        stored: List[KnowledgeItem] = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                continue
            content = raw.get("content")
            if not isinstance(content, str) or not content:
                continue

            raw_id = raw.get("id")
            item_id = str(raw_id) if raw_id not in (None, "") else generate_knowledge_id("file")
            metadata = raw.get("metadata") if isinstance(raw.get("metadata"), dict) else {}
            embedding = _as_embedding(raw.get("embedding")) or self._embed_or_none(content, item_id, embed)
            timestamp = _as_timestamp(raw.get("timestamp"))
            if timestamp is None:
                timestamp = now_ms()

            item = KnowledgeItem(
                id=item_id,
                content=content,
                metadata=metadata,
                embedding=embedding,
                timestamp=timestamp,
            )
            self.store.add(item)
            stored.append(item)

        logger.info("Loaded %d knowledge items from %s", len(stored), abs_path.name)
        return LoadResult(
            load_count=len(stored),
            file_name=abs_path.name,
            file_type=ext[1:] or "unknown",
            items=stored,
        )

    def load_bulk(self, items: Iterable[Any], *, embed: Optional[EmbedFn] = None) -> BulkLoadResult:
        embed = embed or self.embed
        results: List[BulkItemResult] = []
        loaded = 0
        total = 0

        for raw in items:
            total += 1
            try:
                bulk = raw if isinstance(raw, BulkItem) else BulkItem.model_validate(raw)
            except ValidationError as exc:
                results.append(BulkItemResult(success=False, error=f"Invalid item: {exc.errors()[0].get('msg')}"))
                continue
            if not bulk.content:
                results.append(BulkItemResult(success=False, error="Content is required"))
                continue

            try:
                item_id = bulk.id or generate_knowledge_id("bulk")
                embedding = bulk.embedding or self._embed_or_none(bulk.content, item_id, embed)
                metadata: Dict[str, Any] = dict(bulk.metadata)
                metadata["bulkLoaded"] = True
                metadata["loadedAt"] = now_ms()
                self.store.add(
                    KnowledgeItem(id=item_id, content=bulk.content, metadata=metadata, embedding=embedding)
                )
            except Exception as exc:
                results.append(BulkItemResult(success=False, error=str(exc)))
                continue

            loaded += 1
            results.append(BulkItemResult(success=True, id=item_id, has_embedding=bool(embedding)))

        return BulkLoadResult(load_count=loaded, total_items=total, results=results)


def _file_items(path: Path, ext: str) -> List[Any]:
    """Raw item dicts for one file, by extension."""
    if ext == ".pdf":
        return [
            {
                "content": (
                    f"PDF Document: {path.name}\n\n"
                    f"Note: PDF content parsing not yet implemented. This is a placeholder for PDF document: {path}"
                ),
                "metadata": {"source": "pdf_file", "fileName": path.name, "filePath": str(path), "fileType": "pdf"},
            }
        ]

    text = path.read_text(encoding="utf-8")
    if ext != ".json":
        return [
            {
                "content": text,
                "metadata": {"source": "text_file", "fileName": path.name, "fileType": ext[1:] or "txt"},
            }
        ]

    data = json.loads(text)
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("knowledge"), list):
        return data["knowledge"]
    if isinstance(data, dict) and data.get("content"):
        return [data]
    return [
        {
            "content": json.dumps(data, indent=2, ensure_ascii=False),
            "metadata": {"source": "json_file", "fileName": path.name},
        }
    ]
