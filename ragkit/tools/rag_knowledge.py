# ==============================
# Tool: rag_knowledge
# ==============================
"""
Runtime knowledge base: one tool, dispatch on "action".

Actions:
- add        {content, metadata?, id?}
- search     {query, limit?}
- list       {}
- delete     {id}
- clear      {}
- loadFile   {filePath}
- loadBulk   {items: [{content, metadata?, id?, embedding?}]}
- export     {format?: "json"|"buffer", includeEmbeddings?}
- saveToFile {filePath, format?, includeEmbeddings?}

Every action answers a JSON envelope with "success" plus action fields. The
ToolResult mirrors it: ok == success, data == envelope.

Embeddings are generated only when a credential is available
(params.credential, params.agentConfig.openaiKey, or the configured OpenAI key);
without one, search is lexical and items are stored without embeddings.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ragkit.config.schema import Settings
from ragkit.contracts.knowledge_schema import ExportFormat, KnowledgeItem, Metadata
from ragkit.contracts.tool_schema import ToolErrorCode, ToolResult, ToolRisk, ToolSpec
from ragkit.knowledge.errors import NotFoundError, RagError
from ragkit.knowledge.knowledge_search import EmbedFn, KnowledgeSearchEngine
from ragkit.knowledge.persistence import PersistenceGateway
from ragkit.knowledge.store import KnowledgeStore
from ragkit.logging.logger import LogContext, with_context
from ragkit.models.providers.openai_provider import OpenAIEmbeddingProvider
from ragkit.tools.base import BaseTool
from ragkit.tools.context import ToolContext

logger = logging.getLogger(__name__)

ACTIONS = ["add", "search", "list", "delete", "clear", "loadFile", "loadBulk", "export", "saveToFile"]

DESCRIPTION = (
    "Manage and search a runtime knowledge base. Actions: add, search (semantic with text fallback), "
    "list, delete, clear, loadFile (JSON/PDF/text), loadBulk, export (json or buffer), saveToFile."
)


class AgentConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    openai_key: Optional[str] = Field(default=None, alias="openaiKey")


class KnowledgeParams(BaseModel):
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)

    action: str = Field(..., min_length=1)
    content: Optional[str] = None
    query: Optional[str] = None
    metadata: Optional[Metadata] = None
    id: Optional[str] = None
    limit: Optional[int] = None
    file_path: Optional[str] = None
    format: ExportFormat = "json"
    include_embeddings: bool = True
    items: Optional[List[Any]] = None
    credential: Optional[str] = None
    agent_config: Optional[AgentConfig] = None


class KnowledgeTool(BaseTool):
    name = "rag_knowledge"

    def __init__(
        self,
        *,
        settings: Settings,
        store: KnowledgeStore,
        provider: OpenAIEmbeddingProvider,
    ) -> None:
        self.settings = settings
        self.store = store
        self.provider = provider
        self.search_engine = KnowledgeSearchEngine(store)
        self.persistence = PersistenceGateway(store)
        self._handlers: Dict[str, Callable[[KnowledgeParams, Optional[EmbedFn]], Dict[str, Any]]] = {
            "add": self._add,
            "search": self._search,
            "list": self._list,
            "delete": self._delete,
            "clear": self._clear,
            "loadFile": self._load_file,
            "loadBulk": self._load_bulk,
            "export": self._export,
            "saveToFile": self._save_to_file,
        }

    def spec(self) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            description=DESCRIPTION,
            risk=ToolRisk.DESTRUCTIVE,
            input_schema=KnowledgeParams.model_json_schema(by_alias=True),
            actions=list(ACTIONS),
            idempotent=False,
            side_effects=True,
        )

    # ------------------------------
    # Entry points
    # ------------------------------
    def run(self, params: Dict[str, Any], ctx: ToolContext) -> ToolResult:
        action = str(params.get("action") or "")
        meta = self._meta(action=action)
        envelope, code = self._handle(params, run_id=ctx.run_id)
        ctx.emit("rag_knowledge.completed", {"action": action, "success": envelope["success"]})
        if code is None:
            return ToolResult.success(envelope, meta=meta)
        # only backend failures are retryable
        return self._fail(
            code,
            str(envelope.get("error", "")),
            meta=meta,
            data=envelope,
            recoverable=code is ToolErrorCode.BACKEND_ERROR,
        )

    def invoke_json(self, params: Dict[str, Any]) -> str:
        """String form of the envelope, for agents that consume tool output as text."""
        envelope, _ = self._handle(params)
        return json.dumps(envelope, indent=2, ensure_ascii=False)

    def _handle(
        self, params: Dict[str, Any], *, run_id: Optional[str] = None
    ) -> Tuple[Dict[str, Any], Optional[ToolErrorCode]]:
        try:
            p = KnowledgeParams.model_validate(params)
        except ValidationError as exc:
            first = exc.errors()[0]
            where = ".".join(str(x) for x in first.get("loc", ()))
            envelope = {"success": False, "error": f"Invalid params: {where}: {first.get('msg')}"}
            return envelope, ToolErrorCode.INVALID_INPUT

        log = with_context(logger, LogContext(run_id=run_id, tool=self.name, action=p.action))
        handler = self._handlers.get(p.action)
        if handler is None:
            return {"success": False, "error": f"Unknown action: {p.action}"}, ToolErrorCode.INVALID_INPUT

        try:
            envelope = handler(p, self._embed_fn(p))
        except NotFoundError as exc:
            return {"success": False, "error": str(exc), "message": str(exc)}, ToolErrorCode.NOT_FOUND
        except RagError as exc:
            log.warning("Knowledge action failed: %s", exc)
            return {"success": False, "error": str(exc)}, ToolErrorCode.BACKEND_ERROR
        except ValueError as exc:
            return {"success": False, "error": str(exc)}, ToolErrorCode.INVALID_INPUT
        except Exception as exc:
            log.warning("Knowledge action failed: %s", exc, exc_info=True)
            return {"success": False, "error": str(exc) or "Unknown error occurred"}, ToolErrorCode.BACKEND_ERROR

        log.debug("Knowledge action ok")
        return envelope, None

    def _embed_fn(self, p: KnowledgeParams) -> Optional[EmbedFn]:
        credential = p.credential or (p.agent_config.openai_key if p.agent_config else None)
        credential = credential or self.settings.openai_api_key()
        if not credential:
            return None
        model = self.settings.rag.knowledge.embedding_model
        return lambda text: self.provider.embed(text, model=model, api_key=credential)

    # ------------------------------
    # Actions
    # ------------------------------
    def _add(self, p: KnowledgeParams, embed: Optional[EmbedFn]) -> Dict[str, Any]:
        if not p.content:
            raise ValueError("Content is required for adding knowledge")
        embedding = None
        if embed is not None:
            try:
                embedding = embed(p.content)
            except Exception as exc:
                logger.warning("Failed to generate embedding: %s", exc)
        item_id = self.store.add(
            KnowledgeItem(id=p.id or "", content=p.content, metadata=p.metadata or {}, embedding=embedding)
        )
        return {
            "success": True,
            "message": f"Knowledge added with ID: {item_id}",
            "id": item_id,
            "hasEmbedding": bool(embedding),
        }

    def _search(self, p: KnowledgeParams, embed: Optional[EmbedFn]) -> Dict[str, Any]:
        if not p.query:
            raise ValueError("Query is required for searching knowledge")
        limit = p.limit if p.limit is not None else self.settings.rag.knowledge.default_limit
        result = self.search_engine.search(p.query, limit, embed=embed)
        results = []
        for hit in result.hits:
            row = hit.item.to_record(include_embedding=False)
            if hit.score is not None:
                row["score"] = hit.score
            results.append(row)
        return {"success": True, "query": p.query, "results": results, "searchType": result.search_type}

    def _list(self, p: KnowledgeParams, embed: Optional[EmbedFn]) -> Dict[str, Any]:
        preview = self.settings.rag.knowledge.list_preview_chars
        items = self.store.list()
        knowledge = []
        for item in items:
            content = item.content[:preview] + ("..." if len(item.content) > preview else "")
            knowledge.append(
                {
                    "id": item.id,
                    "content": content,
                    "metadata": item.metadata,
                    "timestamp": item.timestamp,
                    "hasEmbedding": item.has_embedding,
                }
            )
        return {"success": True, "knowledge": knowledge, "total": len(items)}

    def _delete(self, p: KnowledgeParams, embed: Optional[EmbedFn]) -> Dict[str, Any]:
        if not p.id:
            raise ValueError("ID is required for deleting knowledge")
        if not self.store.delete(p.id):
            raise NotFoundError(p.id)
        return {"success": True, "message": f"Knowledge with ID {p.id} deleted"}

    def _clear(self, p: KnowledgeParams, embed: Optional[EmbedFn]) -> Dict[str, Any]:
        self.store.clear()
        return {"success": True, "message": "All knowledge cleared"}

    def _load_file(self, p: KnowledgeParams, embed: Optional[EmbedFn]) -> Dict[str, Any]:
        if not p.file_path:
            raise ValueError("File path is required for loading file")
        try:
            result = self.persistence.load_file(p.file_path, embed=embed)
        except Exception as exc:
            raise RagError(f"Failed to load file: {exc}") from exc
        return {
            "success": True,
            "message": f"Loaded {result.load_count} knowledge items from {result.file_name}",
            "loadCount": result.load_count,
            "fileName": result.file_name,
            "fileType": result.file_type,
        }

    def _load_bulk(self, p: KnowledgeParams, embed: Optional[EmbedFn]) -> Dict[str, Any]:
        if p.items is None:
            raise ValueError("Items array is required for bulk loading")
        result = self.persistence.load_bulk(p.items, embed=embed)
        return {
            "success": True,
            "message": f"Bulk loaded {result.load_count} out of {result.total_items} items",
            **result.to_wire(),
        }

    def _export(self, p: KnowledgeParams, embed: Optional[EmbedFn]) -> Dict[str, Any]:
        result = self.persistence.export(p.format, include_embeddings=p.include_embeddings)
        total = result.document.metadata.total_items
        if result.buffer is not None:
            return {
                "success": True,
                "message": f"Exported {total} knowledge items to buffer",
                "format": "buffer",
                "buffer": base64.b64encode(result.buffer).decode("ascii"),
                "bufferEncoding": "base64",
                "bufferSize": result.buffer_size,
                "data": result.document.to_wire(),
            }
        return {
            "success": True,
            "message": f"Exported {total} knowledge items as JSON",
            "format": "json",
            "data": result.document.to_wire(),
        }

    def _save_to_file(self, p: KnowledgeParams, embed: Optional[EmbedFn]) -> Dict[str, Any]:
        if not p.file_path:
            raise ValueError("File path is required for saving to file")
        try:
            result = self.persistence.save_to_file(p.file_path, p.format, include_embeddings=p.include_embeddings)
        except OSError as exc:
            raise RagError(f"Failed to save file: {exc}") from exc
        return {
            "success": True,
            "message": f"Saved {result.total_items} knowledge items to {result.file_path}",
            **result.to_wire(),
        }
