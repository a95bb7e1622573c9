# ==============================
# Tool Registry
# ==============================
"""
Name -> tool factory table.

- Lookups go through one normalization ("RAG Search", "rag-search" and
  "rag_search" are the same key).
- resolve() builds a fresh tool object per call; shared state (store, caches)
  lives in whatever the factory closes over.
- build_default_registry() wires rag_search and rag_knowledge around one
  caller-owned KnowledgeStore and one CorpusSearchEngine.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ragkit.config.schema import Settings
from ragkit.knowledge.corpus_search import CorpusSearchEngine
from ragkit.knowledge.store import KnowledgeStore
from ragkit.models.providers.openai_provider import OpenAIEmbeddingProvider
from ragkit.tools.base import BaseTool
from ragkit.tools.rag_knowledge import KnowledgeTool
from ragkit.tools.rag_search import RagSearchTool

ToolFactory = Callable[[], BaseTool]

_SEPARATORS = re.compile(r"[\s\-]+")


def tool_key(name: str) -> str:
    return _SEPARATORS.sub("_", name.strip().lower())


@dataclass(frozen=True)
class ToolRegistration:
    key: str
    factory: ToolFactory
    meta: Dict[str, Any] = field(default_factory=dict)


class ToolRegistry:
    def __init__(self) -> None:
        self._entries: Dict[str, ToolRegistration] = {}

    def register(
        self,
        *,
        name: str,
        factory: ToolFactory,
        meta: Optional[Dict[str, Any]] = None,
        overwrite: bool = False,
    ) -> None:
        key = tool_key(name)
        if key in self._entries and not overwrite:
            raise ValueError(f"Tool already registered: {name}")
        self._entries[key] = ToolRegistration(key=key, factory=factory, meta=dict(meta or {}))

    def resolve(self, name: str) -> BaseTool:
        try:
            entry = self._entries[tool_key(name)]
        except KeyError:
            raise KeyError(f"Unknown tool: {name}") from None
        return entry.factory()

    def has(self, name: str) -> bool:
        return tool_key(name) in self._entries

    def names(self) -> List[str]:
        return sorted(self._entries)

    def list(self) -> Dict[str, Dict[str, Any]]:
        """key -> {"name", "meta"}; meta is the tool's ToolSpec dict."""
        return {key: {"name": key, "meta": entry.meta} for key, entry in self._entries.items()}


def build_default_registry(
    settings: Settings,
    *,
    store: Optional[KnowledgeStore] = None,
    engine: Optional[CorpusSearchEngine] = None,
    provider: Optional[OpenAIEmbeddingProvider] = None,
) -> ToolRegistry:
    provider = provider or OpenAIEmbeddingProvider.from_settings(settings)
    store = store if store is not None else KnowledgeStore()
    engine = engine or CorpusSearchEngine.from_settings(settings, provider=provider)

    factories: List[ToolFactory] = [
        lambda: RagSearchTool(settings=settings, engine=engine),
        lambda: KnowledgeTool(settings=settings, store=store, provider=provider),
    ]
    registry = ToolRegistry()
    for factory in factories:
        sample = factory()
        registry.register(name=sample.name, factory=factory, meta=sample.spec().to_dict())
    return registry
