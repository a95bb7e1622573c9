# ==============================
# API Dependencies / Singletons
# ==============================
from __future__ import annotations

from functools import lru_cache

from ragkit.config.loader import load_settings
from ragkit.config.schema import Settings
from ragkit.governance.security import SecurityRedactor
from ragkit.knowledge.corpus_search import CorpusSearchEngine
from ragkit.knowledge.store import KnowledgeStore
from ragkit.models.providers.openai_provider import OpenAIEmbeddingProvider
from ragkit.tools.executor import ToolExecutor
from ragkit.tools.registry import ToolRegistry, build_default_registry


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings, _ = load_settings()
    return settings


@lru_cache(maxsize=1)
def get_provider() -> OpenAIEmbeddingProvider:
    return OpenAIEmbeddingProvider.from_settings(get_settings())


@lru_cache(maxsize=1)
def get_knowledge_store() -> KnowledgeStore:
    # one store per server process
    return KnowledgeStore()


@lru_cache(maxsize=1)
def get_search_engine() -> CorpusSearchEngine:
    return CorpusSearchEngine.from_settings(get_settings(), provider=get_provider())


@lru_cache(maxsize=1)
def get_registry() -> ToolRegistry:
    return build_default_registry(
        get_settings(),
        store=get_knowledge_store(),
        engine=get_search_engine(),
        provider=get_provider(),
    )


@lru_cache(maxsize=1)
def get_executor() -> ToolExecutor:
    return ToolExecutor(registry=get_registry(), redactor=SecurityRedactor.from_settings(get_settings()))
