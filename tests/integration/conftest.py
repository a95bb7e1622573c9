# ==============================
# Integration fixtures
# ==============================
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import pytest

from ragkit.config.schema import LoggingConfig, SecretsConfig, Settings
from ragkit.contracts.tool_schema import ToolResult
from ragkit.knowledge.store import KnowledgeStore
from ragkit.tools.context import ToolContext
from ragkit.tools.executor import ToolExecutor
from ragkit.tools.registry import ToolRegistry, build_default_registry

TEST_KEY = "sk-test-settings-key"


@dataclass
class Wired:
    """One registry + executor around a fake embedder and a fresh store."""

    settings: Settings
    embedder: Any
    store: KnowledgeStore
    registry: ToolRegistry
    executor: ToolExecutor

    def call(self, tool: str, params: Dict[str, Any], ctx: Optional[ToolContext] = None) -> ToolResult:
        return self.executor.execute(tool_name=tool, params=params, ctx=ctx)

    def knowledge(self, **params: Any) -> ToolResult:
        return self.call("rag_knowledge", params)


@pytest.fixture
def wire(make_embedder) -> Callable[..., Wired]:
    """
    Build a Wired harness.

    credential=False leaves settings without an OpenAI key.
    """

    def _wire(
        *,
        credential: bool = True,
        embedder: Any = None,
        settings: Optional[Settings] = None,
    ) -> Wired:
        settings = settings or Settings(logging=LoggingConfig(console=False))
        if credential:
            settings = settings.model_copy(update={"secrets": SecretsConfig(openai_api_key=TEST_KEY)})
        embedder = embedder or make_embedder()
        store = KnowledgeStore()
        registry = build_default_registry(settings, store=store, provider=embedder)
        return Wired(
            settings=settings,
            embedder=embedder,
            store=store,
            registry=registry,
            executor=ToolExecutor(registry=registry),
        )

    return _wire
