# ==============================
# Config Schemas (Pydantic)
# ==============================
"""
Settings models for ragkit.

Notes:
- Pure types and defaults: no env reads, no file IO (see loader.py).
- Every section forbids unknown keys so config typos fail loudly, except
  `secrets`, which may carry keys for collaborators outside this package.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ==============================
# App
# ==============================
class AppConfig(_Section):
    name: str = Field(default="ragkit", description="Service title shown by the HTTP gateway")
    env: str = Field(default="local", description="Environment name (local/stage/prod)")
    repo_root: str = Field(default=".", description="Set by the loader to the resolved root")


# ==============================
# Embedding Provider
# ==============================
class OpenAIConfig(_Section):
    api_base: str = Field(default="https://api.openai.com/v1")
    api_key: Optional[str] = Field(default=None, description="Resolved via loader from env/secrets only")
    org_id: Optional[str] = Field(default=None, description="Sent as OpenAI-Organization when it looks real")
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_input_chars: int = Field(default=8191, gt=0, description="Embedding input is truncated to this length")


class ModelsConfig(_Section):
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)


# ==============================
# Retrieval
# ==============================
class AnnConfig(_Section):
    enabled: bool = Field(default=True, description="Use the HNSW index; false selects brute force")
    m: int = Field(default=16, ge=2, description="HNSW graph degree")
    ef_construction: int = Field(default=200, ge=1)
    ef_search: int = Field(default=100, ge=1)


class CorpusSearchConfig(_Section):
    vector_files: List[str] = Field(default_factory=list, description="Precomputed embedding files")
    embedding_model: str = Field(default="text-embedding-3-small")
    top_k: int = Field(default=5, ge=0)
    threshold: float = Field(default=0.7)
    ann: AnnConfig = Field(default_factory=AnnConfig)


class KnowledgeConfig(_Section):
    embedding_model: str = Field(default="text-embedding-ada-002")
    default_limit: int = Field(default=5, ge=0)
    list_preview_chars: int = Field(default=200, ge=1)


class RagConfig(_Section):
    corpus: CorpusSearchConfig = Field(default_factory=CorpusSearchConfig)
    knowledge: KnowledgeConfig = Field(default_factory=KnowledgeConfig)


# ==============================
# Logging
# ==============================
class LoggingConfig(_Section):
    level: str = Field(default="INFO")
    redact: bool = Field(default=True, description="Mask credentials in emitted log lines")
    redact_patterns: List[str] = Field(default_factory=list, description="Extra regexes to mask")
    console: bool = Field(default=True, description="Attach the stdout JSON-line handler")


# ==============================
# Secrets
# ==============================
class SecretsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    openai_api_key: Optional[str] = Field(default=None)


# ==============================
# Top-Level Settings
# ==============================
class Settings(_Section):
    app: AppConfig = Field(default_factory=AppConfig)
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    rag: RagConfig = Field(default_factory=RagConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    secrets: SecretsConfig = Field(default_factory=SecretsConfig)

    def openai_api_key(self) -> Optional[str]:
        return self.models.openai.api_key or self.secrets.openai_api_key
