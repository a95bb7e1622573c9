# ==============================
# Tool: rag_search
# ==============================
"""
Grounded retrieval over a local precomputed-embedding corpus.

Input:
  {"query": str, "topK"?: int, "threshold"?: float,
   "config"?: {"vectorFiles"?: [str], "vectorFile"?: str, "embeddingModel"?: str,
               "topK"?: int, "threshold"?: float, "credential"?: str}}

Resolution order for every knob: call params > call config > settings.rag.corpus.
The credential falls back to the configured OpenAI key.

Output data: {"text": formatted block for the agent, "results": [SearchHit], "count": int}

Missing files or credential is a configuration failure (ok=False) whose
data.text still carries the explanation, so agents can relay it verbatim.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ragkit.config.schema import Settings
from ragkit.contracts.tool_schema import ToolErrorCode, ToolResult, ToolRisk, ToolSpec
from ragkit.knowledge.corpus_search import CorpusSearchEngine, format_results
from ragkit.tools.base import BaseTool
from ragkit.tools.context import ToolContext

NO_FILES_MESSAGE = "Error: RAG search is not configured. No vector files provided (rag.vectorFiles)."
NO_CREDENTIAL_MESSAGE = "Error: OpenAI API key is not configured for RAG search."

DESCRIPTION = (
    "Grounded retrieval over a local vectorized corpus of documents (PDFs, notes, FAQs, specs, policies). "
    "Use it before answering when the question likely relies on these documents. Cite source/title of "
    "relevant passages; if nothing relevant is found, say so and continue with best-effort reasoning."
)


class _Camel(BaseModel):
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)


class RagSearchConfig(_Camel):
    vector_files: List[str] = Field(default_factory=list)
    vector_file: Optional[str] = Field(default=None, description="Single-file form of vector_files.")
    embedding_model: Optional[str] = None
    top_k: Optional[int] = Field(default=None, ge=0)
    threshold: Optional[float] = None
    credential: Optional[str] = None

    def files(self) -> List[str]:
        if self.vector_files:
            return list(self.vector_files)
        return [self.vector_file] if self.vector_file else []


class RagSearchParams(_Camel):
    query: str = Field(..., min_length=1)
    top_k: Optional[int] = Field(default=None, ge=0)
    threshold: Optional[float] = None
    config: RagSearchConfig = Field(default_factory=RagSearchConfig)


def _first(*values: Any) -> Any:
    for v in values:
        if v is not None:
            return v
    return None


class RagSearchTool(BaseTool):
    name = "rag_search"

    def __init__(self, *, settings: Settings, engine: CorpusSearchEngine) -> None:
        self.settings = settings
        self.engine = engine

    def spec(self) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            description=DESCRIPTION,
            risk=ToolRisk.READ_ONLY,
            input_schema=RagSearchParams.model_json_schema(by_alias=True),
        )

    def run(self, params: Dict[str, Any], ctx: ToolContext) -> ToolResult:
        meta = self._meta()
        try:
            p = RagSearchParams.model_validate(params)
        except ValidationError as exc:
            return self._fail(
                ToolErrorCode.INVALID_INPUT,
                "Invalid rag_search params.",
                meta=meta,
                details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
            )

        corpus_cfg = self.settings.rag.corpus
        files = p.config.files() or list(corpus_cfg.vector_files)
        if not files:
            return self._fail(
                ToolErrorCode.CONFIGURATION, NO_FILES_MESSAGE, meta=meta, data={"text": NO_FILES_MESSAGE}
            )
        credential = p.config.credential or self.settings.openai_api_key()
        if not credential:
            return self._fail(
                ToolErrorCode.CONFIGURATION,
                NO_CREDENTIAL_MESSAGE,
                meta=meta,
                data={"text": NO_CREDENTIAL_MESSAGE},
            )

        hits = self.engine.search(
            p.query,
            vector_files=files,
            api_key=credential,
            model=p.config.embedding_model or corpus_cfg.embedding_model,
            top_k=_first(p.top_k, p.config.top_k, corpus_cfg.top_k),
            threshold=_first(p.threshold, p.config.threshold, corpus_cfg.threshold),
        )
        ctx.emit("rag_search.completed", {"count": len(hits), "files": len(files)})
        return ToolResult.success(
            {
                "text": format_results(p.query, hits),
                "results": [h.model_dump(mode="json") for h in hits],
                "count": len(hits),
            },
            meta=meta,
        )
