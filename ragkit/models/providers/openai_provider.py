# ==============================
# OpenAI Embedding Provider
# ==============================
"""
OpenAI-compatible embeddings adapter.

Important:
- No environment reads here. api_base/timeouts come from OpenAIConfig; the
  credential is passed per call so one provider serves several callers.
- No retries. Callers decide whether a ProviderError is fatal or triggers a
  fallback (corpus search -> empty result, knowledge search -> lexical).

Wire shape:
  POST {api_base}/embeddings  {"input": str, "model": str}
  -> {"data": [{"embedding": [float, ...]}]}
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field

from ragkit.config.schema import OpenAIConfig, Settings
from ragkit.knowledge.errors import ProviderError

_PLACEHOLDER_ORG_IDS = {"put_openai_org_id_here", "placeholder", "your_org_id", "org_id", "changeme"}


class EmbeddingRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    input: str = Field(...)
    model: str = Field(..., description="Embedding model name")


def _should_send_org_header(org_id: Optional[str]) -> bool:
    if org_id is None:
        return False
    value = org_id.strip()
    if not value:
        return False
    return value.lower() not in _PLACEHOLDER_ORG_IDS


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return err
    return response.reason or f"HTTP {response.status_code}"


class OpenAIEmbeddingProvider:
    """
    Provider boundary for embeddings.

    session is injectable (anything with a requests-style post()) so tests can
    run without network access.
    """

    def __init__(self, *, config: Optional[OpenAIConfig] = None, session: Any = None) -> None:
        self.config = config or OpenAIConfig()
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings, *, session: Any = None) -> "OpenAIEmbeddingProvider":
        return cls(config=settings.models.openai, session=session)

    @property
    def endpoint(self) -> str:
        return self.config.api_base.rstrip("/") + "/embeddings"

    def _headers(self, api_key: str) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        if _should_send_org_header(self.config.org_id):
            headers["OpenAI-Organization"] = str(self.config.org_id).strip()
        return headers

    def build_request(self, text: str, *, model: str) -> EmbeddingRequest:
        return EmbeddingRequest(input=text[: self.config.max_input_chars], model=model)

    def embed(self, text: str, *, model: str, api_key: str) -> List[float]:
        if not api_key:
            raise ProviderError("OpenAI API key is not configured.")
        req = self.build_request(text, model=model)
        try:
            response = self.session.post(
                self.endpoint,
                headers=self._headers(api_key),
                json=req.model_dump(),
                timeout=self.config.timeout_seconds,
            )
        except requests.Timeout as exc:
            raise ProviderError(f"OpenAI API timeout after {self.config.timeout_seconds}s") from exc
        except requests.RequestException as exc:
            raise ProviderError(f"OpenAI API request failed: {exc}") from exc

        if not response.ok:
            raise ProviderError(
                f"OpenAI API Error: {_error_message(response)}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
            embedding = payload["data"][0]["embedding"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ProviderError("OpenAI API returned no embedding") from exc
        if not isinstance(embedding, list) or not embedding:
            raise ProviderError("OpenAI API returned no embedding")
        return [float(x) for x in embedding]
