# ==============================
# Testing Fixtures
# ==============================
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from ragkit.config.schema import LoggingConfig, Settings
from ragkit.knowledge.errors import ProviderError

VOCAB = ["refund", "shipping", "password", "invoice"]


class FakeEmbedder:
    """
    Deterministic stand-in for OpenAIEmbeddingProvider.

    Exact texts registered in `vectors` map to fixed embeddings; anything else
    gets a bag-of-words vector over VOCAB. fail=True raises ProviderError.
    """

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, *, fail: bool = False) -> None:
        self.vectors = dict(vectors or {})
        self.fail = fail
        self.calls: List[Dict[str, Any]] = []

    def embed(self, text: str, *, model: str, api_key: str) -> List[float]:
        self.calls.append({"text": text, "model": model, "api_key": api_key})
        if self.fail:
            raise ProviderError("OpenAI API Error: simulated outage", status_code=503)
        if text in self.vectors:
            return list(self.vectors[text])
        words = text.lower().split()
        return [float(sum(1 for w in words if w.startswith(v))) for v in VOCAB]


class FakeResponse:
    def __init__(self, status_code: int, body: Any, *, reason: str = "") -> None:
        self.status_code = status_code
        self._body = body
        self.reason = reason

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeSession:
    """requests.Session stand-in: records post() calls, replays queued responses."""

    def __init__(self, responses: Optional[List[Any]] = None) -> None:
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    def post(self, url: str, *, headers: Dict[str, str], json: Dict[str, Any], timeout: float) -> FakeResponse:
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def make_embedder() -> Callable[..., FakeEmbedder]:
    def _make(vectors: Optional[Dict[str, List[float]]] = None, *, fail: bool = False) -> FakeEmbedder:
        return FakeEmbedder(vectors, fail=fail)

    return _make


@pytest.fixture
def make_response() -> Callable[..., FakeResponse]:
    return FakeResponse


@pytest.fixture
def fake_session() -> Callable[..., FakeSession]:
    def _make(*responses: Any) -> FakeSession:
        return FakeSession(list(responses))

    return _make


@pytest.fixture
def settings() -> Settings:
    """Default settings, no credential, console logging off."""
    return Settings(logging=LoggingConfig(console=False))


@pytest.fixture
def write_corpus(tmp_path: Path) -> Callable[..., str]:
    """
    Write a corpus file and return its path.

    vectors: list of (id, text, embedding) or full record dicts.
    """

    def _write(
        name: str,
        vectors: List[Any],
        *,
        embedding_model: Optional[str] = None,
    ) -> str:
        records = []
        for v in vectors:
            if isinstance(v, dict):
                records.append(v)
                continue
            vid, text, emb = v
            records.append({"id": vid, "text": text, "embedding": emb, "metadata": {"title": f"Title {vid}"}})
        body: Dict[str, Any] = {"vectors": records}
        if embedding_model:
            body["metadata"] = {"embeddingModel": embedding_model}
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(body), encoding="utf-8")
        return str(path)

    return _write
