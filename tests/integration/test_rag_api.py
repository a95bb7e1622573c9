from __future__ import annotations

# ==============================
# Integration: RAG HTTP API
# ==============================

import pytest
from fastapi.testclient import TestClient

import gateway.api.deps as deps
from gateway.api.http_app import create_app


def _reset_deps() -> None:
    for dep in (
        deps.get_settings,
        deps.get_provider,
        deps.get_knowledge_store,
        deps.get_search_engine,
        deps.get_registry,
        deps.get_executor,
    ):
        dep.cache_clear()


@pytest.fixture
def api(tmp_path, monkeypatch, wire):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("RAGKIT__LOGGING__CONSOLE", "false")
    _reset_deps()

    h = wire()
    app = create_app()
    app.dependency_overrides[deps.get_executor] = lambda: h.executor
    app.dependency_overrides[deps.get_registry] = lambda: h.registry
    try:
        yield TestClient(app), h
    finally:
        app.dependency_overrides.clear()
        _reset_deps()


@pytest.mark.integration
def test_settings_come_from_environment(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("RAGKIT__RAG__CORPUS__TOP_K", "9")
    monkeypatch.setenv("RAGKIT__LOGGING__CONSOLE", "false")
    _reset_deps()
    try:
        assert deps.get_settings().rag.corpus.top_k == 9
        assert deps.get_registry().has("rag_search")
    finally:
        _reset_deps()


@pytest.mark.integration
def test_knowledge_round_trip_over_http(api) -> None:
    client, h = api

    added = client.post("/api/rag", json={"action": "add", "content": "refund in 30 days"})
    assert added.status_code == 200
    body = added.json()
    assert body["ok"] is True
    assert body["data"]["success"] is True
    assert body["meta"]["tool_name"] == "rag_knowledge"

    listed = client.post("/api/rag", json={"action": "list"}).json()
    assert listed["data"]["total"] == 1
    assert len(h.store) == 1


@pytest.mark.integration
def test_unknown_item_is_404(api) -> None:
    client, _ = api

    resp = client.post("/api/rag", json={"action": "delete", "id": "ghost"})

    assert resp.status_code == 404
    detail = resp.json()["detail"]
    assert detail["ok"] is False
    assert detail["error"]["code"] == "not_found"
    assert detail["data"]["success"] is False


@pytest.mark.integration
def test_bad_action_is_400(api) -> None:
    client, _ = api

    resp = client.post("/api/rag", json={"action": "explode"})

    assert resp.status_code == 400
    assert resp.json()["detail"]["error"]["message"] == "Unknown action: explode"


@pytest.mark.integration
def test_search_without_files_is_400_with_text(api) -> None:
    client, _ = api

    resp = client.post("/api/rag/search", json={"query": "refund"})

    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["error"]["code"] == "configuration"
    assert detail["data"]["text"].startswith("Error: RAG search is not configured.")


@pytest.mark.integration
def test_search_hits_over_http(api, write_corpus) -> None:
    client, _ = api
    path = write_corpus("kb.json", [("r1", "Refunds take 5 days.", [1.0, 0.0, 0.0, 0.0])])

    resp = client.post("/api/rag/search", json={"query": "refund", "config": {"vectorFiles": [path]}})

    assert resp.status_code == 200
    assert resp.json()["data"]["count"] == 1


@pytest.mark.integration
def test_tools_listing(api) -> None:
    client, _ = api

    body = client.get("/api/tools").json()

    assert body["data"]["count"] == 2
    assert [t["name"] for t in body["data"]["tools"]] == ["rag_knowledge", "rag_search"]
