from __future__ import annotations

# ==============================
# Integration: Retrieval Tools
# ==============================

import base64
import json

import pytest

from ragkit.config.schema import CorpusSearchConfig, KnowledgeConfig, LoggingConfig, RagConfig, Settings
from ragkit.contracts.tool_schema import ToolErrorCode
from ragkit.tools.context import ToolContext
from ragkit.tools.rag_search import NO_CREDENTIAL_MESSAGE, NO_FILES_MESSAGE

TEST_KEY = "sk-test-settings-key"


@pytest.fixture
def faq_corpus(write_corpus):
    # vectors over (refund, shipping, password, invoice)
    return write_corpus(
        "faq.json",
        [
            ("r1", "Refunds take 5 business days.", [1.0, 0.0, 0.0, 0.0]),
            ("s1", "Orders ship within 2 days.", [0.0, 1.0, 0.0, 0.0]),
            ("p1", "Reset your password from settings.", [0.0, 0.0, 1.0, 0.0]),
        ],
    )


def _corpus_settings(*files: str, **corpus) -> Settings:
    return Settings(
        rag=RagConfig(corpus=CorpusSearchConfig(vector_files=list(files), **corpus)),
        logging=LoggingConfig(console=False),
    )


# ------------------------------
# rag_search
# ------------------------------
@pytest.mark.integration
def test_rag_search_without_files_explains(wire) -> None:
    res = wire().call("rag_search", {"query": "refund"})

    assert res.ok is False
    assert res.error.code == ToolErrorCode.CONFIGURATION
    assert res.data == {"text": NO_FILES_MESSAGE}


@pytest.mark.integration
def test_rag_search_without_credential_explains(wire, faq_corpus) -> None:
    h = wire(credential=False, settings=_corpus_settings(faq_corpus))

    res = h.call("rag_search", {"query": "refund"})

    assert res.ok is False
    assert res.data["text"] == NO_CREDENTIAL_MESSAGE
    assert h.embedder.calls == []


@pytest.mark.integration
def test_rag_search_returns_formatted_hits(wire, faq_corpus) -> None:
    h = wire(settings=_corpus_settings(faq_corpus))

    res = h.call("rag_search", {"query": "refund"})

    assert res.ok is True
    assert res.data["count"] == 1
    assert res.data["results"][0]["id"] == "r1"
    assert res.data["text"].startswith('Found 1 relevant results for "refund":')
    assert "Title: Title r1" in res.data["text"]
    assert h.embedder.calls[0]["api_key"] == TEST_KEY
    assert h.embedder.calls[0]["model"] == "text-embedding-3-small"


@pytest.mark.integration
def test_rag_search_param_precedence(wire, faq_corpus, tmp_path) -> None:
    h = wire(settings=_corpus_settings(str(tmp_path / "missing.json"), top_k=1))

    res = h.call(
        "rag_search",
        {
            "query": "refund",
            "topK": 2,
            "threshold": -1.0,
            "config": {
                "vectorFile": faq_corpus,
                "topK": 1,
                "threshold": 0.99,
                "embeddingModel": "emb-cfg",
                "credential": "sk-call",
            },
        },
    )

    assert res.ok is True
    assert res.data["count"] == 2
    assert h.embedder.calls[-1] == {"text": "refund", "model": "emb-cfg", "api_key": "sk-call"}


@pytest.mark.integration
def test_rag_search_threshold_above_one_reports_no_results(wire, faq_corpus) -> None:
    h = wire(settings=_corpus_settings(faq_corpus))

    res = h.call("rag_search", {"query": "refund", "threshold": 1.5})

    assert res.ok is True
    assert res.data["count"] == 0
    assert res.data["text"] == 'No relevant results found for query "refund".'


@pytest.mark.integration
def test_rag_search_provider_outage_is_empty_success(wire, make_embedder, faq_corpus) -> None:
    h = wire(settings=_corpus_settings(faq_corpus), embedder=make_embedder(fail=True))

    res = h.call("rag_search", {"query": "refund"})

    assert res.ok is True
    assert res.data["count"] == 0
    assert res.data["text"] == 'No relevant results found for query "refund".'


@pytest.mark.integration
def test_rag_search_rejects_empty_query(wire) -> None:
    res = wire().call("rag_search", {"query": ""})
    assert res.error.code == ToolErrorCode.INVALID_INPUT


@pytest.mark.integration
def test_rag_search_emits_completion_event(wire, faq_corpus) -> None:
    h = wire(settings=_corpus_settings(faq_corpus))
    events = []
    ctx = ToolContext(trace=lambda t, p: events.append(t))

    h.call("rag_search", {"query": "refund"}, ctx=ctx)

    assert events == ["rag_search.completed", "tool.executed"]


# ------------------------------
# rag_knowledge
# ------------------------------
@pytest.mark.integration
def test_knowledge_add_search_delete_flow(wire) -> None:
    h = wire()

    added = h.knowledge(action="add", content="refund policy is 30 days", metadata={"topic": "billing"})
    h.knowledge(action="add", content="shipping is free over 50")

    assert added.ok is True
    assert added.data["hasEmbedding"] is True
    assert added.data["message"] == f"Knowledge added with ID: {added.data['id']}"

    found = h.knowledge(action="search", query="refund")
    assert found.data["searchType"] == "semantic"
    top = found.data["results"][0]
    assert top["content"] == "refund policy is 30 days"
    assert top["metadata"] == {"topic": "billing"}
    assert top["score"] == pytest.approx(1.0)
    assert "embedding" not in top

    deleted = h.knowledge(action="delete", id=added.data["id"])
    assert deleted.ok is True
    assert len(h.store) == 1


@pytest.mark.integration
def test_knowledge_without_credential_is_lexical(wire) -> None:
    h = wire(credential=False)

    added = h.knowledge(action="add", content="invoice numbers start with INV")
    found = h.knowledge(action="search", query="invoice")

    assert added.data["hasEmbedding"] is False
    assert found.data["searchType"] == "text"
    assert [r["content"] for r in found.data["results"]] == ["invoice numbers start with INV"]
    assert h.embedder.calls == []


@pytest.mark.integration
def test_knowledge_search_on_empty_store_succeeds(wire) -> None:
    res = wire().knowledge(action="search", query="anything")
    assert res.ok is True
    assert res.data["results"] == []


@pytest.mark.integration
def test_knowledge_credential_precedence(wire) -> None:
    h = wire()

    h.knowledge(action="add", content="a", credential="sk-param", agentConfig={"openaiKey": "sk-agent"})
    h.knowledge(action="add", content="b", agentConfig={"openaiKey": "sk-agent"})
    h.knowledge(action="add", content="c")

    assert [c["api_key"] for c in h.embedder.calls] == ["sk-param", "sk-agent", TEST_KEY]
    assert {c["model"] for c in h.embedder.calls} == {"text-embedding-ada-002"}


@pytest.mark.integration
def test_knowledge_embedding_failure_still_adds(wire, make_embedder) -> None:
    h = wire(embedder=make_embedder(fail=True))

    added = h.knowledge(action="add", content="refund rules")
    found = h.knowledge(action="search", query="refund")

    assert added.ok is True
    assert added.data["hasEmbedding"] is False
    assert found.data["searchType"] == "text"
    assert len(found.data["results"]) == 1


@pytest.mark.integration
def test_knowledge_list_previews_content(wire) -> None:
    settings = Settings(
        rag=RagConfig(knowledge=KnowledgeConfig(list_preview_chars=5)),
        logging=LoggingConfig(console=False),
    )
    h = wire(credential=False, settings=settings)
    h.knowledge(action="add", content="abcdefghij", id="long")
    h.knowledge(action="add", content="abc", id="short")

    res = h.knowledge(action="list")

    assert res.data["total"] == 2
    previews = {k["id"]: k["content"] for k in res.data["knowledge"]}
    assert previews == {"long": "abcde...", "short": "abc"}


@pytest.mark.integration
@pytest.mark.parametrize(
    "params, code, message",
    [
        ({"action": "add"}, ToolErrorCode.INVALID_INPUT, "Content is required for adding knowledge"),
        ({"action": "search"}, ToolErrorCode.INVALID_INPUT, "Query is required for searching knowledge"),
        ({"action": "delete"}, ToolErrorCode.INVALID_INPUT, "ID is required for deleting knowledge"),
        ({"action": "delete", "id": "nope"}, ToolErrorCode.NOT_FOUND, "Knowledge with ID nope not found"),
        ({"action": "loadFile"}, ToolErrorCode.INVALID_INPUT, "File path is required for loading file"),
        ({"action": "loadBulk"}, ToolErrorCode.INVALID_INPUT, "Items array is required for bulk loading"),
        ({"action": "saveToFile"}, ToolErrorCode.INVALID_INPUT, "File path is required for saving to file"),
        ({"action": "frobnicate"}, ToolErrorCode.INVALID_INPUT, "Unknown action: frobnicate"),
    ],
)
def test_knowledge_failures_mirror_success_flag(wire, params, code, message) -> None:
    res = wire().call("rag_knowledge", params)

    assert res.ok is False
    assert res.data["success"] is False
    assert res.data["error"] == message
    assert res.error.code == code
    assert res.error.recoverable is False


@pytest.mark.integration
def test_knowledge_load_missing_file_is_backend_error(wire, tmp_path) -> None:
    res = wire().knowledge(action="loadFile", filePath=str(tmp_path / "absent.json"))

    assert res.error.code == ToolErrorCode.BACKEND_ERROR
    assert res.data["error"].startswith("Failed to load file: File not found:")
    assert res.error.recoverable is True


@pytest.mark.integration
def test_knowledge_bulk_reports_partial_success(wire) -> None:
    res = wire().knowledge(action="loadBulk", items=[{"content": "refund"}, {"metadata": {}}])

    assert res.ok is True
    assert res.data["message"] == "Bulk loaded 1 out of 2 items"
    assert res.data["results"][0]["hasEmbedding"] is True
    assert res.data["results"][1]["error"] == "Content is required"


@pytest.mark.integration
def test_knowledge_export_buffer_is_base64(wire) -> None:
    h = wire(credential=False)
    h.knowledge(action="add", content="alpha", id="a")

    res = h.knowledge(action="export", format="buffer", includeEmbeddings=False)

    raw = base64.b64decode(res.data["buffer"])
    assert res.data["bufferEncoding"] == "base64"
    assert res.data["bufferSize"] == len(raw)
    assert json.loads(raw)["knowledge"][0]["id"] == "a"
    assert res.data["data"]["metadata"]["includesEmbeddings"] is False


@pytest.mark.integration
def test_knowledge_save_clear_load_round_trip(wire, tmp_path) -> None:
    h = wire()
    h.knowledge(action="add", content="refund within 30 days", id="r", metadata={"n": 1})
    target = tmp_path / "out" / "kb.json"

    saved = h.knowledge(action="saveToFile", filePath=str(target))
    assert saved.data["totalItems"] == 1
    assert saved.data["fileSize"] == target.stat().st_size

    assert h.knowledge(action="clear").data["message"] == "All knowledge cleared"
    assert len(h.store) == 0

    loaded = h.knowledge(action="loadFile", filePath=str(target))
    assert loaded.data["loadCount"] == 1
    assert loaded.data["fileName"] == "kb.json"
    item = h.store.get("r")
    assert item.metadata == {"n": 1}
    assert item.has_embedding


@pytest.mark.integration
def test_knowledge_invoke_json_returns_text(wire) -> None:
    tool = wire().registry.resolve("rag_knowledge")

    out = json.loads(tool.invoke_json({"action": "delete", "id": "ghost"}))

    assert out == {
        "success": False,
        "error": "Knowledge with ID ghost not found",
        "message": "Knowledge with ID ghost not found",
    }


@pytest.mark.integration
def test_tools_share_one_store(wire) -> None:
    h = wire(credential=False)
    h.knowledge(action="add", content="shared", id="s")

    # each resolve builds a new tool object over the same store
    assert h.registry.resolve("rag_knowledge") is not h.registry.resolve("rag_knowledge")
    assert h.knowledge(action="list").data["total"] == 1
