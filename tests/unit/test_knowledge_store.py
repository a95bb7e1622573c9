from __future__ import annotations

# ==============================
# Knowledge Store Tests
# ==============================

import re

from ragkit.contracts.knowledge_schema import KnowledgeItem
from ragkit.knowledge.store import KnowledgeStore, generate_knowledge_id


def test_generated_id_format() -> None:
    assert re.fullmatch(r"knowledge_\d{13}_[0-9a-z]{9}", generate_knowledge_id())
    assert generate_knowledge_id("bulk").startswith("bulk_")


def test_add_assigns_id_when_missing() -> None:
    store = KnowledgeStore()
    item_id = store.add(KnowledgeItem(content="hello"))

    assert item_id.startswith("knowledge_")
    assert store.get(item_id).content == "hello"
    assert len(store) == 1


def test_readding_same_id_overwrites_in_place() -> None:
    store = KnowledgeStore()
    store.add(KnowledgeItem(id="first", content="one"))
    store.add(KnowledgeItem(id="x", content="A"))
    store.add(KnowledgeItem(id="last", content="three"))
    store.add(KnowledgeItem(id="x", content="B"))

    assert len(store) == 3
    assert store.get("x").content == "B"
    assert [i.id for i in store.list()] == ["first", "x", "last"]


def test_delete_unknown_reports_false() -> None:
    store = KnowledgeStore()
    store.add(KnowledgeItem(id="a", content="alpha"))

    assert store.delete("missing") is False
    assert store.delete("a") is True
    assert "a" not in store
    assert store.get("a") is None


def test_clear_empties_store() -> None:
    store = KnowledgeStore()
    store.add(KnowledgeItem(content="one"))
    store.add(KnowledgeItem(content="two"))

    store.clear()

    assert len(store) == 0
    assert store.list() == []


def test_instances_are_isolated() -> None:
    a, b = KnowledgeStore(), KnowledgeStore()
    a.add(KnowledgeItem(id="only-a", content="x"))
    assert b.get("only-a") is None
