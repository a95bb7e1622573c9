# ==============================
# Knowledge Store
# ==============================
"""
Caller-owned, in-memory collection of KnowledgeItems.

Not durable (see PersistenceGateway for files). One instance per owner; pass
it to every engine/tool that needs it.

Rules:
- Re-adding an existing id replaces the item in place (insertion order kept).
- Deleting an unknown id returns False; it never raises.
"""

from __future__ import annotations

import random
import string
import time
from typing import Dict, List, Optional

from ragkit.contracts.knowledge_schema import KnowledgeItem

_BASE36 = string.digits + string.ascii_lowercase


def generate_knowledge_id(prefix: str = "knowledge") -> str:
    """<prefix>_<epoch ms>_<9 base36 chars>"""
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


class KnowledgeStore:
    def __init__(self) -> None:
        self._items: Dict[str, KnowledgeItem] = {}

    def add(self, item: KnowledgeItem) -> str:
        if not item.id:
            item = item.model_copy(update={"id": generate_knowledge_id()})
        self._items[item.id] = item
        return item.id

    def get(self, item_id: str) -> Optional[KnowledgeItem]:
        return self._items.get(item_id)

    def list(self) -> List[KnowledgeItem]:
        return list(self._items.values())

    def delete(self, item_id: str) -> bool:
        return self._items.pop(item_id, None) is not None

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items
