# ==============================
# Retrieval Errors
# ==============================
"""
Exception taxonomy for the retrieval core.

These are raised inside ragkit.knowledge and ragkit.models; tools translate
them into ToolResult envelopes so nothing crosses the tool boundary.
"""

from __future__ import annotations

from typing import Optional


class RagError(Exception):
    """Base class for retrieval-core failures."""


class ConfigError(RagError):
    """Missing vector files, credential or other required configuration."""


class CorpusFormatError(RagError):
    """A corpus file could not be read or does not match the expected shape."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load vector database from {path}: {reason}")


class ProviderError(RagError):
    """The embedding provider call failed (HTTP error, timeout, bad payload)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class IndexBuildError(RagError):
    """The approximate index could not be constructed; brute force is used instead."""


class NotFoundError(RagError):
    """Unknown knowledge item id."""

    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(f"Knowledge with ID {item_id} not found")
