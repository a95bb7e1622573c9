# ==============================
# Base Tool Contract
# ==============================
"""
Base tool contract for ragkit.

Rules:
- Tools are executed through ragkit/tools/executor.py.
- Tools do not read env vars directly. Settings and collaborators are injected.
- Tools return ToolResult (standard envelope) and report failures as data.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ragkit.contracts.tool_schema import ToolError, ToolErrorCode, ToolMeta, ToolResult, ToolSpec
from ragkit.tools.context import ToolContext


class BaseTool(ABC):
    """
    Base class for all tools.

    Each concrete tool provides a stable 'name' (registry key) and a spec()
    describing its params for listings.
    """

    name: str

    @abstractmethod
    def spec(self) -> ToolSpec:
        raise NotImplementedError

    @abstractmethod
    def run(self, params: Dict[str, Any], ctx: ToolContext) -> ToolResult:
        raise NotImplementedError

    # ------------------------------
    # Envelope helpers
    # ------------------------------
    def _meta(self, **tags: str) -> ToolMeta:
        return ToolMeta(tool_name=self.name, tags={k: v for k, v in tags.items() if v})

    def _fail(
        self,
        code: ToolErrorCode,
        message: str,
        *,
        meta: ToolMeta,
        data: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> ToolResult:
        err = ToolError(code=code, message=message, recoverable=recoverable, details=details or {})
        return ToolResult.fail(error=err, meta=meta, data=data)
