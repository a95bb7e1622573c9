# ==============================
# Tool Contracts
# ==============================
"""
Envelope and listing contracts shared by every ragkit tool.

A tool call always answers a ToolResult:
  ok     - True when the call did what was asked
  data   - payload dict; failures may still carry one (e.g. an explanation text)
  error  - ToolError, present exactly when ok is False
  meta   - ToolMeta, stamped by the tool and completed by the executor

ToolSpec is discovery metadata (GET /api/tools, `ragkit tools`), not a result.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ==============================
# Enums
# ==============================
class ToolRisk(str, Enum):
    READ_ONLY = "read_only"
    DESTRUCTIVE = "destructive"


class ToolErrorCode(str, Enum):
    """Failure classes; the HTTP gateway maps them to status codes."""
    INVALID_INPUT = "invalid_input"
    CONFIGURATION = "configuration"
    NOT_FOUND = "not_found"
    BACKEND_ERROR = "backend_error"


# ==============================
# Models
# ==============================
class ToolMeta(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tool_name: str
    backend: str = Field(default="local")
    request_id: str = Field(default_factory=lambda: str(uuid4()))
    started_at: datetime = Field(default_factory=_utcnow)
    latency_ms: Optional[int] = Field(default=None, description="Filled in by the executor.")
    tags: Dict[str, str] = Field(default_factory=dict, description="e.g. {'action': 'add'} for rag_knowledge.")
    redacted: bool = Field(default=False, description="Trace payloads for this call were sanitized.")


class ToolError(BaseModel):
    """Errors are data: tools return them, they never raise across the boundary."""
    model_config = ConfigDict(extra="forbid")

    code: ToolErrorCode
    message: str
    recoverable: bool = Field(default=False, description="Whether retrying the same call might succeed.")
    details: Dict[str, Any] = Field(default_factory=dict, description="Structured, non-secret context.")


class ToolResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ok: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[ToolError] = None
    meta: ToolMeta

    @model_validator(mode="after")
    def _error_iff_failed(self) -> "ToolResult":
        if self.ok == (self.error is not None):
            raise ValueError("ToolResult needs an error exactly when ok is False")
        return self

    @classmethod
    def success(cls, data: Optional[Dict[str, Any]] = None, *, meta: ToolMeta) -> "ToolResult":
        return cls(ok=True, data=data or {}, meta=meta)

    @classmethod
    def fail(
        cls,
        *,
        error: ToolError,
        meta: ToolMeta,
        data: Optional[Dict[str, Any]] = None,
    ) -> "ToolResult":
        return cls(ok=False, data=data, error=error, meta=meta)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class ToolSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Registry key.")
    description: str = Field(..., description="Shown to agents deciding whether to call the tool.")
    risk: ToolRisk = Field(default=ToolRisk.READ_ONLY)
    version: str = Field(default="v1")
    input_schema: Dict[str, Any] = Field(default_factory=dict, description="JSON schema of accepted params.")
    actions: List[str] = Field(default_factory=list, description="Dispatch actions, for multi-action tools.")
    idempotent: bool = Field(default=True)
    side_effects: bool = Field(default=False, description="Mutates the store or writes files.")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
