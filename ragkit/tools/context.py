# ==============================
# Tool Context
# ==============================
"""
Per-call context handed to tools by the executor.

- trace is an optional hook; emit() is a no-op when it is unset
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

# trace(event_type: str, payload: dict) -> None
TraceHook = Callable[[str, Dict[str, Any]], None]


class ToolContext(BaseModel):
    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    run_id: str = Field(default_factory=lambda: f"run_{uuid4().hex[:12]}", description="Caller run/session id.")
    trace: Optional[TraceHook] = Field(default=None, description="Trace emitter hook (optional).")

    def emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self.trace is None:
            return
        self.trace(event_type, {"run_id": self.run_id, **payload})
