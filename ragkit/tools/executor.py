# ==============================
# Tool Executor
# ==============================
"""
Central tool execution entrypoint.

Rules:
- Never raises; always returns a ToolResult envelope.
- Applies security redaction before emitting trace events.
- Local, in-process execution only.

Dependencies:
- ToolRegistry (resolve tool)
- SecurityRedactor (sanitize params/results for traces)
- ToolContext trace hook (optional)
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from ragkit.contracts.tool_schema import ToolError, ToolErrorCode, ToolMeta, ToolResult
from ragkit.governance.security import SecurityRedactor
from ragkit.logging.logger import LogContext, with_context
from ragkit.tools.context import ToolContext
from ragkit.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

BACKEND = "local"


class ToolExecutor:
    def __init__(self, *, registry: ToolRegistry, redactor: Optional[SecurityRedactor] = None) -> None:
        self.registry = registry
        self.redactor = redactor or SecurityRedactor()

    def execute(
        self,
        *,
        tool_name: str,
        params: Dict[str, Any],
        ctx: Optional[ToolContext] = None,
    ) -> ToolResult:
        ctx = ctx or ToolContext()
        log = with_context(logger, LogContext(run_id=ctx.run_id, tool=tool_name, action=params.get("action")))
        started = time.time()

        try:
            tool = self.registry.resolve(tool_name)
        except KeyError:
            err = ToolError(
                code=ToolErrorCode.NOT_FOUND,
                message=f"Unknown tool: {tool_name}",
                details={"tool": tool_name},
            )
            return ToolResult.fail(error=err, meta=ToolMeta(tool_name=tool_name, backend=BACKEND))

        try:
            result = tool.run(params, ctx)
        except Exception as e:
            log.error("Tool %s raised: %s", tool_name, e, exc_info=True)
            err = ToolError(
                code=ToolErrorCode.BACKEND_ERROR,
                message="Tool execution failed.",
                details={"tool": tool_name, "exc": repr(e)},
            )
            result = ToolResult.fail(error=err, meta=ToolMeta(tool_name=tool_name, backend=BACKEND))

        elapsed_ms = int((time.time() - started) * 1000)
        meta = result.meta.model_copy(update={"latency_ms": elapsed_ms, "backend": BACKEND, "redacted": True})
        result = result.model_copy(update={"meta": meta})

        ctx.emit(
            "tool.executed",
            {
                "tool": tool_name,
                "params": self.redactor.sanitize(params),
                "result": self.redactor.sanitize(result.to_dict()),
                "latency_ms": elapsed_ms,
                "backend": BACKEND,
            },
        )
        log.info("Tool %s finished ok=%s in %dms", tool_name, result.ok, elapsed_ms)
        return result
