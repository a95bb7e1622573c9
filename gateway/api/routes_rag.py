# ==============================
# RAG Routes
# ==============================
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, status

from ragkit.contracts.tool_schema import ToolErrorCode, ToolResult
from ragkit.tools.context import ToolContext
from ragkit.tools.executor import ToolExecutor
from ragkit.tools.registry import ToolRegistry
from gateway.api.deps import get_executor, get_registry


router = APIRouter()

_STATUS_BY_CODE = {
    ToolErrorCode.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ToolErrorCode.CONFIGURATION: status.HTTP_400_BAD_REQUEST,
    ToolErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def _ok(data: Dict[str, Any], *, meta: Dict[str, Any] | None = None) -> Dict[str, Any]:
    return {"ok": True, "data": data, "error": None, "meta": meta or {}}


def _error(
    *,
    http_status: int,
    code: str,
    message: str,
    data: Dict[str, Any] | None = None,
    details: Dict[str, Any] | None = None,
    meta: Dict[str, Any] | None = None,
) -> Dict[str, Any]:
    payload = {
        "ok": False,
        "data": data,
        "error": {"code": code, "message": message, "details": details or {}},
        "meta": meta or {},
    }
    raise HTTPException(status_code=http_status, detail=payload)


def _respond(result: ToolResult) -> Dict[str, Any]:
    body = result.to_dict()
    if result.ok:
        return _ok(body["data"] or {}, meta=body["meta"])
    error = result.error
    if error is None:
        return _error(
            http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code="unknown_error",
            message="Unknown failure.",
            meta=body["meta"],
        )
    return _error(
        http_status=_STATUS_BY_CODE.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        code=error.code.value,
        message=error.message,
        data=body["data"],
        details=body["error"]["details"],
        meta=body["meta"],
    )


@router.post("/rag")
def knowledge_action(
    payload: Dict[str, Any] = Body(...),
    executor: ToolExecutor = Depends(get_executor),
) -> Dict[str, Any]:
    """Dispatch one knowledge action ({"action": ..., ...})."""
    return _respond(executor.execute(tool_name="rag_knowledge", params=payload, ctx=ToolContext()))


@router.post("/rag/search")
def corpus_search(
    payload: Dict[str, Any] = Body(...),
    executor: ToolExecutor = Depends(get_executor),
) -> Dict[str, Any]:
    return _respond(executor.execute(tool_name="rag_search", params=payload, ctx=ToolContext()))


@router.get("/tools")
def list_tools(registry: ToolRegistry = Depends(get_registry)) -> Dict[str, Any]:
    tools = registry.list()
    return _ok({"tools": [tools[name]["meta"] for name in sorted(tools)], "count": len(tools)})
