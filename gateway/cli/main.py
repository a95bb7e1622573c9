# ==============================
# CLI Entrypoint
# ==============================
"""
CLI for ragkit.

Supported commands:
  ragkit search --query "refund policy" --vector-file kb/policies.json --top-k 3
  ragkit knowledge --action add --payload '{"content": "Refunds take 5 days"}' --store-file kb.json
  ragkit knowledge --action search --payload '{"query": "refunds"}' --store-file kb.json
  ragkit knowledge --action export --payload-file export.json
  ragkit tools

--store-file makes the in-memory knowledge store durable across invocations:
it is loaded before the action (if it exists) and saved after mutating actions.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from ragkit.config.loader import load_settings
from ragkit.config.schema import Settings
from ragkit.governance.security import SecurityRedactor
from ragkit.knowledge.errors import RagError
from ragkit.knowledge.persistence import PersistenceGateway
from ragkit.knowledge.store import KnowledgeStore
from ragkit.logging.logger import bootstrap_logger
from ragkit.models.providers.openai_provider import OpenAIEmbeddingProvider
from ragkit.tools.context import ToolContext
from ragkit.tools.executor import ToolExecutor
from ragkit.tools.registry import ToolRegistry, build_default_registry

MUTATING_ACTIONS = {"add", "delete", "clear", "loadFile", "loadBulk"}


def _read_payload(inline: Optional[str], path: Optional[str]) -> Dict[str, Any]:
    """--payload / --payload-file -> dict. Both or neither: error / {}."""
    if inline is not None and path is not None:
        raise SystemExit("Use either --payload or --payload-file, not both.")
    if path is None and inline is None:
        return {}
    source = Path(path).read_text(encoding="utf-8") if path is not None else inline
    try:
        value = json.loads(source)
    except ValueError as exc:
        raise SystemExit(f"Payload is not valid JSON: {exc}") from exc
    if not isinstance(value, dict):
        raise SystemExit("Payload must be a JSON object.")
    return value


def _emit(obj: Any) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False, default=str))


def cmd_search(
    executor: ToolExecutor,
    *,
    query: str,
    vector_files: List[str],
    top_k: Optional[int],
    threshold: Optional[float],
    model: Optional[str],
) -> int:
    params: Dict[str, Any] = {"query": query, "config": {"vectorFiles": vector_files}}
    if top_k is not None:
        params["topK"] = top_k
    if threshold is not None:
        params["threshold"] = threshold
    if model:
        params["config"]["embeddingModel"] = model
    res = executor.execute(tool_name="rag_search", params=params, ctx=ToolContext())
    text = (res.data or {}).get("text")
    if text:
        print(text)
    else:
        _emit(res.to_dict())
    return 0 if res.ok else 1


def cmd_knowledge(
    executor: ToolExecutor,
    store: KnowledgeStore,
    *,
    action: str,
    payload: Dict[str, Any],
    store_file: Optional[str],
) -> int:
    gateway = PersistenceGateway(store)
    if store_file and Path(store_file).is_file():
        try:
            gateway.load_file(store_file)
        except (OSError, ValueError, RagError) as exc:
            _emit({"success": False, "error": f"Failed to load store file {store_file}: {exc}"})
            return 1

    params = {**payload, "action": action}
    res = executor.execute(tool_name="rag_knowledge", params=params, ctx=ToolContext())

    if store_file and res.ok and action in MUTATING_ACTIONS:
        try:
            gateway.save_to_file(store_file)
        except (OSError, ValueError, RagError) as exc:
            _emit({**(res.data or {}), "success": False, "error": f"Failed to save store file {store_file}: {exc}"})
            return 1
    _emit(res.data)
    return 0 if res.ok else 1


def cmd_tools(registry: ToolRegistry) -> int:
    tools = registry.list()
    _emit({"tools": {name: tools[name]["meta"] for name in sorted(tools)}})
    return 0


def main(
    argv: Optional[List[str]] = None,
    *,
    settings: Optional[Settings] = None,
    provider: Optional[OpenAIEmbeddingProvider] = None,
) -> int:
    ap = argparse.ArgumentParser(prog="ragkit")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_search = sub.add_parser("search", help="Search precomputed embedding files")
    ap_search.add_argument("--query", required=True)
    ap_search.add_argument("--vector-file", action="append", default=[], dest="vector_files")
    ap_search.add_argument("--top-k", type=int, default=None)
    ap_search.add_argument("--threshold", type=float, default=None)
    ap_search.add_argument("--model", default=None, help="Embedding model name")

    ap_knowledge = sub.add_parser("knowledge", help="Run one knowledge-store action")
    ap_knowledge.add_argument("--action", required=True)
    ap_knowledge.add_argument("--payload", help="JSON object string", default=None)
    ap_knowledge.add_argument("--payload-file", help="Path to JSON file with payload", default=None)
    ap_knowledge.add_argument("--store-file", help="Knowledge file loaded before and saved after the action")

    sub.add_parser("tools", help="List registered tools")

    args = ap.parse_args(argv)

    if settings is None:
        settings, _ = load_settings()
    bootstrap_logger(settings)

    store = KnowledgeStore()
    registry = build_default_registry(settings, store=store, provider=provider)
    executor = ToolExecutor(registry=registry, redactor=SecurityRedactor.from_settings(settings))

    if args.cmd == "search":
        return cmd_search(
            executor,
            query=args.query,
            vector_files=args.vector_files,
            top_k=args.top_k,
            threshold=args.threshold,
            model=args.model,
        )
    if args.cmd == "knowledge":
        payload = _read_payload(args.payload, args.payload_file)
        return cmd_knowledge(executor, store, action=args.action, payload=payload, store_file=args.store_file)
    if args.cmd == "tools":
        return cmd_tools(registry)

    raise SystemExit("Unknown command")


if __name__ == "__main__":
    raise SystemExit(main())
