# ==============================
# Logging Bootstrap
# ==============================
"""
Logging bootstrap.

- stdlib logging, one stdout handler, one JSON object per line
- structured context fields (run_id, tool, action) via with_context()
- optional redaction filter driven by Settings.logging.redact

Library modules only call logging.getLogger(__name__); entry points (HTTP app,
CLI) call bootstrap_logger() once.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ragkit.config.schema import Settings
from ragkit.governance.security import SecurityRedactor

CONTEXT_FIELDS = ("run_id", "tool", "action")


@dataclass(frozen=True)
class LogContext:
    run_id: Optional[str] = None
    tool: Optional[str] = None
    action: Optional[str] = None


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in CONTEXT_FIELDS:
            value = getattr(record, k, None)
            if value is not None:
                payload[k] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class RedactingFilter(logging.Filter):
    """Masks credentials in the rendered message before any handler sees it."""

    def __init__(self, redactor: SecurityRedactor) -> None:
        super().__init__()
        self.redactor = redactor

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.redactor.redact_text(record.getMessage())
        record.args = None
        return True


def bootstrap_logger(settings: Settings) -> logging.Logger:
    """
    Configure the root logger from settings.
    Returns the package logger ("ragkit").
    """
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    # reloads (uvicorn --reload, repeated CLI calls in tests) must not stack handlers
    root.handlers = []

    if settings.logging.console:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(JsonLineFormatter())
        if settings.logging.redact:
            handler.addFilter(RedactingFilter(SecurityRedactor.from_settings(settings)))
        root.addHandler(handler)

    return logging.getLogger("ragkit")


def with_context(logger: logging.Logger, ctx: LogContext) -> logging.LoggerAdapter:
    return logging.LoggerAdapter(logger, {k: getattr(ctx, k) for k in CONTEXT_FIELDS})
