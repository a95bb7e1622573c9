# ==============================
# Security & Redaction
# ==============================
"""
Credential scrubbing for logs, traces and tool metadata.

Embedding calls carry an API credential in tool params (config.credential,
agentConfig.openaiKey, credential) and in settings. Anything the executor traces
or the log pipeline emits passes through SecurityRedactor first.

Two mechanisms:
- key-based: a mapping key that contains a hint (credential, api_key, token, ...)
  has its whole value masked, whatever the value's type
- pattern-based: regexes applied to every string value and to log messages

Invalid user patterns from settings are dropped rather than breaking logging.
"""

from __future__ import annotations

import re
from typing import Any, List, Optional, Pattern, Sequence

from ragkit.config.schema import Settings

DEFAULT_KEY_HINTS = (
    "credential",
    "password",
    "secret",
    "token",
    "api_key",
    "apikey",
    "openaikey",
    "authorization",
    "bearer",
    "private_key",
)

# OpenAI style keys, "api_key=..." assignments, bearer headers
DEFAULT_PATTERNS = (
    r"sk-[A-Za-z0-9_\-]{20,}",
    r"(?i)api[_-]?key\s*[:=]\s*\S+",
    r"(?i)authorization\s*:\s*bearer\s+\S+",
)


def _valid_patterns(patterns: Sequence[str]) -> List[Pattern[str]]:
    out: List[Pattern[str]] = []
    for raw in patterns:
        try:
            out.append(re.compile(raw))
        except re.error:
            continue
    return out


class SecurityRedactor:
    def __init__(
        self,
        *,
        patterns: Optional[Sequence[str]] = None,
        key_hints: Optional[Sequence[str]] = None,
        mask: str = "[REDACTED]",
    ) -> None:
        self.mask = mask
        self.key_hints = tuple(h.lower() for h in (key_hints or DEFAULT_KEY_HINTS))
        self.patterns = _valid_patterns(patterns or DEFAULT_PATTERNS)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SecurityRedactor":
        """Defaults plus logging.redact_patterns."""
        return cls(patterns=[*DEFAULT_PATTERNS, *settings.logging.redact_patterns])

    def is_sensitive_key(self, key: Any) -> bool:
        name = str(key).lower()
        return any(hint in name for hint in self.key_hints)

    def redact_text(self, text: str) -> str:
        for pattern in self.patterns:
            text = pattern.sub(self.mask, text)
        return text

    def sanitize(self, value: Any) -> Any:
        """
        Redacted deep copy of `value`.

        Pydantic models are dumped to JSON-mode dicts first; tuples become
        lists; unknown objects are stringified and pattern-redacted.
        """
        if value is None or isinstance(value, (bool, int, float)):
            return value
        if isinstance(value, str):
            return self.redact_text(value)
        if isinstance(value, dict):
            return {
                k: self.mask if self.is_sensitive_key(k) else self.sanitize(v)
                for k, v in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [self.sanitize(v) for v in value]
        if hasattr(value, "model_dump"):
            return self.sanitize(value.model_dump(mode="json"))
        return self.redact_text(str(value))
