# ==============================
# Config Loader (only env reader)
# ==============================
"""
Settings loader for ragkit.

Rules:
- This is the ONLY module that reads os.environ, .env and secrets/secrets.yaml.
- Everything else receives a validated Settings object.

Layers, lowest first (later layers win key by key):
  defaults < configs/{app,models,rag,logging}.yaml < secrets/secrets.yaml < .env < process env

Env keys use the RAGKIT__ prefix with '__' as the nesting separator:
  RAGKIT__APP__ENV=stage
  RAGKIT__MODELS__OPENAI__API_KEY=...
  RAGKIT__RAG__CORPUS__VECTOR_FILES=["docs/vectors.json"]
  RAGKIT__RAG__CORPUS__ANN__ENABLED=false

Testability: paths and the env mapping are injectable; nothing is hardcoded.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from pydantic import ValidationError

from ragkit.config.schema import Settings

ENV_PREFIX = "RAGKIT__"
CONFIG_SECTIONS = ("app", "models", "rag", "logging")

Layer = Dict[str, Any]


@dataclass(frozen=True)
class ConfigSources:
    root: Path
    configs_dir: Path
    secrets_file: Path
    dotenv_file: Path

    @classmethod
    def resolve(
        cls,
        repo_root: Optional[str] = None,
        configs_dir: Optional[str] = None,
        secrets_file: Optional[str] = None,
        dotenv_file: Optional[str] = None,
    ) -> "ConfigSources":
        root = Path(repo_root or os.getcwd()).expanduser().resolve()
        return cls(
            root=root,
            configs_dir=root / (configs_dir or "configs"),
            secrets_file=Path(secrets_file) if secrets_file else root / "secrets" / "secrets.yaml",
            dotenv_file=Path(dotenv_file) if dotenv_file else root / ".env",
        )


# ==============================
# File Layers
# ==============================
def _yaml_mapping(path: Path) -> Layer:
    """Missing, empty or non-mapping YAML files contribute nothing."""
    if not path.is_file():
        return {}
    loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    return loaded if isinstance(loaded, dict) else {}


def _unwrap(doc: Layer, section: str) -> Layer:
    # "rag.yaml" may hold the section body or a single top-level "rag:" key
    if set(doc) == {section} and isinstance(doc[section], dict):
        return doc[section]
    return doc


def _config_layer(sources: ConfigSources) -> Layer:
    return {name: _unwrap(_yaml_mapping(sources.configs_dir / f"{name}.yaml"), name) for name in CONFIG_SECTIONS}


def _secrets_layer(sources: ConfigSources) -> Layer:
    return {"secrets": _unwrap(_yaml_mapping(sources.secrets_file), "secrets")}


def _dotenv_pairs(path: Path) -> Dict[str, str]:
    """KEY=VALUE lines; comments, blanks and malformed lines are skipped; quotes stripped."""
    if not path.is_file():
        return {}
    pairs: Dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        key, sep, value = line.strip().partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        pairs[key] = value.strip().strip("\"'")
    return pairs


# ==============================
# Env Layer
# ==============================
def _scalar(raw: str) -> Any:
    text = raw.strip()
    low = text.lower()
    if low in ("true", "false"):
        return low == "true"
    if text.startswith("["):
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text
    try:
        return int(text)
    except ValueError:
        pass
    if "." in text:
        try:
            return float(text)
        except ValueError:
            return text
    return text


def _env_layer(env: Mapping[str, str]) -> Layer:
    layer: Layer = {}
    for name in sorted(env):
        if not name.startswith(ENV_PREFIX):
            continue
        parts: List[str] = name[len(ENV_PREFIX) :].lower().split("__")
        if not all(parts):
            continue
        node = layer
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = node[part] = {}
            node = child
        node[parts[-1]] = _scalar(env[name])
    return layer


def _merge(base: Layer, top: Layer) -> Layer:
    """Recursive dict merge; values from `top` win."""
    out = dict(base)
    for key, value in top.items():
        below = out.get(key)
        out[key] = _merge(below, value) if isinstance(below, dict) and isinstance(value, dict) else value
    return out


# ==============================
# Public Loader API
# ==============================
def load_settings(
    *,
    repo_root: Optional[str] = None,
    configs_dir: Optional[str] = None,
    secrets_file: Optional[str] = None,
    dotenv_file: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> Tuple[Settings, Dict[str, Any]]:
    """
    Load and validate Settings.

    Returns (settings, merged_raw_dict). `env` defaults to os.environ; real env
    entries shadow .env entries with the same name.
    """
    sources = ConfigSources.resolve(repo_root, configs_dir, secrets_file, dotenv_file)
    process_env = dict(os.environ) if env is None else dict(env)
    effective_env = {**_dotenv_pairs(sources.dotenv_file), **process_env}

    merged: Layer = {}
    for layer in (
        _config_layer(sources),
        _secrets_layer(sources),
        _env_layer(effective_env),
        {"app": {"repo_root": str(sources.root)}},
    ):
        merged = _merge(merged, layer)

    try:
        settings = Settings.model_validate(merged)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    return _with_provider_key(settings), merged


def _with_provider_key(settings: Settings) -> Settings:
    """Copy secrets.openai_api_key into models.openai.api_key unless that is already set."""
    openai = settings.models.openai
    key = settings.secrets.openai_api_key
    if openai.api_key or not key:
        return settings
    models = settings.models.model_copy(update={"openai": openai.model_copy(update={"api_key": key})})
    return settings.model_copy(update={"models": models})
