# ==============================
# Config Loader (only env reader)
# ==============================
"""
Builds the one Settings object csv2api runs with.

Layers, lowest first:
  defaults (schema.py)
  configs/{app,dataset,query,logging}.yaml
  .env in the repo root
  process environment (CSV2API__SECTION__KEY)
  caller overrides (CLI flags)

Rules:
- Nothing else in the codebase reads os.environ or .env.
- Every input (root, configs dir, dotenv file, env mapping) can be injected.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import yaml
from pydantic import ValidationError

from core.config.schema import Settings

ENV_PREFIX = "CSV2API__"
CONFIG_SECTIONS = ("app", "dataset", "query", "logging")

_TRUE = {"true", "yes", "on"}
_FALSE = {"false", "no", "off"}


# ==============================
# File Layers
# ==============================


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    return loaded if isinstance(loaded, dict) else {}


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    # a section file is either `<name>: {...}` or the bare mapping
    if set(data) == {name} and isinstance(data[name], dict):
        return data[name]
    return data


def _yaml_layer(cfg_dir: Path, sections: Iterable[str] = CONFIG_SECTIONS) -> Dict[str, Any]:
    return {name: _section(_read_yaml(cfg_dir / f"{name}.yaml"), name) for name in sections}


def _read_dotenv(dotenv_path: Path) -> Dict[str, str]:
    """KEY=VALUE lines; comments, blanks and lines without '=' are skipped."""
    if not dotenv_path.is_file():
        return {}
    found: Dict[str, str] = {}
    for raw in dotenv_path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        if key:
            found[key] = value.strip().strip("'\"")
    return found


# ==============================
# Merge / Env Overrides
# ==============================


def _deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursive dict merge; values from `override` win."""
    out = dict(base)
    for key, value in override.items():
        current = out.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            out[key] = _deep_merge(current, value)
        else:
            out[key] = value
    return out


def _coerce(raw: str) -> Any:
    text = raw.strip()
    lowered = text.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    for cast in (int, float):
        try:
            return cast(text)
        except ValueError:
            continue
    return text


def _key_path(env_key: str) -> Optional[List[str]]:
    if not env_key.startswith(ENV_PREFIX):
        return None
    parts = env_key[len(ENV_PREFIX) :].lower().split("__")
    return parts if all(parts) else None


def _env_layer(env: Mapping[str, str]) -> Dict[str, Any]:
    """
    Turn CSV2API__ variables into a nested dict.

    CSV2API__APP__PORT=8080                  -> {"app": {"port": 8080}}
    CSV2API__DATASET__PATH=data/people.csv   -> {"dataset": {"path": "data/people.csv"}}
    """
    layer: Dict[str, Any] = {}
    for key in sorted(env):
        parts = _key_path(key)
        if parts is None:
            continue
        nested: Dict[str, Any] = {parts[-1]: _coerce(env[key])}
        for part in reversed(parts[:-1]):
            nested = {part: nested}
        layer = _deep_merge(layer, nested)
    return layer


# ==============================
# Public Loader API
# ==============================


def load_settings(
    *,
    repo_root: Optional[str] = None,
    configs_dir: Optional[str] = None,
    dotenv_file: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Settings:
    """
    Load and validate Settings.

    repo_root defaults to the working directory, configs_dir to "configs"
    under it, dotenv_file to <repo_root>/.env and env to os.environ.
    Raises ValueError("Invalid configuration: ...") when validation fails.
    """
    root = Path(repo_root or os.getcwd()).expanduser().resolve()
    process_env = dict(os.environ if env is None else env)
    dotenv_env = _read_dotenv(Path(dotenv_file) if dotenv_file else root / ".env")

    merged = _yaml_layer(root / (configs_dir or "configs"))
    merged = _deep_merge(merged, _env_layer(dotenv_env))
    merged = _deep_merge(merged, _env_layer(process_env))
    if overrides:
        merged = _deep_merge(merged, overrides)

    paths = merged.setdefault("app", {}).setdefault("paths", {})
    paths.setdefault("repo_root", str(root))

    try:
        return Settings.model_validate(merged)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e
