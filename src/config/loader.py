"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. ``config/config.yaml`` -- static defaults checked into the repo
  2. ``.env`` file          -- local developer overrides (not committed)
  3. Environment vars       -- set at deploy time

:func:`load_config` reads the YAML file first, then deep-merges the
env-derived :class:`Settings` values on top.  :func:`settings_from_config`
goes the other way and builds a ``Settings`` whose unset fields are filled
from the YAML sections, so ``chunking.target_tokens: 250`` in YAML behaves
like ``CHUNK_TARGET_TOKENS=250`` unless the env var is also set.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from src.config.settings import Settings

# YAML (section, key) -> Settings field.
_YAML_FIELD_MAP: dict[tuple[str, str], str] = {
    ("chunking", "model"): "chunking_model",
    ("chunking", "timeout"): "chunking_timeout",
    ("chunking", "max_retries"): "chunking_max_retries",
    ("chunking", "max_content_length"): "chunking_max_content_length",
    ("chunking", "window_overlap"): "chunking_window_overlap",
    ("chunking", "concurrency"): "chunking_concurrency",
    ("chunking", "target_tokens"): "chunk_target_tokens",
    ("chunking", "max_tokens"): "chunk_max_tokens",
    ("chunking", "min_tokens"): "chunk_min_tokens",
    ("chunking", "tagging_enabled"): "tagging_enabled",
    ("embedding", "model"): "embedding_model",
    ("embedding", "timeout"): "embedding_timeout",
    ("embedding", "max_retries"): "embedding_max_retries",
    ("embedding", "batch_size"): "embedding_batch_size",
    ("embedding", "backoff_base"): "retry_backoff_base",
    ("vector_store", "persist_dir"): "vector_store_dir",
    ("vector_store", "timeout"): "vector_store_timeout",
    ("vector_store", "max_retries"): "vector_store_max_retries",
    ("vector_store", "collection_prefix"): "collection_prefix",
    ("session", "backend"): "session_backend",
    ("session", "db_path"): "session_db_path",
    ("session", "ttl"): "session_ttl",
    ("session", "max_sessions"): "session_max_sessions",
    ("session", "update_retries"): "session_update_retries",
    ("ingest", "manual_min_content_length"): "manual_min_content_length",
    ("ingest", "manual_max_content_length"): "manual_max_content_length",
    ("ingest", "web_fetch_timeout"): "web_fetch_timeout",
    ("ingest", "web_max_content_length"): "web_max_content_length",
}


def read_yaml(path: str | Path = "config/config.yaml") -> dict[str, Any]:
    """Return the parsed YAML file, or ``{}`` when it does not exist."""
    config_path = Path(path)
    if not config_path.exists():
        return {}
    with open(config_path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def settings_from_config(path: str | Path = "config/config.yaml") -> Settings:
    """Build :class:`Settings`, using YAML values for fields not set in the env."""
    yaml_config = read_yaml(path)
    yaml_values: dict[str, Any] = {}
    for (section, key), field in _YAML_FIELD_MAP.items():
        value = (yaml_config.get(section) or {}).get(key)
        if value is None or field.upper() in os.environ:
            continue
        yaml_values[field] = value
    # Init kwargs outrank .env in pydantic-settings; env vars were filtered above.
    return Settings(**yaml_values)


def load_config(path: str = "config/config.yaml") -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Fully resolved configuration dictionary.
    """
    yaml_config = read_yaml(path)

    settings = Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "openai_configured": bool(settings.openai_api_key),
            "base_url": settings.openai_base_url,
        },
        "wiki": {
            "base_url": settings.wiki_base_url,
            "configured": settings.wiki_configured(),
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
