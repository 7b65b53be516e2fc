"""
Load ``config/trend_sources.yaml`` with ``${ENV}`` expansion.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config") / "trend_sources.yaml"


def load_sources_config(path: Optional[Path] = None) -> Dict[str, Any]:
    config_path = path or Path(os.getenv("TRENDS_SOURCES_CONFIG") or DEFAULT_CONFIG_PATH)
    if not config_path.exists():
        logger.info("Source config not found at %s; using built-in defaults", config_path)
        return {}
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        logger.error("Invalid source config %s: %s", config_path, exc)
        return {}
    if not isinstance(data, dict):
        logger.error("Source config %s must be a mapping, got %s", config_path, type(data).__name__)
        return {}
    return _expand_env(data)


def _expand_env(data: Dict[str, Any]) -> Dict[str, Any]:
    def replace(value: Any) -> Any:
        if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
            env_key = value[2:-1]
            return os.getenv(env_key, "")
        if isinstance(value, dict):
            return {k: replace(v) for k, v in value.items()}
        if isinstance(value, list):
            return [replace(item) for item in value]
        return value

    return replace(data)  # type: ignore[return-value]
