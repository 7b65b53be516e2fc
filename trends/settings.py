"""
Centralised settings for the trend pipeline (env-first, code-light).
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, List, Optional

from trends.models import TrendSource
from trends.scoring import MEME_HEAVY_SUBREDDITS
from utils.security import is_configured_key

logger = logging.getLogger(__name__)


@dataclass
class TrendSettings:
    default_sources: List[TrendSource]
    result_limit: int
    cache_ttl_seconds: int
    cache_path: Path
    db_path: str
    max_workers: int
    meme_subreddits: FrozenSet[str]
    sonar_model: str
    perplexity_api_key: Optional[str] = None
    youtube_api_key: Optional[str] = None


def _int_from_env(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = int(raw)
        return value if value > 0 else default
    except ValueError:
        logger.warning("Invalid int value for %s=%s; using default %s", key, raw, default)
        return default


def _parse_sources(raw: Optional[str]) -> List[TrendSource]:
    if not raw:
        return list(TrendSource)
    sources: List[TrendSource] = []
    for token in raw.split(","):
        token = token.strip().lower()
        if not token:
            continue
        try:
            sources.append(TrendSource(token))
        except ValueError:
            logger.warning("Unknown source token '%s' in TRENDS_DEFAULT_SOURCES; skipping.", token)
    return sources or list(TrendSource)


def _parse_subreddits(raw: Optional[str]) -> FrozenSet[str]:
    if raw is None:
        return MEME_HEAVY_SUBREDDITS
    return frozenset(token.strip() for token in raw.split(",") if token.strip())


def _key_from_env(key: str) -> Optional[str]:
    value = os.getenv(key)
    return value if value and is_configured_key(value) else None


def load_settings() -> TrendSettings:
    cache_path_env = os.getenv("TRENDS_CACHE_PATH")
    cache_path = Path(cache_path_env) if cache_path_env else Path(__file__).resolve().parent / ".trends_cache.json"
    return TrendSettings(
        default_sources=_parse_sources(os.getenv("TRENDS_DEFAULT_SOURCES")),
        result_limit=_int_from_env("TRENDS_RESULT_LIMIT", 50),
        cache_ttl_seconds=_int_from_env("TRENDS_CACHE_TTL", 3600),
        cache_path=cache_path,
        db_path=os.getenv("TRENDS_DB_PATH") or "trends_data.db",
        max_workers=_int_from_env("TRENDS_MAX_WORKERS", 6),
        meme_subreddits=_parse_subreddits(os.getenv("TRENDS_MEME_SUBREDDITS")),
        sonar_model=os.getenv("TRENDS_SONAR_MODEL") or "sonar",
        perplexity_api_key=_key_from_env("PERPLEXITY_API_KEY"),
        youtube_api_key=_key_from_env("YOUTUBE_API_KEY"),
    )
