"""
Status/health helpers for the trend pipeline.

The output is designed for API/UI consumption and never carries raw API keys.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from trends.pipeline import TrendPipeline
from trends.serialization import health_to_dict
from trends.settings import TrendSettings


def build_status(pipeline: TrendPipeline, settings: TrendSettings) -> Dict[str, Any]:
    health = [health_to_dict(entry) for entry in pipeline.get_health()]
    snapshot = getattr(pipeline.cache, "snapshot", None)
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "pipeline": {
            "health": health,
            "adapter_count": len(pipeline.adapters),
            "healthy_adapters": sum(1 for entry in health if entry["healthy"]),
            "default_sources": [s.value for s in settings.default_sources],
            "default_limit": settings.result_limit,
        },
        "judgment": {
            "configured": bool(pipeline.judge and pipeline.judge.available),
            "model": settings.sonar_model,
        },
        "cache": snapshot() if callable(snapshot) else {},
        "config": {
            "cache_path": str(settings.cache_path),
            "cache_ttl_seconds": settings.cache_ttl_seconds,
            "db_path": settings.db_path,
            "youtube_configured": bool(settings.youtube_api_key),
        },
    }
