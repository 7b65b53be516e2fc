"""
Public API for the trend ranking pipeline.
"""
from __future__ import annotations

import threading
from typing import Optional, Sequence

from trends.models import AnalysisReport, RankingQuery, RankingResult
from trends.pipeline import TrendPipeline, build_pipeline
from trends.settings import TrendSettings, load_settings
from trends.status import build_status

SETTINGS: TrendSettings = load_settings()
_pipeline: Optional[TrendPipeline] = None
_lock = threading.Lock()


def get_pipeline() -> TrendPipeline:
    """The process-wide pipeline, built on first use so importing never touches disk."""
    global _pipeline
    with _lock:
        if _pipeline is None:
            _pipeline = build_pipeline(SETTINGS)
        return _pipeline


def get_ranked_trends(query: Optional[RankingQuery] = None) -> RankingResult:
    query = query or RankingQuery(sources=list(SETTINGS.default_sources), limit=SETTINGS.result_limit)
    return get_pipeline().run(query)


def analyze(trend_ids: Optional[Sequence[str]] = None, detect_cross_platform: bool = False) -> AnalysisReport:
    return get_pipeline().analyze(trend_ids, detect_cross_platform=detect_cross_platform)


def get_pipeline_status():
    """Expose a structured status payload for health dashboards."""
    return build_status(get_pipeline(), SETTINGS)
