"""API routes for the trend ranker."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from flask import jsonify, request

from trends.llm_client import LLMError
from trends.models import RankingQuery, SortKey, TimeWindow, TrendSource
from trends.pipeline import TrendPipeline
from trends.ranking import tier_counts
from trends.serialization import group_to_dict, health_to_dict, scored_to_dict
from trends.settings import TrendSettings
from trends.status import build_status

logger = logging.getLogger("trendranker")

_TRUE_VALUES = {"1", "true", "yes", "on"}


class QueryError(ValueError):
    """Raised for malformed query parameters; mapped to HTTP 400."""


def _flag(raw: Optional[str], default: bool) -> bool:
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _parse_sources(raw: Optional[str], default: List[TrendSource]) -> List[TrendSource]:
    if not raw:
        return list(default)
    sources = []
    for token in raw.split(","):
        token = token.strip().lower()
        if not token:
            continue
        try:
            sources.append(TrendSource(token))
        except ValueError:
            raise QueryError(f"Unknown source: {token}")
    return sources or list(default)


def parse_ranking_query(args, settings: TrendSettings) -> RankingQuery:
    try:
        window = TimeWindow(args.get("window") or TimeWindow.DAY.value)
    except ValueError:
        raise QueryError(f"Unknown window: {args.get('window')}")
    try:
        sort_key = SortKey(args.get("sort") or SortKey.COMBINED.value)
    except ValueError:
        raise QueryError(f"Unknown sort key: {args.get('sort')}")
    raw_limit = args.get("limit")
    try:
        limit = int(raw_limit) if raw_limit else settings.result_limit
    except ValueError:
        raise QueryError(f"Invalid limit: {raw_limit}")
    if limit < 0:
        raise QueryError(f"Invalid limit: {raw_limit}")
    return RankingQuery(
        sources=_parse_sources(args.get("sources"), settings.default_sources),
        window=window,
        hide_rejected=_flag(args.get("hide_rejected"), True),
        sort_by=sort_key,
        limit=limit,
        use_cache=_flag(args.get("cache"), False),
    )


def _requested_ids(payload: dict) -> Optional[List[str]]:
    raw = payload.get("trend_ids") or payload.get("trends")
    if not raw:
        return None
    ids = []
    for entry in raw:
        value: Any = entry.get("id") if isinstance(entry, dict) else entry
        if value:
            ids.append(str(value))
    return ids or None


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def register_routes(app, get_pipeline: Callable[[], TrendPipeline], settings: TrendSettings):
    """Register all API routes with the Flask app.

    Args:
        app: Flask app instance.
        get_pipeline: Callable returning the shared TrendPipeline.
        settings: Loaded TrendSettings.
    """

    @app.route("/api/trends")
    def api_trends():
        try:
            query = parse_ranking_query(request.args, settings)
        except QueryError as exc:
            return jsonify({"status": "error", "error": str(exc)}), 400

        logger.info(
            "Ranking request: sources=%s window=%s sort=%s",
            ",".join(s.value for s in query.sources),
            query.window.value,
            query.sort_by.value,
        )
        try:
            result = get_pipeline().run(query)
        except Exception as exc:  # pragma: no cover
            logger.error("Trend ranking failed: %s", exc, exc_info=True)
            return jsonify({"status": "error", "error": "Failed to rank trends"}), 500

        return jsonify(
            {
                "status": "success",
                "trends": [scored_to_dict(t) for t in result.trends],
                "total": result.total,
                "cross_platform_count": result.cross_platform_count,
                "tier_counts": tier_counts(result.trends),
                "degraded": result.degraded,
                "cached": result.cached,
                "health": [health_to_dict(h) for h in result.health],
                "generated_at": result.generated_at.isoformat(),
            }
        )

    @app.route("/api/analyze", methods=["POST"])
    def api_analyze():
        payload = request.get_json(silent=True) or {}
        trend_ids = _requested_ids(payload)
        detect = bool(payload.get("detect_cross_platform"))
        logger.info("Analysis request for %s trends", len(trend_ids) if trend_ids else "cached")

        try:
            report = get_pipeline().analyze(trend_ids, detect_cross_platform=detect)
        except LLMError as exc:
            logger.warning("Analysis unavailable: %s", exc)
            return jsonify({"status": "error", "error": str(exc)}), 503

        if report.requested == 0:
            return jsonify({"status": "error", "error": "No trends to analyze"}), 400

        return jsonify(
            {
                "status": "success",
                "requested": report.requested,
                "analyzed": report.analyzed,
                "failed_batches": report.failed_batches,
                "cross_platform_groups": [group_to_dict(g) for g in report.groups],
                "timestamp": _timestamp(),
            }
        )

    @app.route("/api/trends/save", methods=["POST"])
    def api_save_trend():
        payload = request.get_json(silent=True) or {}
        trend_id = payload.get("trend_id")
        if not trend_id:
            return jsonify({"status": "error", "error": "trend_id is required"}), 400
        saved = bool(payload.get("saved", True))
        get_pipeline().set_saved(str(trend_id), saved)
        return jsonify({"status": "success", "trend_id": trend_id, "saved": saved})

    @app.route("/api/system-health")
    def api_system_health():
        """API endpoint for system health status."""
        logger.info("Received request for system health status")
        try:
            return jsonify({"status": "ok", "pipeline_status": build_status(get_pipeline(), settings), "timestamp": _timestamp()})
        except Exception as exc:
            logger.error("System health check failed: %s", exc, exc_info=True)
            return jsonify({
                "status": "error",
                "error": "Failed to retrieve system health status",
                "timestamp": _timestamp()
            }), 500
