"""
Dict conversions shared by the cache, the API layer and the CLI.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from trends.models import (
    AIJudgment,
    CrossPlatformGroup,
    HealthStatus,
    ScoredTrend,
    TrendItem,
    TrendSource,
)


def item_to_dict(item: TrendItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "source": item.source.value,
        "title": item.title,
        "url": item.url,
        "score": item.engagement_score,
        "comments": item.comment_count,
        "timestamp": item.captured_at,
        "author": item.author,
        "subreddit": item.subreddit,
        "extra": item.extra,
    }


def dict_to_item(data: Dict[str, Any]) -> TrendItem:
    return TrendItem(
        id=str(data["id"]),
        source=TrendSource(data["source"]),
        title=data.get("title") or "",
        url=data.get("url") or "",
        engagement_score=int(data.get("score") or 0),
        comment_count=int(data.get("comments") or 0),
        captured_at=int(data.get("timestamp") or 0),
        author=data.get("author") or "",
        subreddit=data.get("subreddit"),
        extra=data.get("extra") or {},
    )


def group_to_dict(group: Optional[CrossPlatformGroup]) -> Optional[Dict[str, Any]]:
    if group is None:
        return None
    return {
        "topic": group.topic,
        "platforms": list(group.platforms),
        "trend_ids": list(group.trend_ids),
        "score": group.score,
    }


def dict_to_group(data: Optional[Dict[str, Any]]) -> Optional[CrossPlatformGroup]:
    if not data:
        return None
    return CrossPlatformGroup(
        topic=data.get("topic") or "",
        platforms=list(data.get("platforms") or []),
        trend_ids=list(data.get("trend_ids") or []),
        score=int(data.get("score") or len(data.get("platforms") or [])),
    )


def judgment_to_dict(judgment: AIJudgment) -> Dict[str, Any]:
    return {
        "content_value": judgment.content_value,
        "niche_fit": judgment.niche_fit,
        "hook_potential": judgment.hook_potential,
        "actionability": judgment.actionability,
        "reject": judgment.reject,
        "suggested_angle": judgment.suggested_angle,
        "content_format": judgment.content_format.value,
        "emotional_trigger": judgment.emotional_trigger.value,
        "scored_at": judgment.scored_at.isoformat() if judgment.scored_at else None,
    }


def scored_to_dict(scored: ScoredTrend) -> Dict[str, Any]:
    payload = item_to_dict(scored.trend)
    payload.update(
        {
            "combined_score": scored.combined_score,
            "ai_score": judgment_to_dict(scored.judgment) if scored.judgment else None,
            "signals": scored.signals.as_dict() if scored.signals else None,
            "value_tier": scored.value_tier.value if scored.value_tier else None,
            "velocity_tier": scored.velocity_tier.value if scored.velocity_tier else None,
            "cross_platform": group_to_dict(scored.cross_platform),
            "saved": scored.saved,
        }
    )
    return payload


def health_to_dict(status: HealthStatus) -> Dict[str, Any]:
    return {
        "name": status.name,
        "healthy": status.healthy,
        "last_error": status.last_error,
        "last_success": status.last_success.isoformat() if status.last_success else None,
        "items_last_fetch": status.items_last_fetch,
        "latency_ms": status.latency_ms,
        "extra": status.extra,
    }
