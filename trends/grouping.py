"""
Cross-platform grouping: turns topic clusters into a per-trend lookup.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from trends.models import CrossPlatformGroup

logger = logging.getLogger(__name__)

MIN_PLATFORMS = 2
MAX_PLATFORM_SCORE = 6


def _distinct(values: Iterable[Any]) -> List[str]:
    seen: List[str] = []
    for value in values or []:
        token = str(value).strip().lower()
        if token and token not in seen:
            seen.append(token)
    return seen


def normalize_group(raw: Mapping[str, Any]) -> Optional[CrossPlatformGroup]:
    """Validate one raw cluster; returns None when it spans fewer than two platforms."""
    platforms = _distinct(raw.get("platforms") or [])
    trend_ids = [str(tid) for tid in (raw.get("trend_ids") or []) if tid]
    if len(platforms) < MIN_PLATFORMS or not trend_ids:
        return None
    declared = raw.get("cross_platform_score")
    if isinstance(declared, (int, float)) and declared < MIN_PLATFORMS:
        return None
    topic = str(raw.get("topic") or "").strip()[:40]
    return CrossPlatformGroup(
        topic=topic,
        platforms=platforms,
        trend_ids=trend_ids,
        score=min(len(platforms), MAX_PLATFORM_SCORE),
    )


def build_groups(raw_groups: Iterable[Any]) -> List[CrossPlatformGroup]:
    groups: List[CrossPlatformGroup] = []
    for raw in raw_groups or []:
        if isinstance(raw, CrossPlatformGroup):
            raw = {"topic": raw.topic, "platforms": raw.platforms, "trend_ids": raw.trend_ids}
        if not isinstance(raw, Mapping):
            logger.debug("Skipping malformed cross-platform group: %r", raw)
            continue
        group = normalize_group(raw)
        if group:
            groups.append(group)
    return groups


def build_lookup(groups: Iterable[CrossPlatformGroup]) -> Dict[str, CrossPlatformGroup]:
    """Map trend id to its group; a later group overrides an earlier one for the same id."""
    lookup: Dict[str, CrossPlatformGroup] = {}
    for group in groups:
        if len(group.platforms) < MIN_PLATFORMS:
            continue
        for trend_id in group.trend_ids:
            lookup[trend_id] = group
    return lookup
