"""
Total ordering and query-time filtering over scored trends.

All functions return new lists and never mutate their input.
"""
from __future__ import annotations

import time
from typing import Dict, Iterable, List, Optional, Sequence

from trends.models import RankingQuery, ScoredTrend, SortKey, TimeWindow, TrendSource, ValueTier

TIER_ORDER: Dict[ValueTier, int] = {
    ValueTier.HIGH: 0,
    ValueTier.MAYBE: 1,
    ValueTier.SKIP: 2,
}
MISSING_TIER_RANK = TIER_ORDER[ValueTier.MAYBE]


def _rank_key(item: ScoredTrend):
    tier = TIER_ORDER[item.value_tier] if item.value_tier else MISSING_TIER_RANK
    return (1 if item.rejected else 0, tier, -item.combined_score)


def rank(trends: Iterable[ScoredTrend]) -> List[ScoredTrend]:
    """Rejected last, then tier (high, maybe, skip), then combined score descending."""
    return sorted(trends, key=_rank_key)


def _signal_value(item: ScoredTrend, key: SortKey) -> int:
    if key == SortKey.COMBINED:
        return item.combined_score
    if not item.signals:
        return 0
    return getattr(item.signals, key.value)


def sort_by(trends: Sequence[ScoredTrend], key: SortKey) -> List[ScoredTrend]:
    if key == SortKey.COMBINED:
        return rank(trends)
    return sorted(trends, key=lambda item: -_signal_value(item, key))


def within_window(trends: Iterable[ScoredTrend], window: TimeWindow, *, now: Optional[float] = None) -> List[ScoredTrend]:
    reference = time.time() if now is None else now
    return [t for t in trends if reference - t.trend.captured_at < window.seconds]


def from_sources(trends: Iterable[ScoredTrend], sources: Sequence[TrendSource]) -> List[ScoredTrend]:
    allowed = set(sources)
    return [t for t in trends if t.trend.source in allowed]


def apply_query(trends: Sequence[ScoredTrend], query: RankingQuery, *, now: Optional[float] = None) -> List[ScoredTrend]:
    visible = within_window(from_sources(trends, query.sources), query.window, now=now)
    if query.hide_rejected:
        visible = [t for t in visible if not t.rejected]
    ordered = sort_by(visible, query.sort_by)
    return ordered[: query.limit] if query.limit else ordered


def tier_counts(trends: Iterable[ScoredTrend]) -> Dict[str, int]:
    counts = {tier.value: 0 for tier in ValueTier}
    counts["rejected"] = 0
    for item in trends:
        if item.value_tier:
            counts[item.value_tier.value] += 1
        if item.rejected:
            counts["rejected"] += 1
    return counts
