"""
Score combiner, gating rules, value tiering and the no-judgment fallback scorer.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional

from trends import signals
from trends.models import (
    AIJudgment,
    CrossPlatformGroup,
    ScoredTrend,
    SignalBreakdown,
    SnapshotPair,
    TrendItem,
    TrendSource,
    ValueTier,
)

DEFAULT_WEIGHTS: Dict[str, float] = {
    "ai_analysis": 0.30,
    "velocity": 0.20,
    "comments_ratio": 0.15,
    "cross_platform": 0.15,
    "emotional": 0.10,
    "freshness": 0.10,
}

MEME_HEAVY_SUBREDDITS: FrozenSet[str] = frozenset({"ChatGPT", "ClaudeAI"})

REJECT_CAP = 15
LOW_VALUE_THRESHOLD = 20
LOW_VALUE_CAP = 20
MEME_PENALTY = 15
MEME_NICHE_FIT_THRESHOLD = 50
BASIC_MEME_DAMPING = 0.7
HIGH_TIER_MIN = 70
MAYBE_TIER_MIN = 40


@dataclass(frozen=True)
class ScoringConfig:
    """
    Tunable constants for the combiner and gate.

    Defaults reproduce the production weighting; callers may override any of
    them, but the six weights must still sum to 1.0.
    """

    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    meme_subreddits: FrozenSet[str] = MEME_HEAVY_SUBREDDITS
    reject_cap: int = REJECT_CAP
    low_value_threshold: int = LOW_VALUE_THRESHOLD
    low_value_cap: int = LOW_VALUE_CAP
    meme_penalty: int = MEME_PENALTY
    meme_niche_fit_threshold: int = MEME_NICHE_FIT_THRESHOLD
    basic_meme_damping: float = BASIC_MEME_DAMPING

    def __post_init__(self) -> None:
        missing = set(DEFAULT_WEIGHTS) - set(self.weights)
        if missing:
            raise ValueError(f"Missing signal weights: {', '.join(sorted(missing))}")
        total = sum(self.weights[name] for name in DEFAULT_WEIGHTS)
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            raise ValueError(f"Signal weights must sum to 1.0, got {total:.4f}")


DEFAULT_CONFIG = ScoringConfig()


def is_meme_heavy(trend: TrendItem, config: ScoringConfig = DEFAULT_CONFIG) -> bool:
    return (
        trend.source == TrendSource.REDDIT
        and bool(trend.subreddit)
        and trend.subreddit in config.meme_subreddits
    )


def combine(breakdown: SignalBreakdown, config: ScoringConfig = DEFAULT_CONFIG) -> int:
    values = breakdown.as_dict()
    total = sum(values[name] * config.weights[name] for name in DEFAULT_WEIGHTS)
    return signals.clamp_score(total)


def apply_gates(
    score: int,
    trend: TrendItem,
    judgment: AIJudgment,
    config: ScoringConfig = DEFAULT_CONFIG,
) -> int:
    """Caps first (tightest wins), then the meme-community penalty."""
    gated = score
    if judgment.reject:
        gated = min(gated, config.reject_cap)
    if judgment.content_value < config.low_value_threshold:
        gated = min(gated, config.low_value_cap)
    if is_meme_heavy(trend, config) and judgment.niche_fit < config.meme_niche_fit_threshold:
        gated = max(0, gated - config.meme_penalty)
    return gated


def value_tier(score: int, judgment: AIJudgment, config: ScoringConfig = DEFAULT_CONFIG) -> ValueTier:
    if judgment.reject or judgment.content_value < config.low_value_threshold:
        return ValueTier.SKIP
    if score >= HIGH_TIER_MIN:
        return ValueTier.HIGH
    if score >= MAYBE_TIER_MIN:
        return ValueTier.MAYBE
    return ValueTier.SKIP


def basic_score(trend: TrendItem, *, now: Optional[float] = None, config: ScoringConfig = DEFAULT_CONFIG) -> int:
    engagement_norm = min(trend.engagement_score / 1000, 1) * 100
    comments_norm = min(trend.comment_count / 200, 1) * 100
    freshness = signals.freshness_signal(trend.captured_at, now)
    basic = signals.round_half_up(engagement_norm * 0.25 + comments_norm * 0.35 + freshness * 0.40)
    if is_meme_heavy(trend, config):
        basic = signals.round_half_up(basic * config.basic_meme_damping)
    return basic


def compute_signals(
    trend: TrendItem,
    judgment: AIJudgment,
    snapshots: Optional[SnapshotPair] = None,
    cross_platform: Optional[CrossPlatformGroup] = None,
    *,
    now: Optional[float] = None,
) -> SignalBreakdown:
    return SignalBreakdown(
        ai_analysis=signals.ai_signal(judgment),
        velocity=signals.velocity_signal(snapshots),
        comments_ratio=signals.comments_ratio_signal(trend.comment_count, trend.engagement_score),
        cross_platform=signals.cross_platform_signal(cross_platform.score if cross_platform else None),
        emotional=signals.emotional_signal(judgment.emotional_trigger),
        freshness=signals.freshness_signal(trend.captured_at, now),
    )


def score_trend(
    trend: TrendItem,
    judgment: Optional[AIJudgment] = None,
    snapshots: Optional[SnapshotPair] = None,
    cross_platform: Optional[CrossPlatformGroup] = None,
    *,
    saved: bool = False,
    now: Optional[float] = None,
    config: ScoringConfig = DEFAULT_CONFIG,
) -> ScoredTrend:
    """Assemble the ranked view of one trend; falls back to the basic scorer without a judgment."""
    if judgment is None:
        return ScoredTrend(
            trend=trend,
            combined_score=basic_score(trend, now=now, config=config),
            cross_platform=cross_platform,
            saved=saved,
        )

    breakdown = compute_signals(trend, judgment, snapshots, cross_platform, now=now)
    combined = apply_gates(combine(breakdown, config), trend, judgment, config)
    return ScoredTrend(
        trend=trend,
        combined_score=combined,
        judgment=judgment,
        signals=breakdown,
        value_tier=value_tier(combined, judgment, config),
        velocity_tier=signals.velocity_tier(breakdown.velocity),
        cross_platform=cross_platform,
        saved=saved,
    )
