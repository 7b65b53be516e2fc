"""
The six independent ranking signals.

Every function here is pure and returns an int in [0, 100]. Nothing in this
module touches the network, disk or clock unless a reference time is omitted.
"""
from __future__ import annotations

import math
import time
from typing import Any, Dict, Optional

from trends.models import AIJudgment, EmotionalTrigger, SnapshotPair, VelocityTier

AI_SUBWEIGHTS: Dict[str, float] = {
    "content_value": 0.35,
    "niche_fit": 0.25,
    "hook_potential": 0.25,
    "actionability": 0.15,
}

NEUTRAL_VELOCITY = 50
MIN_VELOCITY_HOURS = 0.01
SINGLE_PLATFORM_SCORE = 20

EMOTION_SCORES: Dict[EmotionalTrigger, int] = {
    EmotionalTrigger.CONTROVERSY: 100,
    EmotionalTrigger.SHOCK: 90,
    EmotionalTrigger.FOMO: 90,
    EmotionalTrigger.CURIOSITY: 80,
    EmotionalTrigger.AWE: 70,
    EmotionalTrigger.PRACTICAL: 60,
    EmotionalTrigger.NONE: 20,
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(value: Any) -> int:
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        number = 0.0
    if math.isnan(number):
        number = 0.0
    # bound before rounding; math.floor rejects infinities
    return round_half_up(max(0.0, min(100.0, number)))


def ai_signal(judgment: AIJudgment) -> int:
    total = (
        clamp_score(judgment.content_value) * AI_SUBWEIGHTS["content_value"]
        + clamp_score(judgment.niche_fit) * AI_SUBWEIGHTS["niche_fit"]
        + clamp_score(judgment.hook_potential) * AI_SUBWEIGHTS["hook_potential"]
        + clamp_score(judgment.actionability) * AI_SUBWEIGHTS["actionability"]
    )
    return clamp_score(total)


def velocity_per_hour(pair: SnapshotPair) -> Optional[float]:
    """Engagement delta per hour, or None when the pair is too close to measure."""
    hours = (pair.current.snapshot_at - pair.previous.snapshot_at) / 3600.0
    if hours < MIN_VELOCITY_HOURS:
        return None
    return (pair.current.engagement_score - pair.previous.engagement_score) / hours


def velocity_signal(pair: Optional[SnapshotPair]) -> int:
    if pair is None:
        return NEUTRAL_VELOCITY
    velocity = velocity_per_hour(pair)
    if velocity is None:
        return NEUTRAL_VELOCITY
    if velocity > 200:
        return 100
    if velocity > 100:
        return 90
    if velocity > 50:
        return 80
    if velocity > 10:
        return 70
    if velocity > 0:
        return 50
    if velocity > -10:
        return 30
    return 10


def velocity_tier(velocity_score: int) -> VelocityTier:
    if velocity_score >= 90:
        return VelocityTier.EXPLOSIVE
    if velocity_score >= 70:
        return VelocityTier.HOT
    if velocity_score >= 50:
        return VelocityTier.GROWING
    return VelocityTier.STALE


def comments_ratio_signal(comments: int, engagement: int) -> int:
    ratio = comments / max(engagement, 1)
    if ratio > 0.5:
        return 100
    if ratio > 0.3:
        return 80
    if ratio > 0.1:
        return 60
    if ratio > 0:
        return 30
    return 10


def cross_platform_signal(platform_count: Optional[int]) -> int:
    count = platform_count or 1
    if count >= 4:
        return 100
    if count >= 3:
        return 80
    if count >= 2:
        return 60
    return SINGLE_PLATFORM_SCORE


def emotional_signal(trigger: Any) -> int:
    if not isinstance(trigger, EmotionalTrigger):
        trigger = str(trigger or "").strip().lower()
        if trigger not in EmotionalTrigger._value2member_map_:
            return EMOTION_SCORES[EmotionalTrigger.NONE]
        trigger = EmotionalTrigger(trigger)
    return EMOTION_SCORES.get(trigger, EMOTION_SCORES[EmotionalTrigger.NONE])


def freshness_signal(captured_at: int, now: Optional[float] = None) -> int:
    reference = time.time() if now is None else now
    age_hours = (reference - captured_at) / 3600.0
    if age_hours < 1:
        return 100
    if age_hours < 3:
        return 90
    if age_hours < 6:
        return 80
    if age_hours < 12:
        return 60
    if age_hours < 24:
        return 40
    if age_hours < 168:
        return 20
    return 5
