"""
Core data structures shared by the trend ranking pipeline.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class TrendSource(str, Enum):
    REDDIT = "reddit"
    HACKERNEWS = "hackernews"
    YOUTUBE = "youtube"
    PRODUCTHUNT = "producthunt"
    TWITTER = "twitter"
    POLYMARKET = "polymarket"


class ContentFormat(str, Enum):
    SLIDESHOW = "slideshow"
    SCREENCAST = "screencast"
    AI_VIDEO = "ai_video"
    TEXT_OVERLAY = "text_overlay"
    NEWS_UPDATE = "news_update"

    @classmethod
    def parse(cls, value: Any) -> "ContentFormat":
        token = str(value or "").strip().lower()
        return cls(token) if token in cls._value2member_map_ else cls.TEXT_OVERLAY


class EmotionalTrigger(str, Enum):
    AWE = "awe"
    CURIOSITY = "curiosity"
    CONTROVERSY = "controversy"
    FOMO = "fomo"
    SHOCK = "shock"
    PRACTICAL = "practical"
    NONE = "none"

    @classmethod
    def parse(cls, value: Any) -> "EmotionalTrigger":
        token = str(value or "").strip().lower()
        return cls(token) if token in cls._value2member_map_ else cls.NONE


class ValueTier(str, Enum):
    HIGH = "high"
    MAYBE = "maybe"
    SKIP = "skip"


class VelocityTier(str, Enum):
    EXPLOSIVE = "explosive"
    HOT = "hot"
    GROWING = "growing"
    STALE = "stale"


class SortKey(str, Enum):
    COMBINED = "combined"
    VELOCITY = "velocity"
    CROSS_PLATFORM = "cross_platform"
    FRESHNESS = "freshness"


class TimeWindow(str, Enum):
    HOUR = "1h"
    SIX_HOURS = "6h"
    DAY = "24h"
    WEEK = "7d"

    @property
    def seconds(self) -> int:
        return {
            TimeWindow.HOUR: 3600,
            TimeWindow.SIX_HOURS: 21600,
            TimeWindow.DAY: 86400,
            TimeWindow.WEEK: 604800,
        }[self]


@dataclass
class TrendItem:
    """
    Normalized representation of a trending topic across all upstream platforms.

    ``captured_at`` is the platform's own creation/publish time in unix seconds,
    never the time we fetched it.
    """

    id: str
    source: TrendSource
    title: str
    url: str
    engagement_score: int = 0
    comment_count: int = 0
    captured_at: int = 0
    author: str = ""
    subreddit: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Snapshot:
    trend_id: str
    source: TrendSource
    engagement_score: int
    comment_count: int
    snapshot_at: int


@dataclass(frozen=True)
class SnapshotPair:
    previous: Snapshot
    current: Snapshot


@dataclass
class CrossPlatformGroup:
    topic: str
    platforms: List[str]
    trend_ids: List[str] = field(default_factory=list)
    score: int = 2


@dataclass
class AIJudgment:
    content_value: int
    niche_fit: int
    hook_potential: int
    actionability: int
    reject: bool = False
    suggested_angle: str = ""
    content_format: ContentFormat = ContentFormat.TEXT_OVERLAY
    emotional_trigger: EmotionalTrigger = EmotionalTrigger.NONE
    cross_platform: Optional[CrossPlatformGroup] = None
    scored_at: Optional[datetime] = None


@dataclass
class SignalBreakdown:
    ai_analysis: int
    velocity: int
    comments_ratio: int
    cross_platform: int
    emotional: int
    freshness: int

    def as_dict(self) -> Dict[str, int]:
        return {
            "ai_analysis": self.ai_analysis,
            "velocity": self.velocity,
            "comments_ratio": self.comments_ratio,
            "cross_platform": self.cross_platform,
            "emotional": self.emotional,
            "freshness": self.freshness,
        }


@dataclass
class ScoredTrend:
    trend: TrendItem
    combined_score: int
    judgment: Optional[AIJudgment] = None
    signals: Optional[SignalBreakdown] = None
    value_tier: Optional[ValueTier] = None
    velocity_tier: Optional[VelocityTier] = None
    cross_platform: Optional[CrossPlatformGroup] = None
    saved: bool = False

    @property
    def rejected(self) -> bool:
        return bool(self.judgment and self.judgment.reject)


@dataclass
class FetchCriteria:
    sources: List[TrendSource]
    limit: int = 50


@dataclass
class HealthStatus:
    name: str
    healthy: bool
    last_error: Optional[str] = None
    last_success: Optional[datetime] = None
    items_last_fetch: int = 0
    latency_ms: Optional[float] = None
    extra: Dict[str, str] = field(default_factory=dict)


@dataclass
class RankingQuery:
    sources: List[TrendSource] = field(default_factory=lambda: list(TrendSource))
    window: TimeWindow = TimeWindow.DAY
    hide_rejected: bool = True
    sort_by: SortKey = SortKey.COMBINED
    limit: int = 50
    use_cache: bool = False


@dataclass
class RankingResult:
    trends: List[ScoredTrend]
    generated_at: datetime
    health: List[HealthStatus] = field(default_factory=list)
    total: int = 0
    degraded: bool = False
    cached: bool = False

    @property
    def cross_platform_count(self) -> int:
        return sum(1 for t in self.trends if t.cross_platform and len(t.cross_platform.platforms) >= 2)


@dataclass
class AnalysisReport:
    requested: int = 0
    analyzed: int = 0
    failed_batches: int = 0
    groups: List[CrossPlatformGroup] = field(default_factory=list)
