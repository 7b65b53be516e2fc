"""
Qualitative judgments from the LLM, validated at the ingestion boundary.

The completion text is untrusted: sub-scores are clamped, categorical values
fall back to safe defaults, and anything that is not a JSON array fails the
whole batch with ``JudgmentParseError``.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from trends.grouping import build_groups
from trends.llm_client import SonarClient, strip_code_fences
from trends.models import AIJudgment, ContentFormat, CrossPlatformGroup, EmotionalTrigger, TrendItem, TrendSource
from trends.signals import clamp_score

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 25
CROSS_PLATFORM_MIN_ITEMS = 10
POLYMARKET_CONTENT_BONUS = 10
DEFAULT_NICHE = "AI tools, making money online, vibe coding and crypto"

ANALYSIS_PROMPT = """You are a strict content strategist for a faceless short-video channel covering {niche}.
Judge every trend listed below and answer with one JSON object per trend:
{{
  "id": "trend id exactly as given",
  "content_value": 0-100,
  "niche_fit": 0-100,
  "hook_potential": 0-100,
  "actionability": 0-100,
  "reject": true or false,
  "suggested_angle": "one sentence on how we would cover it",
  "content_format": "slideshow|screencast|ai_video|text_overlay|news_update",
  "emotional_trigger": "awe|curiosity|controversy|fomo|shock|practical|none"
}}

Guidance:
- content_value: memes, jokes, art and personal stories score 0-15; new tools, tutorials, money strategies and industry news score 60-100.
- niche_fit: generic chatbot memes score 5-20; specific tools or strategies in the niche score 70-100.
- hook_potential: can this open with a strong three-second hook?
- actionability: does the viewer learn something or get a clear takeaway?
- reject: true for memes, jokes, off-topic and art posts.
- emotional_trigger: the dominant emotion; use none for boring or generic items.

Be strict: most meme posts belong below 20.
Return ONLY a JSON array, no markdown."""

CROSS_PLATFORM_PROMPT = """Below are trend titles collected from several platforms. Find topics that appear on MORE THAN ONE platform,
meaning the same event, tool, product or story. Group them and return for each group:
{
  "topic": "short topic name (max 40 chars)",
  "platforms": ["reddit", "hackernews"],
  "trend_ids": ["id1", "id2"],
  "cross_platform_score": number of distinct platforms (2-6)
}

Only include groups spanning two or more platforms. Return [] when there are none.
Return ONLY a JSON array, no markdown."""


class JudgmentParseError(ValueError):
    """The completion could not be decoded into a list of judgments."""


def _to_number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class RawJudgment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    content_value: float = 0
    niche_fit: float = 0
    hook_potential: float = 0
    actionability: float = 0
    reject: bool = False
    suggested_angle: str = ""
    content_format: ContentFormat = ContentFormat.TEXT_OVERLAY
    emotional_trigger: EmotionalTrigger = EmotionalTrigger.NONE

    @field_validator("id", "suggested_angle", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("content_value", "niche_fit", "hook_potential", "actionability", mode="before")
    @classmethod
    def _as_number(cls, value: Any) -> float:
        return _to_number(value)

    @field_validator("reject", mode="before")
    @classmethod
    def _as_flag(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in {"true", "1", "yes"}
        return bool(value)

    @field_validator("content_format", mode="before")
    @classmethod
    def _as_format(cls, value: Any) -> ContentFormat:
        return ContentFormat.parse(value)

    @field_validator("emotional_trigger", mode="before")
    @classmethod
    def _as_trigger(cls, value: Any) -> EmotionalTrigger:
        return EmotionalTrigger.parse(value)

    def to_judgment(self, source: Optional[TrendSource] = None, *, scored_at: Optional[datetime] = None) -> AIJudgment:
        bonus = POLYMARKET_CONTENT_BONUS if source == TrendSource.POLYMARKET else 0
        return AIJudgment(
            content_value=clamp_score(self.content_value + bonus),
            niche_fit=clamp_score(self.niche_fit),
            hook_potential=clamp_score(self.hook_potential),
            actionability=clamp_score(self.actionability),
            reject=self.reject,
            suggested_angle=self.suggested_angle,
            content_format=self.content_format,
            emotional_trigger=self.emotional_trigger,
            scored_at=scored_at,
        )


def _decode_array(text: str, purpose: str) -> List[Any]:
    cleaned = strip_code_fences(text)
    try:
        parsed = json.loads(cleaned)
    except ValueError as exc:
        raise JudgmentParseError(f"{purpose}: completion is not valid JSON ({cleaned[:120]!r})") from exc
    if not isinstance(parsed, list):
        raise JudgmentParseError(f"{purpose}: expected a JSON array, got {type(parsed).__name__}")
    return parsed


def summarize_trend(trend: TrendItem) -> str:
    sub = f" (r/{trend.subreddit})" if trend.subreddit else ""
    return (
        f'- id: "{trend.id}" | [{trend.source.value}{sub}] "{trend.title}" '
        f"(upvotes: {trend.engagement_score}, comments: {trend.comment_count})"
    )


def parse_judgments(text: str, batch: Sequence[TrendItem], *, scored_at: Optional[datetime] = None) -> Dict[str, AIJudgment]:
    """
    Map a completion onto the batch by id.

    An entry without a matching id falls back to the entry at the same position,
    provided that entry does not belong to another trend of the batch.
    """
    entries = _decode_array(text, "judgment")
    scored_at = scored_at or datetime.now(timezone.utc)

    parsed: List[Optional[RawJudgment]] = []
    for entry in entries:
        if not isinstance(entry, dict):
            parsed.append(None)
            continue
        try:
            parsed.append(RawJudgment.model_validate(entry))
        except ValidationError as exc:
            logger.warning("Dropping malformed judgment entry: %s", exc.errors()[:1])
            parsed.append(None)

    batch_ids = {trend.id for trend in batch}
    by_id = {raw.id: raw for raw in parsed if raw is not None and raw.id}

    judgments: Dict[str, AIJudgment] = {}
    for index, trend in enumerate(batch):
        raw = by_id.get(trend.id)
        if raw is None and index < len(parsed):
            positional = parsed[index]
            if positional is not None and positional.id not in batch_ids:
                raw = positional
        if raw is None:
            continue
        judgments[trend.id] = raw.to_judgment(trend.source, scored_at=scored_at)
    return judgments


def parse_cross_platform(text: str) -> List[CrossPlatformGroup]:
    return build_groups(_decode_array(text, "cross-platform"))


class JudgmentService:
    """
    Batches trends through the LLM and returns validated judgments.

    Args:
        client: Sonar completion client.
        niche: Audience description injected into the analysis prompt.
    """

    def __init__(self, client: SonarClient, niche: str = DEFAULT_NICHE) -> None:
        self.client = client
        self.niche = niche

    @property
    def available(self) -> bool:
        return self.client.configured

    def judge(self, trends: Sequence[TrendItem]) -> Dict[str, AIJudgment]:
        """Judge up to ``MAX_BATCH_SIZE`` trends; extra items are ignored."""
        batch = list(trends)[:MAX_BATCH_SIZE]
        if not batch:
            return {}
        summary = "\n".join(summarize_trend(trend) for trend in batch)
        prompt = f"{ANALYSIS_PROMPT.format(niche=self.niche)}\n\nTrending topics to analyze:\n{summary}"
        completion = self.client.complete(prompt, purpose="analyze-trends")
        try:
            return parse_judgments(completion.text, batch)
        except JudgmentParseError:
            logger.error("Failed to parse judgments: %s", completion.text[:300])
            raise

    def detect_cross_platform(self, trends: Sequence[TrendItem]) -> List[CrossPlatformGroup]:
        summary = "\n".join(f'- id: "{t.id}" [{t.source.value}] "{t.title}"' for t in trends)
        completion = self.client.complete(f"{CROSS_PLATFORM_PROMPT}\n\nTrends:\n{summary}", purpose="cross-platform-detect")
        return parse_cross_platform(completion.text)
