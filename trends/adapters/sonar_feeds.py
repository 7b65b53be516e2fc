"""
Feeds without a usable public API, surfaced through Sonar web-grounded search.

Product Hunt, Twitter/X and Polymarket rows are produced by the LLM, so every
field is treated as optional and ids are derived from the title slug to stay
stable across refresh cycles.
"""
from __future__ import annotations

import json
import logging
import math
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from trends.adapters.base import finish, skipped, slugify
from trends.llm_client import LLMError, SonarClient, strip_code_fences
from trends.models import FetchCriteria, HealthStatus, TrendItem, TrendSource

logger = logging.getLogger(__name__)

# rows are spaced so that the LLM's own ordering survives a freshness sort
ROW_SPACING_SECONDS = 120

PRODUCTHUNT_PROMPT = """List the 15 most upvoted and discussed Product Hunt launches of today and this week,
focusing on AI tools, developer tools, crypto, productivity and SaaS.
For each product return a JSON object with: name, tagline, votes (number), comments (number),
maker, url (Product Hunt post URL), topics (1-3 tags).
Return ONLY a JSON array, no markdown."""

TWITTER_PROMPT = """What are the 20 most discussed topics on Twitter/X right now about AI tools, crypto,
making money online and vibe coding? For each return a JSON object with: title (max 100 chars),
engagement (likes + reposts + replies as a number), comments (replies as a number),
key_accounts (1-2 handles), url (a relevant post URL).
Return ONLY a JSON array, no markdown."""

POLYMARKET_PROMPT = """List the 15 most popular, highest-volume active markets on Polymarket right now
(crypto, AI, tech, finance, politics). For each return a JSON object with: title (the market question),
volume_usd (number), traders (number), probability (leading outcome 0-100),
trending_direction ("up" or "down"), category ("crypto"|"ai"|"tech"|"finance"|"politics"|"other").
Return ONLY a JSON array, no markdown."""


def _number(value: Any, default: float = 0) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    try:
        number = float(value)
    except OverflowError:
        return default
    return number if math.isfinite(number) else default


def _count(value: Any) -> int:
    return max(0, int(_number(value)))


class SonarFeedAdapter:
    source: TrendSource
    prompt: str = ""
    id_prefix: str = ""

    def __init__(self, client: SonarClient) -> None:
        self.client = client
        self.name = self.source.value

    def fetch(self, criteria: FetchCriteria, *, now: datetime) -> Tuple[List[TrendItem], HealthStatus]:
        if self.source not in criteria.sources:
            return skipped(self.name)
        if not self.client.configured:
            return skipped(self.name, "missing api key")

        start = time.time()
        try:
            completion = self.client.complete(self.prompt, purpose=f"{self.name}-trends")
            rows = json.loads(strip_code_fences(completion.text))
        except LLMError as exc:
            logger.warning("%s feed request failed: %s", self.name, exc)
            return finish(self.name, [], started=start, now=now, last_error=str(exc))
        except ValueError:
            logger.warning("Failed to parse %s feed: %s", self.name, completion.text[:200])
            return finish(self.name, [], started=start, now=now, last_error="invalid JSON")
        if not isinstance(rows, list):
            logger.warning("%s feed returned a non-array payload", self.name)
            return finish(self.name, [], started=start, now=now, last_error="non-array payload")

        base_ts = int(now.timestamp())
        collected: List[TrendItem] = []
        seen = set()
        for index, row in enumerate(rows):
            if not isinstance(row, dict):
                continue
            item = self.row_to_item(row, base_ts - index * ROW_SPACING_SECONDS)
            if item and item.id not in seen:
                seen.add(item.id)
                collected.append(item)
        return finish(self.name, collected, started=start, now=now)

    def make_id(self, title: str) -> Optional[str]:
        slug = slugify(title)
        return f"{self.id_prefix}-{slug}" if slug else None

    def row_to_item(self, row: Dict[str, Any], captured_at: int) -> Optional[TrendItem]:
        raise NotImplementedError


class ProductHuntAdapter(SonarFeedAdapter):
    source = TrendSource.PRODUCTHUNT
    prompt = PRODUCTHUNT_PROMPT
    id_prefix = "ph"

    def row_to_item(self, row: Dict[str, Any], captured_at: int) -> Optional[TrendItem]:
        name = row.get("name")
        if not isinstance(name, str) or not name.strip():
            return None
        trend_id = self.make_id(name)
        if not trend_id:
            return None
        url = row.get("url")
        if not (isinstance(url, str) and url.startswith("http")):
            url = f"https://www.producthunt.com/posts/{slugify(name, 120)}"
        tagline = row.get("tagline")
        return TrendItem(
            id=trend_id,
            source=self.source,
            title=f"{name} - {tagline}" if tagline else name,
            url=url,
            engagement_score=_count(row.get("votes")),
            comment_count=_count(row.get("comments")),
            captured_at=captured_at,
            author=row.get("maker") or "Product Hunt",
            extra={"topics": row.get("topics") or []},
        )


class TwitterAdapter(SonarFeedAdapter):
    source = TrendSource.TWITTER
    prompt = TWITTER_PROMPT
    id_prefix = "twitter"

    def row_to_item(self, row: Dict[str, Any], captured_at: int) -> Optional[TrendItem]:
        title = row.get("title")
        if not isinstance(title, str) or not title.strip():
            return None
        trend_id = self.make_id(title)
        if not trend_id:
            return None
        accounts = row.get("key_accounts") or []
        url = row.get("url")
        if not (isinstance(url, str) and url.startswith("http")):
            url = f"https://x.com/search?q={quote(title[:60])}&f=live"
        return TrendItem(
            id=trend_id,
            source=self.source,
            title=title,
            url=url,
            engagement_score=_count(row.get("engagement")),
            comment_count=_count(row.get("comments")),
            captured_at=captured_at,
            author=", ".join(accounts) if accounts else "Twitter/X",
            extra={"key_accounts": accounts},
        )


class PolymarketAdapter(SonarFeedAdapter):
    source = TrendSource.POLYMARKET
    prompt = POLYMARKET_PROMPT
    id_prefix = "polymarket"

    def row_to_item(self, row: Dict[str, Any], captured_at: int) -> Optional[TrendItem]:
        title = row.get("title")
        if not isinstance(title, str) or not title.strip():
            return None
        trend_id = self.make_id(title)
        if not trend_id:
            return None
        volume = max(0.0, _number(row.get("volume_usd")))
        traders = _count(row.get("traders"))
        return TrendItem(
            id=trend_id,
            source=self.source,
            title=title,
            url=f"https://polymarket.com/event/{slugify(title)}",
            # $1M of volume counts like 1000 upvotes
            engagement_score=round(volume / 1000),
            comment_count=traders,
            captured_at=captured_at,
            author="Polymarket",
            extra={
                "volume_usd": volume,
                "traders": traders,
                "probability": _number(row.get("probability"), 50),
                "trending_direction": "down" if row.get("trending_direction") == "down" else "up",
                "category": row.get("category") or "other",
            },
        )
