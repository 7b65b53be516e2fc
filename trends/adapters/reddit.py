"""
Adapter for subreddit hot listings via Reddit's public JSON endpoints.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from trends.adapters.base import finish, skipped
from trends.http_client import HttpClient
from trends.models import FetchCriteria, HealthStatus, TrendItem, TrendSource

logger = logging.getLogger(__name__)

DEFAULT_SUBREDDITS = [
    "artificial",
    "ChatGPT",
    "ClaudeAI",
    "LocalLLaMA",
    "SideProject",
    "passive_income",
    "entrepreneur",
    "vibecoding",
    "webdev",
    "cryptocurrency",
]


def post_to_item(post: Dict[str, Any]) -> Optional[TrendItem]:
    data = post.get("data") or {}
    if not data.get("id") or "[removed]" in (data.get("selftext") or ""):
        return None
    return TrendItem(
        id=f"reddit-{data['id']}",
        source=TrendSource.REDDIT,
        title=data.get("title") or "",
        url=f"https://reddit.com{data.get('permalink') or ''}",
        engagement_score=max(0, int(data.get("score") or 0)),
        comment_count=max(0, int(data.get("num_comments") or 0)),
        captured_at=int(data.get("created_utc") or 0),
        author=data.get("author") or "",
        subreddit=data.get("subreddit"),
        extra={
            "flair": data.get("link_flair_text"),
            "external_url": data.get("url"),
        },
    )


class RedditAdapter:
    source = TrendSource.REDDIT
    base_url = "https://www.reddit.com/r/{subreddit}/hot.json"

    def __init__(
        self,
        subreddits: Optional[Iterable[str]] = None,
        limit_per_subreddit: int = 25,
        http: Optional[HttpClient] = None,
    ) -> None:
        self.subreddits = [s.strip() for s in (subreddits or DEFAULT_SUBREDDITS) if s and s.strip()]
        self.limit_per_subreddit = limit_per_subreddit
        self.http = http or HttpClient(user_agent="TrendRanker/1.0 (reddit)")
        self.name = "reddit"

    def fetch(self, criteria: FetchCriteria, *, now: datetime) -> Tuple[List[TrendItem], HealthStatus]:
        if self.source not in criteria.sources:
            return skipped(self.name)

        start = time.time()
        collected: List[TrendItem] = []
        failures: List[str] = []
        for subreddit in self.subreddits:
            payload = self.http.get_json(
                self.base_url.format(subreddit=subreddit),
                params={"limit": self.limit_per_subreddit},
            )
            if payload is None:
                failures.append(subreddit)
                continue
            for post in (payload.get("data") or {}).get("children") or []:
                item = post_to_item(post)
                if item:
                    collected.append(item)

        last_error = f"failed subreddits: {', '.join(failures)}" if failures else None
        if failures:
            logger.warning("Reddit fetch failed for %d of %d subreddits", len(failures), len(self.subreddits))
        items, status = finish(self.name, collected, started=start, now=now, last_error=last_error)
        # partial subreddit failures still count as healthy when anything arrived
        status.healthy = bool(items)
        return items, status
