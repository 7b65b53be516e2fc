"""
Adapter for Hacker News top stories (Firebase API).
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from trends.adapters.base import finish, skipped
from trends.http_client import HttpClient
from trends.models import FetchCriteria, HealthStatus, TrendItem, TrendSource

logger = logging.getLogger(__name__)

HN_BASE = "https://hacker-news.firebaseio.com/v0"


def story_to_item(story: Dict[str, Any]) -> Optional[TrendItem]:
    if not story or story.get("type") != "story" or not story.get("id"):
        return None
    story_id = story["id"]
    return TrendItem(
        id=f"hn-{story_id}",
        source=TrendSource.HACKERNEWS,
        title=story.get("title") or "",
        url=story.get("url") or f"https://news.ycombinator.com/item?id={story_id}",
        engagement_score=max(0, int(story.get("score") or 0)),
        comment_count=max(0, int(story.get("descendants") or 0)),
        captured_at=int(story.get("time") or 0),
        author=story.get("by") or "",
    )


class HackerNewsAdapter:
    source = TrendSource.HACKERNEWS

    def __init__(self, limit: int = 30, http: Optional[HttpClient] = None, max_workers: int = 8) -> None:
        self.limit = limit
        self.http = http or HttpClient()
        self.max_workers = max_workers
        self.name = "hackernews"

    def fetch(self, criteria: FetchCriteria, *, now: datetime) -> Tuple[List[TrendItem], HealthStatus]:
        if self.source not in criteria.sources:
            return skipped(self.name)

        start = time.time()
        ids = self.http.get_json(f"{HN_BASE}/topstories.json")
        if not isinstance(ids, list):
            return finish(self.name, [], started=start, now=now, last_error="topstories unavailable")

        top_ids = ids[: self.limit]
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            stories = list(executor.map(lambda sid: self.http.get_json(f"{HN_BASE}/item/{sid}.json"), top_ids))

        # keep ranking order from topstories
        collected = [item for item in (story_to_item(s) for s in stories if isinstance(s, dict)) if item]
        return finish(self.name, collected, started=start, now=now)
