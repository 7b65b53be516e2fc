"""
Adapter for recent high-view YouTube videos via the Data API search endpoint.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from trends.adapters.base import finish, skipped
from trends.http_client import HttpClient
from trends.models import FetchCriteria, HealthStatus, TrendItem, TrendSource

logger = logging.getLogger(__name__)

YOUTUBE_SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
DEFAULT_QUERIES = ["AI tools", "crypto trading bot", "vibe coding", "make money with AI"]


def _published_ts(raw: Optional[str]) -> int:
    if not raw:
        return 0
    try:
        return int(datetime.fromisoformat(raw.replace("Z", "+00:00")).timestamp())
    except ValueError:
        return 0


def video_to_item(video: Dict[str, Any]) -> Optional[TrendItem]:
    video_id = (video.get("id") or {}).get("videoId")
    snippet = video.get("snippet") or {}
    if not video_id:
        return None
    return TrendItem(
        id=f"yt-{video_id}",
        source=TrendSource.YOUTUBE,
        title=snippet.get("title") or "",
        url=f"https://www.youtube.com/watch?v={video_id}",
        # the search endpoint carries no view or comment counts
        engagement_score=0,
        comment_count=0,
        captured_at=_published_ts(snippet.get("publishedAt")),
        author=snippet.get("channelTitle") or "",
        extra={"description": snippet.get("description") or ""},
    )


class YouTubeAdapter:
    source = TrendSource.YOUTUBE

    def __init__(
        self,
        api_key: Optional[str],
        queries: Optional[Iterable[str]] = None,
        limit: int = 20,
        http: Optional[HttpClient] = None,
    ) -> None:
        self.api_key = api_key
        self.queries = [q for q in (queries or DEFAULT_QUERIES) if q]
        self.limit = limit
        self.http = http or HttpClient()
        self.name = "youtube"

    def fetch(self, criteria: FetchCriteria, *, now: datetime) -> Tuple[List[TrendItem], HealthStatus]:
        if self.source not in criteria.sources:
            return skipped(self.name)
        if not self.api_key:
            logger.info("YouTube adapter disabled (missing API key).")
            return skipped(self.name, "missing api key")

        start = time.time()
        params = {
            "part": "snippet",
            "q": "|".join(self.queries),
            "type": "video",
            "order": "viewCount",
            "publishedAfter": (now - timedelta(days=1)).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "maxResults": self.limit,
            "key": self.api_key,
        }
        payload = self.http.get_json(YOUTUBE_SEARCH_URL, params=params)
        if payload is None:
            return finish(self.name, [], started=start, now=now, last_error="search request failed")
        collected = [item for item in (video_to_item(v) for v in payload.get("items") or []) if item]
        return finish(self.name, collected, started=start, now=now)
