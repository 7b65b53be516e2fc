"""
Source adapters. Each returns ``(items, HealthStatus)`` and never raises for fetch failures.
"""
from trends.adapters.hackernews import HackerNewsAdapter
from trends.adapters.reddit import RedditAdapter
from trends.adapters.sonar_feeds import PolymarketAdapter, ProductHuntAdapter, TwitterAdapter
from trends.adapters.youtube import YouTubeAdapter

__all__ = [
    "HackerNewsAdapter",
    "PolymarketAdapter",
    "ProductHuntAdapter",
    "RedditAdapter",
    "TwitterAdapter",
    "YouTubeAdapter",
]
