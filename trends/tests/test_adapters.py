import json
import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import requests

from trends.adapters import (
    HackerNewsAdapter,
    PolymarketAdapter,
    ProductHuntAdapter,
    RedditAdapter,
    TwitterAdapter,
    YouTubeAdapter,
)
from trends.adapters.base import slugify
from trends.adapters.reddit import post_to_item
from trends.http_client import HttpClient
from trends.llm_client import Completion, LLMError, SonarClient
from trends.models import FetchCriteria, TrendSource

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
ALL = FetchCriteria(sources=list(TrendSource))


def _reddit_post(post_id: str, subreddit: str = "webdev", **overrides) -> dict:
    data = {
        "id": post_id,
        "title": f"Post {post_id}",
        "permalink": f"/r/{subreddit}/comments/{post_id}/post/",
        "score": 420,
        "num_comments": 37,
        "created_utc": 1714564800.0,
        "author": "someone",
        "subreddit": subreddit,
        "selftext": "",
        "link_flair_text": "Discussion",
        "url": "https://example.com/article",
    }
    data.update(overrides)
    return {"kind": "t3", "data": data}


class _FakeSonar:
    def __init__(self, text: str = "[]", configured: bool = True, error: Exception = None):
        self.text = text
        self.configured = configured
        self.error = error

    def complete(self, prompt, *, system=None, purpose="sonar-generic"):
        if self.error:
            raise self.error
        return Completion(text=self.text)


class RedditAdapterTests(unittest.TestCase):
    def test_post_to_item(self):
        item = post_to_item(_reddit_post("abc", subreddit="ChatGPT"))
        self.assertEqual(item.id, "reddit-abc")
        self.assertEqual(item.url, "https://reddit.com/r/ChatGPT/comments/abc/post/")
        self.assertEqual(item.engagement_score, 420)
        self.assertEqual(item.comment_count, 37)
        self.assertEqual(item.captured_at, 1714564800)
        self.assertEqual(item.subreddit, "ChatGPT")
        self.assertEqual(item.extra["flair"], "Discussion")

    def test_removed_posts_are_dropped(self):
        self.assertIsNone(post_to_item(_reddit_post("gone", selftext="[removed]")))

    def test_partial_subreddit_failure_is_still_healthy(self):
        http = MagicMock(spec=HttpClient)
        http.get_json.side_effect = [
            {"data": {"children": [_reddit_post("a"), _reddit_post("b", selftext="[removed]")]}},
            None,
        ]
        adapter = RedditAdapter(subreddits=["webdev", "vibecoding"], http=http)

        items, health = adapter.fetch(ALL, now=NOW)

        self.assertEqual([i.id for i in items], ["reddit-a"])
        self.assertTrue(health.healthy)
        self.assertIn("vibecoding", health.last_error)
        first_url = http.get_json.call_args_list[0][0][0]
        self.assertEqual(first_url, "https://www.reddit.com/r/webdev/hot.json")

    def test_skipped_when_not_requested(self):
        http = MagicMock(spec=HttpClient)
        adapter = RedditAdapter(http=http)
        items, health = adapter.fetch(FetchCriteria(sources=[TrendSource.HACKERNEWS]), now=NOW)
        self.assertEqual(items, [])
        self.assertTrue(health.healthy)
        http.get_json.assert_not_called()


class HackerNewsAdapterTests(unittest.TestCase):
    def test_fetches_stories_in_rank_order(self):
        stories = {
            1: {"id": 1, "type": "story", "title": "First", "url": "https://example.com/1", "score": 300, "descendants": 120, "time": 1714560000, "by": "pg"},
            2: {"id": 2, "type": "job", "title": "Hiring"},
            3: {"id": 3, "type": "story", "title": "Ask HN: something", "score": 50, "time": 1714561000, "by": "dang"},
        }

        def fake_get(url, params=None):
            if url.endswith("topstories.json"):
                return [1, 2, 3, 4]
            story_id = int(url.rsplit("/", 1)[1].split(".")[0])
            return stories.get(story_id)

        http = MagicMock(spec=HttpClient)
        http.get_json.side_effect = fake_get
        items, health = HackerNewsAdapter(limit=4, http=http, max_workers=2).fetch(ALL, now=NOW)

        self.assertEqual([i.id for i in items], ["hn-1", "hn-3"])
        self.assertEqual(items[0].comment_count, 120)
        self.assertEqual(items[1].url, "https://news.ycombinator.com/item?id=3")
        self.assertEqual(items[1].comment_count, 0)
        self.assertTrue(health.healthy)

    def test_topstories_failure(self):
        http = MagicMock(spec=HttpClient)
        http.get_json.return_value = None
        items, health = HackerNewsAdapter(http=http).fetch(ALL, now=NOW)
        self.assertEqual(items, [])
        self.assertFalse(health.healthy)


class YouTubeAdapterTests(unittest.TestCase):
    def test_missing_key_is_skipped_but_healthy(self):
        http = MagicMock(spec=HttpClient)
        items, health = YouTubeAdapter(api_key=None, http=http).fetch(ALL, now=NOW)
        self.assertEqual(items, [])
        self.assertTrue(health.healthy)
        self.assertEqual(health.extra["skipped"], "missing api key")
        http.get_json.assert_not_called()

    def test_maps_search_results(self):
        http = MagicMock(spec=HttpClient)
        http.get_json.return_value = {
            "items": [
                {
                    "id": {"videoId": "xyz"},
                    "snippet": {"title": "I built an AI agent", "publishedAt": "2024-05-01T10:00:00Z", "channelTitle": "Builder"},
                },
                {"id": {"channelId": "no-video"}, "snippet": {}},
            ]
        }
        items, health = YouTubeAdapter(api_key="k", http=http).fetch(ALL, now=NOW)

        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].id, "yt-xyz")
        self.assertEqual(items[0].url, "https://www.youtube.com/watch?v=xyz")
        self.assertEqual(items[0].captured_at, int(datetime(2024, 5, 1, 10, tzinfo=timezone.utc).timestamp()))
        params = http.get_json.call_args[1]["params"]
        self.assertEqual(params["publishedAfter"], "2024-04-30T12:00:00Z")
        self.assertEqual(params["order"], "viewCount")


class SonarFeedTests(unittest.TestCase):
    def test_polymarket_mapping_and_stable_ids(self):
        rows = [
            {"title": "Will BTC hit $100k in 2024?", "volume_usd": 2_500_000, "traders": 1800, "probability": 62, "trending_direction": "up", "category": "crypto"},
            {"title": "Will BTC hit $100k in 2024?", "volume_usd": 1},
            {"volume_usd": 5},
        ]
        adapter = PolymarketAdapter(_FakeSonar(json.dumps(rows)))

        first, health = adapter.fetch(ALL, now=NOW)
        second, _ = adapter.fetch(ALL, now=NOW)

        self.assertEqual(len(first), 1)
        item = first[0]
        self.assertEqual(item.id, "polymarket-will-btc-hit-100k-in-2024")
        self.assertEqual(item.id, second[0].id)
        self.assertEqual(item.engagement_score, 2500)
        self.assertEqual(item.comment_count, 1800)
        self.assertEqual(item.extra["category"], "crypto")
        self.assertEqual(item.captured_at, int(NOW.timestamp()))
        self.assertTrue(health.healthy)

    def test_negative_and_non_finite_counts_floor_at_zero(self):
        market = PolymarketAdapter(_FakeSonar()).row_to_item({"title": "Will X", "volume_usd": -50000, "traders": -3}, 0)
        self.assertEqual(market.engagement_score, 0)
        self.assertEqual(market.comment_count, 0)

        tweet = TwitterAdapter(_FakeSonar()).row_to_item({"title": "Agents", "engagement": -10, "comments": float("inf")}, 0)
        self.assertEqual(tweet.engagement_score, 0)
        self.assertEqual(tweet.comment_count, 0)

        product = ProductHuntAdapter(_FakeSonar()).row_to_item({"name": "Tool", "votes": -1, "comments": -7}, 0)
        self.assertEqual(product.engagement_score, 0)
        self.assertEqual(product.comment_count, 0)

    def test_rows_spaced_to_preserve_order(self):
        rows = [{"title": "First trend", "engagement": 10}, {"title": "Second trend", "engagement": 20}]
        items, _ = TwitterAdapter(_FakeSonar(json.dumps(rows))).fetch(ALL, now=NOW)
        self.assertGreater(items[0].captured_at, items[1].captured_at)
        self.assertTrue(items[0].url.startswith("https://x.com/search?q="))
        self.assertEqual(items[0].author, "Twitter/X")

    def test_product_hunt_fallback_url(self):
        rows = [{"name": "Agentic CRM", "tagline": "Sales on autopilot", "votes": 512, "comments": 40}]
        items, _ = ProductHuntAdapter(_FakeSonar(json.dumps(rows))).fetch(ALL, now=NOW)
        self.assertEqual(items[0].id, "ph-agentic-crm")
        self.assertEqual(items[0].title, "Agentic CRM - Sales on autopilot")
        self.assertEqual(items[0].url, "https://www.producthunt.com/posts/agentic-crm")

    def test_fenced_payload_is_accepted(self):
        text = "```json\n" + json.dumps([{"title": "Vibe coding tools", "engagement": 5}]) + "\n```"
        items, _ = TwitterAdapter(_FakeSonar(text)).fetch(ALL, now=NOW)
        self.assertEqual(items[0].id, "twitter-vibe-coding-tools")

    def test_unconfigured_client_is_skipped(self):
        items, health = PolymarketAdapter(_FakeSonar(configured=False)).fetch(ALL, now=NOW)
        self.assertEqual(items, [])
        self.assertTrue(health.healthy)

    def test_bad_payloads_are_unhealthy(self):
        for client in (_FakeSonar("no json here"), _FakeSonar('{"a": 1}'), _FakeSonar(error=LLMError("timeout"))):
            with self.subTest(text=client.text):
                items, health = TwitterAdapter(client).fetch(ALL, now=NOW)
                self.assertEqual(items, [])
                self.assertFalse(health.healthy)
                self.assertIsNotNone(health.last_error)


class SonarClientTests(unittest.TestCase):
    def test_parses_completion(self):
        http = MagicMock(spec=HttpClient)
        http.post_json.return_value = {
            "model": "sonar",
            "choices": [{"message": {"content": "[]"}}],
            "usage": {"prompt_tokens": 12, "completion_tokens": 3},
        }
        completion = SonarClient(api_key="pplx-abc", http=http).complete("hi", system="be terse")

        self.assertEqual(completion.text, "[]")
        self.assertEqual(completion.input_tokens, 12)
        payload = http.post_json.call_args[0][1]
        self.assertEqual([m["role"] for m in payload["messages"]], ["system", "user"])
        self.assertEqual(http.post_json.call_args[1]["headers"]["Authorization"], "Bearer pplx-abc")

    def test_http_error_is_wrapped_and_redacted(self):
        http = MagicMock(spec=HttpClient)
        http.post_json.side_effect = requests.HTTPError("HTTP 401: invalid key pplx-abc123")
        with self.assertRaises(LLMError) as ctx:
            SonarClient(api_key="pplx-abc123", http=http).complete("hi")
        self.assertNotIn("pplx-abc123", str(ctx.exception))


class HttpClientTests(unittest.TestCase):
    def test_get_json_returns_none_on_error_status(self):
        client = HttpClient()
        response = MagicMock(status_code=503, text="unavailable")
        with patch.object(client.session, "get", return_value=response):
            self.assertIsNone(client.get_json("https://example.com/api?key=secret"))

    def test_get_json_returns_none_on_connection_error(self):
        client = HttpClient()
        with patch.object(client.session, "get", side_effect=requests.ConnectionError("boom")):
            self.assertIsNone(client.get_json("https://example.com"))

    def test_post_json_raises_on_error_status(self):
        client = HttpClient()
        response = MagicMock(status_code=429, text="slow down")
        with patch.object(client.session, "post", return_value=response):
            with self.assertRaises(requests.HTTPError):
                client.post_json("https://example.com", {"a": 1})


class SlugTests(unittest.TestCase):
    def test_slugify(self):
        self.assertEqual(slugify("Will BTC hit $100k?"), "will-btc-hit-100k")
        self.assertEqual(slugify("  "), "")
        self.assertLessEqual(len(slugify("x" * 200)), 60)


if __name__ == "__main__":
    unittest.main()
