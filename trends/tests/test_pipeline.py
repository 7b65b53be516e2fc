import tempfile
import unittest
from pathlib import Path
from typing import Dict, List, Sequence

from trends.cache import TrendCache
from trends.judgment import JudgmentParseError
from trends.llm_client import LLMError
from trends.models import (
    AIJudgment,
    CrossPlatformGroup,
    HealthStatus,
    RankingQuery,
    TrendItem,
    TrendSource,
    ValueTier,
)
from trends.pipeline import TrendPipeline, build_adapters, dedupe_by_id
from trends.repository import InMemoryJudgmentStore, InMemorySnapshotStore
from trends.settings import load_settings

NOW = 1_700_000_000.0


def _item(trend_id: str, source: TrendSource, score: int = 100, comments: int = 10, age_hours: float = 1.0) -> TrendItem:
    return TrendItem(
        id=trend_id,
        source=source,
        title=f"title {trend_id}",
        url=f"https://example.com/{trend_id}",
        engagement_score=score,
        comment_count=comments,
        captured_at=int(NOW - age_hours * 3600),
    )


class _StaticAdapter:
    def __init__(self, name: str, source: TrendSource, items):
        self.name = name
        self.source = source
        self._items = items
        self.calls = 0

    def fetch(self, criteria, *, now):
        self.calls += 1
        return list(self._items), HealthStatus(
            name=self.name,
            healthy=True,
            last_success=now,
            items_last_fetch=len(self._items),
        )


class _ExplodingAdapter:
    def __init__(self, name: str, source: TrendSource):
        self.name = name
        self.source = source

    def fetch(self, criteria, *, now):
        raise RuntimeError(f"{self.name} is down")


class _FakeJudge:
    available = True

    def __init__(self, fail_batches: Sequence[int] = (), groups: List[CrossPlatformGroup] = None, detect_error=None):
        self.fail_batches = set(fail_batches)
        self.groups = groups or []
        self.detect_error = detect_error
        self.batches: List[List[str]] = []
        self.detect_calls = 0

    def judge(self, trends):
        index = len(self.batches)
        self.batches.append([t.id for t in trends])
        if index in self.fail_batches:
            raise JudgmentParseError("bad batch")
        return {
            t.id: AIJudgment(content_value=80, niche_fit=80, hook_potential=80, actionability=80)
            for t in trends
        }

    def detect_cross_platform(self, trends):
        self.detect_calls += 1
        if self.detect_error:
            raise self.detect_error
        return list(self.groups)


class PipelineTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.cache = TrendCache(
            ttl_seconds=3600,
            storage_path=Path(self.tmpdir.name) / "cache.json",
            clock=lambda: NOW,
        )
        self.snapshots = InMemorySnapshotStore()
        self.judgments = InMemoryJudgmentStore()

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def _pipeline(self, adapters, judge=None) -> TrendPipeline:
        return TrendPipeline(
            adapters=adapters,
            cache=self.cache,
            snapshots=self.snapshots,
            judgments=self.judgments,
            judge=judge,
            clock=lambda: NOW,
        )


class RunTests(PipelineTestCase):
    def test_failing_adapter_does_not_abort_cycle(self):
        reddit = _StaticAdapter("reddit", TrendSource.REDDIT, [_item("reddit-1", TrendSource.REDDIT)])
        pipeline = self._pipeline([_ExplodingAdapter("hackernews", TrendSource.HACKERNEWS), reddit])

        result = pipeline.run(RankingQuery())

        self.assertFalse(result.degraded)
        self.assertEqual([t.trend.id for t in result.trends], ["reddit-1"])
        health = {h.name: h for h in result.health}
        self.assertFalse(health["hackernews"].healthy)
        self.assertIn("down", health["hackernews"].last_error)
        self.assertTrue(health["reddit"].healthy)
        self.assertEqual({h.name for h in pipeline.get_health()}, {"hackernews", "reddit"})

    def test_deduplicates_and_records_one_snapshot_per_cycle(self):
        items = [_item("hn-1", TrendSource.HACKERNEWS), _item("hn-1", TrendSource.HACKERNEWS, score=5)]
        pipeline = self._pipeline([_StaticAdapter("hackernews", TrendSource.HACKERNEWS, items)])

        first = pipeline.run(RankingQuery())
        pipeline.run(RankingQuery())

        self.assertEqual(first.total, 1)
        self.assertEqual(first.trends[0].trend.engagement_score, 100)
        self.assertEqual(self.snapshots.count("hn-1"), 2)

    def test_unjudged_trends_use_basic_score(self):
        item = _item("hn-1", TrendSource.HACKERNEWS, score=2000, comments=150, age_hours=2)
        pipeline = self._pipeline([_StaticAdapter("hackernews", TrendSource.HACKERNEWS, [item])])

        scored = pipeline.run(RankingQuery()).trends[0]
        self.assertEqual(scored.combined_score, 87)
        self.assertIsNone(scored.value_tier)

    def test_stored_judgment_and_group_are_applied(self):
        group = CrossPlatformGroup(topic="agents", platforms=["reddit", "hackernews"], trend_ids=["hn-1"], score=2)
        self.judgments.save(
            "hn-1",
            AIJudgment(content_value=90, niche_fit=90, hook_potential=90, actionability=90, cross_platform=group),
        )
        items = [_item("hn-1", TrendSource.HACKERNEWS), _item("hn-2", TrendSource.HACKERNEWS)]
        pipeline = self._pipeline([_StaticAdapter("hackernews", TrendSource.HACKERNEWS, items)])

        result = pipeline.run(RankingQuery())
        first = result.trends[0]
        self.assertEqual(first.trend.id, "hn-1")
        self.assertEqual(first.signals.cross_platform, 60)
        self.assertIsNotNone(first.value_tier)
        self.assertEqual(result.cross_platform_count, 1)

    def test_saved_flag_is_attached(self):
        pipeline = self._pipeline(
            [_StaticAdapter("reddit", TrendSource.REDDIT, [_item("reddit-1", TrendSource.REDDIT)])]
        )
        pipeline.set_saved("reddit-1", True)
        self.assertTrue(pipeline.run(RankingQuery()).trends[0].saved)

    def test_use_cache_skips_adapters(self):
        adapter = _StaticAdapter("reddit", TrendSource.REDDIT, [_item("reddit-1", TrendSource.REDDIT)])
        self.cache.put(TrendSource.REDDIT, [_item("reddit-cached", TrendSource.REDDIT)])
        pipeline = self._pipeline([adapter])

        result = pipeline.run(RankingQuery(use_cache=True))

        self.assertEqual(adapter.calls, 0)
        self.assertTrue(result.cached)
        self.assertEqual([t.trend.id for t in result.trends], ["reddit-cached"])

    def test_only_requested_sources_are_fetched(self):
        reddit = _StaticAdapter("reddit", TrendSource.REDDIT, [_item("reddit-1", TrendSource.REDDIT)])
        hn = _StaticAdapter("hackernews", TrendSource.HACKERNEWS, [_item("hn-1", TrendSource.HACKERNEWS)])
        pipeline = self._pipeline([reddit, hn])

        result = pipeline.run(RankingQuery(sources=[TrendSource.HACKERNEWS]))

        self.assertEqual(reddit.calls, 0)
        self.assertEqual([t.trend.id for t in result.trends], ["hn-1"])

    def test_total_failure_serves_degraded_cache(self):
        stale = _item("reddit-old", TrendSource.REDDIT, age_hours=48)
        self.cache.put(TrendSource.REDDIT, [stale])
        pipeline = self._pipeline([_ExplodingAdapter("reddit", TrendSource.REDDIT)])

        result = pipeline.run(RankingQuery())

        self.assertTrue(result.degraded)
        self.assertTrue(result.cached)
        self.assertEqual([t.trend.id for t in result.trends], ["reddit-old"])
        self.assertIsNone(result.trends[0].value_tier)
        self.assertFalse(result.health[0].healthy)

    def test_storage_failure_falls_back_to_degraded(self):
        class _BrokenJudgments(InMemoryJudgmentStore):
            def latest_judgments(self, trend_ids):
                raise RuntimeError("database is locked")

        self.cache.put(TrendSource.REDDIT, [_item("reddit-1", TrendSource.REDDIT)])
        pipeline = TrendPipeline(
            adapters=[_StaticAdapter("reddit", TrendSource.REDDIT, [_item("reddit-1", TrendSource.REDDIT)])],
            cache=self.cache,
            judgments=_BrokenJudgments(),
            clock=lambda: NOW,
        )

        result = pipeline.run(RankingQuery())
        self.assertTrue(result.degraded)
        self.assertEqual(len(result.trends), 1)

    def test_nothing_anywhere_returns_empty_degraded_result(self):
        pipeline = self._pipeline([_ExplodingAdapter("reddit", TrendSource.REDDIT)])
        result = pipeline.run(RankingQuery())
        self.assertTrue(result.degraded)
        self.assertEqual(result.trends, [])


class AnalyzeTests(PipelineTestCase):
    def _seed(self, count: int) -> List[TrendItem]:
        items = [_item(f"reddit-{i}", TrendSource.REDDIT, score=count - i) for i in range(count)]
        self.cache.put(TrendSource.REDDIT, items)
        return items

    def test_batches_of_twenty_five(self):
        self._seed(30)
        judge = _FakeJudge()
        report = self._pipeline([], judge=judge).analyze()

        self.assertEqual([len(b) for b in judge.batches], [25, 5])
        self.assertEqual(report.analyzed, 30)
        self.assertEqual(report.failed_batches, 0)
        self.assertIsNotNone(self.judgments.latest_judgment("reddit-29"))

    def test_failed_batch_is_skipped(self):
        self._seed(30)
        judge = _FakeJudge(fail_batches=[0])
        report = self._pipeline([], judge=judge).analyze()

        self.assertEqual(report.failed_batches, 1)
        self.assertEqual(report.analyzed, 5)
        self.assertIsNone(self.judgments.latest_judgment("reddit-0"))

    def test_explicit_ids(self):
        self._seed(5)
        judge = _FakeJudge()
        report = self._pipeline([], judge=judge).analyze(["reddit-3", "unknown"])
        self.assertEqual(judge.batches, [["reddit-3"]])
        self.assertEqual(report.requested, 1)

    def test_unanalysed_trends_first(self):
        self._seed(3)
        self.judgments.save("reddit-0", AIJudgment(content_value=1, niche_fit=1, hook_potential=1, actionability=1))
        judge = _FakeJudge()
        self._pipeline([], judge=judge).analyze()
        self.assertEqual(judge.batches, [["reddit-1", "reddit-2"]])

    def test_cross_platform_detection_attaches_groups(self):
        self._seed(12)
        group = CrossPlatformGroup(topic="agents", platforms=["reddit", "hackernews"], trend_ids=["reddit-4"], score=2)
        judge = _FakeJudge(groups=[group])
        report = self._pipeline([], judge=judge).analyze(detect_cross_platform=True)

        self.assertEqual(judge.detect_calls, 1)
        self.assertEqual(report.groups, [group])
        self.assertEqual(self.judgments.latest_judgment("reddit-4").cross_platform.topic, "agents")
        self.assertIsNone(self.judgments.latest_judgment("reddit-5").cross_platform)

    def test_cross_platform_needs_more_than_ten_items(self):
        self._seed(10)
        judge = _FakeJudge()
        self._pipeline([], judge=judge).analyze(detect_cross_platform=True)
        self.assertEqual(judge.detect_calls, 0)

    def test_cross_platform_failure_is_not_fatal(self):
        self._seed(12)
        judge = _FakeJudge(detect_error=LLMError("timeout"))
        report = self._pipeline([], judge=judge).analyze(detect_cross_platform=True)
        self.assertEqual(report.analyzed, 12)
        self.assertEqual(report.groups, [])

    def test_requires_judgment_service(self):
        with self.assertRaises(LLMError):
            self._pipeline([]).analyze()

    def test_analysed_trends_get_tiers_on_next_run(self):
        items = self._seed(2)
        pipeline = self._pipeline([_StaticAdapter("reddit", TrendSource.REDDIT, items)], judge=_FakeJudge())
        pipeline.analyze()
        result = pipeline.run(RankingQuery())
        self.assertTrue(all(t.value_tier in (ValueTier.HIGH, ValueTier.MAYBE) for t in result.trends))


class HelperTests(unittest.TestCase):
    def test_dedupe_keeps_first(self):
        items = [_item("a", TrendSource.REDDIT, score=1), _item("a", TrendSource.REDDIT, score=2), _item("b", TrendSource.REDDIT)]
        self.assertEqual([i.engagement_score for i in dedupe_by_id(items)], [1, 100])

    def test_build_adapters_honours_enabled_flags(self):
        settings = load_settings()
        config: Dict[str, object] = {"twitter": {"enabled": False}, "reddit": {"subreddits": ["python"], "limit": 5}}
        adapters = build_adapters(settings, config, client=None)
        names = [a.name for a in adapters]
        self.assertNotIn("twitter", names)
        self.assertIn("polymarket", names)
        reddit = next(a for a in adapters if a.name == "reddit")
        self.assertEqual(reddit.subreddits, ["python"])
        self.assertEqual(reddit.limit_per_subreddit, 5)


if __name__ == "__main__":
    unittest.main()
