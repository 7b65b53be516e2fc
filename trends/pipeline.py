"""
High-level orchestration for one aggregation + ranking cycle.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from trends.adapters import (
    HackerNewsAdapter,
    PolymarketAdapter,
    ProductHuntAdapter,
    RedditAdapter,
    TwitterAdapter,
    YouTubeAdapter,
)
from trends.adapters.base import SourceAdapter
from trends.cache import TrendCache
from trends.config_loader import load_sources_config
from trends.grouping import build_lookup
from trends.http_client import HttpClient
from trends.judgment import CROSS_PLATFORM_MIN_ITEMS, DEFAULT_NICHE, MAX_BATCH_SIZE, JudgmentParseError, JudgmentService
from trends.llm_client import LLMError, SonarClient
from trends.models import (
    AnalysisReport,
    CrossPlatformGroup,
    FetchCriteria,
    HealthStatus,
    RankingQuery,
    RankingResult,
    ScoredTrend,
    Snapshot,
    TrendItem,
    TrendSource,
)
from trends.ranking import apply_query, rank, sort_by
from trends.repository import (
    InMemoryJudgmentStore,
    InMemorySavedStore,
    InMemorySnapshotStore,
    JudgmentRepository,
    SavedTrendRepository,
    SnapshotRepository,
    TrendCacheRepository,
)
from trends.scoring import DEFAULT_CONFIG, ScoringConfig, score_trend
from trends.settings import TrendSettings
from trends.store import TrendStore

logger = logging.getLogger(__name__)


def dedupe_by_id(items: Sequence[TrendItem]) -> List[TrendItem]:
    seen = set()
    result: List[TrendItem] = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        result.append(item)
    return result


class TrendPipeline:
    """
    Fetch, snapshot, score and rank trends.

    Storage is injected through the repository protocols; omitted repositories
    default to in-memory implementations.
    """

    def __init__(
        self,
        adapters: Sequence[SourceAdapter],
        cache: TrendCacheRepository,
        snapshots: Optional[SnapshotRepository] = None,
        judgments: Optional[JudgmentRepository] = None,
        saved: Optional[SavedTrendRepository] = None,
        judge: Optional[JudgmentService] = None,
        config: ScoringConfig = DEFAULT_CONFIG,
        max_workers: int = 6,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.adapters = list(adapters)
        self.cache = cache
        self.snapshots = snapshots or InMemorySnapshotStore()
        self.judgments = judgments or InMemoryJudgmentStore()
        self.saved = saved or InMemorySavedStore()
        self.judge = judge
        self.config = config
        self.max_workers = max_workers
        self.clock = clock
        self._health: Dict[str, HealthStatus] = {}

    # ranking ---------------------------------------------------------------

    def run(self, query: Optional[RankingQuery] = None) -> RankingResult:
        query = query or RankingQuery()
        now_ts = self.clock()
        try:
            return self._run(query, now_ts)
        except Exception as exc:
            logger.error("Ranking pass failed, serving cached trends: %s", exc, exc_info=True)
            return self._degraded(query, now_ts)

    def _run(self, query: RankingQuery, now_ts: float) -> RankingResult:
        now = datetime.fromtimestamp(now_ts, timezone.utc)
        items: List[TrendItem] = []
        health: List[HealthStatus] = []
        from_cache = False

        if query.use_cache:
            items = self.cache.get(query.sources)
            from_cache = bool(items)

        if not items:
            items, health = self.collect(query.sources, now)

        if not items:
            logger.warning("No live or cached trends for %s", [s.value for s in query.sources])
            return self._degraded(query, now_ts, health=health)

        items = dedupe_by_id(items)
        self.record_snapshots(items, int(now_ts))
        ranked = rank(self.score(items, now_ts))
        visible = apply_query(ranked, query, now=now_ts)
        logger.info("Ranked %d trends (%d visible)", len(ranked), len(visible))
        return RankingResult(
            trends=visible,
            generated_at=now,
            health=health,
            total=len(ranked),
            cached=from_cache,
        )

    def collect(self, sources: Sequence[TrendSource], now: datetime) -> Tuple[List[TrendItem], List[HealthStatus]]:
        """Fan out to every adapter for the requested sources; one failure never aborts the others."""
        criteria = FetchCriteria(sources=list(sources))
        relevant = [adapter for adapter in self.adapters if adapter.source in criteria.sources]
        if not relevant:
            return [], []

        results: List[TrendItem] = []
        health: List[HealthStatus] = []
        workers = max(1, min(self.max_workers, len(relevant)))
        logger.info("Using %d workers for %d adapters", workers, len(relevant))

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [(adapter, executor.submit(adapter.fetch, criteria, now=now)) for adapter in relevant]
            # consume in adapter order so the merged list is deterministic
            for adapter, future in futures:
                name = getattr(adapter, "name", repr(adapter))
                try:
                    items, status = future.result()
                    logger.debug("Adapter %s fetched %d items", status.name, len(items))
                except Exception as exc:
                    logger.warning("Adapter %s failed: %s", name, exc)
                    items, status = [], HealthStatus(name=name, healthy=False, last_error=str(exc))

                if items:
                    self._write_cache(adapter.source, items)
                results.extend(items)
                health.append(status)
                self._health[status.name] = status

        return results, health

    def _write_cache(self, source: TrendSource, items: Sequence[TrendItem]) -> None:
        try:
            self.cache.put(source, items)
        except Exception as exc:
            logger.error("Cache write for %s failed: %s", source.value, exc)

    def record_snapshots(self, items: Sequence[TrendItem], snapshot_at: int) -> None:
        """One new snapshot per trend seen in this cycle, even if nothing changed."""
        rows = [
            Snapshot(
                trend_id=item.id,
                source=item.source,
                engagement_score=item.engagement_score,
                comment_count=item.comment_count,
                snapshot_at=snapshot_at,
            )
            for item in items
        ]
        try:
            self.snapshots.append(rows)
        except Exception as exc:
            logger.error("Snapshot save failed: %s", exc)

    def score(self, items: Sequence[TrendItem], now_ts: float) -> List[ScoredTrend]:
        ids = [item.id for item in items]
        judgments = self.judgments.latest_judgments(ids)
        pairs = self.snapshots.latest_pairs(ids)
        saved_ids = self.saved.saved_ids()
        scored: List[ScoredTrend] = []
        for item in items:
            judgment = judgments.get(item.id)
            scored.append(
                score_trend(
                    item,
                    judgment,
                    pairs.get(item.id),
                    judgment.cross_platform if judgment else None,
                    saved=item.id in saved_ids,
                    now=now_ts,
                    config=self.config,
                )
            )
        return scored

    def _degraded(self, query: RankingQuery, now_ts: float, health: Optional[List[HealthStatus]] = None) -> RankingResult:
        """Last known cached items scored by the basic scorer, with no time-window cut."""
        try:
            items = dedupe_by_id(self.cache.last_known(query.sources))
        except Exception as exc:
            logger.error("Cache unavailable for degraded ranking: %s", exc)
            items = []
        try:
            saved_ids = self.saved.saved_ids()
        except Exception as exc:
            logger.warning("Saved trends unavailable: %s", exc)
            saved_ids = set()
        scored = [
            score_trend(item, saved=item.id in saved_ids, now=now_ts, config=self.config)
            for item in items
        ]
        ordered = sort_by(rank(scored), query.sort_by)
        return RankingResult(
            trends=ordered[: query.limit] if query.limit else ordered,
            generated_at=datetime.fromtimestamp(now_ts, timezone.utc),
            health=health or [],
            total=len(scored),
            degraded=True,
            cached=True,
        )

    # analysis --------------------------------------------------------------

    def analyze(
        self,
        trend_ids: Optional[Sequence[str]] = None,
        *,
        detect_cross_platform: bool = False,
        sources: Optional[Sequence[TrendSource]] = None,
    ) -> AnalysisReport:
        """
        Judge cached trends in batches and persist the results.

        Without explicit ids, trends that have no judgment yet are analysed;
        when every trend already has one, all of them are re-analysed.
        """
        if self.judge is None or not self.judge.available:
            raise LLMError("Judgment service is not configured")

        pool = dedupe_by_id(self.cache.last_known(list(sources or TrendSource)))
        if trend_ids:
            wanted = set(trend_ids)
            to_analyze = [item for item in pool if item.id in wanted]
        else:
            known = self.judgments.latest_judgments([item.id for item in pool])
            to_analyze = [item for item in pool if item.id not in known] or pool

        report = AnalysisReport(requested=len(to_analyze))
        if not to_analyze:
            return report

        groups: List[CrossPlatformGroup] = []
        if detect_cross_platform and len(pool) > CROSS_PLATFORM_MIN_ITEMS:
            try:
                groups = self.judge.detect_cross_platform(pool)
            except (LLMError, JudgmentParseError) as exc:
                logger.warning("Cross-platform detection failed: %s", exc)
        report.groups = groups
        lookup = build_lookup(groups)

        for start in range(0, len(to_analyze), MAX_BATCH_SIZE):
            batch = to_analyze[start : start + MAX_BATCH_SIZE]
            try:
                judgments = self.judge.judge(batch)
            except (LLMError, JudgmentParseError) as exc:
                report.failed_batches += 1
                logger.error("Judgment batch %d failed: %s", start // MAX_BATCH_SIZE + 1, exc)
                continue
            for trend_id, judgment in judgments.items():
                judgment.cross_platform = lookup.get(trend_id)
                self.judgments.save(trend_id, judgment)
                report.analyzed += 1

        logger.info(
            "Analysed %d/%d trends (%d failed batches, %d cross-platform groups)",
            report.analyzed,
            report.requested,
            report.failed_batches,
            len(groups),
        )
        return report

    def set_saved(self, trend_id: str, saved: bool) -> None:
        self.saved.set_saved(trend_id, saved)

    def get_health(self) -> List[HealthStatus]:
        return list(self._health.values())


def build_adapters(settings: TrendSettings, config: Dict[str, Any], client: SonarClient) -> List[SourceAdapter]:
    """Build all enabled adapters from settings plus the optional YAML overrides."""

    def section(name: str) -> Dict[str, Any]:
        value = config.get(name) or {}
        return value if isinstance(value, dict) else {}

    def enabled(name: str) -> bool:
        return section(name).get("enabled", True) is not False

    http = HttpClient()
    adapters: List[SourceAdapter] = []
    if enabled("reddit"):
        reddit = section("reddit")
        adapters.append(
            RedditAdapter(
                subreddits=reddit.get("subreddits"),
                limit_per_subreddit=int(reddit.get("limit", 25)),
                http=http,
            )
        )
    if enabled("hackernews"):
        adapters.append(HackerNewsAdapter(limit=int(section("hackernews").get("limit", 30)), http=http))
    if enabled("youtube"):
        youtube = section("youtube")
        adapters.append(
            YouTubeAdapter(
                api_key=youtube.get("api_key") or settings.youtube_api_key,
                queries=youtube.get("queries"),
                limit=int(youtube.get("limit", 20)),
                http=http,
            )
        )
    for name, adapter_cls in (
        ("producthunt", ProductHuntAdapter),
        ("twitter", TwitterAdapter),
        ("polymarket", PolymarketAdapter),
    ):
        if enabled(name):
            adapters.append(adapter_cls(client))
    if not adapters:
        logger.warning("No adapters configured for trend pipeline")
    return adapters


def build_pipeline(settings: TrendSettings, config: Optional[Dict[str, Any]] = None) -> TrendPipeline:
    config = load_sources_config() if config is None else config
    client = SonarClient(api_key=settings.perplexity_api_key, model=settings.sonar_model)
    store = TrendStore(settings.db_path)
    judgment_config = config.get("judgment")
    niche = judgment_config.get("niche") if isinstance(judgment_config, dict) else None
    return TrendPipeline(
        adapters=build_adapters(settings, config, client),
        cache=TrendCache(ttl_seconds=settings.cache_ttl_seconds, storage_path=settings.cache_path),
        snapshots=store,
        judgments=store,
        saved=store,
        judge=JudgmentService(client, niche=niche or DEFAULT_NICHE),
        config=ScoringConfig(meme_subreddits=settings.meme_subreddits),
        max_workers=settings.max_workers,
    )
