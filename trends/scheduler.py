"""
APScheduler entry point for periodic trend polling.

Every poll runs a full ranking pass, which records one snapshot per trend and
refreshes the cache, so velocity has fresh pairs to work with.
"""
from __future__ import annotations

import logging
from typing import Optional

from apscheduler.schedulers.blocking import BlockingScheduler

from trends.models import RankingQuery
from trends.pipeline import TrendPipeline

logger = logging.getLogger(__name__)

DEFAULT_POLL_MINUTES = 30


def poll_once(pipeline: TrendPipeline, query: Optional[RankingQuery] = None) -> int:
    result = pipeline.run(query or RankingQuery())
    if result.degraded:
        logger.warning("Poll served degraded results (%d cached trends)", result.total)
    else:
        logger.info("Poll ranked %d trends", result.total)
    return result.total


def build_scheduler(
    pipeline: TrendPipeline,
    minutes: int = DEFAULT_POLL_MINUTES,
    query: Optional[RankingQuery] = None,
    scheduler: Optional[BlockingScheduler] = None,
) -> BlockingScheduler:
    scheduler = scheduler or BlockingScheduler(timezone="UTC")
    scheduler.add_job(
        poll_once,
        "interval",
        minutes=max(1, minutes),
        args=[pipeline, query],
        id="trend_poll",
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def run_scheduler(pipeline: TrendPipeline, minutes: int = DEFAULT_POLL_MINUTES) -> None:  # pragma: no cover
    scheduler = build_scheduler(pipeline, minutes)
    logger.info("Polling trends every %d minutes", minutes)
    poll_once(pipeline)
    scheduler.start()
