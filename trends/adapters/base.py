"""
Adapter protocol + shared helpers for pluggable trend sources.
"""
from __future__ import annotations

import re
import time
from datetime import datetime
from typing import List, Optional, Protocol, Tuple

from trends.models import FetchCriteria, HealthStatus, TrendItem, TrendSource

_SLUG_RE = re.compile(r"[^a-z0-9]+")


class SourceAdapter(Protocol):
    name: str
    source: TrendSource

    def fetch(self, criteria: FetchCriteria, *, now: datetime) -> Tuple[List[TrendItem], HealthStatus]:
        ...


def slugify(text: str, max_length: int = 60) -> str:
    return _SLUG_RE.sub("-", (text or "").lower()).strip("-")[:max_length].strip("-")


def skipped(name: str, reason: Optional[str] = None) -> Tuple[List[TrendItem], HealthStatus]:
    """Result for an adapter that was not asked for, or is disabled by configuration."""
    extra = {"skipped": reason} if reason else {}
    return [], HealthStatus(name=name, healthy=True, items_last_fetch=0, extra=extra)


def finish(
    name: str,
    items: List[TrendItem],
    *,
    started: float,
    now: datetime,
    last_error: Optional[str] = None,
) -> Tuple[List[TrendItem], HealthStatus]:
    healthy = bool(items) and last_error is None
    return items, HealthStatus(
        name=name,
        healthy=healthy,
        last_error=last_error,
        last_success=now if items else None,
        items_last_fetch=len(items),
        latency_ms=(time.time() - started) * 1000,
    )
