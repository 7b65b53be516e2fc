"""
Repository contracts injected into the pipeline, plus in-memory implementations.

Storage backends only need to honour these shapes: the scoring code never
learns which technology sits behind them.
"""
from __future__ import annotations

import threading
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Set

from trends.models import AIJudgment, Snapshot, SnapshotPair, TrendItem, TrendSource


class TrendCacheRepository(Protocol):
    def put(self, source: TrendSource, items: Sequence[TrendItem]) -> None:
        ...

    def get(self, sources: Sequence[TrendSource]) -> List[TrendItem]:
        ...

    def last_known(self, sources: Sequence[TrendSource]) -> List[TrendItem]:
        ...


class SnapshotRepository(Protocol):
    def append(self, snapshots: Iterable[Snapshot]) -> None:
        ...

    def recent(self, trend_id: str, limit: int = 2) -> List[Snapshot]:
        ...

    def latest_pairs(self, trend_ids: Sequence[str]) -> Dict[str, SnapshotPair]:
        ...


class JudgmentRepository(Protocol):
    def save(self, trend_id: str, judgment: AIJudgment) -> None:
        ...

    def latest_judgment(self, trend_id: str) -> Optional[AIJudgment]:
        ...

    def latest_judgments(self, trend_ids: Sequence[str]) -> Dict[str, AIJudgment]:
        ...


class SavedTrendRepository(Protocol):
    def set_saved(self, trend_id: str, saved: bool) -> None:
        ...

    def saved_ids(self) -> Set[str]:
        ...


def pair_from_recent(recent: Sequence[Snapshot]) -> Optional[SnapshotPair]:
    """``recent`` is newest first; anything past the second entry is ignored."""
    if len(recent) < 2:
        return None
    return SnapshotPair(previous=recent[1], current=recent[0])


class InMemorySnapshotStore:
    def __init__(self) -> None:
        self._rows: Dict[str, List[Snapshot]] = defaultdict(list)
        self._lock = threading.Lock()

    def append(self, snapshots: Iterable[Snapshot]) -> None:
        with self._lock:
            for snap in snapshots:
                self._rows[snap.trend_id].append(snap)

    def recent(self, trend_id: str, limit: int = 2) -> List[Snapshot]:
        with self._lock:
            rows = list(self._rows.get(trend_id, []))
        # stable sort keeps insertion order for equal timestamps; reverse for newest first
        ordered = sorted(rows, key=lambda s: s.snapshot_at)
        ordered.reverse()
        return ordered[:limit]

    def latest_pairs(self, trend_ids: Sequence[str]) -> Dict[str, SnapshotPair]:
        pairs: Dict[str, SnapshotPair] = {}
        for trend_id in trend_ids:
            pair = pair_from_recent(self.recent(trend_id, 2))
            if pair:
                pairs[trend_id] = pair
        return pairs

    def count(self, trend_id: str) -> int:
        with self._lock:
            return len(self._rows.get(trend_id, []))


class InMemoryJudgmentStore:
    def __init__(self) -> None:
        self._latest: Dict[str, AIJudgment] = {}
        self._lock = threading.Lock()

    def save(self, trend_id: str, judgment: AIJudgment) -> None:
        with self._lock:
            self._latest[trend_id] = judgment

    def latest_judgment(self, trend_id: str) -> Optional[AIJudgment]:
        with self._lock:
            return self._latest.get(trend_id)

    def latest_judgments(self, trend_ids: Sequence[str]) -> Dict[str, AIJudgment]:
        with self._lock:
            return {tid: self._latest[tid] for tid in trend_ids if tid in self._latest}


class InMemorySavedStore:
    def __init__(self) -> None:
        self._ids: Set[str] = set()
        self._lock = threading.Lock()

    def set_saved(self, trend_id: str, saved: bool) -> None:
        with self._lock:
            if saved:
                self._ids.add(trend_id)
            else:
                self._ids.discard(trend_id)

    def saved_ids(self) -> Set[str]:
        with self._lock:
            return set(self._ids)
