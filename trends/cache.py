"""
In-memory/file-backed cache of the last successful fetch per source.

- One entry per source, overwritten on every successful fetch
- Entries older than the TTL are not served by ``get`` but stay on disk so a
  fully failed cycle can still fall back to ``last_known``
- Exposes a snapshot method for health/debug endpoints
"""
from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from trends.models import TrendItem, TrendSource
from trends.serialization import dict_to_item, item_to_dict

logger = logging.getLogger(__name__)

DEFAULT_CACHE_FILE = Path(__file__).resolve().parent / ".trends_cache.json"
DEFAULT_TTL_SECONDS = 3600


class TrendCache:
    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        storage_path: Optional[Path] = None,
        clock=time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.storage_path = storage_path or DEFAULT_CACHE_FILE
        self._clock = clock
        self._lock = threading.Lock()
        self._memory: Dict[str, Tuple[List[TrendItem], float]] = {}

    def put(self, source: TrendSource, items: Sequence[TrendItem]) -> None:
        if not items:
            # an empty fetch is a failure signal, keep the previous payload
            return
        now = self._clock()
        payload = {"ts": now, "items": [item_to_dict(item) for item in items]}
        # the disk file holds every source, so load/update/write must not interleave
        with self._lock:
            self._memory[source.value] = (list(items), now)
            try:
                entries = self._load_disk_entries()
                entries[source.value] = payload
                self._write_disk_entries(entries)
            except OSError as exc:
                logger.warning("Persisting trend cache for %s failed: %s", source.value, exc)

    def get(self, sources: Sequence[TrendSource]) -> List[TrendItem]:
        """Items for the requested sources whose entry is younger than the TTL."""
        return self._collect(sources, fresh_only=True)

    def last_known(self, sources: Sequence[TrendSource]) -> List[TrendItem]:
        """Items for the requested sources regardless of age."""
        return self._collect(sources, fresh_only=False)

    def _collect(self, sources: Sequence[TrendSource], *, fresh_only: bool) -> List[TrendItem]:
        now = self._clock()
        collected: List[TrendItem] = []
        disk_entries: Optional[Dict[str, Dict[str, object]]] = None
        for source in sources:
            key = source.value
            with self._lock:
                entry = self._memory.get(key)
            if entry is None:
                if disk_entries is None:
                    disk_entries = self._load_disk_entries()
                entry = self._hydrate(key, disk_entries.get(key))
            if entry is None:
                continue
            items, ts = entry
            if fresh_only and now - ts >= self.ttl_seconds:
                continue
            collected.extend(items)
        collected.sort(key=lambda item: item.engagement_score, reverse=True)
        return collected

    def _hydrate(self, key: str, payload: Optional[Dict[str, object]]) -> Optional[Tuple[List[TrendItem], float]]:
        if not payload:
            return None
        try:
            items = [dict_to_item(raw) for raw in payload.get("items", [])]
            ts = float(payload.get("ts", 0))
        except (KeyError, TypeError, ValueError) as exc:
            logger.debug("Failed to hydrate cache entry %s: %s", key, exc)
            return None
        with self._lock:
            self._memory[key] = (items, ts)
        return items, ts

    def snapshot(self) -> Dict[str, object]:
        """Return a lightweight view for health endpoints without exposing payload content."""
        now = self._clock()
        with self._lock:
            memory_entries = [
                {
                    "source": key,
                    "age_seconds": round(now - ts, 2),
                    "items": len(items),
                    "fresh": now - ts < self.ttl_seconds,
                }
                for key, (items, ts) in self._memory.items()
            ]
        disk_entries = [
            {
                "source": key,
                "age_seconds": round(now - payload.get("ts", now), 2),
                "items": len(payload.get("items", [])),
            }
            for key, payload in self._load_disk_entries().items()
        ]
        return {
            "ttl_seconds": self.ttl_seconds,
            "storage_path": str(self.storage_path),
            "memory_entries": memory_entries,
            "disk_entries": disk_entries,
        }

    def _load_disk_entries(self) -> Dict[str, Dict[str, object]]:
        if not self.storage_path.exists():
            return {}
        try:
            blob = json.loads(self.storage_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        entries = blob.get("entries", {}) if isinstance(blob, dict) else {}
        return entries if isinstance(entries, dict) else {}

    def _write_disk_entries(self, entries: Dict[str, Dict[str, object]]) -> None:
        payload = {"entries": entries, "version": 1}
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        self.storage_path.write_text(json.dumps(payload, default=str), encoding="utf-8")
