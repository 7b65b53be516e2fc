"""
SQLite storage for snapshots, judgments and bookmarks.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    func,
    select,
)
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.engine import Engine

from trends.models import AIJudgment, ContentFormat, EmotionalTrigger, Snapshot, SnapshotPair, TrendSource
from trends.repository import pair_from_recent
from trends.serialization import dict_to_group, group_to_dict

logger = logging.getLogger(__name__)

_IN_CLAUSE_CHUNK = 500

metadata = MetaData()

snapshots_table = Table(
    "trend_snapshots",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("trend_id", String, nullable=False, index=True),
    Column("source", String, nullable=False),
    Column("score", Integer, nullable=False, default=0),
    Column("comments", Integer, nullable=False, default=0),
    Column("snapshot_at", Integer, nullable=False, index=True),
)

judgments_table = Table(
    "trend_judgments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("trend_id", String, nullable=False, index=True),
    Column("version", Integer, nullable=False),
    Column("content_value", Integer, nullable=False, default=0),
    Column("niche_fit", Integer, nullable=False, default=0),
    Column("hook_potential", Integer, nullable=False, default=0),
    Column("actionability", Integer, nullable=False, default=0),
    Column("reject", Boolean, nullable=False, default=False),
    Column("suggested_angle", String, nullable=True),
    Column("content_format", String, nullable=True),
    Column("emotional_trigger", String, nullable=True),
    Column("cross_platform", String, nullable=True),
    Column("scored_at", DateTime, nullable=True),
)

saved_table = Table(
    "saved_trends",
    metadata,
    Column("trend_id", String, primary_key=True),
    Column("saved_at", DateTime, nullable=True),
)


def _chunks(values: Sequence[str], size: int = _IN_CLAUSE_CHUNK) -> Iterable[Sequence[str]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


class TrendStore:
    """
    Implements the snapshot, judgment and saved-trend repositories on one SQLite file.
    """

    def __init__(self, db_path: str = "trends_data.db") -> None:
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.engine: Engine = create_engine(f"sqlite:///{db_path}", future=True)
        metadata.create_all(self.engine)

    # snapshots -----------------------------------------------------------

    def append(self, snapshots: Iterable[Snapshot]) -> None:
        rows = [
            {
                "trend_id": snap.trend_id,
                "source": snap.source.value,
                "score": snap.engagement_score,
                "comments": snap.comment_count,
                "snapshot_at": snap.snapshot_at,
            }
            for snap in snapshots
        ]
        if not rows:
            return
        with self.engine.begin() as conn:
            conn.execute(snapshots_table.insert(), rows)

    def recent(self, trend_id: str, limit: int = 2) -> List[Snapshot]:
        stmt = (
            select(snapshots_table)
            .where(snapshots_table.c.trend_id == trend_id)
            .order_by(snapshots_table.c.snapshot_at.desc(), snapshots_table.c.id.desc())
            .limit(limit)
        )
        with self.engine.connect() as conn:
            return [_row_to_snapshot(row) for row in conn.execute(stmt).mappings()]

    def latest_pairs(self, trend_ids: Sequence[str]) -> Dict[str, SnapshotPair]:
        grouped: Dict[str, List[Snapshot]] = {}
        ids = list(dict.fromkeys(trend_ids))
        with self.engine.connect() as conn:
            for chunk in _chunks(ids):
                stmt = (
                    select(snapshots_table)
                    .where(snapshots_table.c.trend_id.in_(chunk))
                    .order_by(
                        snapshots_table.c.trend_id,
                        snapshots_table.c.snapshot_at.desc(),
                        snapshots_table.c.id.desc(),
                    )
                )
                for row in conn.execute(stmt).mappings():
                    bucket = grouped.setdefault(row["trend_id"], [])
                    if len(bucket) < 2:
                        bucket.append(_row_to_snapshot(row))
        pairs: Dict[str, SnapshotPair] = {}
        for trend_id, recent in grouped.items():
            pair = pair_from_recent(recent)
            if pair:
                pairs[trend_id] = pair
        return pairs

    # judgments -----------------------------------------------------------

    def save(self, trend_id: str, judgment: AIJudgment) -> None:
        scored_at = judgment.scored_at or datetime.now(timezone.utc)
        with self.engine.begin() as conn:
            current = conn.execute(
                select(func.max(judgments_table.c.version)).where(judgments_table.c.trend_id == trend_id)
            ).scalar()
            conn.execute(
                judgments_table.insert().values(
                    trend_id=trend_id,
                    version=(current or 0) + 1,
                    content_value=judgment.content_value,
                    niche_fit=judgment.niche_fit,
                    hook_potential=judgment.hook_potential,
                    actionability=judgment.actionability,
                    reject=judgment.reject,
                    suggested_angle=judgment.suggested_angle,
                    content_format=judgment.content_format.value,
                    emotional_trigger=judgment.emotional_trigger.value,
                    cross_platform=json.dumps(group_to_dict(judgment.cross_platform))
                    if judgment.cross_platform
                    else None,
                    scored_at=scored_at,
                )
            )

    def latest_judgment(self, trend_id: str) -> Optional[AIJudgment]:
        return self.latest_judgments([trend_id]).get(trend_id)

    def latest_judgments(self, trend_ids: Sequence[str]) -> Dict[str, AIJudgment]:
        results: Dict[str, AIJudgment] = {}
        ids = list(dict.fromkeys(trend_ids))
        with self.engine.connect() as conn:
            for chunk in _chunks(ids):
                latest = (
                    select(
                        judgments_table.c.trend_id,
                        func.max(judgments_table.c.version).label("version"),
                    )
                    .where(judgments_table.c.trend_id.in_(chunk))
                    .group_by(judgments_table.c.trend_id)
                    .subquery()
                )
                stmt = select(judgments_table).join(
                    latest,
                    (judgments_table.c.trend_id == latest.c.trend_id)
                    & (judgments_table.c.version == latest.c.version),
                )
                for row in conn.execute(stmt).mappings():
                    results[row["trend_id"]] = _row_to_judgment(row)
        return results

    # bookmarks -----------------------------------------------------------

    def set_saved(self, trend_id: str, saved: bool) -> None:
        with self.engine.begin() as conn:
            if saved:
                stmt = insert(saved_table).values(trend_id=trend_id, saved_at=datetime.now(timezone.utc))
                conn.execute(stmt.on_conflict_do_nothing(index_elements=["trend_id"]))
            else:
                conn.execute(saved_table.delete().where(saved_table.c.trend_id == trend_id))

    def saved_ids(self) -> Set[str]:
        with self.engine.connect() as conn:
            return {row[0] for row in conn.execute(select(saved_table.c.trend_id))}


def _row_to_snapshot(row) -> Snapshot:
    return Snapshot(
        trend_id=row["trend_id"],
        source=TrendSource(row["source"]),
        engagement_score=int(row["score"] or 0),
        comment_count=int(row["comments"] or 0),
        snapshot_at=int(row["snapshot_at"]),
    )


def _row_to_judgment(row) -> AIJudgment:
    cross_platform = None
    if row["cross_platform"]:
        try:
            cross_platform = dict_to_group(json.loads(row["cross_platform"]))
        except ValueError:
            logger.debug("Ignoring malformed cross-platform payload for %s", row["trend_id"])
    scored_at = row["scored_at"]
    if scored_at is not None and scored_at.tzinfo is None:
        scored_at = scored_at.replace(tzinfo=timezone.utc)
    return AIJudgment(
        content_value=int(row["content_value"]),
        niche_fit=int(row["niche_fit"]),
        hook_potential=int(row["hook_potential"]),
        actionability=int(row["actionability"]),
        reject=bool(row["reject"]),
        suggested_angle=row["suggested_angle"] or "",
        content_format=ContentFormat.parse(row["content_format"]),
        emotional_trigger=EmotionalTrigger.parse(row["emotional_trigger"]),
        cross_platform=cross_platform,
        scored_at=scored_at,
    )
