# snapshots.py – journal append-only des rangs observés (SQLAlchemy)

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError

from grieta.database import RankSnapshotRow, SessionLocal
from grieta.models.ranked import RankSnapshot
from grieta.ranks import APEX_TIERS, RANKED_QUEUE_TYPES

log = logging.getLogger(__name__)


class SnapshotStore:
    """
    Lecture/écriture des snapshots de rang.

    Les écritures sont best-effort : appelées en tâche de fond après une
    visite de profil, un échec est loggé et jamais propagé.
    """

    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory

    def insert_snapshot(
        self,
        puuid: str,
        region: str,
        entry: Mapping[str, Any],
        fetched_at: Optional[datetime] = None,
    ) -> bool:
        tier = entry["tier"]
        division = None if tier in APEX_TIERS else (entry.get("rank") or "I")
        row = RankSnapshotRow(
            puuid=puuid,
            region=region.lower(),
            queue_type=entry["queueType"],
            tier=tier,
            division=division,
            league_points=int(entry.get("leaguePoints", 0)),
            wins=int(entry.get("wins", 0)),
            losses=int(entry.get("losses", 0)),
            fetched_at=fetched_at or datetime.now(timezone.utc),
        )
        try:
            with self._session_factory() as session:
                session.add(row)
                session.commit()
        except SQLAlchemyError as e:
            log.warning("Snapshot non enregistré (%s/%s): %s", puuid, entry.get("queueType"), e)
            return False
        return True

    def record_entries(self, puuid: str, region: str, entries: Iterable[Mapping[str, Any]]) -> int:
        """Enregistre un snapshot par queue classée. Retourne le nombre inséré."""
        inserted = 0
        for entry in entries:
            if entry.get("queueType") not in RANKED_QUEUE_TYPES or not entry.get("tier"):
                continue
            if self.insert_snapshot(puuid, region, entry):
                inserted += 1
        return inserted

    def ping(self) -> None:
        """Raises SQLAlchemyError when the database is unreachable."""
        with self._session_factory() as session:
            session.execute(text("SELECT 1"))

    def get_snapshots(self, puuid: str, region: str) -> List[RankSnapshot]:
        """Snapshots du joueur, triés par date croissante. [] si la base est indisponible."""
        stmt = (
            select(RankSnapshotRow)
            .where(RankSnapshotRow.puuid == puuid, RankSnapshotRow.region == region.lower())
            .order_by(RankSnapshotRow.fetched_at.asc(), RankSnapshotRow.id.asc())
        )
        try:
            with self._session_factory() as session:
                rows = session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            log.warning("Lecture des snapshots impossible (%s): %s", puuid, e)
            return []
        return [
            RankSnapshot(
                queue_type=r.queue_type,
                tier=r.tier,
                division=r.division,
                league_points=r.league_points,
                wins=r.wins,
                losses=r.losses,
                fetched_at=r.fetched_at,
            )
            for r in rows
        ]
