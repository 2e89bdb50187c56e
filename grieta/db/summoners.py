# summoners.py – index de recherche des invocateurs déjà visités (SQLAlchemy)

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import case, select
from sqlalchemy.exc import SQLAlchemyError

from grieta.database import SessionLocal, SummonerRow

log = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 15
MAX_SEARCH_LIMIT = 25


class SummonerIndex:
    """
    Invocateurs connus du site, pour l'autocomplétion de la recherche.

    Alimenté en tâche de fond à chaque visite de profil : comme pour les
    snapshots, un échec d'écriture est loggé et jamais propagé.
    """

    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory

    def index_summoner(
        self,
        puuid: str,
        region: str,
        riot_id: str,
        profile_icon_id: Optional[int] = None,
        summoner_level: Optional[int] = None,
    ) -> bool:
        """Insère ou met à jour l'invocateur (clé puuid + région)."""
        region = region.lower()
        try:
            with self._session_factory() as session:
                row = session.get(SummonerRow, (puuid, region))
                if row is None:
                    row = SummonerRow(puuid=puuid, region=region)
                    session.add(row)
                row.riot_id = riot_id
                row.riot_id_lower = riot_id.lower()
                row.profile_icon_id = profile_icon_id
                row.summoner_level = summoner_level
                row.updated_at = datetime.now(timezone.utc)
                session.commit()
        except SQLAlchemyError as e:
            log.warning("Invocateur non indexé (%s): %s", riot_id, e)
            return False
        return True

    def search(self, region: str, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> List[Dict[str, Any]]:
        """
        Recherche insensible à la casse sur "Nom#TAG".

        Les préfixes passent avant les sous-chaînes, puis ordre alphabétique.
        [] si la requête est vide ou la base indisponible.
        """
        needle = query.strip().lower()
        if not needle:
            return []
        limit = max(1, min(limit, MAX_SEARCH_LIMIT))
        prefix_first = case((SummonerRow.riot_id_lower.startswith(needle, autoescape=True), 0), else_=1)
        stmt = (
            select(SummonerRow)
            .where(
                SummonerRow.region == region.lower(),
                SummonerRow.riot_id_lower.contains(needle, autoescape=True),
            )
            .order_by(prefix_first, SummonerRow.riot_id_lower)
            .limit(limit)
        )
        try:
            with self._session_factory() as session:
                rows = session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            log.warning("Recherche d'invocateurs impossible (%r): %s", query, e)
            return []
        return [
            {
                "puuid": r.puuid,
                "region": r.region,
                "riotId": r.riot_id,
                "profileIconId": r.profile_icon_id,
                "summonerLevel": r.summoner_level,
            }
            for r in rows
        ]
