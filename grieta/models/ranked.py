# grieta/models/ranked.py
# ============================================================================
# Objets de classement (aucune écriture en base ici)
# ============================================================================

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class RankedMatchFact:
    """Une partie classée du joueur, vue du reconstructeur de LP."""
    match_id: str
    queue_id: int
    win: bool
    game_end_timestamp: int  # epoch ms


@dataclass(frozen=True)
class RankSnapshot:
    """Observation ponctuelle du rang d'un joueur (append-only)."""
    queue_type: str
    tier: str
    division: Optional[str]
    league_points: int
    wins: int
    losses: int
    fetched_at: dt.datetime

    @property
    def fetched_at_ms(self) -> int:
        ts = self.fetched_at
        if ts.tzinfo is None:  # SQLite rend des datetimes naïfs : UTC
            ts = ts.replace(tzinfo=dt.timezone.utc)
        return int(ts.timestamp() * 1000)


@dataclass(frozen=True)
class LiveRank:
    """Rang courant renvoyé par league-v4 pour une queue."""
    tier: str
    division: Optional[str]
    league_points: int
    wins: int = 0
    losses: int = 0

    @classmethod
    def from_entry(cls, entry: Mapping[str, Any]) -> "LiveRank":
        return cls(
            tier=entry["tier"],
            division=entry.get("rank") or "I",
            league_points=int(entry.get("leaguePoints", 0)),
            wins=int(entry.get("wins", 0)),
            losses=int(entry.get("losses", 0)),
        )
