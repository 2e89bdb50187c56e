# grieta/models/tier_list.py

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Literal

Role = Literal["top", "jungle", "mid", "adc", "support"]
Tier = Literal["S", "A", "B", "C", "D"]
TierListSource = Literal["measured", "simulated"]

ROLES: tuple[str, ...] = ("top", "jungle", "mid", "adc", "support")
TIER_ORDER = {"S": 0, "A": 1, "B": 2, "C": 3, "D": 4}


@dataclass(frozen=True)
class AnalyticsEntry:
    """Ligne brute de la source analytique (un champion sur un rôle)."""
    champion_id: str
    champion_name: str
    role: str
    pick_rate: float
    win_rate: float = 0.0
    games: int = 0


@dataclass
class ChampionTierEntry:
    champion_id: str
    champion_name: str
    role: str
    tier: str
    win_rate: float
    pick_rate: float
    games: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "championId": self.champion_id,
            "championName": self.champion_name,
            "role": self.role,
            "tier": self.tier,
            "winRate": self.win_rate,
            "pickRate": self.pick_rate,
            "games": self.games,
        }


@dataclass
class TierList:
    """
    Tier list ordonnée. `source` vaut "simulated" quand les winrates ont été
    perturbés pour imiter un palier de rang (aucune donnée mesurée par rang).
    """
    rank: str
    source: TierListSource
    entries: List[ChampionTierEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rank": self.rank,
            "source": self.source,
            "entries": [e.to_dict() for e in self.entries],
        }


def entry_from_dict(raw: Dict[str, Any]) -> AnalyticsEntry:
    """Inverse de asdict(), pour relire les entrées depuis le cache."""
    return AnalyticsEntry(**raw)


def entry_to_dict(entry: AnalyticsEntry) -> Dict[str, Any]:
    return asdict(entry)
