# grieta/services/tier_list.py
# ============================================================================
# Synthèse de la tier list (S → D) par rôle
# ----------------------------------------------------------------------------
#   1. Entrées de la source analytique (pick rate par champion/rôle)
#   2. Tier par percentile de pick rate dans chaque rôle
#   3. Winrate/games remplacés par l'agrégat live quand il existe
#   4. Palier de rang demandé (≠ "all") : aucune donnée réelle par palier,
#      on perturbe les winrates de façon déterministe puis on re-classe.
#      Le résultat est marqué source="simulated".
# ============================================================================

from __future__ import annotations

from typing import Iterable, List, Mapping, Optional

from grieta.models.tier_list import (
    ROLES,
    TIER_ORDER,
    AnalyticsEntry,
    ChampionTierEntry,
    TierList,
)
from grieta.ranks import calc_win_rate, round_half_away

VALID_RANKS: tuple[str, ...] = (
    "all", "iron", "bronze", "silver", "gold", "platinum",
    "emerald", "diamond", "master", "grandmaster", "challenger",
)
SORT_KEYS = ("tier", "pickrate", "winrate")

# clé analytique → clé Riot, quand elles diffèrent
ANALYTICS_TO_GAME_ALIAS = {
    "MonkeyKing": "Wukong",
}

# (percentile exclusif, tier)
PERCENTILE_CUTOFFS = (
    (0.10, "S"),
    (0.25, "A"),
    (0.50, "B"),
    (0.75, "C"),
)

SIMULATED_WR_MIN = 44.0
SIMULATED_WR_MAX = 56.0

WinrateAggregate = Mapping[str, Mapping[str, Mapping[str, int]]]


def tier_for_percentile(pct: float) -> str:
    for cutoff, tier in PERCENTILE_CUTOFFS:
        if pct < cutoff:
            return tier
    return "D"


def assign_percentile_tiers(entries: Iterable[ChampionTierEntry], key: str = "pick_rate") -> None:
    """Attribue un tier à chaque entrée selon son rang percentile dans son rôle."""
    entries = list(entries)
    for role in ROLES:
        by_role = sorted((e for e in entries if e.role == role), key=lambda e: getattr(e, key), reverse=True)
        n = len(by_role)
        for idx, entry in enumerate(by_role):
            entry.tier = tier_for_percentile(idx / n)


def java_string_hash(text: str, seed: int = 0) -> int:
    """Hash 32 bits signé façon String.hashCode(), chaîné depuis `seed`."""
    h = seed & 0xFFFFFFFF
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


def _lookup_aggregate(winrates: WinrateAggregate, champion_id: str, role: str) -> Optional[Mapping[str, int]]:
    for key in (ANALYTICS_TO_GAME_ALIAS.get(champion_id), champion_id):
        if key and key in winrates:
            per_role = winrates[key].get(role)
            if per_role:
                return per_role
    return None


def apply_aggregate(entries: Iterable[ChampionTierEntry], winrates: Optional[WinrateAggregate]) -> None:
    """Remplace winrate/games par l'agrégat live quand l'échantillon est non vide."""
    if not winrates:
        return
    for entry in entries:
        agg = _lookup_aggregate(winrates, entry.champion_id, entry.role)
        if not agg:
            continue
        wins, losses = int(agg.get("wins", 0)), int(agg.get("losses", 0))
        if wins + losses > 0:
            entry.win_rate = calc_win_rate(wins, losses)
            entry.games = wins + losses


def simulate_rank_bracket(entries: Iterable[ChampionTierEntry], rank: str) -> None:
    """
    Perturbe les winrates pour imiter un palier de rang.

    Heuristique de présentation, pas une mesure : décalage pseudo-aléatoire
    déterministe (hash du rang + hash champion/rôle), amplitude croissante
    avec le palier, winrate borné à [44, 56].
    """
    rank_idx = VALID_RANKS.index(rank)
    rank_seed = java_string_hash(rank)
    spread = 0.7 + (rank_idx / len(VALID_RANKS)) * 0.6
    for entry in entries:
        h = java_string_hash(entry.champion_id + entry.role, seed=rank_seed)
        delta = ((abs(h) % 40) - 20) / 10
        perturbed = round_half_away(entry.win_rate + delta * spread, 1)
        entry.win_rate = max(SIMULATED_WR_MIN, min(SIMULATED_WR_MAX, perturbed))


def _sort_field(sort_by: str, simulated: bool) -> str:
    if sort_by == "pickrate":
        return "pick_rate"
    if sort_by == "winrate":
        return "win_rate"
    return "win_rate" if simulated else "pick_rate"


def synthesize_tier_list(
    entries: Iterable[AnalyticsEntry],
    winrates: Optional[WinrateAggregate] = None,
    rank: str = "all",
    sort_by: str = "tier",
) -> TierList:
    """
    Construit la tier list ordonnée (S d'abord, puis tri actif décroissant).

    Raises:
        ValueError: palier de rang ou clé de tri inconnus
    """
    rank = (rank or "all").lower()
    if rank not in VALID_RANKS:
        raise ValueError(f"Invalid rank: {rank!r}")
    if sort_by not in SORT_KEYS:
        raise ValueError(f"Invalid sort key: {sort_by!r}")

    rows: List[ChampionTierEntry] = [
        ChampionTierEntry(
            champion_id=e.champion_id,
            champion_name=e.champion_name,
            role=e.role,
            tier="D",
            win_rate=e.win_rate,
            pick_rate=e.pick_rate,
            games=e.games,
        )
        for e in entries
        if e.pick_rate > 0 and e.role in ROLES
    ]

    assign_percentile_tiers(rows, key="pick_rate")
    apply_aggregate(rows, winrates)

    simulated = rank != "all"
    if simulated:
        simulate_rank_bracket(rows, rank)
        assign_percentile_tiers(rows, key="win_rate")

    field = _sort_field(sort_by, simulated)
    rows.sort(key=lambda e: (TIER_ORDER.get(e.tier, 5), -getattr(e, field)))

    return TierList(rank=rank, source="simulated" if simulated else "measured", entries=rows)
