# grieta/ranks.py
# ============================================================================
# Primitives de classement partagées (tier / division / LP, queues classées)
# Aucune I/O : utilisé par le reconstructeur de LP et la couche web.
# ============================================================================

from __future__ import annotations

import math
from typing import Optional

TIERS: tuple[str, ...] = (
    "IRON", "BRONZE", "SILVER", "GOLD", "PLATINUM",
    "EMERALD", "DIAMOND", "MASTER", "GRANDMASTER", "CHALLENGER",
)
TIER_INDEX = {t: i for i, t in enumerate(TIERS)}

# IV = plus basse division, I = plus haute
DIVISIONS: tuple[str, ...] = ("IV", "III", "II", "I")
DIVISION_INDEX = {d: i for i, d in enumerate(DIVISIONS)}

# Pas de division au-dessus de Diamant : Riot renvoie "I"
APEX_TIERS = frozenset({"MASTER", "GRANDMASTER", "CHALLENGER"})

TIER_SPAN = 400
DIVISION_SPAN = 100

QUEUE_TO_QUEUE_TYPE = {
    420: "RANKED_SOLO_5x5",
    440: "RANKED_FLEX_SR",
}
RANKED_QUEUE_TYPES = frozenset(QUEUE_TO_QUEUE_TYPE.values())

TIER_TO_SPANISH = {
    "IRON": "Hierro",
    "BRONZE": "Bronce",
    "SILVER": "Plata",
    "GOLD": "Oro",
    "PLATINUM": "Platino",
    "EMERALD": "Esmeralda",
    "DIAMOND": "Diamante",
    "MASTER": "Maestro",
    "GRANDMASTER": "Gran Maestro",
    "CHALLENGER": "Retador",
}


def is_ranked_queue(queue_id: int) -> bool:
    return queue_id in QUEUE_TO_QUEUE_TYPE


def rank_scalar(tier: str, division: Optional[str], league_points: int) -> int:
    """
    Encode (tier, division, LP) en un entier totalement ordonné.

    scalar = tierIndex*400 + divisionIndex*100 + LP

    Une division absente (Master+) vaut "I". Lève ValueError si le tier ou
    la division sont inconnus.
    """
    tier_key = (tier or "").upper()
    div_key = (division or "I").upper()
    if tier_key not in TIER_INDEX:
        raise ValueError(f"Unknown tier: {tier!r}")
    if div_key not in DIVISION_INDEX:
        raise ValueError(f"Unknown division: {division!r}")
    return TIER_INDEX[tier_key] * TIER_SPAN + DIVISION_INDEX[div_key] * DIVISION_SPAN + int(league_points)


def lp_delta(
    before_tier: str, before_division: Optional[str], before_lp: int,
    after_tier: str, after_division: Optional[str], after_lp: int,
) -> int:
    """Différence de LP entre deux rangs observés (positive = gain)."""
    return rank_scalar(after_tier, after_division, after_lp) - rank_scalar(before_tier, before_division, before_lp)


def round_half_away(value: float, ndigits: int = 0) -> float:
    """
    Arrondi « half away from zero » (2.5 → 3, -2.5 → -3).

    round() de Python arrondit au pair, ce qu'on ne veut pas pour des LP.
    """
    factor = 10 ** ndigits
    scaled = abs(value) * factor
    rounded = math.floor(scaled + 0.5) / factor
    return math.copysign(rounded, value) if rounded else 0.0


def calc_kda(kills: int, deaths: int, assists: int) -> float:
    if deaths == 0:
        return float(kills + assists)
    return (kills + assists) / deaths


def calc_win_rate(wins: int, losses: int) -> float:
    """Winrate en pourcentage à une décimale (0 si aucun match)."""
    total = wins + losses
    if total <= 0:
        return 0.0
    return round_half_away(wins / total * 1000) / 10


def format_rank(tier: str, division: Optional[str], league_points: int) -> str:
    name = TIER_TO_SPANISH.get(tier.upper(), tier.title())
    if tier.upper() in APEX_TIERS or not division:
        return f"{name} - {league_points} LP"
    return f"{name} {division} - {league_points} LP"
