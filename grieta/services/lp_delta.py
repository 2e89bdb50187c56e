# grieta/services/lp_delta.py
# ============================================================================
# Reconstruction du gain/perte de LP par partie classée
# ----------------------------------------------------------------------------
# On ne dispose que de snapshots de rang ponctuels (un par visite de profil),
# pas d'un historique LP par partie. Pour chaque partie on cherche :
#   • before = dernier snapshot pris strictement avant la fin de la partie
#   • after  = premier snapshot pris strictement après
#     (à défaut : le rang live du joueur, seulement si `before` existe)
# La variation totale entre les deux est répartie sur la fenêtre d'attribution
# (toutes les parties classées de la même queue entre before et after) :
#   • 1 partie               → variation exacte
#   • que des wins / losses  → division égale (arrondie)
#   • mixte                  → |variation| / n, signe selon le résultat
# Le cas mixte est une approximation : il n'existe aucune vérité terrain
# pour le valider au-delà de deux parties.
# ============================================================================

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from grieta.models.ranked import LiveRank, RankedMatchFact, RankSnapshot
from grieta.ranks import QUEUE_TO_QUEUE_TYPE, is_ranked_queue, lp_delta, round_half_away

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Anchor:
    at_ms: int
    tier: str
    division: Optional[str]
    league_points: int


def _delta_from(before: _Anchor, tier: str, division: Optional[str], league_points: int) -> Optional[int]:
    """Variation before → rang donné, None si l'un des deux rangs est illisible."""
    try:
        return lp_delta(before.tier, before.division, before.league_points, tier, division, league_points)
    except (TypeError, ValueError):
        return None


def _anchors_by_queue(snapshots: Iterable[RankSnapshot]) -> Dict[str, List[_Anchor]]:
    """Indexe les snapshots par queue, triés par date (l'entrée peut être désordonnée)."""
    out: Dict[str, List[_Anchor]] = {}
    for snap in snapshots:
        try:
            at_ms = snap.fetched_at_ms
        except (AttributeError, TypeError, ValueError, OverflowError):
            log.debug("Snapshot sans date exploitable ignoré: %r", snap)
            continue
        out.setdefault(snap.queue_type, []).append(
            _Anchor(at_ms, snap.tier, snap.division, snap.league_points)
        )
    for anchors in out.values():
        anchors.sort(key=lambda a: a.at_ms)
    return out


def _matches_by_queue(matches: Iterable[RankedMatchFact]) -> Dict[str, List[RankedMatchFact]]:
    """Parties classées exploitables par queueType, triées par fin de partie."""
    out: Dict[str, List[RankedMatchFact]] = {}
    for m in matches:
        if not is_ranked_queue(m.queue_id):
            continue
        if not isinstance(m.game_end_timestamp, int) or m.game_end_timestamp <= 0:
            continue
        out.setdefault(QUEUE_TO_QUEUE_TYPE[m.queue_id], []).append(m)
    for queue_matches in out.values():
        queue_matches.sort(key=lambda m: m.game_end_timestamp)
    return out


def _split(window: Sequence[RankedMatchFact], total_delta: int) -> Dict[str, int]:
    """Répartit une variation de LP sur les parties de la fenêtre."""
    n = len(window)
    if n == 0:
        return {}
    if n == 1:
        return {window[0].match_id: total_delta}

    wins = sum(1 for m in window if m.win)
    losses = n - wins
    if wins == 0 or losses == 0:
        share = int(round_half_away(total_delta / n))
        return {m.match_id: share for m in window}

    magnitude = int(round_half_away(abs(total_delta) / n))
    win_value = magnitude if total_delta >= 0 else -magnitude
    return {m.match_id: (win_value if m.win else -win_value) for m in window}


def compute_lp_deltas(
    matches: Iterable[RankedMatchFact],
    snapshots: Iterable[RankSnapshot],
    current_ranks: Optional[Mapping[str, LiveRank]] = None,
) -> Dict[str, int]:
    """
    Estime la variation de LP causée par chaque partie classée.

    Args:
        matches: parties du joueur (les queues non classées sont ignorées)
        snapshots: journal des snapshots du joueur pour la région
        current_ranks: rang live par queueType, ancre "after" virtuelle

    Returns:
        dict matchId → delta LP. Une partie absente du dict = inconnue.
    """
    result: Dict[str, int] = {}
    by_queue = _matches_by_queue(matches)
    if not by_queue:
        return result

    anchors = _anchors_by_queue(snapshots)
    current_ranks = current_ranks or {}

    for queue_type, queue_matches in by_queue.items():
        queue_anchors = anchors.get(queue_type)
        if not queue_anchors:
            continue
        # calculés une fois par queue, les deux listes sont triées
        times = [a.at_ms for a in queue_anchors]
        ends = [m.game_end_timestamp for m in queue_matches]
        live = current_ranks.get(queue_type)

        for match in queue_matches:
            if match.match_id in result:
                continue
            end_ms = match.game_end_timestamp
            lo = bisect.bisect_left(times, end_ms)   # premier >= end
            hi = bisect.bisect_right(times, end_ms)  # premier > end
            # Sans snapshot "before" aucune variation n'est calculable
            if lo == 0:
                continue
            before = queue_anchors[lo - 1]
            first = bisect.bisect_right(ends, before.at_ms)

            if hi < len(queue_anchors):
                after = queue_anchors[hi]
                total_delta = _delta_from(before, after.tier, after.division, after.league_points)
                window = queue_matches[first:bisect.bisect_left(ends, after.at_ms)]
            elif live is not None:
                total_delta = _delta_from(before, live.tier, live.division, live.league_points)
                window = queue_matches[first:]
            else:
                continue

            if total_delta is None:
                continue
            result.update(_split(window, total_delta))

    return result
