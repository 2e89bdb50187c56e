# grieta/services/match_score.py
# ============================================================================
# Score de performance par joueur (tableau détaillé d'une partie)
# Pondération (total 100) :
#   or 25 · KDA 20 · KP 15 · dégâts 25 · vision 10 · CS 5
# Or / dégâts / vision / CS sont normalisés par le max de la partie,
# KDA et KP par des plafonds fixes.
# ============================================================================

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from grieta.ranks import calc_kda

W_GOLD = 25
W_KDA = 20
W_KP = 15
W_DAMAGE = 25
W_VISION = 10
W_CS = 5

KDA_CAP = 4.0

TAG_MVP = "MVP"
TAG_STANDOUT = "DESTACADO"


def _num(p: Mapping[str, Any], key: str) -> float:
    return p.get(key) or 0


def _cs(p: Mapping[str, Any]) -> float:
    return _num(p, "totalMinionsKilled") + _num(p, "neutralMinionsKilled")


def compute_score(p: Mapping[str, Any], participants: Sequence[Mapping[str, Any]]) -> float:
    """Score composite d'un participant, relatif aux autres joueurs de la partie."""
    team_kills = sum(_num(x, "kills") for x in participants if x.get("teamId") == p.get("teamId")) or 1

    kills, deaths, assists = _num(p, "kills"), _num(p, "deaths"), _num(p, "assists")
    kda = calc_kda(kills, deaths, assists)
    kill_participation = (kills + assists) / team_kills

    max_gold = max([_num(x, "goldEarned") for x in participants] + [1])
    max_dmg = max([_num(x, "totalDamageDealtToChampions") for x in participants] + [1])
    max_vision = max([_num(x, "visionScore") for x in participants] + [1])
    max_cs = max([_cs(x) for x in participants] + [1])

    gold_score = _num(p, "goldEarned") / max_gold * W_GOLD
    kda_score = min(kda / KDA_CAP, 1) * W_KDA
    kp_score = min(kill_participation, 1) * W_KP
    dmg_score = _num(p, "totalDamageDealtToChampions") / max_dmg * W_DAMAGE
    vision_score = _num(p, "visionScore") / max_vision * W_VISION
    cs_score = _cs(p) / max_cs * W_CS

    return gold_score + kda_score + kp_score + dmg_score + vision_score + cs_score


def score_and_rank_participants(participants: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    Calcule le score de chaque joueur, les classe de 1 à n et marque :
      • MVP       → meilleur score de l'équipe gagnante
      • DESTACADO → meilleur score de l'équipe perdante

    Retourne des copies des participants (+ score, rank, tag) triées par rang.
    Fonction pure : même entrée → même sortie.
    """
    scored = [{**p, "score": compute_score(p, participants)} for p in participants]

    winners = sorted((s for s in scored if s.get("win")), key=lambda s: s["score"], reverse=True)
    losers = sorted((s for s in scored if not s.get("win")), key=lambda s: s["score"], reverse=True)
    overall = sorted(winners + losers, key=lambda s: s["score"], reverse=True)

    # identité par objet : deux participants peuvent partager un puuid vide
    rank_of = {id(s): i + 1 for i, s in enumerate(overall)}
    mvp: Optional[Dict[str, Any]] = winners[0] if winners else None
    standout: Optional[Dict[str, Any]] = losers[0] if losers else None

    for s in scored:
        s["rank"] = rank_of[id(s)]
        if s is mvp:
            s["tag"] = TAG_MVP
        elif s is standout:
            s["tag"] = TAG_STANDOUT
        else:
            s["tag"] = None

    return sorted(scored, key=lambda s: s["rank"])
