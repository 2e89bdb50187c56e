# grieta/services/profile.py
# ============================================================================
# Orchestration du profil joueur : compte + rang live + historique avec LP,
# stats par champion et maîtrises d'une partie
# (fan-out concurrent vers Riot ; le calcul des LP reste pur)
# ============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

from grieta.db.cache import RedisCache
from grieta.db.snapshots import SnapshotStore
from grieta.models.ranked import LiveRank, RankedMatchFact
from grieta.ranks import RANKED_QUEUE_TYPES, calc_kda, calc_win_rate, format_rank, round_half_away
from grieta.riot.client import RiotClient
from grieta.services.lp_delta import compute_lp_deltas

log = logging.getLogger(__name__)


def parse_riot_id(riot_id: str) -> tuple[str, str]:
    """"Nom#TAG" → ("Nom", "TAG"). Tag vide si absent."""
    name, _, tag = riot_id.partition("#")
    return name, tag


def ranked_by_queue(entries: List[Mapping[str, Any]]) -> Dict[str, LiveRank]:
    """Entrées league-v4 → {queueType: LiveRank} pour les queues classées."""
    out: Dict[str, LiveRank] = {}
    for e in entries:
        if e.get("queueType") in RANKED_QUEUE_TYPES and e.get("tier"):
            out[e["queueType"]] = LiveRank.from_entry(e)
    return out


async def _summoner(riot: RiotClient, cache: Optional[RedisCache], region: str, puuid: str) -> Dict[str, Any]:
    if cache is not None:
        cached = await cache.get_cached_summoner(puuid)
        if cached:
            return cached
    summoner = await riot.get_summoner_by_puuid(region, puuid)
    if summoner and cache is not None:
        await cache.set_cached_summoner(puuid, summoner)
    return summoner or {}


async def load_profile(
    riot: RiotClient,
    game_name: str,
    tag_line: str,
    region: str,
    cache: Optional[RedisCache] = None,
) -> Optional[Dict[str, Any]]:
    """
    Compte + summoner + rangs. None si le Riot ID est inconnu.

    Le summoner (icône, niveau) peut venir du cache ; les rangs sont
    toujours lus en direct car ils alimentent les snapshots.
    """
    account = await riot.get_account_by_riot_id(region, game_name, tag_line)
    if not account:
        return None
    summoner, entries = await asyncio.gather(
        _summoner(riot, cache, region, account["puuid"]),
        riot.get_league_entries_by_puuid(region, account["puuid"]),
    )
    ranked = [
        {**e, "label": format_rank(e["tier"], e.get("rank"), e.get("leaguePoints", 0))} if e.get("tier") else dict(e)
        for e in entries
    ]
    return {"account": account, "summoner": summoner, "ranked": ranked}


def processed_match(p: Mapping[str, Any], match: Mapping[str, Any]) -> Dict[str, Any]:
    """Ligne d'historique vue par un joueur."""
    info = match.get("info", {})
    duration = info.get("gameDuration", 0) or 0
    cs = (p.get("totalMinionsKilled") or 0) + (p.get("neutralMinionsKilled") or 0)
    perks = p.get("perks") or {}
    styles = perks.get("styles") or [{}]
    selections = styles[0].get("selections") or [{}]
    return {
        "matchId": match.get("metadata", {}).get("matchId"),
        "champion": p.get("championName"),
        "championId": p.get("championId"),
        "kills": p.get("kills", 0),
        "deaths": p.get("deaths", 0),
        "assists": p.get("assists", 0),
        "kda": calc_kda(p.get("kills", 0), p.get("deaths", 0), p.get("assists", 0)),
        "cs": cs,
        "csPerMin": cs / (duration / 60) if duration > 0 else 0,
        "visionScore": p.get("visionScore", 0),
        "goldEarned": p.get("goldEarned", 0),
        "totalDamageToChampions": p.get("totalDamageDealtToChampions", 0),
        "items": [p.get(f"item{i}", 0) for i in range(6)],
        "trinket": p.get("item6", 0),
        "summoner1Id": p.get("summoner1Id"),
        "summoner2Id": p.get("summoner2Id"),
        "win": bool(p.get("win")),
        "gameMode": info.get("gameMode", ""),
        "queueId": info.get("queueId"),
        "gameDuration": duration,
        "gameCreation": info.get("gameCreation", 0),
        "gameEndTimestamp": info.get("gameEndTimestamp"),
        "teamPosition": p.get("teamPosition") or p.get("individualPosition"),
        "champLevel": p.get("champLevel"),
        "primaryRune": selections[0].get("perk", 0),
    }


def _player(match: Optional[Mapping[str, Any]], puuid: str) -> Optional[Mapping[str, Any]]:
    if not match:
        return None
    return next((p for p in match.get("info", {}).get("participants", []) if p.get("puuid") == puuid), None)


def _match_end_ms(info: Mapping[str, Any]) -> int:
    end = info.get("gameEndTimestamp")
    if end:
        return int(end)
    # vieux matchs sans gameEndTimestamp : début + durée
    start = info.get("gameStartTimestamp") or info.get("gameCreation") or 0
    return int(start) + int(info.get("gameDuration") or 0) * 1000 if start else 0


async def fetch_match(riot: RiotClient, cache: RedisCache, region: str, match_id: str) -> Optional[Dict[str, Any]]:
    cached = await cache.get_cached_match(match_id)
    if cached:
        return cached
    match = await riot.get_match_by_id(region, match_id)
    if match:
        await cache.set_cached_match(match_id, match)
    return match


async def match_history(
    riot: RiotClient,
    cache: RedisCache,
    snapshots: SnapshotStore,
    puuid: str,
    region: str,
    start: int = 0,
    count: int = 10,
    queue: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Historique du joueur, chaque ligne enrichie de `lpDelta` quand on a pu
    le reconstruire (absent sinon).
    """
    match_ids = await riot.get_match_ids(region, puuid, start=start, count=count, queue=queue)
    results = await asyncio.gather(
        *(fetch_match(riot, cache, region, mid) for mid in match_ids),
        riot.get_league_entries_by_puuid(region, puuid),
        return_exceptions=True,
    )
    *matches, ranked = results
    if isinstance(ranked, BaseException):
        log.warning("Rang live indisponible pour %s: %s", puuid, ranked)
        ranked = []

    rows: List[Dict[str, Any]] = []
    facts: List[RankedMatchFact] = []
    for match in matches:
        if isinstance(match, BaseException):
            log.warning("Partie ignorée dans l'historique: %s", match)
            continue
        participant = _player(match, puuid)
        if participant is None:
            continue
        info = match.get("info", {})
        row = processed_match(participant, match)
        rows.append(row)
        facts.append(RankedMatchFact(
            match_id=row["matchId"],
            queue_id=info.get("queueId", 0),
            win=row["win"],
            game_end_timestamp=_match_end_ms(info),
        ))

    history = await asyncio.to_thread(snapshots.get_snapshots, puuid, region)
    deltas = compute_lp_deltas(facts, history, ranked_by_queue(ranked))
    for row in rows:
        if row["matchId"] in deltas:
            row["lpDelta"] = deltas[row["matchId"]]
    return rows


# ── Stats par champion (dernières parties) ───────────────────────────
CHAMPION_STATS_MATCHES = 50
CHAMPION_STATS_TOP = 15


def champion_stats(rows: List[Mapping[str, Any]], top: int = CHAMPION_STATS_TOP) -> List[Dict[str, Any]]:
    """
    Agrège des lignes `processed_match` par champion.

    Triées par nombre de parties (égalité : ordre de première apparition,
    donc le plus récent d'abord), limitées aux `top` premiers.
    """
    acc: Dict[str, Dict[str, Any]] = {}
    for r in rows:
        champion = r.get("champion")
        if not champion:
            continue
        s = acc.setdefault(champion, {
            "championId": r.get("championId"), "champion": champion,
            "games": 0, "wins": 0, "kills": 0, "deaths": 0, "assists": 0, "cs": 0, "duration": 0,
        })
        s["games"] += 1
        s["wins"] += 1 if r.get("win") else 0
        s["kills"] += r.get("kills", 0)
        s["deaths"] += r.get("deaths", 0)
        s["assists"] += r.get("assists", 0)
        s["cs"] += r.get("cs", 0)
        s["duration"] += r.get("gameDuration", 0) or 0

    out: List[Dict[str, Any]] = []
    for s in sorted(acc.values(), key=lambda s: s["games"], reverse=True)[:top]:
        games = s["games"]
        kills, deaths, assists = s["kills"] / games, s["deaths"] / games, s["assists"] / games
        minutes = s["duration"] / 60
        out.append({
            "championId": s["championId"],
            "champion": s["champion"],
            "games": games,
            "wins": s["wins"],
            "losses": games - s["wins"],
            "winRate": calc_win_rate(s["wins"], games - s["wins"]),
            "avgKills": round_half_away(kills, 1),
            "avgDeaths": round_half_away(deaths, 1),
            "avgAssists": round_half_away(assists, 1),
            "kda": round_half_away(calc_kda(kills, deaths, assists), 2),
            "csPerMin": round_half_away(s["cs"] / minutes, 1) if minutes > 0 else 0.0,
        })
    return out


async def recent_champion_stats(
    riot: RiotClient,
    cache: RedisCache,
    puuid: str,
    region: str,
    count: int = CHAMPION_STATS_MATCHES,
) -> Dict[str, Any]:
    """Stats par champion sur les `count` dernières parties (toutes queues)."""
    match_ids = await riot.get_match_ids(region, puuid, count=count)
    matches = await asyncio.gather(
        *(fetch_match(riot, cache, region, mid) for mid in match_ids),
        return_exceptions=True,
    )
    rows: List[Dict[str, Any]] = []
    for match in matches:
        if isinstance(match, BaseException):
            log.warning("Partie ignorée dans les stats par champion: %s", match)
            continue
        participant = _player(match, puuid)
        if participant is not None:
            rows.append(processed_match(participant, match))
    return {"puuid": puuid, "games": len(rows), "champions": champion_stats(rows)}


# ── Maîtrises des 10 joueurs d'une partie ────────────────────────────
def _match_platform(match: Mapping[str, Any], region: str) -> str:
    platform = ((match.get("info") or {}).get("platformId") or region).lower()
    # certains vieux matchs renvoient "NA" / "LA" sans numéro
    return {"na": "na1", "la": "la1"}.get(platform, platform)


async def match_masteries(
    riot: RiotClient,
    cache: RedisCache,
    region: str,
    match_id: str,
) -> Optional[Dict[str, Dict[str, int]]]:
    """
    {puuid: {championLevel, championPoints}} pour le champion joué par chacun.
    None si la partie est introuvable ; 0/0 si le joueur n'a aucune maîtrise.
    """
    match = await fetch_match(riot, cache, region, match_id)
    if not match:
        return None
    platform = _match_platform(match, region)
    participants = [p for p in (match.get("info") or {}).get("participants", []) if p.get("puuid")]
    masteries = await asyncio.gather(
        *(riot.get_champion_mastery(platform, p["puuid"], p.get("championId")) for p in participants)
    )
    return {
        p["puuid"]: {
            "championLevel": (m or {}).get("championLevel", 0),
            "championPoints": (m or {}).get("championPoints", 0),
        }
        for p, m in zip(participants, masteries)
    }
