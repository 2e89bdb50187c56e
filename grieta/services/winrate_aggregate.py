# grieta/services/winrate_aggregate.py
# ============================================================================
# Agrégat wins/losses par champion et par rôle, échantillonné sur les
# dernières parties SoloQ des meilleurs joueurs Challenger.
# Job séparé : la tier list ne fait que consommer le résultat en cache.
# ============================================================================

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

import aiohttp

from grieta.db.cache import RedisCache
from grieta.ddragon import DataDragon
from grieta.riot.client import RiotAPIError, RiotClient
from grieta.services.profile import fetch_match

log = logging.getLogger(__name__)

RANKED_SOLO_QUEUE = 420
SAMPLE_PLAYERS = 10
MATCHES_PER_PLAYER = 12

# teamPosition Riot → rôle du site
TEAM_POSITION_TO_ROLE = {
    "TOP": "top",
    "JUNGLE": "jungle",
    "MIDDLE": "mid",
    "BOTTOM": "adc",
    "UTILITY": "support",
}

WinrateAggregate = Dict[str, Dict[str, Dict[str, int]]]

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def normalize_champion_key(name: str) -> str:
    return _NON_ALNUM.sub("", name).strip() or name


def add_match(agg: WinrateAggregate, match: Dict[str, Any], ddragon: Optional[DataDragon] = None) -> int:
    """Ajoute les 10 participants d'une partie SoloQ à l'agrégat. Retourne le nombre compté."""
    info = match.get("info") or {}
    if info.get("queueId") != RANKED_SOLO_QUEUE:
        return 0

    counted = 0
    for p in info.get("participants") or []:
        role = TEAM_POSITION_TO_ROLE.get(p.get("teamPosition") or p.get("individualPosition") or "")
        if not role:
            continue
        name = (p.get("championName") or "").strip()
        if not name and p.get("championId") and ddragon is not None:
            name = ddragon.champion_name(p["championId"]) or ""
        key = normalize_champion_key(name) if name else ""
        if not key or key == "Unknown":
            continue

        slot = agg.setdefault(key, {}).setdefault(role, {"wins": 0, "losses": 0})
        if p.get("win"):
            slot["wins"] += 1
        else:
            slot["losses"] += 1
        counted += 1
    return counted


async def _sample_puuid(riot: RiotClient, region: str, entry: Dict[str, Any]) -> Optional[str]:
    if entry.get("puuid"):
        return entry["puuid"]
    summoner_id = entry.get("summonerId")
    if not summoner_id:
        return None
    summoner = await riot.get_summoner_by_id(region, summoner_id)
    return summoner.get("puuid") if summoner else None


async def aggregate_winrates(
    riot: RiotClient,
    cache: RedisCache,
    ddragon: Optional[DataDragon] = None,
    region: str = "la1",
    sample_players: int = SAMPLE_PLAYERS,
    matches_per_player: int = MATCHES_PER_PLAYER,
) -> WinrateAggregate:
    """
    Construit l'agrégat {championKey: {role: {wins, losses}}}.

    Les échecs par joueur / par partie sont loggés et ignorés ; si le ladder
    lui-même est inaccessible, l'agrégat est vide.
    """
    platform = region.lower()
    agg: WinrateAggregate = {}

    if ddragon is not None:
        await ddragon.ensure_fresh()

    try:
        league = await riot.get_challenger_league(platform, "RANKED_SOLO_5x5")
    except (RiotAPIError, aiohttp.ClientError) as e:
        log.error("Ladder challenger inaccessible (%s): %s", platform, e)
        return {}

    entries = sorted(league.get("entries", []), key=lambda e: e.get("leaguePoints", 0), reverse=True)

    match_ids: Dict[str, None] = {}  # dict = set ordonné
    for entry in entries[:sample_players]:
        try:
            puuid = await _sample_puuid(riot, platform, entry)
            if not puuid:
                continue
            ids = await riot.get_match_ids(platform, puuid, count=matches_per_player, queue=RANKED_SOLO_QUEUE)
        except (RiotAPIError, aiohttp.ClientError) as e:
            log.warning("Joueur ignoré pendant l'agrégation: %s", e)
            continue
        for mid in ids:
            match_ids.setdefault(mid, None)

    matches_seen = 0
    for match_id in match_ids:
        try:
            match = await fetch_match(riot, cache, platform, match_id)
        except (RiotAPIError, aiohttp.ClientError) as e:
            log.warning("Partie %s ignorée: %s", match_id, e)
            continue
        if match and add_match(agg, match, ddragon):
            matches_seen += 1

    log.info("Agrégat winrates: %d parties, %d champions", matches_seen, len(agg))
    return agg


async def get_or_fetch_winrates(
    riot: RiotClient,
    cache: RedisCache,
    ddragon: Optional[DataDragon] = None,
    region: str = "la1",
) -> WinrateAggregate:
    """Agrégat en cache, sinon recalculé (et remis en cache s'il n'est pas vide)."""
    cached = await cache.get_cached_winrates()
    if cached:
        return cached

    data = await aggregate_winrates(riot, cache, ddragon, region)
    if data:
        await cache.set_cached_winrates(data)
    return data
