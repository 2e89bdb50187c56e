# grieta/web/app.py
# API du site (FastAPI)
# Lancement :
#   python -m uvicorn grieta.web.app:app --host 0.0.0.0 --port 8000

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import aiohttp
from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from grieta import health
from grieta.analytics.meraki import MerakiClient, load_entries
from grieta.config import settings
from grieta.database import init_db
from grieta.db.cache import RedisCache
from grieta.db.snapshots import SnapshotStore
from grieta.db.summoners import DEFAULT_SEARCH_LIMIT, MAX_SEARCH_LIMIT, SummonerIndex
from grieta.ddragon import DataDragon, refresh_periodically
from grieta.logging_config import setup_logging
from grieta.ranks import calc_win_rate
from grieta.riot.client import RateLimitError, RiotAPIError, RiotClient
from grieta.services.match_score import score_and_rank_participants
from grieta.services.profile import (
    fetch_match, load_profile, match_history, match_masteries, parse_riot_id, recent_champion_stats,
)
from grieta.services.tier_list import VALID_RANKS, synthesize_tier_list
from grieta.services.winrate_aggregate import aggregate_winrates, get_or_fetch_winrates
from grieta.web.deps import get_cache, get_ddragon, get_meraki, get_riot, get_snapshots, get_summoners

APP_TITLE = "Grieta: Estadísticas de League of Legends"
MAX_HISTORY_COUNT = 20

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    init_db()
    app.state.riot = RiotClient(settings.RIOT_API_KEY)
    app.state.cache = RedisCache.from_url(settings.REDIS_URL)
    app.state.snapshots = SnapshotStore()
    app.state.summoners = SummonerIndex()
    app.state.meraki = MerakiClient()
    app.state.ddragon = DataDragon(settings.DDRAGON_LOCALE, settings.DDRAGON_REFRESH_S)
    app.state.winrate_task = None
    await app.state.ddragon.refresh()
    refresher = asyncio.create_task(refresh_periodically(app.state.ddragon, settings.DDRAGON_REFRESH_S))
    try:
        yield
    finally:
        refresher.cancel()
        if app.state.winrate_task is not None:
            app.state.winrate_task.cancel()
        await app.state.riot.close()
        await app.state.cache.close()


app = FastAPI(title=APP_TITLE, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)
app.include_router(health.router)


# --------------------------- Erreurs -----------------------------
@app.exception_handler(RateLimitError)
async def _rate_limited(_request, exc: RateLimitError):
    log.warning("Riot rate limit: %s", exc)
    return JSONResponse({"error": "Demasiadas solicitudes, intenta de nuevo en un momento"}, status_code=429)


@app.exception_handler(RiotAPIError)
async def _riot_error(_request, exc: RiotAPIError):
    log.error("Riot API error: %s", exc)
    return JSONResponse({"error": "Error al consultar la API de Riot"}, status_code=502)


@app.exception_handler(aiohttp.ClientError)
async def _network_error(_request, exc: aiohttp.ClientError):
    log.error("Network error: %s", exc)
    return JSONResponse({"error": "Servicio externo no disponible"}, status_code=502)


def _puuid_required() -> JSONResponse:
    return JSONResponse({"error": "puuid es requerido"}, status_code=400)


# --------------------------- Perfil ------------------------------
@app.get("/api/perfil/{region}/{riot_id}")
async def api_profile(
    region: str,
    riot_id: str,
    background: BackgroundTasks,
    riot: RiotClient = Depends(get_riot),
    cache: RedisCache = Depends(get_cache),
    snapshots: SnapshotStore = Depends(get_snapshots),
    summoners: SummonerIndex = Depends(get_summoners),
):
    game_name, tag_line = parse_riot_id(riot_id)
    if not game_name or not tag_line:
        return JSONResponse({"error": "Riot ID inválido, usa Nombre#TAG"}, status_code=404)

    profile = await load_profile(riot, game_name, tag_line, region, cache)
    if profile is None:
        return JSONResponse({"error": "Invocador no encontrado"}, status_code=404)

    account, summoner = profile["account"], profile["summoner"]
    # best-effort : l'écriture n'est pas visible par la lecture de cette requête
    background.add_task(snapshots.record_entries, account["puuid"], region, profile["ranked"])
    background.add_task(
        summoners.index_summoner,
        account["puuid"],
        region,
        f"{account.get('gameName', game_name)}#{account.get('tagLine', tag_line)}",
        summoner.get("profileIconId"),
        summoner.get("summonerLevel"),
    )
    return profile


@app.get("/api/riot/ranked")
async def api_ranked(
    puuid: Optional[str] = None,
    region: str = settings.DEFAULT_REGION,
    riot: RiotClient = Depends(get_riot),
):
    if not puuid:
        return _puuid_required()
    return await riot.get_league_entries_by_puuid(region, puuid)


@app.get("/api/riot/matches")
async def api_matches(
    puuid: Optional[str] = None,
    region: str = settings.DEFAULT_REGION,
    start: int = Query(0, ge=0),
    count: int = Query(10, ge=1),
    queue: Optional[int] = None,
    riot: RiotClient = Depends(get_riot),
    cache: RedisCache = Depends(get_cache),
    snapshots: SnapshotStore = Depends(get_snapshots),
):
    if not puuid:
        return _puuid_required()
    return await match_history(
        riot, cache, snapshots, puuid, region,
        start=start, count=min(count, MAX_HISTORY_COUNT), queue=queue,
    )


@app.get("/api/riot/match/{match_id}")
async def api_match(
    match_id: str,
    region: str = settings.DEFAULT_REGION,
    riot: RiotClient = Depends(get_riot),
    cache: RedisCache = Depends(get_cache),
):
    match = await fetch_match(riot, cache, region, match_id)
    if not match:
        return JSONResponse({"error": "Partida no encontrada"}, status_code=404)
    participants = (match.get("info") or {}).get("participants") or []
    return {"match": match, "participants": score_and_rank_participants(participants)}


@app.get("/api/riot/match/{match_id}/masteries")
async def api_match_masteries(
    match_id: str,
    region: str = settings.DEFAULT_REGION,
    riot: RiotClient = Depends(get_riot),
    cache: RedisCache = Depends(get_cache),
):
    masteries = await match_masteries(riot, cache, region, match_id)
    if masteries is None:
        return JSONResponse({"error": "Partida no encontrada"}, status_code=404)
    return masteries


@app.get("/api/riot/live")
async def api_live(
    puuid: Optional[str] = None,
    region: str = settings.DEFAULT_REGION,
    riot: RiotClient = Depends(get_riot),
):
    # jamais en cache
    if not puuid:
        return _puuid_required()
    game = await riot.get_active_game_by_puuid(region, puuid)
    if not game:
        return {"inGame": False}
    return {"inGame": True, "game": game}


@app.get("/api/riot/mastery")
async def api_mastery(
    puuid: Optional[str] = None,
    region: str = settings.DEFAULT_REGION,
    count: int = Query(20, ge=1, le=50),
    riot: RiotClient = Depends(get_riot),
):
    if not puuid:
        return _puuid_required()
    return await riot.get_top_masteries(region, puuid, count=count)


@app.get("/api/riot/champion-stats")
async def api_champion_stats(
    puuid: Optional[str] = None,
    region: str = settings.DEFAULT_REGION,
    riot: RiotClient = Depends(get_riot),
    cache: RedisCache = Depends(get_cache),
):
    if not puuid:
        return _puuid_required()
    return await recent_champion_stats(riot, cache, puuid, region)


# --------------------------- Clasificación -----------------------
APEX_LADDERS = ("CHALLENGER", "GRANDMASTER", "MASTER")


@app.get("/api/clasificacion/{region}")
async def api_leaderboard(
    region: str,
    limit: int = Query(200, ge=1, le=300),
    riot: RiotClient = Depends(get_riot),
):
    """Challenger + Grandmaster + Master fusionnés : par tier, puis LP décroissants."""
    results = await asyncio.gather(
        riot.get_challenger_league(region),
        riot.get_grandmaster_league(region),
        riot.get_master_league(region),
        return_exceptions=True,
    )
    entries = []
    for order, (tier, league) in enumerate(zip(APEX_LADDERS, results)):
        if isinstance(league, BaseException):
            log.warning("Ladder %s indisponible (%s): %s", tier, region, league)
            continue
        for e in league.get("entries", []):
            entries.append((order, {
                **e,
                "tier": tier,
                "winRate": calc_win_rate(e.get("wins", 0), e.get("losses", 0)),
            }))
    entries.sort(key=lambda item: (item[0], -item[1].get("leaguePoints", 0)))
    return {"region": region, "entries": [e for _, e in entries[:limit]]}


# --------------------------- Búsqueda ----------------------------
@app.get("/api/search/summoners")
async def api_search_summoners(
    q: str = "",
    region: str = settings.DEFAULT_REGION,
    limit: int = Query(DEFAULT_SEARCH_LIMIT, ge=1, le=MAX_SEARCH_LIMIT),
    summoners: SummonerIndex = Depends(get_summoners),
):
    return await asyncio.to_thread(summoners.search, region, q, limit)


# --------------------------- Campeones ---------------------------
def _log_winrate_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.warning("Agrégation des winrates échouée: %r", exc)


def _winrate_job(state, riot: RiotClient, cache: RedisCache, ddragon: DataDragon) -> asyncio.Task:
    """Tâche d'agrégation en cours, ou une nouvelle si aucune ne tourne (une seule à la fois)."""
    task = getattr(state, "winrate_task", None)
    if task is None or task.done():
        task = asyncio.create_task(get_or_fetch_winrates(riot, cache, ddragon, settings.WINRATE_REGION))
        task.add_done_callback(_log_winrate_failure)
        state.winrate_task = task
    return task


async def _winrates_or_empty(state, riot: RiotClient, cache: RedisCache, ddragon: DataDragon) -> dict:
    """
    Winrates agrégés, attendus au plus WINRATE_TIMEOUT_S.

    Passé ce délai la tier list part sans override, mais l'agrégation
    continue (shield) et remplit le cache pour les requêtes suivantes.
    """
    task = _winrate_job(state, riot, cache, ddragon)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout=settings.WINRATE_TIMEOUT_S)
    except asyncio.TimeoutError:
        log.info("Winrates non prêts après %.0fs, tier list sans override", settings.WINRATE_TIMEOUT_S)
    except (RiotAPIError, aiohttp.ClientError) as e:
        log.info("Winrates indisponibles, tier list sans override: %s", e)
    return {}


@app.get("/api/campeones/tierlist")
async def api_tierlist(
    request: Request,
    rank: str = "all",
    sort: str = Query("tier", pattern="^(tier|pickrate|winrate)$"),
    riot: RiotClient = Depends(get_riot),
    cache: RedisCache = Depends(get_cache),
    ddragon: DataDragon = Depends(get_ddragon),
    meraki: MerakiClient = Depends(get_meraki),
):
    rank = rank.lower()
    if rank not in VALID_RANKS:
        return JSONResponse({"error": "Invalid rank"}, status_code=400)

    entries, winrates = await asyncio.gather(
        load_entries(meraki, cache),
        _winrates_or_empty(request.app.state, riot, cache, ddragon),
    )
    tier_list = synthesize_tier_list(entries, winrates, rank=rank, sort_by=sort)

    payload = tier_list.to_dict()
    for row in payload["entries"]:
        row["icon"] = ddragon.champion_icon_url(row["championId"])
    payload["ddVersion"] = ddragon.version
    return payload


@app.post("/api/campeones/winrates/refresh")
async def api_refresh_winrates(
    riot: RiotClient = Depends(get_riot),
    cache: RedisCache = Depends(get_cache),
    ddragon: DataDragon = Depends(get_ddragon),
):
    data = await aggregate_winrates(riot, cache, ddragon, settings.WINRATE_REGION)
    if not data:
        return JSONResponse(
            {"ok": False, "message": f"No winrate data collected. Check RIOT_API_KEY and {settings.WINRATE_REGION.upper()} challenger leaderboard."},
            status_code=503,
        )
    await cache.set_cached_winrates(data)
    return {"ok": True, "champions": len(data), "message": "Winrates updated. Reload the tier list."}
