"""Sondes de supervision : santé, readiness (Redis + base), liveness, métriques."""

import asyncio
import logging
import time
from typing import Any, Dict

import redis.exceptions as _redis_exc
from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from grieta.db.cache import RedisCache
from grieta.db.snapshots import SnapshotStore
from grieta.ddragon import DataDragon
from grieta.web.deps import get_cache, get_ddragon, get_snapshots

log = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

START_TIME = time.time()


def _uptime() -> int:
    return int(time.time() - START_TIME)


@router.get("/health")
async def health_check() -> JSONResponse:
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": _uptime(),
        "service": "grieta-web",
    })


@router.get("/readiness")
async def readiness_check(
    cache: RedisCache = Depends(get_cache),
    snapshots: SnapshotStore = Depends(get_snapshots),
) -> JSONResponse:
    """
    Prêt quand Redis et la base de snapshots répondent.

    Returns:
        200 + détail par dépendance, 503 si l'une d'elles est KO
    """
    checks: Dict[str, str] = {}
    try:
        await cache.ping()
        checks["redis"] = "ok"
    except (_redis_exc.RedisError, OSError) as e:
        checks["redis"] = f"error: {e}"
    try:
        await asyncio.to_thread(snapshots.ping)
        checks["database"] = "ok"
    except SQLAlchemyError as e:
        checks["database"] = f"error: {e}"

    ready = all(v == "ok" for v in checks.values())
    if not ready:
        log.warning("Readiness KO: %s", checks)
    return JSONResponse({"ready": ready, "checks": checks}, status_code=200 if ready else 503)


@router.get("/liveness")
async def liveness_check() -> Response:
    return Response(status_code=200, content="Alive")


@router.get("/metrics")
async def metrics(ddragon: DataDragon = Depends(get_ddragon)) -> Dict[str, Any]:
    return {
        "uptime_seconds": _uptime(),
        "start_time": START_TIME,
        "ddragon_version": ddragon.version,
        "champions_loaded": len(ddragon.champions),
    }
