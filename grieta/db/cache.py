# cache.py – cache TTL Redis (matchs, profils, tier lists, winrates)

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis
import redis.exceptions as _redis_exc

from grieta.config import settings

log = logging.getLogger(__name__)

MATCH_TTL = 7 * 86400
SUMMONER_TTL = 10 * 60
TIER_LIST_TTL = 6 * 3600
ANALYTICS_TTL = 6 * 3600

WINRATE_CACHE_KEY = "winrate_aggregate"


class RedisCache:
    """Petit wrapper JSON + TTL. Un cache indisponible = un cache vide."""

    def __init__(self, client):
        self.client = client

    @classmethod
    def from_url(cls, url: str = settings.REDIS_URL) -> "RedisCache":
        return cls(aioredis.from_url(url, encoding="utf-8", decode_responses=True))

    async def get_json(self, key: str) -> Any:
        try:
            raw = await self.client.get(key)
        except _redis_exc.ResponseError:
            await self.client.delete(key)
            return None
        except _redis_exc.RedisError as e:
            log.warning("Redis GET %s failed: %s", key, e)
            return None
        try:
            return json.loads(raw or "null")
        except (TypeError, ValueError):
            log.warning("Valeur illisible en cache pour %s, ignorée", key)
            return None

    async def set_json(self, key: str, value: Any, ttl: int = 3600) -> None:
        data = json.dumps(value)
        try:
            try:
                await self.client.set(key, data, ex=ttl)
            except _redis_exc.ResponseError:
                await self.client.delete(key)
                await self.client.set(key, data, ex=ttl)
        except _redis_exc.RedisError as e:
            log.warning("Redis SET %s failed: %s", key, e)

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()

    # ── Matchs ────────────────────────────────────────────────────────────
    async def get_cached_match(self, match_id: str) -> Optional[dict]:
        return await self.get_json(f"match:{match_id}")

    async def set_cached_match(self, match_id: str, match: dict) -> None:
        await self.set_json(f"match:{match_id}", match, ttl=MATCH_TTL)

    # ── Profils ───────────────────────────────────────────────────────────
    async def get_cached_summoner(self, puuid: str) -> Optional[dict]:
        return await self.get_json(f"summoner:{puuid}")

    async def set_cached_summoner(self, puuid: str, profile: dict) -> None:
        await self.set_json(f"summoner:{puuid}", profile, ttl=SUMMONER_TTL)

    # ── Tier lists / agrégats ─────────────────────────────────────────────
    async def get_cached_tier_list(self, patch: str, queue: str) -> Any:
        return await self.get_json(f"tierlist:{patch}:{queue}")

    async def set_cached_tier_list(self, patch: str, queue: str, data: Any) -> None:
        await self.set_json(f"tierlist:{patch}:{queue}", data, ttl=TIER_LIST_TTL)

    async def get_cached_winrates(self) -> Optional[dict]:
        data = await self.get_cached_tier_list("latest", WINRATE_CACHE_KEY)
        return data if isinstance(data, dict) else None

    async def set_cached_winrates(self, data: dict) -> None:
        await self.set_cached_tier_list("latest", WINRATE_CACHE_KEY, data)

    async def get_cached_analytics(self) -> Optional[list]:
        data = await self.get_json("analytics:meraki")
        return data if isinstance(data, list) else None

    async def set_cached_analytics(self, rows: list) -> None:
        await self.set_json("analytics:meraki", rows, ttl=ANALYTICS_TTL)
