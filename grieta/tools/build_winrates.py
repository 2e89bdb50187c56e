#!/usr/bin/env python3
"""
tools/build_winrates.py
Recalcule l'agrégat wins/losses (Challenger SoloQ) et le pousse dans Redis.
La tier list le lit ensuite sans jamais attendre Riot.

  python -m grieta.tools.build_winrates --region la1
"""
import argparse
import asyncio
import logging
import sys

from grieta.config import settings
from grieta.db.cache import RedisCache
from grieta.ddragon import DataDragon
from grieta.logging_config import setup_logging
from grieta.riot.client import RiotClient
from grieta.services.winrate_aggregate import (
    MATCHES_PER_PLAYER,
    SAMPLE_PLAYERS,
    aggregate_winrates,
)

log = logging.getLogger("grieta.tools.build_winrates")


async def build(region: str, players: int, matches: int) -> int:
    cache = RedisCache.from_url(settings.REDIS_URL)
    ddragon = DataDragon(settings.DDRAGON_LOCALE, settings.DDRAGON_REFRESH_S)
    try:
        async with RiotClient(settings.RIOT_API_KEY) as riot:
            data = await aggregate_winrates(
                riot, cache, ddragon, region,
                sample_players=players, matches_per_player=matches,
            )
        if not data:
            log.error("Aucune donnée collectée (clé Riot ? ladder %s ?)", region.upper())
            return 1
        await cache.set_cached_winrates(data)
        log.info("Winrates mis à jour : %d champions", len(data))
        return 0
    finally:
        await cache.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Build the champion win/loss aggregate")
    parser.add_argument("--region", default=settings.WINRATE_REGION)
    parser.add_argument("--players", type=int, default=SAMPLE_PLAYERS)
    parser.add_argument("--matches", type=int, default=MATCHES_PER_PLAYER)
    args = parser.parse_args(argv)

    setup_logging(settings.LOG_LEVEL)
    return asyncio.run(build(args.region.lower(), args.players, args.matches))


if __name__ == "__main__":
    sys.exit(main())
