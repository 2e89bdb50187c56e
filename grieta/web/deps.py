# grieta/web/deps.py
# Fournisseurs FastAPI : les services vivent dans app.state (créés par le
# lifespan) et sont remplaçables via app.dependency_overrides dans les tests.

from fastapi import Request

from grieta.analytics.meraki import MerakiClient
from grieta.db.cache import RedisCache
from grieta.db.snapshots import SnapshotStore
from grieta.db.summoners import SummonerIndex
from grieta.ddragon import DataDragon
from grieta.riot.client import RiotClient


def get_riot(request: Request) -> RiotClient:
    return request.app.state.riot


def get_cache(request: Request) -> RedisCache:
    return request.app.state.cache


def get_snapshots(request: Request) -> SnapshotStore:
    return request.app.state.snapshots


def get_ddragon(request: Request) -> DataDragon:
    return request.app.state.ddragon


def get_meraki(request: Request) -> MerakiClient:
    return request.app.state.meraki


def get_summoners(request: Request) -> SummonerIndex:
    return request.app.state.summoners
