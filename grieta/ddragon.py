# grieta/ddragon.py
# ============================================================================
# Data Dragon : patch courant + mapping championId → nom
# Un seul objet, initialisé au démarrage de l'app puis rafraîchi
# périodiquement (aucune variable globale mutable).
# ============================================================================

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import aiohttp

log = logging.getLogger(__name__)

DDRAGON_BASE = "https://ddragon.leagueoflegends.com"
# Version de repli : DDragon garde tous les patchs, une vieille version reste valide
FALLBACK_VERSION = "15.1.1"


class DataDragon:
    """Cache mémoire de Data Dragon avec cycle de vie explicite."""

    def __init__(self, locale: str = "es_MX", ttl: int = 3600):
        self.locale = locale
        self.ttl = ttl
        self.version: str = FALLBACK_VERSION
        self.champions: Dict[str, Dict[str, Any]] = {}   # id texte ("Ahri") → résumé
        self._names_by_key: Dict[int, str] = {}           # clé numérique → id texte
        self._refreshed_at: float = 0.0
        self._lock = asyncio.Lock()

    def should_refresh(self) -> bool:
        return (time.time() - self._refreshed_at) > self.ttl

    async def _fetch_json(self, session: aiohttp.ClientSession, url: str) -> Any:
        async with session.get(url) as r:
            r.raise_for_status()
            return await r.json()

    async def refresh(self) -> None:
        """Recharge version + champions. En cas d'échec, garde les données courantes."""
        async with self._lock:
            timeout = aiohttp.ClientTimeout(total=10)
            try:
                async with aiohttp.ClientSession(timeout=timeout) as sess:
                    versions = await self._fetch_json(sess, f"{DDRAGON_BASE}/api/versions.json")
                    version = versions[0]
                    data = await self._fetch_json(
                        sess, f"{DDRAGON_BASE}/cdn/{version}/data/{self.locale}/champion.json"
                    )
            except (aiohttp.ClientError, asyncio.TimeoutError, KeyError, IndexError) as e:
                log.warning("Data Dragon refresh failed, keeping %s: %s", self.version, e)
                return
            self.load(version, data.get("data", {}))

    def load(self, version: str, champions: Dict[str, Dict[str, Any]]) -> None:
        self.version = version
        self.champions = champions
        self._names_by_key = {}
        for cid, champ in champions.items():
            try:
                self._names_by_key[int(champ["key"])] = cid
            except (KeyError, TypeError, ValueError):
                continue
        self._refreshed_at = time.time()
        log.info("Data Dragon %s chargé (%d champions)", version, len(champions))

    async def ensure_fresh(self) -> None:
        if self.should_refresh():
            await self.refresh()

    def champion_name(self, champion_key: int) -> Optional[str]:
        """Nom technique (ex: "MonkeyKing") à partir de la clé numérique."""
        return self._names_by_key.get(int(champion_key))

    def champion_icon_url(self, champion_id: str) -> str:
        return f"{DDRAGON_BASE}/cdn/{self.version}/img/champion/{champion_id}.png"


async def refresh_periodically(ddragon: DataDragon, every: float) -> None:
    """Boucle de rafraîchissement lancée par le lifespan de l'app web."""
    while True:
        await asyncio.sleep(every)
        await ddragon.refresh()
