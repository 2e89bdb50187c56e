# grieta/analytics/meraki.py
# ============================================================================
# Source analytique : Meraki Analytics (pick rate par champion / position)
# ============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping

import aiohttp

from grieta.models.tier_list import AnalyticsEntry, entry_from_dict, entry_to_dict

log = logging.getLogger(__name__)

MERAKI_BASE = "https://cdn.merakianalytics.com/riot/lol/resources/latest/en-US"

# positions Meraki → rôles du site
ROLE_MAP = {
    "TOP": "top",
    "JUNGLE": "jungle",
    "MIDDLE": "mid",
    "BOTTOM": "adc",
    "UTILITY": "support",
}


class AnalyticsUnavailable(Exception):
    """The analytics source could not be fetched or parsed."""
    pass


def parse_entries(
    champions: Mapping[str, Mapping[str, Any]],
    rates: Mapping[str, Any],
) -> List[AnalyticsEntry]:
    """
    Aplati champions.json + championrates.json en entrées (champion, rôle).

    Les couples sans pick rate (> 0) sont ignorés. Meraki ne publie pas de
    winrate : il reste à 0 jusqu'à l'override par l'agrégat live.
    """
    rate_data = rates.get("data", {})
    out: List[AnalyticsEntry] = []
    for champ in champions.values():
        champ_rates = rate_data.get(str(champ.get("id")))
        if not champ_rates:
            continue
        for position in champ.get("positions", []):
            role = ROLE_MAP.get(position)
            if not role:
                continue
            play_rate = (champ_rates.get(position) or {}).get("playRate") or 0
            if play_rate <= 0:
                continue
            out.append(AnalyticsEntry(
                champion_id=champ["key"],
                champion_name=champ.get("name", champ["key"]),
                role=role,
                pick_rate=round(float(play_rate), 2),
            ))
    return out


class MerakiClient:
    """Client HTTP minimal vers le CDN Meraki."""

    def __init__(self, base_url: str = MERAKI_BASE, timeout: float = 10):
        self.base_url = base_url
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def _get(self, sess: aiohttp.ClientSession, name: str) -> Dict[str, Any]:
        async with sess.get(f"{self.base_url}/{name}") as r:
            r.raise_for_status()
            return await r.json(content_type=None)

    async def fetch_entries(self) -> List[AnalyticsEntry]:
        """
        Raises:
            AnalyticsUnavailable: réseau en échec ou JSON inattendu
        """
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as sess:
                champions, rates = await asyncio.gather(
                    self._get(sess, "champions.json"),
                    self._get(sess, "championrates.json"),
                )
            entries = parse_entries(champions, rates)
        except (aiohttp.ClientError, asyncio.TimeoutError, KeyError, AttributeError, TypeError, ValueError) as e:
            raise AnalyticsUnavailable(str(e)) from e
        log.info("Meraki: %d entrées champion/rôle", len(entries))
        return entries


async def load_entries(meraki: MerakiClient, cache) -> List[AnalyticsEntry]:
    """
    Entrées analytiques depuis le cache (6 h), sinon depuis Meraki.
    Source indisponible → liste vide (la tier list sera vide, pas en erreur).
    """
    cached = await cache.get_cached_analytics()
    if cached:
        return [entry_from_dict(row) for row in cached]
    try:
        entries = await meraki.fetch_entries()
    except AnalyticsUnavailable as e:
        log.warning("Meraki indisponible: %s", e)
        return []
    if entries:
        await cache.set_cached_analytics([entry_to_dict(e) for e in entries])
    return entries
