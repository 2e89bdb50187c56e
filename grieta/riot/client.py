# riot/client.py

import asyncio
import logging
from collections import deque
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlencode
import time

import aiohttp

# Mapping plateforme → cluster régional pour /match-v5 et /account-v1
REGION_GROUPS = {
    "la1": "americas", "la2": "americas", "na1": "americas", "br1": "americas",
    "euw1": "europe", "eun1": "europe", "tr1": "europe", "ru": "europe",
    "kr": "asia", "jp1": "asia",
    "oc1": "sea",
}

log = logging.getLogger(__name__)


class RiotAPIError(Exception):
    """Base exception for Riot API errors."""
    pass


class RateLimitError(RiotAPIError):
    """Raised when rate limit is exceeded and retry fails."""
    pass


def region_group(region: str) -> str:
    return REGION_GROUPS.get(region.lower(), "americas")


def platform_host(region: str) -> str:
    return f"https://{region.lower()}.api.riotgames.com"


def regional_host(region: str) -> str:
    return f"https://{region_group(region)}.api.riotgames.com"


class RiotClient:
    """Async Riot API client with built-in rate limiting and error handling."""

    def __init__(self, api_key: str):
        self.api_key = api_key
        self._session: Optional[aiohttp.ClientSession] = None

        # Pour throttling : timestamps des dernières requêtes
        self._req_times: deque = deque()
        # Quota dev Riot : 100 reqs / 120 s
        self._quota_window = 120    # secondes
        self._quota_max = 100       # nombre max de requêtes par window
        self._lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"X-Riot-Token": self.api_key},
                timeout=aiohttp.ClientTimeout(total=10)
            )
        return self._session

    async def close(self):
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _throttle(self):
        """Async rate limiting - prevents exceeding Riot API quota."""
        async with self._lock:
            now = time.time()

            # Purge des requêtes trop vieilles
            while self._req_times and self._req_times[0] <= now - self._quota_window:
                self._req_times.popleft()

            if len(self._req_times) >= self._quota_max:
                # On attend que la plus vieille req sorte de la fenêtre
                wait = self._quota_window - (now - self._req_times[0])
                log.warning(f"Rate limit reached, waiting {wait:.1f}s")
                await asyncio.sleep(wait)

            self._req_times.append(time.time())

    async def _request(self, url: str, max_retries: int = 3) -> Any:
        """
        Make an async HTTP request with retry logic.

        Args:
            url: The full URL to request
            max_retries: Maximum number of retries for 429 responses

        Returns:
            JSON response from the API, or None on 404

        Raises:
            RiotAPIError: When no API key is configured, or for other API errors
            RateLimitError: When rate limit is exceeded after retries
            aiohttp.ClientError: For network errors
        """
        if not self.api_key:
            raise RiotAPIError("RIOT_API_KEY is not configured")

        await self._throttle()
        session = await self._get_session()

        for attempt in range(max_retries):
            try:
                async with session.get(url) as resp:
                    if resp.status == 429:
                        retry_after = int(resp.headers.get("Retry-After", "1")) + 1
                        if attempt < max_retries - 1:
                            log.warning(f"429 Rate limited, retrying after {retry_after}s (attempt {attempt + 1}/{max_retries})")
                            await asyncio.sleep(retry_after)
                            continue
                        raise RateLimitError(f"Rate limit exceeded after {max_retries} attempts")

                    if resp.status == 404:
                        log.debug(f"404 Not Found: {url}")
                        return None

                    resp.raise_for_status()
                    return await resp.json()

            except aiohttp.ClientResponseError as e:
                if e.status >= 500 and attempt < max_retries - 1:
                    wait = 2 ** attempt  # Exponential backoff
                    log.warning(f"Server error {e.status}, retrying in {wait}s")
                    await asyncio.sleep(wait)
                    continue
                raise RiotAPIError(f"API error {e.status}: {e.message}") from e
            except aiohttp.ClientError as e:
                if attempt < max_retries - 1:
                    wait = 2 ** attempt
                    log.warning(f"Network error, retrying in {wait}s: {e}")
                    await asyncio.sleep(wait)
                    continue
                raise

        raise RiotAPIError(f"Failed after {max_retries} attempts")

    # ── Account-V1 ────────────────────────────────────────────────────────
    async def get_account_by_riot_id(self, region: str, game_name: str, tag_line: str) -> Optional[Dict[str, Any]]:
        """
        Get account by Riot ID (game name + tag).
        Routed via region group (americas/europe/asia/sea).
        """
        url = (
            f"{regional_host(region)}/riot/account/v1/accounts/by-riot-id/"
            f"{quote(game_name, safe='')}/{quote(tag_line, safe='')}"
        )
        return await self._request(url)

    # ── Summoner-V4 ───────────────────────────────────────────────────────
    async def get_summoner_by_puuid(self, region: str, puuid: str) -> Optional[Dict[str, Any]]:
        url = f"{platform_host(region)}/lol/summoner/v4/summoners/by-puuid/{puuid}"
        return await self._request(url)

    async def get_summoner_by_id(self, region: str, summoner_id: str) -> Optional[Dict[str, Any]]:
        url = f"{platform_host(region)}/lol/summoner/v4/summoners/{summoner_id}"
        return await self._request(url)

    # ── League-V4 ─────────────────────────────────────────────────────────
    async def get_league_entries_by_puuid(self, region: str, puuid: str) -> List[Dict[str, Any]]:
        """Current ranked entries (one per queue) for a player."""
        url = f"{platform_host(region)}/lol/league/v4/entries/by-puuid/{puuid}"
        result = await self._request(url)
        return result if result is not None else []

    async def get_challenger_league(self, region: str, queue: str = "RANKED_SOLO_5x5") -> Dict[str, Any]:
        url = f"{platform_host(region)}/lol/league/v4/challengerleagues/by-queue/{queue}"
        result = await self._request(url)
        return result if result is not None else {"entries": []}

    async def get_grandmaster_league(self, region: str, queue: str = "RANKED_SOLO_5x5") -> Dict[str, Any]:
        url = f"{platform_host(region)}/lol/league/v4/grandmasterleagues/by-queue/{queue}"
        result = await self._request(url)
        return result if result is not None else {"entries": []}

    async def get_master_league(self, region: str, queue: str = "RANKED_SOLO_5x5") -> Dict[str, Any]:
        url = f"{platform_host(region)}/lol/league/v4/masterleagues/by-queue/{queue}"
        result = await self._request(url)
        return result if result is not None else {"entries": []}

    # ── Match-V5 ──────────────────────────────────────────────────────────
    async def get_match_ids(
        self,
        region: str,
        puuid: str,
        start: int = 0,
        count: int = 20,
        queue: Optional[int] = None,
    ) -> List[str]:
        """Get list of match IDs for a player."""
        params: Dict[str, Any] = {"start": start, "count": count}
        if queue is not None:
            params["queue"] = queue
        url = (
            f"{regional_host(region)}"
            f"/lol/match/v5/matches/by-puuid/{puuid}/ids?{urlencode(params)}"
        )
        result = await self._request(url)
        return result if result is not None else []

    async def get_match_by_id(self, region: str, match_id: str) -> Optional[Dict[str, Any]]:
        """Get detailed match information by match ID."""
        url = f"{regional_host(region)}/lol/match/v5/matches/{match_id}"
        return await self._request(url)

    # ── Spectator-V5 / Champion-Mastery-V4 ────────────────────────────────
    async def get_active_game_by_puuid(self, region: str, puuid: str) -> Optional[Dict[str, Any]]:
        """Live game of the player, None when not in game."""
        url = f"{platform_host(region)}/lol/spectator/v5/active-games/by-summoner/{puuid}"
        return await self._request(url)

    async def get_top_masteries(self, region: str, puuid: str, count: int = 20) -> List[Dict[str, Any]]:
        url = (
            f"{platform_host(region)}/lol/champion-mastery/v4/champion-masteries/"
            f"by-puuid/{puuid}/top?count={count}"
        )
        result = await self._request(url)
        return result if result is not None else []

    async def get_champion_mastery(self, region: str, puuid: str, champion_id: int) -> Optional[Dict[str, Any]]:
        """Mastery of one champion, None when the player never played it."""
        url = (
            f"{platform_host(region)}/lol/champion-mastery/v4/champion-masteries/"
            f"by-puuid/{puuid}/by-champion/{champion_id}"
        )
        return await self._request(url)
