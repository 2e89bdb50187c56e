"""HTTP tests for the FastAPI app (services replaced through dependency_overrides)."""

import asyncio
import logging
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from unittest.mock import AsyncMock, MagicMock, patch

from grieta.config import settings
from grieta.ddragon import DataDragon
from grieta.models.tier_list import AnalyticsEntry
from grieta.riot.client import RateLimitError, RiotAPIError
from grieta.web import deps
from grieta.web.app import _winrates_or_empty, app


@pytest.fixture
def services():
    riot = AsyncMock()
    riot.get_challenger_league.return_value = {"entries": []}
    riot.get_grandmaster_league.return_value = {"entries": []}
    riot.get_master_league.return_value = {"entries": []}
    riot.get_league_entries_by_puuid.return_value = []
    cache = AsyncMock()
    cache.get_cached_match.return_value = None
    cache.get_cached_summoner.return_value = None
    cache.get_cached_winrates.return_value = None
    cache.get_cached_analytics.return_value = None
    snapshots = MagicMock()
    snapshots.get_snapshots.return_value = []
    snapshots.record_entries.return_value = 1
    summoners = MagicMock()
    summoners.search.return_value = []
    meraki = AsyncMock()
    meraki.fetch_entries.return_value = []
    ddragon = DataDragon()
    ddragon.load("15.20.1", {"Ahri": {"key": "103"}})

    app.dependency_overrides[deps.get_riot] = lambda: riot
    app.dependency_overrides[deps.get_cache] = lambda: cache
    app.dependency_overrides[deps.get_snapshots] = lambda: snapshots
    app.dependency_overrides[deps.get_meraki] = lambda: meraki
    app.dependency_overrides[deps.get_ddragon] = lambda: ddragon
    app.dependency_overrides[deps.get_summoners] = lambda: summoners
    app.state.winrate_task = None
    yield {
        "riot": riot, "cache": cache, "snapshots": snapshots, "summoners": summoners,
        "meraki": meraki, "ddragon": ddragon,
    }
    app.dependency_overrides.clear()
    app.state.winrate_task = None


@pytest.fixture
def client(services):
    return TestClient(app)


class TestProfileRoutes:
    """Profile lookup and snapshot scheduling."""

    def test_profile_found_records_snapshots(self, client, services):
        riot = services["riot"]
        riot.get_account_by_riot_id.return_value = {"puuid": "me", "gameName": "Yo", "tagLine": "LAN"}
        riot.get_summoner_by_puuid.return_value = {"summonerLevel": 100}
        riot.get_league_entries_by_puuid.return_value = [
            {"queueType": "RANKED_SOLO_5x5", "tier": "GOLD", "rank": "II", "leaguePoints": 40},
        ]

        resp = client.get("/api/perfil/la1/Yo%23LAN")

        assert resp.status_code == 200
        assert resp.json()["account"]["puuid"] == "me"
        riot.get_account_by_riot_id.assert_awaited_once_with("la1", "Yo", "LAN")
        services["snapshots"].record_entries.assert_called_once()
        assert services["snapshots"].record_entries.call_args[0][:2] == ("me", "la1")

    def test_profile_view_indexes_summoner(self, client, services):
        riot = services["riot"]
        riot.get_account_by_riot_id.return_value = {"puuid": "me", "gameName": "Yo", "tagLine": "LAN"}
        riot.get_summoner_by_puuid.return_value = {"profileIconId": 29, "summonerLevel": 100}

        assert client.get("/api/perfil/la1/yo%23lan").status_code == 200

        # le Riot ID indexé est celui renvoyé par Riot, pas celui tapé
        services["summoners"].index_summoner.assert_called_once_with("me", "la1", "Yo#LAN", 29, 100)

    def test_profile_unknown(self, client, services):
        services["riot"].get_account_by_riot_id.return_value = None

        resp = client.get("/api/perfil/la1/Nadie%23LAN")

        assert resp.status_code == 404
        assert resp.json() == {"error": "Invocador no encontrado"}
        services["snapshots"].record_entries.assert_not_called()
        services["summoners"].index_summoner.assert_not_called()

    def test_profile_without_tag(self, client, services):
        resp = client.get("/api/perfil/la1/SinTag")

        assert resp.status_code == 404
        services["riot"].get_account_by_riot_id.assert_not_called()

    def test_riot_error_maps_to_502(self, client, services):
        services["riot"].get_account_by_riot_id.side_effect = RiotAPIError("API error 403: Forbidden")

        resp = client.get("/api/perfil/la1/Yo%23LAN")

        assert resp.status_code == 502
        assert "error" in resp.json()

    def test_rate_limit_maps_to_429(self, client, services):
        services["riot"].get_account_by_riot_id.side_effect = RateLimitError("slow down")

        assert client.get("/api/perfil/la1/Yo%23LAN").status_code == 429


class TestRiotRoutes:
    """Thin proxies around the Riot client."""

    @pytest.mark.parametrize(
        "path",
        ["/api/riot/matches", "/api/riot/ranked", "/api/riot/live", "/api/riot/mastery", "/api/riot/champion-stats"],
    )
    def test_puuid_required(self, client, path):
        resp = client.get(path)
        assert resp.status_code == 400
        assert resp.json() == {"error": "puuid es requerido"}

    def test_match_count_capped(self, client, services):
        services["riot"].get_match_ids.return_value = []

        resp = client.get("/api/riot/matches", params={"puuid": "me", "count": 100})

        assert resp.status_code == 200
        assert resp.json() == []
        assert services["riot"].get_match_ids.await_args.kwargs["count"] == 20

    def test_match_detail_scored(self, client, services):
        participants = [
            {"puuid": "a", "teamId": 100, "win": True, "kills": 5, "goldEarned": 9000},
            {"puuid": "b", "teamId": 200, "win": False, "kills": 1, "goldEarned": 7000},
        ]
        services["riot"].get_match_by_id.return_value = {"metadata": {"matchId": "LA1_9"}, "info": {"participants": participants}}

        resp = client.get("/api/riot/match/LA1_9")

        assert resp.status_code == 200
        scored = resp.json()["participants"]
        assert [p["tag"] for p in scored] == ["MVP", "DESTACADO"]
        services["cache"].set_cached_match.assert_awaited_once()

    def test_match_not_found(self, client, services):
        services["riot"].get_match_by_id.return_value = None

        assert client.get("/api/riot/match/LA1_0").status_code == 404

    def test_live_not_in_game(self, client, services):
        services["riot"].get_active_game_by_puuid.return_value = None

        assert client.get("/api/riot/live", params={"puuid": "me"}).json() == {"inGame": False}

    def test_live_in_game(self, client, services):
        services["riot"].get_active_game_by_puuid.return_value = {"gameId": 1}

        assert client.get("/api/riot/live", params={"puuid": "me"}).json() == {"inGame": True, "game": {"gameId": 1}}

    def test_leaderboard_sorted(self, client, services):
        services["riot"].get_challenger_league.return_value = {
            "entries": [{"leaguePoints": 900}, {"leaguePoints": 1500}, {"leaguePoints": 1200}],
        }

        resp = client.get("/api/clasificacion/la1", params={"limit": 2})

        assert [e["leaguePoints"] for e in resp.json()["entries"]] == [1500, 1200]

    def test_leaderboard_merges_apex_ladders(self, client, services):
        riot = services["riot"]
        riot.get_challenger_league.return_value = {"entries": [{"summonerId": "c1", "leaguePoints": 900, "wins": 60, "losses": 40}]}
        riot.get_grandmaster_league.return_value = {"entries": [
            {"summonerId": "g1", "leaguePoints": 500}, {"summonerId": "g2", "leaguePoints": 700},
        ]}
        riot.get_master_league.return_value = {"entries": [{"summonerId": "m1", "leaguePoints": 1000}]}

        entries = client.get("/api/clasificacion/la1").json()["entries"]

        assert [(e["summonerId"], e["tier"]) for e in entries] == [
            ("c1", "CHALLENGER"), ("g2", "GRANDMASTER"), ("g1", "GRANDMASTER"), ("m1", "MASTER"),
        ]
        assert entries[0]["winRate"] == 60.0

    def test_leaderboard_survives_a_failed_ladder(self, client, services):
        services["riot"].get_grandmaster_league.side_effect = RiotAPIError("API error 500")
        services["riot"].get_master_league.return_value = {"entries": [{"summonerId": "m1", "leaguePoints": 10}]}

        resp = client.get("/api/clasificacion/la1")

        assert resp.status_code == 200
        assert [e["tier"] for e in resp.json()["entries"]] == ["MASTER"]

    def test_match_masteries(self, client, services):
        services["riot"].get_match_by_id.return_value = {
            "metadata": {"matchId": "LA2_5"},
            "info": {"platformId": "LA2", "participants": [
                {"puuid": "a", "championId": 103}, {"puuid": "b", "championId": 62},
            ]},
        }
        services["riot"].get_champion_mastery.side_effect = [{"championLevel": 7, "championPoints": 250000}, None]

        resp = client.get("/api/riot/match/LA2_5/masteries", params={"region": "la2"})

        assert resp.json() == {
            "a": {"championLevel": 7, "championPoints": 250000},
            "b": {"championLevel": 0, "championPoints": 0},
        }
        services["riot"].get_champion_mastery.assert_any_await("la2", "a", 103)

    def test_match_masteries_not_found(self, client, services):
        services["riot"].get_match_by_id.return_value = None

        assert client.get("/api/riot/match/LA1_0/masteries").status_code == 404

    def test_champion_stats_over_last_matches(self, client, services):
        services["riot"].get_match_ids.return_value = ["LA1_1"]
        services["riot"].get_match_by_id.return_value = {
            "metadata": {"matchId": "LA1_1"},
            "info": {"gameDuration": 1800, "participants": [
                {"puuid": "me", "championName": "Ahri", "championId": 103, "win": True,
                 "kills": 6, "deaths": 2, "assists": 8, "totalMinionsKilled": 210, "neutralMinionsKilled": 0},
            ]},
        }

        body = client.get("/api/riot/champion-stats", params={"puuid": "me"}).json()

        assert services["riot"].get_match_ids.await_args.kwargs["count"] == 50
        assert body["games"] == 1
        assert body["champions"][0]["champion"] == "Ahri"
        assert body["champions"][0]["winRate"] == 100.0
        assert body["champions"][0]["kda"] == 7.0


class TestSearchRoutes:
    """Autocomplete over summoners already seen on the site."""

    def test_search_delegates_to_index(self, client, services):
        services["summoners"].search.return_value = [{"puuid": "me", "riotId": "Yo#LAN"}]

        resp = client.get("/api/search/summoners", params={"q": "yo", "region": "la2", "limit": 5})

        assert resp.json() == [{"puuid": "me", "riotId": "Yo#LAN"}]
        services["summoners"].search.assert_called_once_with("la2", "yo", 5)

    def test_search_defaults(self, client, services):
        client.get("/api/search/summoners", params={"q": "yo"})

        services["summoners"].search.assert_called_once_with("la1", "yo", 15)

    def test_search_limit_capped_at_25(self, client, services):
        assert client.get("/api/search/summoners", params={"q": "yo", "limit": 26}).status_code == 422
        services["summoners"].search.assert_not_called()


class TestTierListRoutes:
    """Tier list synthesis over HTTP."""

    def test_invalid_rank(self, client):
        resp = client.get("/api/campeones/tierlist", params={"rank": "wood"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid rank"}

    def test_invalid_sort_rejected(self, client):
        assert client.get("/api/campeones/tierlist", params={"sort": "name"}).status_code == 422

    def test_measured_tier_list_with_override(self, client, services):
        services["cache"].get_cached_analytics.return_value = [
            {"champion_id": "Ahri", "champion_name": "Ahri", "role": "mid", "pick_rate": 7.5, "win_rate": 0.0, "games": 0},
        ]
        services["cache"].get_cached_winrates.return_value = {"Ahri": {"mid": {"wins": 30, "losses": 20}}}

        resp = client.get("/api/campeones/tierlist")

        body = resp.json()
        assert resp.status_code == 200
        assert body["source"] == "measured"
        assert body["ddVersion"] == "15.20.1"
        ahri = body["entries"][0]
        assert (ahri["tier"], ahri["winRate"], ahri["games"]) == ("S", 60.0, 50)
        assert ahri["icon"].endswith("/15.20.1/img/champion/Ahri.png")

    def test_simulated_bracket_labelled(self, client, services):
        services["meraki"].fetch_entries.return_value = [AnalyticsEntry("Ahri", "Ahri", "mid", 7.5, 50.0)]

        body = client.get("/api/campeones/tierlist", params={"rank": "GOLD"}).json()

        assert body["rank"] == "gold"
        assert body["source"] == "simulated"
        assert 44.0 <= body["entries"][0]["winRate"] <= 56.0

    def test_slow_winrates_do_not_block(self, client, services):
        services["meraki"].fetch_entries.return_value = [AnalyticsEntry("Ahri", "Ahri", "mid", 7.5)]

        async def never(*args, **kwargs):
            await asyncio.sleep(3600)

        with patch("grieta.web.app.get_or_fetch_winrates", side_effect=never), \
                patch.object(settings, "WINRATE_TIMEOUT_S", 0.01):
            resp = client.get("/api/campeones/tierlist")

        assert resp.status_code == 200
        assert resp.json()["entries"][0]["winRate"] == 0.0

    def test_refresh_without_data(self, client, services):
        services["riot"].get_challenger_league.return_value = {"entries": []}

        resp = client.post("/api/campeones/winrates/refresh")

        assert resp.status_code == 503
        assert resp.json()["ok"] is False

    def test_refresh_stores_aggregate(self, client, services):
        data = {"Ahri": {"mid": {"wins": 3, "losses": 1}}}
        with patch("grieta.web.app.aggregate_winrates", new_callable=AsyncMock, return_value=data):
            resp = client.post("/api/campeones/winrates/refresh")

        assert resp.json() == {"ok": True, "champions": 1, "message": "Winrates updated. Reload the tier list."}
        services["cache"].set_cached_winrates.assert_awaited_once_with(data)


@pytest.mark.asyncio
class TestWinrateDeadline:
    """The tier list stops waiting for the aggregate, the aggregation itself keeps going."""

    async def test_aggregation_outlives_the_deadline(self):
        state = SimpleNamespace()
        done = []

        async def slow(*args, **kwargs):
            await asyncio.sleep(0.2)
            done.append(True)
            return {"Ahri": {"mid": {"wins": 1, "losses": 0}}}

        with patch("grieta.web.app.get_or_fetch_winrates", side_effect=slow), \
                patch.object(settings, "WINRATE_TIMEOUT_S", 0.05):
            assert await _winrates_or_empty(state, AsyncMock(), AsyncMock(), DataDragon()) == {}
            await asyncio.sleep(0.4)

        assert done == [True]
        assert state.winrate_task.result() == {"Ahri": {"mid": {"wins": 1, "losses": 0}}}

    async def test_running_job_is_reused(self):
        state = SimpleNamespace()
        release = asyncio.Event()

        async def blocked(*args, **kwargs):
            await release.wait()
            return {"Ahri": {}}

        with patch("grieta.web.app.get_or_fetch_winrates", side_effect=blocked) as job, \
                patch.object(settings, "WINRATE_TIMEOUT_S", 0.01):
            await _winrates_or_empty(state, AsyncMock(), AsyncMock(), DataDragon())
            first = state.winrate_task
            await _winrates_or_empty(state, AsyncMock(), AsyncMock(), DataDragon())
            assert state.winrate_task is first
            assert job.call_count == 1

            release.set()
            with patch.object(settings, "WINRATE_TIMEOUT_S", 1.0):
                assert await _winrates_or_empty(state, AsyncMock(), AsyncMock(), DataDragon()) == {"Ahri": {}}

    async def test_failed_job_is_logged_and_restarted(self, caplog):
        state = SimpleNamespace()

        with patch("grieta.web.app.get_or_fetch_winrates", new_callable=AsyncMock,
                   side_effect=[RiotAPIError("API error 500"), {"Ahri": {}}]) as job, \
                caplog.at_level(logging.WARNING, logger="grieta.web.app"):
            assert await _winrates_or_empty(state, AsyncMock(), AsyncMock(), DataDragon()) == {}
            await asyncio.sleep(0)
            assert await _winrates_or_empty(state, AsyncMock(), AsyncMock(), DataDragon()) == {"Ahri": {}}

        assert job.call_count == 2
        assert "Agrégation des winrates échouée" in caplog.text


class TestHealthRoutes:
    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_readiness_ok(self, client, services):
        services["cache"].ping.return_value = True

        resp = client.get("/readiness")

        assert resp.status_code == 200
        assert resp.json() == {"ready": True, "checks": {"redis": "ok", "database": "ok"}}

    def test_readiness_cache_down(self, client, services):
        services["cache"].ping.side_effect = ConnectionRefusedError("redis down")

        resp = client.get("/readiness")

        assert resp.status_code == 503
        assert resp.json()["checks"]["database"] == "ok"

    def test_readiness_database_down(self, client, services):
        services["snapshots"].ping.side_effect = OperationalError("SELECT 1", {}, Exception("locked"))

        resp = client.get("/readiness")

        assert resp.status_code == 503
        assert resp.json()["checks"]["database"].startswith("error")

    def test_metrics(self, client):
        body = client.get("/metrics").json()
        assert body["ddragon_version"] == "15.20.1"
        assert body["champions_loaded"] == 1
