"""Tournament API tests."""

import pytest

from championship.main import status_for
from championship.utils.errors import (
    ConcurrentModificationError,
    InvalidStateError,
    NothingToUndoError,
    ValidationError,
    tournament_not_found,
)

from tests.factories import create_season, create_tournament, enroll_players

API = "/api/v1"


async def started_tournament(
    client, session_factory, nicknames=("Alice", "Bob", "Carol"), **kwargs
):
    """Season, tournament with enrolled players, clock started through the API."""
    season = await create_season(session_factory)
    tournament = await create_tournament(session_factory, season_id=season.id, **kwargs)
    players = await enroll_players(session_factory, tournament.id, list(nicknames))
    response = await client.post(f"{API}/tournaments/{tournament.id}/timer/start")
    assert response.status_code == 200
    return season, tournament, players


class TestErrorMapping:
    @pytest.mark.parametrize(
        "exc,expected",
        [
            (tournament_not_found("t-1"), 404),
            (NothingToUndoError("bust", "t-1"), 404),
            (ConcurrentModificationError("retry"), 409),
            (InvalidStateError("nope"), 400),
            (ValidationError("bad"), 400),
        ],
    )
    def test_status_for(self, exc, expected):
        assert status_for(exc) == expected

    @pytest.mark.asyncio
    async def test_not_found_body(self, client):
        response = await client.get(
            f"{API}/tournaments/missing/timer",
            headers={"X-Request-ID": "req-42"},
        )

        assert response.status_code == 404
        body = response.json()
        assert body["error"]["code"] == "TOURNAMENT_NOT_FOUND"
        assert body["error"]["details"] == {"tournamentId": "missing"}
        assert body["traceId"] == "req-42"
        assert response.headers["X-Request-ID"] == "req-42"


class TestTimerEndpoints:
    @pytest.mark.asyncio
    async def test_start_pause_resume(self, client, session_factory):
        _, tournament, _ = await started_tournament(client, session_factory)
        base = f"{API}/tournaments/{tournament.id}/timer"

        response = await client.get(base)
        assert response.status_code == 200
        assert response.json()["status"] == "IN_PROGRESS"
        assert response.json()["is_running"] is True

        response = await client.post(f"{base}/start")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "TIMER_ALREADY_RUNNING"

        response = await client.post(f"{base}/pause")
        assert response.status_code == 200
        assert response.json()["changed"] is True
        assert response.json()["timer"]["is_paused"] is True

        response = await client.post(f"{base}/pause")
        assert response.status_code == 200
        assert response.json()["changed"] is False
        assert response.json()["reason"] == "not running"

        response = await client.post(f"{base}/pause", params={"strict": "true"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "TIMER_NOT_RUNNING"

        response = await client.post(f"{base}/resume")
        assert response.json()["changed"] is True

    @pytest.mark.asyncio
    async def test_reset(self, client, session_factory):
        _, tournament, _ = await started_tournament(client, session_factory)

        response = await client.post(f"{API}/tournaments/{tournament.id}/timer/reset")

        assert response.status_code == 200
        assert response.json()["timer"]["status"] == "PLANNED"
        assert response.json()["timer"]["total_elapsed_seconds"] == 0

    @pytest.mark.asyncio
    async def test_start_without_blind_structure(self, client, session_factory):
        tournament = await create_tournament(session_factory, levels=())
        response = await client.post(f"{API}/tournaments/{tournament.id}/timer/start")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_BLIND_STRUCTURE"


class TestBustEndpoints:
    @pytest.mark.asyncio
    async def test_record_and_undo(self, client, session_factory, recorder):
        _, tournament, (alice, bob, _) = await started_tournament(client, session_factory)
        base = f"{API}/tournaments/{tournament.id}/busts"

        response = await client.post(
            base,
            json={"eliminated_id": alice, "killer_id": bob, "with_recave": True},
        )
        assert response.status_code == 201
        bust = response.json()["bust"]
        assert bust["recave_applied"] is True
        assert "bust:player_busted" in recorder.types

        response = await client.delete(f"{base}/last")
        assert response.status_code == 200
        assert response.json()["bust"]["id"] == bust["id"]

        response = await client.delete(f"{base}/last")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOTHING_TO_UNDO"

    @pytest.mark.asyncio
    async def test_recave_toggle(self, client, session_factory):
        _, tournament, (alice, *_) = await started_tournament(client, session_factory)
        base = f"{API}/tournaments/{tournament.id}/busts"
        bust_id = (await client.post(base, json={"eliminated_id": alice})).json()["bust"]["id"]

        response = await client.post(f"{base}/{bust_id}/recave")
        assert response.status_code == 201
        assert response.json()["bust"]["recave_applied"] is True

        response = await client.delete(f"{base}/{bust_id}/recave")
        assert response.status_code == 200
        assert response.json()["bust"]["recave_applied"] is False

        response = await client.post(f"{base}/unknown/recave")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "BUST_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_malformed_body(self, client, session_factory):
        _, tournament, _ = await started_tournament(client, session_factory)
        response = await client.post(
            f"{API}/tournaments/{tournament.id}/busts", json={"killer_id": "x"}
        )
        assert response.status_code == 422


class TestEliminationEndpoints:
    @pytest.mark.asyncio
    async def test_final_elimination_completes(self, client, session_factory):
        season, tournament, (alice, bob, carol) = await started_tournament(
            client, session_factory
        )
        base = f"{API}/tournaments/{tournament.id}/eliminations"

        response = await client.post(base, json={"eliminated_id": carol, "eliminator_id": alice})
        assert response.status_code == 201
        assert response.json()["elimination"]["rank"] == 3
        assert response.json()["tournament_completed"] is False

        response = await client.post(base, json={"eliminated_id": bob, "eliminator_id": alice})
        body = response.json()
        assert body["tournament_completed"] is True
        assert body["winner_player_id"] == alice

        response = await client.get(f"{API}/seasons/{season.id}/leaderboard")
        assert response.status_code == 200
        standings = response.json()["leaderboard"]
        assert [row["player_id"] for row in standings] == [alice, bob, carol]
        assert standings[0]["total_points"] == 1500 + 2 * 50

    @pytest.mark.asyncio
    async def test_undo_requires_most_recent(self, client, session_factory):
        _, tournament, (alice, bob, carol, dave) = await started_tournament(
            client, session_factory, nicknames=("Alice", "Bob", "Carol", "Dave")
        )
        base = f"{API}/tournaments/{tournament.id}/eliminations"
        first = (
            await client.post(base, json={"eliminated_id": dave, "eliminator_id": alice})
        ).json()["elimination"]["id"]
        await client.post(base, json={"eliminated_id": carol, "eliminator_id": bob})

        response = await client.delete(f"{base}/last", params={"elimination_id": first})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "NOT_MOST_RECENT"

        response = await client.delete(f"{base}/last")
        assert response.status_code == 200
        assert response.json()["elimination"]["rank"] == 3


class TestRebuyEndpoints:
    @pytest.mark.asyncio
    async def test_rebuy_and_undo(self, client, session_factory):
        _, tournament, (alice, *_) = await started_tournament(client, session_factory)
        base = f"{API}/tournaments/{tournament.id}/rebuys"

        for _ in range(3):
            response = await client.post(base, json={"player_id": alice})
        assert response.status_code == 201
        assert response.json()["player"]["rebuys_count"] == 3
        assert response.json()["player"]["penalty_points"] == -50

        response = await client.delete(f"{base}/last")
        assert response.status_code == 200
        assert response.json()["player"]["rebuys_count"] == 2
        assert response.json()["player"]["penalty_points"] == 0

    @pytest.mark.asyncio
    async def test_light_rebuy_not_enabled(self, client, session_factory):
        _, tournament, (alice, *_) = await started_tournament(client, session_factory)
        response = await client.post(
            f"{API}/tournaments/{tournament.id}/rebuys",
            json={"player_id": alice, "type": "LIGHT"},
        )
        assert response.status_code == 400


class TestSeasonEndpoints:
    @pytest.mark.asyncio
    async def test_recalculate(self, client, session_factory):
        season = await create_season(session_factory)
        response = await client.post(f"{API}/seasons/{season.id}/recalculate-leaderboard")
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "tournaments_processed": 0,
            "players_updated": 0,
        }

    @pytest.mark.asyncio
    async def test_unknown_season(self, client):
        response = await client.get(f"{API}/seasons/missing/leaderboard")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SEASON_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_penalty_preview_dynamic(self, client, session_factory):
        season = await create_season(
            session_factory,
            recave_penalty_tiers=[
                {"fromRebuys": 3, "penaltyPoints": -40},
                {"fromRebuys": 5, "penaltyPoints": -90},
            ],
        )

        response = await client.get(f"{API}/seasons/{season.id}/penalty-preview")

        assert response.status_code == 200
        body = response.json()
        assert body["rules"]["type"] == "DYNAMIC"
        assert [row["penalty"] for row in body["preview"]] == [0, 0, 0, -40, -40, -90]
        assert body["tier_errors"] == []

    @pytest.mark.asyncio
    async def test_penalty_preview_reports_tier_errors(self, client, session_factory):
        season = await create_season(
            session_factory,
            recave_penalty_tiers=[{"fromRebuys": 2, "penaltyPoints": -40}],
        )

        body = (await client.get(f"{API}/seasons/{season.id}/penalty-preview")).json()

        assert body["rules"]["type"] == "DYNAMIC"
        assert body["tier_errors"] == ["Tier threshold 2 must exceed the 2 free rebuys"]

    @pytest.mark.asyncio
    async def test_penalty_preview_legacy(self, client, session_factory):
        season = await create_season(session_factory)
        body = (await client.get(f"{API}/seasons/{season.id}/penalty-preview")).json()
        assert body["rules"]["type"] == "LEGACY"
        assert body["rules"]["freeRebuys"] == 2
        assert body["tier_errors"] == []


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["services"]["database"] == "healthy"
        assert body["services"]["redis"] == "not configured"

    @pytest.mark.asyncio
    async def test_liveness(self, client):
        response = await client.get("/health/live")
        assert response.json() == {"status": "alive"}
