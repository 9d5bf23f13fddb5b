import asyncio
from datetime import datetime

import httpx
import pytest
from fastapi.testclient import TestClient

from guess_the_lines.core.config import Settings
from guess_the_lines.main import create_app
from guess_the_lines.services.nfl_weeks import NY
from guess_the_lines.services.odds_api import OddsApiClient

NOW = datetime(2024, 10, 30, 12, 0, tzinfo=NY)


def _odds_client(handler, api_key="test-key"):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OddsApiClient(http, api_key=api_key, retry_delay=0)


@pytest.fixture
def build_client(memory_store):
    def build(handler=None, store=None, api_key="test-key", odds_timeout=8.0):
        handler = handler or (lambda request: httpx.Response(200, json=[]))
        app = create_app(
            settings=Settings(odds_api_key=api_key, odds_timeout=odds_timeout),
            odds_client=_odds_client(handler, api_key),
            store=store or memory_store,
            clock=lambda: NOW,
        )
        return TestClient(app)
    return build


# ---------------- /api/odds ----------------

def test_odds_returns_games_and_weeks(build_client, make_event):
    events = [
        make_event(event_id="late", commence_time="2024-11-03T18:00:00Z", home="Bills", away="Dolphins", home_point=-6.0),
        make_event(),
        {"id": "broken", "sport_key": "americanfootball_nfl", "home_team": "A", "away_team": "B",
         "commence_time": "2024-11-03T18:00:00Z"},
    ]
    with build_client(lambda request: httpx.Response(200, json=events)) as client:
        r = client.get("/api/odds")

    assert r.status_code == 200
    body = r.json()
    assert body["currentWeek"] == "8"
    assert [g["id"] for g in body["games"]] == ["evt-1", "late"]
    first = body["games"][0]
    assert (first["home_team"], first["away_team"], first["vegas_line"], first["favorite"], first["weekNumber"]) == (
        "Dolphins", "Patriots", -9.5, "Dolphins", "8",
    )
    assert [w["number"] for w in body["weeks"]][:2] == ["8", "9"]
    assert "error" not in body


def test_odds_upstream_failure_returns_fallback_shape(build_client):
    with build_client(lambda request: httpx.Response(500, text="down")) as client:
        r = client.get("/api/odds")
    assert r.status_code == 502
    body = r.json()
    assert body["games"] == []
    assert body["currentWeek"] == "8"
    assert [w["number"] for w in body["weeks"]] == ["8"]
    assert "HTTP 500" in body["error"]


def test_odds_without_api_key_degrades(build_client):
    with build_client(api_key=None) as client:
        r = client.get("/api/odds")
    assert r.status_code == 502
    assert "ODDS_API_KEY" in r.json()["error"]


def test_odds_timeout_returns_fallback_shape(build_client):
    async def slow(request):
        await asyncio.sleep(1)
        return httpx.Response(200, json=[])

    with build_client(slow, odds_timeout=0.05) as client:
        r = client.get("/api/odds")
    assert r.status_code == 502
    body = r.json()
    assert body["games"] == []
    assert [w["number"] for w in body["weeks"]] == ["8"]
    assert body["currentWeek"] == "8"
    assert body["error"] == "Odds provider timed out"


def test_odds_malformed_event_is_dropped_not_fatal(build_client, make_event):
    bad = make_event(event_id="bad")
    bad["bookmakers"][0]["markets"][0]["outcomes"] = 5
    with build_client(lambda request: httpx.Response(200, json=[bad, make_event()])) as client:
        r = client.get("/api/odds")
    assert r.status_code == 200
    assert [g["id"] for g in r.json()["games"]] == ["evt-1"]


def test_odds_non_list_payload_degrades(build_client):
    with build_client(lambda request: httpx.Response(200, json={"message": "quota"})) as client:
        r = client.get("/api/odds")
    assert r.status_code == 502
    assert r.json()["games"] == []


# ---------------- /api/picks ----------------

def _payload(**overrides):
    body = {
        "userId": "u1",
        "week": "8",
        "picks": [
            {"gameId": "evt-1", "team": "Dolphins", "predictedLine": -9.5, "actualLine": -9.5},
            {"gameId": "evt-2", "team": "Bills", "predictedLine": "-3", "actualLine": -6.0},
        ],
    }
    body.update(overrides)
    return body


def test_post_then_get_picks(build_client):
    with build_client() as client:
        r = client.post("/api/picks", json=_payload())
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["stats"]["totalPicks"] == 2
        assert body["stats"]["perfectGuesses"] == 1
        assert body["stats"]["accurateGuesses"] == 2

        r = client.get("/api/picks", params={"userId": "u1", "week": "8"})
        assert r.status_code == 200
        picks = r.json()["picks"]
        assert [p["gameId"] for p in picks] == ["evt-1", "evt-2"]
        assert picks[1]["predictedLine"] == -3.0
        assert all(p["timestamp"] for p in picks)

        assert client.get("/api/picks", params={"userId": "u1", "week": "9"}).json() == {"picks": []}


@pytest.mark.parametrize("missing", ["userId", "week", "picks"])
def test_post_picks_missing_fields(build_client, missing):
    body = _payload()
    body.pop(missing)
    with build_client() as client:
        r = client.post("/api/picks", json=body)
    assert r.status_code == 400
    assert r.json() == {"error": "Missing required parameters"}


def test_post_picks_rejects_bad_pick(build_client):
    body = _payload(picks=[{"gameId": "evt-1", "team": "Dolphins", "predictedLine": "abc", "actualLine": 1}])
    with build_client() as client:
        r = client.post("/api/picks", json=body)
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid pick at index 0"}


def test_post_picks_rejects_non_json(build_client):
    with build_client() as client:
        r = client.post("/api/picks", content=b"not json", headers={"content-type": "application/json"})
    assert r.status_code == 400


def test_get_picks_requires_user(build_client):
    with build_client() as client:
        r = client.get("/api/picks")
    assert r.status_code == 400
    assert r.json() == {"error": "Missing required parameters"}


def test_store_failures_return_500_with_error(build_client, failing_store):
    with build_client(store=failing_store) as client:
        r = client.post("/api/picks", json=_payload())
        assert r.status_code == 500
        assert r.json()["error"] == "Failed to save picks"
        assert "store unavailable" in r.json()["details"]

        r = client.get("/api/picks", params={"userId": "u1"})
        assert r.status_code == 500
        assert r.json() == {"error": "Failed to fetch picks"}


def test_history_and_stats(build_client):
    with build_client() as client:
        client.post("/api/picks", json=_payload())
        client.post("/api/picks", json=_payload(week="9", picks=[
            {"gameId": "evt-9", "team": "Jets", "predictedLine": 3, "actualLine": -4},
        ]))

        hist = client.get("/api/picks/history", params={"userId": "u1"}).json()["weeks"]
        assert [h["week"] for h in hist] == ["9", "8"]
        assert hist[0]["picks"][0]["result"] == "Miss"
        assert hist[0]["picks"][0]["deviation"] == 7.0

        stats = client.get("/api/stats", params={"userId": "u1"}).json()["stats"]
        assert stats["totalPicks"] == 3
        assert stats["weeklyStats"]["9"] == {"picks": 1, "accurate": 0, "perfect": 0}

        assert client.get("/api/stats").status_code == 400
        assert client.get("/api/picks/history").status_code == 400


# ---------------- health / status / debug ----------------

def test_health_status_and_probes(build_client, make_event):
    with build_client(lambda request: httpx.Response(200, json=[make_event()])) as client:
        assert client.get("/health").json() == {"ok": True}

        status = client.get("/status").json()
        assert status["has_odds_key"] is True
        assert status["store"] == "memory"

        assert client.get("/api/_debug/store").json() == {"ok": True, "backend": "memory", "itemCount": 0}
        probe = client.get("/api/_debug/odds").json()
        assert probe == {"ok": True, "events_total": 1, "sample_id": "evt-1"}


def test_store_probe_reports_failure(build_client, failing_store):
    with build_client(store=failing_store) as client:
        body = client.get("/api/_debug/store").json()
    assert body["ok"] is False
    assert body["backend"] == "memory"
