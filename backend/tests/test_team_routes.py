"""
backend/tests/test_team_routes.py

Purpose:
    Contract tests for /api/teams/search: query validation and parameter
    forwarding to the search service.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from matchhub.models.teams import TeamRef
from matchhub.routers import teams as teams_router


def _build_test_client(monkeypatch, hits: list[TeamRef]) -> tuple[TestClient, list[tuple]]:
    calls: list[tuple] = []

    async def _fake_search(query, league_scope=None, limit=None):
        calls.append((query, league_scope, limit))
        return hits

    monkeypatch.setattr(teams_router, "search_teams_by_name", _fake_search)
    app = FastAPI()
    app.include_router(teams_router.router)
    return TestClient(app), calls


def test_search_forwards_query_scope_and_limit(monkeypatch):
    client, calls = _build_test_client(monkeypatch, [TeamRef(local_id=5, name="FC Bayern München")])

    response = client.get("/api/teams/search", params=[("q", "bayern"), ("league", "BL1"), ("league", "CL"), ("limit", "5")])

    assert response.status_code == 200
    assert response.json()[0]["local_id"] == 5
    assert calls == [("bayern", ["BL1", "CL"], 5)]


def test_search_defaults_without_league(monkeypatch):
    client, calls = _build_test_client(monkeypatch, [])

    response = client.get("/api/teams/search", params={"q": "real"})

    assert response.status_code == 200
    assert response.json() == []
    assert calls == [("real", None, 20)]


def test_search_rejects_short_query_and_large_limit(monkeypatch):
    client, calls = _build_test_client(monkeypatch, [])

    assert client.get("/api/teams/search", params={"q": "r"}).status_code == 422
    assert client.get("/api/teams/search", params={"q": "real", "limit": 51}).status_code == 422
    assert calls == []
