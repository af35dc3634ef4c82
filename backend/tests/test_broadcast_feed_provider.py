"""
backend/tests/test_broadcast_feed_provider.py

Purpose:
    Broadcast-Feed adapter: scoreboard parsing, resolution by date and team
    names, slug-scoped team ids, and summary facets.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from matchhub.models.matches import MatchRef, MatchStatus
from matchhub.models.teams import LeagueRef, TeamRef
from matchhub.models.timeline import CardEvent, GoalEvent, SubstitutionEvent
from matchhub.providers.base import ProviderError, ResolvedMatch
from matchhub.providers.broadcast_feed import BroadcastFeedProvider, split_team_key, team_key


class _FakeResponse:
    def __init__(self, payload, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code
        self.content = b"" if payload is None else b"{}"

    def json(self):
        return self._payload


class _FakeClient:
    def __init__(self, responses: list[_FakeResponse]) -> None:
        self._responses = list(responses)
        self.calls: list[dict] = []

    async def get(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        return self._responses.pop(0)


def _competitor(side: str, team_id: str, name: str, score: str | dict) -> dict:
    return {"homeAway": side, "score": score, "team": {"id": team_id, "displayName": name, "logo": f"https://a/{team_id}.png"}}


def _event(state: str = "post", name: str = "STATUS_FULL_TIME", home_score="2", away_score="0") -> dict:
    return {
        "id": "704321",
        "date": "2025-03-08T15:00Z",
        "competitions": [
            {
                "competitors": [
                    _competitor("away", "359", "Arsenal", away_score),
                    _competitor("home", "382", "Manchester City", home_score),
                ],
                "status": {"displayClock": "90'+4'", "type": {"state": state, "name": name}},
                "details": [
                    {"type": {"text": "Goal"}, "clock": {"displayValue": "23'"}, "team": {"id": "382"},
                     "scoringPlay": True, "athletesInvolved": [{"displayName": "Erling Haaland", "jersey": "9"}]},
                    {"type": {"text": "Yellow Card"}, "clock": {"displayValue": "41'"}, "team": {"id": "359"},
                     "yellowCard": True, "athletesInvolved": [{"displayName": "Declan Rice"}]},
                    {"type": {"text": "Substitution"}, "clock": {"displayValue": "45'+2'"}, "team": {"id": "359"},
                     "athletesInvolved": [{"displayName": "Jorginho"}, {"displayName": "Thomas Partey"}]},
                    {"type": {"text": "Penalty - Scored"}, "clock": {"displayValue": "77'"}, "team": {"id": "382"},
                     "scoringPlay": True, "penaltyKick": True, "athletesInvolved": [{"displayName": "Phil Foden"}]},
                    {"type": {"text": "Offside"}, "clock": {"displayValue": "80'"}, "team": {"id": "359"}},
                ],
                "broadcasts": [{"names": ["Sky Sports"]}],
            }
        ],
    }


@pytest.mark.asyncio
async def test_scoreboard_maps_events_and_statuses(monkeypatch):
    provider = BroadcastFeedProvider()
    live = dict(_event(state="in", name="STATUS_FIRST_HALF"), id="704322")
    fake_client = _FakeClient([_FakeResponse({"events": [_event(), live, {"id": "bad"}]})])
    monkeypatch.setattr(provider, "_client", fake_client)

    matches = await provider.fetch_schedule_by_date("PL", date(2025, 3, 8))

    assert fake_client.calls[0]["url"].endswith("/eng.1/scoreboard")
    assert fake_client.calls[0]["params"] == {"dates": "20250308"}
    assert [m.id for m in matches] == ["704321", "704322"]
    finished, in_play = matches
    assert finished.status is MatchStatus.FINISHED
    assert finished.home.name == "Manchester City"
    assert finished.home.external_ids == {"broadcast_feed": "382"}
    assert (finished.score.home, finished.score.away) == (2, 0)
    assert finished.league.id == "PL"
    assert in_play.status is MatchStatus.LIVE
    assert in_play.elapsed == "90+4"


@pytest.mark.asyncio
async def test_resolve_by_date_and_names_gives_slug_scoped_team_ids(monkeypatch):
    provider = BroadcastFeedProvider()
    fake_client = _FakeClient([_FakeResponse({"events": [_event()]})])
    monkeypatch.setattr(provider, "_client", fake_client)
    match_ref = MatchRef(
        id="feed-9",
        date=datetime(2025, 3, 8, 15, 0, tzinfo=timezone.utc),
        home=TeamRef(local_id=65, name="Manchester City FC"),
        away=TeamRef(local_id=57, name="Arsenal FC"),
        league=LeagueRef(id="PL"),
    )

    resolved = await provider.resolve_match(match_ref)

    assert resolved.match_id == "704321"
    assert resolved.league_id == "eng.1"
    assert resolved.home_team_id == team_key("eng.1", "382")
    assert resolved.away_team_id == team_key("eng.1", "359")
    assert len(fake_client.calls) == 1


@pytest.mark.asyncio
async def test_resolve_derives_slug_from_known_team_table(monkeypatch):
    provider = BroadcastFeedProvider()
    fake_client = _FakeClient([_FakeResponse({"events": []}), _FakeResponse({"sports": [{"leagues": [{"teams": [
        {"team": {"id": "86", "displayName": "Real Madrid"}},
        {"team": {"id": "83", "displayName": "Barcelona"}},
    ]}]}]})])
    monkeypatch.setattr(provider, "_client", fake_client)
    match_ref = MatchRef(
        id="x",
        date=datetime(2025, 4, 1, tzinfo=timezone.utc),
        home=TeamRef(local_id=86, name="Real Madrid CF"),
        away=TeamRef(local_id=81, name="FC Barcelona"),
    )

    resolved = await provider.resolve_match(match_ref)

    assert resolved.league_id == "esp.1"
    assert resolved.match_id is None
    assert resolved.has_teams
    assert split_team_key(resolved.away_team_id) == ("esp.1", "83")


@pytest.mark.asyncio
async def test_summary_facets(monkeypatch):
    provider = BroadcastFeedProvider()
    event = _event()
    summary = {
        "header": {"id": "704321", "competitions": event["competitions"]},
        "boxscore": {
            "teams": [
                {"team": {"id": "382"}, "statistics": [{"name": "possessionPct", "displayValue": "64.2"},
                                                       {"name": "totalShots", "displayValue": "18"}]},
                {"team": {"id": "359"}, "statistics": [{"name": "possessionPct", "displayValue": "35.8"},
                                                       {"name": "totalShots", "displayValue": "5"}]},
            ]
        },
        "rosters": [
            {"homeAway": "away", "team": {"id": "359", "displayName": "Arsenal"}, "formation": "4-3-3",
             "roster": [{"starter": True, "jersey": "1", "athlete": {"id": "1", "displayName": "David Raya"},
                         "position": {"abbreviation": "G"}}]},
            {"homeAway": "home", "team": {"id": "382", "displayName": "Manchester City"},
             "roster": [{"starter": False, "jersey": "18", "athlete": {"id": "2", "displayName": "Stefan Ortega"}}]},
        ],
        "gameInfo": {"venue": {"fullName": "Etihad Stadium", "address": {"city": "Manchester"}}, "attendance": 52900,
                     "officials": [{"displayName": "Michael Oliver"}]},
    }
    monkeypatch.setattr(provider, "_client", _FakeClient([_FakeResponse(summary)]))
    resolved = ResolvedMatch(
        provider="broadcast_feed",
        match_ref=MatchRef(id="feed-9", home=TeamRef(name="Man City"), away=TeamRef(name="Arsenal")),
        match_id="704321",
        league_id="eng.1",
    )

    facet = await provider.fetch_match_details(resolved)

    assert facet.match.id == "704321"
    assert facet.game_info.venue == "Etihad Stadium"
    assert facet.game_info.city == "Manchester"
    assert facet.game_info.referee == "Michael Oliver"
    assert facet.game_info.channels == ["Sky Sports"]
    assert [(r.type, r.home_value, r.away_value) for r in facet.statistics] == [
        ("Ball Possession", "64%", "36%"),
        ("Total Shots", 18, 5),
    ]
    assert facet.lineups.home.substitutes[0].name == "Stefan Ortega"
    assert facet.lineups.away.formation == "4-3-3"

    kinds = [(event.kind, event.minute, event.side) for event in facet.timeline]
    assert kinds == [
        ("goal", "23", "home"),
        ("card", "41", "away"),
        ("substitution", "45+2", "away"),
        ("goal", "77", "home"),
    ]
    assert isinstance(facet.timeline[0], GoalEvent) and facet.timeline[0].player_number == 9
    assert isinstance(facet.timeline[1], CardEvent) and facet.timeline[1].card == "yellow"
    assert isinstance(facet.timeline[2], SubstitutionEvent) and facet.timeline[2].player_out == "Thomas Partey"
    assert facet.timeline[3].is_penalty


@pytest.mark.asyncio
async def test_team_history_keeps_finished_matches_with_object_scores(monkeypatch):
    provider = BroadcastFeedProvider()
    finished = _event(home_score={"value": 3.0, "displayValue": "3"}, away_score={"value": 1.0, "displayValue": "1"})
    upcoming = dict(_event(state="pre", name="STATUS_SCHEDULED"), id="9")
    fake_client = _FakeClient([_FakeResponse({"events": [upcoming, finished]})])
    monkeypatch.setattr(provider, "_client", fake_client)

    history = await provider.fetch_team_history(team_key("eng.1", "382"), limit=10)

    assert fake_client.calls[0]["url"].endswith("/eng.1/teams/382/schedule")
    assert [m.id for m in history] == ["704321"]
    assert (history[0].score.home, history[0].score.away) == (3, 1)
    assert await provider.fetch_team_history("382") == []


@pytest.mark.asyncio
async def test_server_error_raises_provider_error(monkeypatch):
    provider = BroadcastFeedProvider()
    monkeypatch.setattr(provider, "_client", _FakeClient([_FakeResponse({}, status_code=502)]))
    with pytest.raises(ProviderError):
        await provider.fetch_league_teams("eng.1")
