"""
backend/tests/test_match_details_service.py

Purpose:
    Aggregation orchestrator behavior with fake provider adapters: facet
    fallback, partial failure, timeouts, shared in-flight fetches,
    cancellation, the fallback chain and the merge rules.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from datetime import datetime, timezone
from typing import Any

import pytest

from matchhub.config import settings
from matchhub.models.matches import (
    GameInfo,
    MatchDetailsFacet,
    MatchLineups,
    MatchRef,
    MatchStatus,
    PollResult,
    Score,
    StandingRow,
    StatisticRow,
    TeamLineup,
)
from matchhub.models.teams import LeagueRef, TeamRef
from matchhub.providers.base import ProviderAdapter, ProviderError, ResolvedMatch
from matchhub.services.match_details_service import MatchDetailsService, RequestState, RequestToken

_ENG = "SportRadar_Soccer_EnglandPremierLeague_2025_Team_"
_GAME = "SportRadar_Soccer_EnglandPremierLeague_2025_Game_42"
_CITY = TeamRef(provider_id=f"{_ENG}17", name="Manchester City")
_ARSENAL = TeamRef(provider_id=f"{_ENG}18", name="Arsenal")


class _FakeAdapter(ProviderAdapter):
    def __init__(self, name: str, responses: dict[str, Any] | None = None, delays: dict[str, float] | None = None):
        super().__init__()
        self.name = name
        self.responses = dict(responses or {})
        self.delays = dict(delays or {})
        self.calls: Counter = Counter()
        self.history_limits: list[int] = []

    async def _answer(self, method: str, default: Any = None) -> Any:
        self.calls[method] += 1
        delay = self.delays.get(method)
        if delay:
            await asyncio.sleep(delay)
        value = self.responses.get(method, default)
        if isinstance(value, Exception):
            raise value
        return value

    async def resolve_match(self, match_ref):
        default = ResolvedMatch(
            provider=self.name,
            match_ref=match_ref,
            match_id="m-1",
            home_team_id="home-id",
            away_team_id="away-id",
            league_id="league-id",
        )
        return await self._answer("resolve_match", default)

    async def fetch_schedule_by_date(self, league_id, day):
        return await self._answer("fetch_schedule_by_date", [])

    async def fetch_match_details(self, resolved):
        return await self._answer("fetch_match_details")

    async def fetch_team_history(self, team_id, limit=20):
        self.history_limits.append(limit)
        histories = await self._answer("fetch_team_history", {})
        return list(histories.get(team_id, []))

    async def fetch_league_teams(self, league_id):
        return await self._answer("fetch_league_teams", [])

    async def fetch_lineups(self, resolved):
        return await self._answer("fetch_lineups")

    async def fetch_statistics(self, resolved):
        return await self._answer("fetch_statistics")

    async def fetch_timeline(self, resolved):
        return await self._answer("fetch_timeline")

    async def fetch_injuries(self, resolved):
        return await self._answer("fetch_injuries")

    async def fetch_standings(self, league_id):
        return await self._answer("fetch_standings", [])

    async def fetch_poll(self, resolved):
        return await self._answer("fetch_poll")


def _match_ref(**overrides) -> MatchRef:
    fields = {
        "id": "local-1",
        "date": datetime(2025, 3, 8, 17, 30, tzinfo=timezone.utc),
        "status": MatchStatus.LIVE,
        "home": _CITY,
        "away": _ARSENAL,
        "league": LeagueRef(id="PL"),
        "external_ids": {"sports_feed": _GAME},
    }
    fields.update(overrides)
    return MatchRef(**fields)


def _details(status: MatchStatus = MatchStatus.FINISHED) -> MatchDetailsFacet:
    return MatchDetailsFacet(
        match=MatchRef(
            id=_GAME,
            status=status,
            home=TeamRef(provider_id=f"{_ENG}17", name="Man City"),
            away=TeamRef(provider_id=f"{_ENG}18", name="Arsenal"),
            score=Score(home=2, away=1),
            external_ids={"sports_feed": _GAME},
        )
    )


def _lineups(coach: str = "Guardiola") -> MatchLineups:
    return MatchLineups(home=TeamLineup(team=_CITY, coach=coach), away=TeamLineup(team=_ARSENAL, coach="Arteta"))


def _finished(day: int, home: TeamRef, away: TeamRef, score: tuple[int, int]) -> MatchRef:
    return MatchRef(
        id=f"h-{day}-{home.name}",
        date=datetime(2025, 2, day, tzinfo=timezone.utc),
        status=MatchStatus.FINISHED,
        home=home,
        away=away,
        score=Score(home=score[0], away=score[1]),
    )


@pytest.mark.asyncio
async def test_failing_injuries_do_not_block_lineups():
    sports = _FakeAdapter(
        "sports_feed",
        {
            "fetch_match_details": _details(),
            "fetch_lineups": _lineups(),
            "fetch_injuries": ProviderError("sports_feed", "injuries", "HTTP 500"),
        },
    )
    service = MatchDetailsService({"sports_feed": sports})

    outcome = await service.load_match_details(_match_ref())

    assert outcome.state is RequestState.READY
    assert outcome.match.lineups.home.coach == "Guardiola"
    assert outcome.match.injuries is None
    assert "injuries" in outcome.facet_errors
    assert "HTTP 500" in outcome.facet_errors["injuries"]


@pytest.mark.asyncio
async def test_facets_fall_back_down_the_preference_order():
    sports = _FakeAdapter(
        "sports_feed",
        {"fetch_match_details": _details(), "fetch_lineups": None, "fetch_statistics": ProviderError("sports_feed", "statistics", "HTTP 502")},
    )
    competition = _FakeAdapter("competition_api", {"fetch_lineups": _lineups(coach="Lijnders")})
    broadcast = _FakeAdapter("broadcast_feed", {"fetch_statistics": [StatisticRow(type="Total Shots", home_value=9, away_value=4)]})
    service = MatchDetailsService({"sports_feed": sports, "competition_api": competition, "broadcast_feed": broadcast})

    outcome = await service.load_match_details(_match_ref())

    assert outcome.match.lineups.home.coach == "Lijnders"
    assert outcome.match.statistics[0].home_value == 9
    assert "statistics" not in outcome.facet_errors
    assert competition.calls["fetch_statistics"] == 0


@pytest.mark.asyncio
async def test_provider_preference_setting_disables_providers(monkeypatch):
    monkeypatch.setattr(settings, "PROVIDER_PREFERENCE", "sports_feed")
    sports = _FakeAdapter("sports_feed", {"fetch_match_details": _details()})
    competition = _FakeAdapter("competition_api", {"fetch_lineups": _lineups()})
    service = MatchDetailsService({"sports_feed": sports, "competition_api": competition})

    outcome = await service.load_match_details(_match_ref())

    assert outcome.match.lineups is None
    assert competition.calls["resolve_match"] == 0


@pytest.mark.asyncio
async def test_slow_facet_times_out_and_is_absent(monkeypatch):
    monkeypatch.setattr(settings, "PROVIDER_CALL_TIMEOUT_SECONDS", 0.05)
    sports = _FakeAdapter(
        "sports_feed",
        {"fetch_match_details": _details(), "fetch_lineups": _lineups()},
        delays={"fetch_lineups": 1.0},
    )
    service = MatchDetailsService({"sports_feed": sports})

    outcome = await service.load_match_details(_match_ref())

    assert outcome.state is RequestState.READY
    assert outcome.match.lineups is None
    assert "lineups" in outcome.facet_errors


@pytest.mark.asyncio
async def test_concurrent_requests_share_one_fetch():
    sports = _FakeAdapter(
        "sports_feed",
        {"fetch_match_details": _details(), "fetch_lineups": _lineups()},
        delays={"resolve_match": 0.05},
    )
    service = MatchDetailsService({"sports_feed": sports})
    ref = _match_ref()

    first, second = await asyncio.gather(service.load_match_details(ref), service.load_match_details(ref))
    await asyncio.sleep(0)

    assert first.state is second.state is RequestState.READY
    assert sports.calls["resolve_match"] == 1
    assert sports.calls["fetch_match_details"] == 1
    assert sports.calls["fetch_lineups"] == 1
    assert service.in_flight_count == 0


@pytest.mark.asyncio
async def test_cancelled_caller_is_discarded_while_others_get_results():
    sports = _FakeAdapter("sports_feed", {"fetch_match_details": _details()}, delays={"resolve_match": 0.05})
    service = MatchDetailsService({"sports_feed": sports})
    ref = _match_ref()
    token = RequestToken()

    cancelled = asyncio.create_task(service.get_match_details(ref, token))
    other = asyncio.create_task(service.load_match_details(ref))
    await asyncio.sleep(0.01)
    token.cancel()

    cancelled_result, other_outcome = await asyncio.gather(cancelled, other)

    assert cancelled_result is None
    assert other_outcome.state is RequestState.READY
    assert sports.calls["resolve_match"] == 1


@pytest.mark.asyncio
async def test_already_cancelled_token_skips_fetch():
    sports = _FakeAdapter("sports_feed")
    service = MatchDetailsService({"sports_feed": sports})
    token = RequestToken()
    token.cancel()

    outcome = await service.load_match_details(_match_ref(), token)

    assert outcome.discarded
    assert outcome.match is None
    assert sum(sports.calls.values()) == 0


@pytest.mark.asyncio
async def test_pre_game_matches_skip_statistics_and_timeline():
    sports = _FakeAdapter("sports_feed", {"fetch_match_details": _details(MatchStatus.NOT_STARTED)})
    service = MatchDetailsService({"sports_feed": sports})

    await service.load_match_details(_match_ref(status=MatchStatus.NOT_STARTED))

    assert sports.calls["fetch_statistics"] == 0
    assert sports.calls["fetch_timeline"] == 0
    assert sports.calls["fetch_lineups"] == 1


@pytest.mark.asyncio
async def test_unidentifiable_match_uses_fallback_chain():
    sports = _FakeAdapter("sports_feed")
    competition = _FakeAdapter("competition_api", {"fetch_match_details": _details()})
    service = MatchDetailsService({"sports_feed": sports, "competition_api": competition})
    ref = MatchRef(id="c-1", home=TeamRef(local_id=9001, name="Alpha"), away=TeamRef(local_id=9002, name="Beta"))

    outcome = await service.load_match_details(ref)

    assert outcome.state is RequestState.READY
    assert outcome.match.id == "c-1"
    assert outcome.match.score.home == 2
    assert sum(sports.calls.values()) == 0
    assert competition.calls["fetch_match_details"] == 1


@pytest.mark.asyncio
async def test_unresolvable_everywhere_fails_with_caller_ref():
    sports = _FakeAdapter("sports_feed", {"resolve_match": None})
    competition = _FakeAdapter("competition_api", {"resolve_match": None})
    service = MatchDetailsService({"sports_feed": sports, "competition_api": competition})

    outcome = await service.load_match_details(_match_ref())

    assert outcome.state is RequestState.FAILED
    assert outcome.match.id == "local-1"
    assert outcome.match.home.name == "Manchester City"
    assert competition.calls["resolve_match"] == 2


@pytest.mark.asyncio
async def test_empty_primary_chain_falls_back_to_competition_details():
    sports = _FakeAdapter("sports_feed", {"resolve_match": None})
    competition = _FakeAdapter("competition_api", {"fetch_match_details": _details()})
    service = MatchDetailsService({"sports_feed": sports, "competition_api": competition})

    outcome = await service.load_match_details(_match_ref())

    assert outcome.state is RequestState.READY
    assert outcome.match.score.home == 2
    assert competition.calls["fetch_match_details"] == 1


@pytest.mark.asyncio
async def test_facets_without_match_object_are_partial():
    sports = _FakeAdapter("sports_feed", {"fetch_lineups": _lineups()})
    service = MatchDetailsService({"sports_feed": sports})

    outcome = await service.load_match_details(_match_ref())

    assert outcome.state is RequestState.PARTIAL_READY
    assert outcome.match.id == "local-1"
    assert outcome.match.lineups is not None


@pytest.mark.asyncio
async def test_primary_facets_without_base_match_still_ask_competition_for_details():
    sports = _FakeAdapter("sports_feed", {"fetch_lineups": _lineups()})
    competition = _FakeAdapter("competition_api", {"fetch_match_details": _details()})
    service = MatchDetailsService({"sports_feed": sports, "competition_api": competition})

    outcome = await service.load_match_details(_match_ref())

    assert outcome.state is RequestState.READY
    assert outcome.match.score.home == 2
    assert outcome.match.lineups.home.coach == "Guardiola"
    assert competition.calls["fetch_match_details"] == 1


@pytest.mark.asyncio
async def test_fallback_details_keep_primary_game_info():
    sports = _FakeAdapter("sports_feed", {"fetch_match_details": MatchDetailsFacet(game_info=GameInfo(venue="Etihad Stadium"))})
    competition = _FakeAdapter("competition_api", {"fetch_match_details": _details()})
    service = MatchDetailsService({"sports_feed": sports, "competition_api": competition})

    outcome = await service.load_match_details(_match_ref())

    assert outcome.state is RequestState.READY
    assert outcome.match.game_info.venue == "Etihad Stadium"
    assert outcome.match.score.away == 1


@pytest.mark.asyncio
async def test_merge_keeps_caller_ids_and_derives_positions_history_and_poll():
    stranger = TeamRef(provider_id=f"{_ENG}99", name="Everton")
    sports = _FakeAdapter(
        "sports_feed",
        {
            "fetch_match_details": _details(),
            "fetch_standings": [
                StandingRow(position=1, team=TeamRef(provider_id=f"{_ENG}18", name="Arsenal FC")),
                StandingRow(position=3, team=TeamRef(provider_id=f"{_ENG}17", name="Man City")),
            ],
            "fetch_team_history": {
                "home-id": [
                    _finished(1, _CITY, stranger, (3, 0)),
                    _match_ref(id="upcoming", status=MatchStatus.NOT_STARTED),
                ],
                "away-id": [_finished(2, stranger, _ARSENAL, (1, 1))],
            },
            "fetch_poll": PollResult(type="WhoWillWin", options=[]),
        },
    )
    service = MatchDetailsService({"sports_feed": sports})

    outcome = await service.load_match_details(_match_ref())
    match = outcome.match

    assert match.id == "local-1"
    assert match.status is MatchStatus.FINISHED
    assert match.home.name == "Man City"
    assert match.home.provider_id == f"{_ENG}17"
    assert match.external_ids["sports_feed"] == _GAME
    assert match.league.id == "PL"
    assert (match.league_stand_positions.home, match.league_stand_positions.away) == (3, 1)
    assert [m.id for m in match.recent_matches.home] == [f"h-1-{_CITY.name}"]
    assert len(match.recent_matches.away) == 1
    assert match.poll_result is None
    assert sports.history_limits == [settings.RECENT_MATCHES_LIMIT] * 2


@pytest.mark.asyncio
async def test_head_to_head_for_match_uses_history_limit():
    meeting = _finished(3, _CITY, _ARSENAL, (2, 2))
    sports = _FakeAdapter(
        "sports_feed",
        {"fetch_team_history": {"home-id": [meeting], "away-id": [meeting, _finished(4, _ARSENAL, _CITY, (0, 1))]}},
    )
    service = MatchDetailsService({"sports_feed": sports})

    record = await service.get_head_to_head_for_match(_match_ref())

    assert record.total_matches == 2
    assert record.draws == 1
    assert record.home_wins == 1
    assert sports.history_limits == [settings.H2H_HISTORY_LIMIT] * 2


@pytest.mark.asyncio
async def test_head_to_head_for_match_without_histories_is_empty():
    service = MatchDetailsService({"sports_feed": _FakeAdapter("sports_feed", {"resolve_match": None})})
    record = await service.get_head_to_head_for_match(_match_ref())
    assert record.total_matches == 0
