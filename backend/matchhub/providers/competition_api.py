"""
backend/matchhub/providers/competition_api.py

Purpose:
    Competition-API adapter (football-data.org v4). Integer team/match ids,
    competition codes as league ids. Serves as the fallback chain for match
    details and as a secondary source for lineups, statistics, standings
    and team histories.

Dependencies:
    - matchhub.config
    - matchhub.providers.http_client
    - matchhub.services.statistics_service
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from matchhub.config import settings
from matchhub.models.matches import (
    GameInfo,
    LineupPlayer,
    MatchDetailsFacet,
    MatchLineups,
    MatchRef,
    MatchStatus,
    Score,
    StandingRow,
    StatisticRow,
    TeamLineup,
)
from matchhub.models.teams import TeamRef
from matchhub.models.timeline import CardEvent, GoalEvent, Side, SubstitutionEvent, TimelineEvent
from matchhub.providers.base import ProviderAdapter, ProviderError, ResolvedMatch
from matchhub.providers.http_client import ResilientClient
from matchhub.services.cache_service import CacheLayer
from matchhub.services.league_mappings import competition_code, league_id_from_team_id, league_ref
from matchhub.services.statistics_service import COMPETITION_API_STATS, pair_statistics
from matchhub.services.team_id_mapping import feed_team_id_for, local_team_id_for
from matchhub.services.timeline_service import resolve_side, sort_events
from matchhub.utils import ensure_utc, parse_utc, utcnow
from matchhub.utils.team_matching import find_matching_team, teams_match

logger = logging.getLogger("matchhub.competition_api")

PROVIDER_NAME = "competition_api"

STATUS_MAP = {
    "FINISHED": MatchStatus.FINISHED,
    "AWARDED": MatchStatus.FINISHED,
    "IN_PLAY": MatchStatus.LIVE,
    "LIVE": MatchStatus.LIVE,
    "PAUSED": MatchStatus.HALFTIME,
    "POSTPONED": MatchStatus.POSTPONED,
    "SUSPENDED": MatchStatus.POSTPONED,
    "CANCELLED": MatchStatus.CANCELLED,
}

CARD_MAP = {"YELLOW": "yellow", "YELLOW_RED": "yellow_red", "RED": "red"}


def _to_int(value: Any) -> int | None:
    try:
        if value is None:
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


def _team(raw: Any) -> TeamRef | None:
    if not isinstance(raw, dict) or raw.get("id") is None and not raw.get("name"):
        return None
    return TeamRef(
        local_id=_to_int(raw.get("id")),
        name=str(raw.get("name") or raw.get("shortName") or ""),
        short_name=raw.get("shortName") or raw.get("tla") or None,
        logo_url=raw.get("crest") or None,
    )


def _score(raw: Any) -> Score | None:
    if not isinstance(raw, dict):
        return None
    home = _to_int(raw.get("home"))
    away = _to_int(raw.get("away"))
    if home is None or away is None:
        return None
    return Score(home=home, away=away)


def _match(raw: Any, competition: dict | None = None) -> MatchRef | None:
    if not isinstance(raw, dict) or raw.get("id") is None:
        return None
    home = _team(raw.get("homeTeam"))
    away = _team(raw.get("awayTeam"))
    if home is None or away is None:
        return None
    competition = raw.get("competition") or competition or {}
    score = raw.get("score") if isinstance(raw.get("score"), dict) else {}
    code = competition.get("code") or ""
    return MatchRef(
        id=str(raw["id"]),
        date=parse_utc(raw.get("utcDate")),
        status=STATUS_MAP.get(str(raw.get("status") or ""), MatchStatus.NOT_STARTED),
        home=home,
        away=away,
        league=league_ref(code, name=competition.get("name"), logo_url=competition.get("emblem")),
        score=_score(score.get("fullTime")),
        halftime_score=_score(score.get("halfTime")),
        external_ids={PROVIDER_NAME: str(raw["id"])},
    )


def _lineup_player(raw: dict) -> LineupPlayer:
    return LineupPlayer(
        id=str(raw.get("id") or ""),
        name=str(raw.get("name") or "Unknown"),
        number=_to_int(raw.get("shirtNumber")),
        position=raw.get("position") or None,
    )


def _team_lineup(raw: Any) -> TeamLineup | None:
    team = _team(raw)
    if team is None:
        return None
    starters = [_lineup_player(p) for p in raw.get("lineup") or [] if isinstance(p, dict)]
    bench = [_lineup_player(p) for p in raw.get("bench") or [] if isinstance(p, dict)]
    if not starters and not bench:
        return None
    coach = raw.get("coach") if isinstance(raw.get("coach"), dict) else {}
    return TeamLineup(
        team=team,
        formation=raw.get("formation") or None,
        coach=coach.get("name") or None,
        starters=starters,
        substitutes=bench,
    )


def _minute(raw: dict) -> str:
    minute = _to_int(raw.get("minute"))
    if minute is None:
        return "0"
    extra = _to_int(raw.get("injuryTime"))
    return f"{minute}+{extra}" if extra else str(minute)


def _person(raw: Any) -> str:
    if isinstance(raw, dict) and raw.get("name"):
        return str(raw["name"])
    return "Unknown"


def _side(team: TeamRef | None, home: TeamRef) -> Side | None:
    if team is not None and team.local_id is not None and home.local_id is not None:
        return "home" if team.local_id == home.local_id else "away"
    return resolve_side(team, home)


def _timeline(raw: dict, home: TeamRef) -> list[TimelineEvent]:
    events: list[TimelineEvent] = []

    def _shared(item: dict) -> dict:
        team = _team(item.get("team"))
        minute = _minute(item)
        return {
            "minute": minute,
            "team_id": str(team.local_id) if team and team.local_id is not None else "",
            "side": _side(team, home),
            "period": 2 if (_to_int(item.get("minute")) or 0) > 45 else 1,
        }

    for goal in raw.get("goals") or []:
        if isinstance(goal, dict):
            goal_type = str(goal.get("type") or "REGULAR")
            events.append(
                GoalEvent(
                    **_shared(goal),
                    player_name=_person(goal.get("scorer")),
                    assist_name=_person(goal["assist"]) if isinstance(goal.get("assist"), dict) else None,
                    is_penalty=goal_type == "PENALTY",
                    is_own_goal=goal_type == "OWN",
                )
            )
    for booking in raw.get("bookings") or []:
        if isinstance(booking, dict):
            events.append(
                CardEvent(
                    **_shared(booking),
                    player_name=_person(booking.get("player")),
                    card=CARD_MAP.get(str(booking.get("card") or ""), "yellow"),
                )
            )
    for substitution in raw.get("substitutions") or []:
        if isinstance(substitution, dict):
            events.append(
                SubstitutionEvent(
                    **_shared(substitution),
                    player_in=_person(substitution.get("playerIn")),
                    player_out=_person(substitution.get("playerOut")),
                )
            )
    return sort_events(events)


def _game_info(raw: dict) -> GameInfo | None:
    referees = [r for r in raw.get("referees") or [] if isinstance(r, dict)]
    main_referee = next((r for r in referees if r.get("type") in (None, "REFEREE")), referees[0] if referees else None)
    info = GameInfo(
        venue=raw.get("venue") or None,
        referee=(main_referee or {}).get("name") or None,
        attendance=_to_int(raw.get("attendance")),
        round=f"Matchday {raw['matchday']}" if raw.get("matchday") else raw.get("stage") or None,
    )
    return None if info == GameInfo() else info


class CompetitionApiProvider(ProviderAdapter):
    """football-data.org adapter; authenticated with the X-Auth-Token header."""

    name = PROVIDER_NAME

    def __init__(self, cache: CacheLayer | None = None) -> None:
        super().__init__(cache)
        self._client = ResilientClient(PROVIDER_NAME)

    def _url(self, path: str) -> str:
        return f"{settings.COMPETITION_API_BASE_URL.rstrip('/')}/{path.lstrip('/')}"

    def _headers(self) -> dict[str, str]:
        api_key = str(settings.COMPETITION_API_KEY or "").strip()
        return {"X-Auth-Token": api_key} if api_key else {}

    async def _get(self, path: str, *, call_kind: str, empty_call_kind: str | None = None, **params: Any) -> dict | None:
        payload = await self._cached_json(
            self._url(path),
            endpoint=path,
            call_kind=call_kind,
            params={key: value for key, value in params.items() if value is not None} or None,
            headers=self._headers(),
            empty_call_kind=empty_call_kind,
        )
        return payload if isinstance(payload, dict) else None

    @staticmethod
    def _code(league_id: str | None) -> str | None:
        code = competition_code(league_id)
        if code:
            return code
        text = str(league_id or "").strip()
        return text if text.isalnum() and text.isupper() and len(text) <= 4 else None

    # -- identifiers ---------------------------------------------------------

    def _league_for(self, match_ref: MatchRef) -> str | None:
        code = self._code(match_ref.league.id)
        if code:
            return code
        for team in (match_ref.home, match_ref.away):
            code = competition_code(league_id_from_team_id(feed_team_id_for(team)))
            if code:
                return code
        return None

    async def _resolve_team_id(self, team: TeamRef, code: str | None) -> str | None:
        local_id = local_team_id_for(team)
        if local_id is not None:
            return str(local_id)
        if not code:
            return None
        try:
            candidates = await self.fetch_league_teams(code)
        except ProviderError as exc:
            logger.warning("Team listing unavailable for %s: %s", code, exc)
            return None
        found = find_matching_team(team, candidates)
        return str(found.local_id) if found is not None and found.local_id is not None else None

    async def _find_match_id(self, match_ref: MatchRef, code: str | None) -> str | None:
        if match_ref.date is None or not code:
            return None
        try:
            matches = await self.fetch_schedule_by_date(code, ensure_utc(match_ref.date).date())
        except ProviderError as exc:
            logger.warning("Schedule unavailable while resolving %s: %s", match_ref.id, exc)
            return None
        for candidate in matches:
            if teams_match(candidate.home, match_ref.home) and teams_match(candidate.away, match_ref.away):
                return candidate.id
        return None

    async def resolve_match(self, match_ref: MatchRef) -> ResolvedMatch | None:
        code = self._league_for(match_ref)
        match_id = match_ref.external_ids.get(PROVIDER_NAME) or await self._find_match_id(match_ref, code)
        home_id = await self._resolve_team_id(match_ref.home, code)
        away_id = await self._resolve_team_id(match_ref.away, code)
        if not (match_id or home_id or away_id):
            logger.info("Could not resolve %s on %s", match_ref.id, PROVIDER_NAME)
            return None
        return ResolvedMatch(
            provider=PROVIDER_NAME,
            match_ref=match_ref,
            match_id=match_id,
            home_team_id=home_id,
            away_team_id=away_id,
            league_id=code,
        )

    # -- endpoints -----------------------------------------------------------

    async def fetch_schedule_by_date(self, league_id: str, day: date) -> list[MatchRef]:
        code = self._code(league_id)
        if not code:
            return []
        payload = await self._get(
            f"competitions/{code}/matches",
            call_kind="live_schedule" if day == utcnow().date() else "schedule",
            empty_call_kind="empty_schedule",
            dateFrom=day.isoformat(),
            dateTo=day.isoformat(),
        )
        if payload is None:
            return []
        competition = payload.get("competition") if isinstance(payload.get("competition"), dict) else None
        return [m for m in (_match(raw, competition) for raw in payload.get("matches") or []) if m is not None]

    async def _match_payload(self, resolved: ResolvedMatch) -> dict | None:
        if not resolved.match_id:
            return None
        return await self._get(f"matches/{resolved.match_id}", call_kind="match_details")

    async def fetch_match_details(self, resolved: ResolvedMatch) -> MatchDetailsFacet | None:
        raw = await self._match_payload(resolved)
        if raw is None:
            return None
        match = _match(raw)
        if match is None:
            return None
        return MatchDetailsFacet(
            match=match,
            game_info=_game_info(raw),
            lineups=self._lineups_from(raw, match.home, match.away),
            statistics=self._statistics_from(raw) or None,
            timeline=_timeline(raw, match.home) or None,
        )

    @staticmethod
    def _lineups_from(raw: dict, home: TeamRef, away: TeamRef) -> MatchLineups | None:
        home_lineup = _team_lineup(raw.get("homeTeam"))
        away_lineup = _team_lineup(raw.get("awayTeam"))
        if home_lineup is None and away_lineup is None:
            return None
        return MatchLineups(home=home_lineup, away=away_lineup)

    @staticmethod
    def _statistics_from(raw: dict) -> list[StatisticRow]:
        home = (raw.get("homeTeam") or {}).get("statistics")
        away = (raw.get("awayTeam") or {}).get("statistics")
        return pair_statistics(home, away, COMPETITION_API_STATS)

    async def fetch_lineups(self, resolved: ResolvedMatch) -> MatchLineups | None:
        raw = await self._match_payload(resolved)
        if raw is None:
            return None
        return self._lineups_from(raw, resolved.match_ref.home, resolved.match_ref.away)

    async def fetch_statistics(self, resolved: ResolvedMatch) -> list[StatisticRow] | None:
        raw = await self._match_payload(resolved)
        if raw is None:
            return None
        return self._statistics_from(raw)

    async def fetch_timeline(self, resolved: ResolvedMatch) -> list[TimelineEvent] | None:
        raw = await self._match_payload(resolved)
        if raw is None:
            return None
        home = _team(raw.get("homeTeam")) or resolved.match_ref.home
        return _timeline(raw, home)

    async def fetch_standings(self, league_id: str) -> list[StandingRow]:
        code = self._code(league_id)
        if not code:
            return []
        payload = await self._get(f"competitions/{code}/standings", call_kind="standings")
        groups = [g for g in (payload or {}).get("standings") or [] if isinstance(g, dict)]
        total = next((g for g in groups if g.get("type") == "TOTAL"), groups[0] if groups else None)
        rows: list[StandingRow] = []
        for raw in (total or {}).get("table") or []:
            team = _team(raw.get("team")) if isinstance(raw, dict) else None
            if team is None:
                continue
            rows.append(
                StandingRow(
                    position=_to_int(raw.get("position")) or 0,
                    team=team,
                    played=_to_int(raw.get("playedGames")) or 0,
                    won=_to_int(raw.get("won")) or 0,
                    drawn=_to_int(raw.get("draw")) or 0,
                    lost=_to_int(raw.get("lost")) or 0,
                    goals_for=_to_int(raw.get("goalsFor")) or 0,
                    goals_against=_to_int(raw.get("goalsAgainst")) or 0,
                    goal_difference=_to_int(raw.get("goalDifference")) or 0,
                    points=_to_int(raw.get("points")) or 0,
                )
            )
        rows.sort(key=lambda row: row.position)
        return rows

    async def fetch_team_history(self, team_id: str, limit: int = 20) -> list[MatchRef]:
        if not team_id:
            return []
        payload = await self._get(f"teams/{team_id}/matches", call_kind="team_history", status="FINISHED", limit=limit)
        matches = [m for m in (_match(raw) for raw in (payload or {}).get("matches") or []) if m is not None]
        matches.sort(key=lambda match: match.date.timestamp() if match.date else 0, reverse=True)
        return matches[:limit]

    async def fetch_league_teams(self, league_id: str) -> list[TeamRef]:
        code = self._code(league_id)
        if not code:
            return []
        payload = await self._get(f"competitions/{code}/teams", call_kind="league_teams")
        return [t for t in (_team(raw) for raw in (payload or {}).get("teams") or []) if t is not None]


competition_api_provider = CompetitionApiProvider()
