"""
backend/matchhub/providers/sports_feed.py

Purpose:
    Sports-Feed adapter (MSN Sports API). Composite string identifiers
    ("SportRadar_Soccer_<League>_<Season>_Team_<n>"), responses wrapped in
    value[0]. Primary source for live games and most match facets.

Dependencies:
    - matchhub.config
    - matchhub.providers.http_client
    - matchhub.services.sports_feed_transformers
    - matchhub.services.timeline_service
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import date
from typing import Any

from matchhub.config import settings
from matchhub.models.matches import (
    MatchDetailsFacet,
    MatchInjuries,
    MatchLineups,
    MatchPlayerStats,
    MatchRef,
    MatchTopPlayers,
    PollResult,
    StandingRow,
    StatisticRow,
)
from matchhub.models.teams import TeamRef
from matchhub.models.timeline import TimelineEvent
from matchhub.providers.base import ProviderAdapter, ProviderError, ResolvedMatch
from matchhub.providers.http_client import ResilientClient
from matchhub.services import sports_feed_transformers as transform
from matchhub.services.cache_service import CacheLayer
from matchhub.services.league_mappings import (
    feed_league_id,
    find_league,
    league_id_from_team_id,
    sport_for_league,
)
from matchhub.services.statistics_service import SPORTS_FEED_STATS, pair_statistics
from matchhub.services.team_id_mapping import feed_team_id_for, register_feed_team_id
from matchhub.services.timeline_service import transform_timeline
from matchhub.utils import ensure_utc, utcnow
from matchhub.utils.name_normalizer import GAME_ID_MARKER, extract_numeric_id
from matchhub.utils.team_matching import find_matching_team, teams_match

logger = logging.getLogger("matchhub.sports_feed")

PROVIDER_NAME = "sports_feed"


class SportsFeedProvider(ProviderAdapter):
    """MSN Sports adapter: schedules, live games and every per-match facet."""

    name = PROVIDER_NAME

    def __init__(self, cache: CacheLayer | None = None) -> None:
        super().__init__(cache)
        self._client = ResilientClient(PROVIDER_NAME)

    def _url(self, path: str) -> str:
        return f"{settings.SPORTS_FEED_BASE_URL.rstrip('/')}/{path.lstrip('/')}"

    @staticmethod
    def _params(ocid: str, **params: Any) -> dict[str, Any]:
        query: dict[str, Any] = {
            "version": "1.0",
            "cm": settings.SPORTS_FEED_LOCALE,
            "scn": "ANON",
            "it": "web",
            "apikey": settings.SPORTS_FEED_API_KEY,
            "activityId": str(uuid.uuid4()),
            "ocid": ocid,
        }
        query.update({key: value for key, value in params.items() if value is not None})
        return query

    async def _get(
        self,
        path: str,
        *,
        call_kind: str,
        ocid: str,
        empty_call_kind: str | None = None,
        **params: Any,
    ) -> dict | None:
        payload = await self._cached_json(
            self._url(path),
            endpoint=path,
            call_kind=call_kind,
            params=self._params(ocid, **params),
            empty_call_kind=empty_call_kind,
        )
        return transform.first_value(payload)

    # -- identifiers ---------------------------------------------------------

    @staticmethod
    def _league_for(match_ref: MatchRef) -> str | None:
        for team in (match_ref.home, match_ref.away):
            derived = league_id_from_team_id(feed_team_id_for(team))
            if derived and find_league(derived) is not None:
                return derived
        mapped = feed_league_id(match_ref.league.id)
        if mapped:
            return mapped
        return league_id_from_team_id(feed_team_id_for(match_ref.home))

    async def _resolve_team_id(self, team: TeamRef, league_id: str | None) -> str | None:
        known = feed_team_id_for(team)
        if known:
            return known
        if not league_id:
            return None
        try:
            candidates = await self.fetch_league_teams(league_id)
        except ProviderError as exc:
            logger.warning("Team listing unavailable for %s: %s", league_id, exc)
            return None
        found = find_matching_team(team, candidates)
        if found is None or not found.provider_id:
            return None
        if team.local_id is not None:
            register_feed_team_id(team.local_id, found.provider_id)
        return found.provider_id

    async def _find_game_id(self, match_ref: MatchRef, league_id: str | None) -> str | None:
        if match_ref.date is None or not league_id:
            return None
        try:
            games = await self.fetch_schedule_by_date(league_id, ensure_utc(match_ref.date).date())
        except ProviderError as exc:
            logger.warning("Schedule unavailable while resolving %s: %s", match_ref.id, exc)
            return None
        for game in games:
            if teams_match(game.home, match_ref.home) and teams_match(game.away, match_ref.away):
                return game.external_ids.get(PROVIDER_NAME) or game.id
        return None

    async def resolve_match(self, match_ref: MatchRef) -> ResolvedMatch | None:
        league_id = self._league_for(match_ref)
        home_id = await self._resolve_team_id(match_ref.home, league_id)
        away_id = await self._resolve_team_id(match_ref.away, league_id)
        game_id = match_ref.external_ids.get(PROVIDER_NAME) or await self._find_game_id(match_ref, league_id)
        if not (game_id or home_id or away_id):
            logger.info("Could not resolve %s on %s", match_ref.id, PROVIDER_NAME)
            return None
        return ResolvedMatch(
            provider=PROVIDER_NAME,
            match_ref=match_ref,
            match_id=game_id,
            home_team_id=home_id,
            away_team_id=away_id,
            league_id=league_id,
        )

    @staticmethod
    def _side_refs(resolved: ResolvedMatch) -> tuple[TeamRef, TeamRef]:
        match_ref = resolved.match_ref
        home = match_ref.home
        away = match_ref.away
        if resolved.home_team_id and not home.provider_id:
            home = home.model_copy(update={"provider_id": resolved.home_team_id})
        if resolved.away_team_id and not away.provider_id:
            away = away.model_copy(update={"provider_id": resolved.away_team_id})
        return home, away

    @staticmethod
    def _sport(resolved: ResolvedMatch) -> str:
        return sport_for_league(resolved.league_id or resolved.match_ref.league.id)

    # -- schedules -----------------------------------------------------------

    async def fetch_schedule_by_date(self, league_id: str, day: date) -> list[MatchRef]:
        league = feed_league_id(league_id)
        if not league:
            return []
        resource = await self._get(
            "liveschedules",
            call_kind="live_schedule" if day == utcnow().date() else "schedule",
            empty_call_kind="empty_schedule",
            ocid="sports-league-schedule",
            ids=league,
            date=day.isoformat(),
            type="LeagueSchedule",
            tzoffset=settings.SPORTS_FEED_TZ_OFFSET,
            withcalendar="false",
        )
        return transform.games_from_schedules(resource)

    async def fetch_team_history(self, team_id: str, limit: int = 20) -> list[MatchRef]:
        if not team_id:
            return []
        resource = await self._get(
            "liveschedules",
            call_kind="team_history",
            ocid="sports-team-schedule",
            ids=team_id,
            type="TeamSchedule",
            take=limit,
        )
        matches = transform.games_from_schedules(resource)
        matches.sort(key=lambda match: match.date.timestamp() if match.date else 0, reverse=True)
        return matches[:limit]

    async def fetch_league_teams(self, league_id: str) -> list[TeamRef]:
        league = feed_league_id(league_id)
        if not league:
            return []
        resource = await self._get("teams", call_kind="league_teams", ocid="sports-league-teams", id=league, type="Teams")
        return transform.league_teams(resource)

    async def fetch_standings(self, league_id: str) -> list[StandingRow]:
        league = feed_league_id(league_id)
        if not league:
            return []
        resource = await self._get(
            "standings",
            call_kind="standings",
            ocid="sports-league-standings",
            id=league,
            idtype="league",
            seasonPhase="regularSeason",
        )
        return transform.standings(resource)

    # -- game facets ---------------------------------------------------------

    async def fetch_match_details(self, resolved: ResolvedMatch) -> MatchDetailsFacet | None:
        if not resolved.match_id:
            return None
        resource = await self._get(
            "livegames", call_kind="match_details", ocid="sports-gamedetails", ids=resolved.match_id, scope="Full"
        )
        games = (resource or {}).get("games") or []
        game = games[0] if games and isinstance(games[0], dict) else None
        if game is None:
            return None
        match = transform.game_to_match(game)
        info = transform.game_info(game)
        if match is None and info is None:
            return None
        return MatchDetailsFacet(match=match, game_info=info)

    async def fetch_lineups(self, resolved: ResolvedMatch) -> MatchLineups | None:
        if not resolved.match_id:
            return None
        resource = await self._get(
            "lineups",
            call_kind="lineups",
            ocid="sports-lineups",
            ids=extract_numeric_id(resolved.match_id, GAME_ID_MARKER) or resolved.match_id,
            sport=self._sport(resolved),
        )
        home, away = self._side_refs(resolved)
        return transform.lineups(resource, home, away)

    async def fetch_statistics(self, resolved: ResolvedMatch) -> list[StatisticRow] | None:
        if not resolved.match_id:
            return None
        resource = await self._get(
            "statistics",
            call_kind="statistics",
            ocid="sports-gamecenter",
            ids=resolved.match_id,
            type="Game",
            scope="Teamgame",
            sport=self._sport(resolved),
            leagueid=resolved.league_id,
        )
        match_ref = resolved.match_ref
        home = transform.team_statistics(resource, resolved.home_team_id, match_ref.home.local_id)
        away = transform.team_statistics(resource, resolved.away_team_id, match_ref.away.local_id)
        return pair_statistics(home, away, SPORTS_FEED_STATS)

    async def fetch_timeline(self, resolved: ResolvedMatch) -> list[TimelineEvent] | None:
        if not resolved.match_id:
            return None
        resource = await self._get(
            "timeline",
            call_kind="timeline",
            ocid="sports-gamecenter",
            ids=extract_numeric_id(resolved.match_id, GAME_ID_MARKER) or resolved.match_id,
            sport=self._sport(resolved),
            scope="timeline",
        )
        if resource is None:
            return None
        home, _ = self._side_refs(resolved)
        return transform_timeline(resource, home)

    async def fetch_poll(self, resolved: ResolvedMatch) -> PollResult | None:
        if not resolved.match_id:
            return None
        resource = await self._get("gamepoll", call_kind="poll", ocid="sports-gamecenter", ids=resolved.match_id)
        return transform.poll(resource)

    # -- team facets ---------------------------------------------------------

    async def _per_team(self, resolved: ResolvedMatch, path: str, *, call_kind: str, ocid: str, **params: Any):
        return await asyncio.gather(
            *(
                self._get(
                    path,
                    call_kind=call_kind,
                    ocid=ocid,
                    ids=team_id,
                    type="Team",
                    sport=self._sport(resolved),
                    leagueid=resolved.league_id,
                    **params,
                )
                for team_id in (resolved.home_team_id, resolved.away_team_id)
            )
        )

    async def fetch_injuries(self, resolved: ResolvedMatch) -> MatchInjuries | None:
        if not resolved.has_teams:
            return None
        home, away = await self._per_team(resolved, "injuries", call_kind="injuries", ocid="sports-team-injuries")
        if home is None and away is None:
            return None
        injuries = MatchInjuries(
            home=transform.team_injuries(home, resolved.home_team_id),
            away=transform.team_injuries(away, resolved.away_team_id),
        )
        if not injuries.home.players and not injuries.away.players:
            return None
        return injuries

    async def fetch_top_players(self, resolved: ResolvedMatch) -> MatchTopPlayers | None:
        if not resolved.has_teams:
            return None
        home, away = await self._per_team(
            resolved, "topplayers", call_kind="top_players", ocid="sports-team-topplayers"
        )
        if home is None and away is None:
            return None
        top_players = MatchTopPlayers(
            home=transform.team_top_players(home, resolved.home_team_id),
            away=transform.team_top_players(away, resolved.away_team_id),
        )
        if not any(
            side.goal_scorer or side.assist_leader or side.card_leader
            for side in (top_players.home, top_players.away)
        ):
            return None
        return top_players

    async def fetch_player_league_stats(self, resolved: ResolvedMatch) -> MatchPlayerStats | None:
        if not resolved.has_teams:
            return None
        home, away = await self._per_team(
            resolved, "statistics", call_kind="player_stats", ocid="sports-gamecenter", scope="Playerleague"
        )
        stats = MatchPlayerStats(
            home=transform.player_league_stats(home),
            away=transform.player_league_stats(away),
        )
        if not stats.home and not stats.away:
            return None
        return stats


sports_feed_provider = SportsFeedProvider()
