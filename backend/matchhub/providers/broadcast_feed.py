"""
backend/matchhub/providers/broadcast_feed.py

Purpose:
    Broadcast-Feed adapter (ESPN public soccer API, no key). Leagues are
    addressed by slug ("eng.1"); team and event ids are plain strings kept in
    external_ids["broadcast_feed"]. Last in the preference order for most
    facets, but the only keyless source, so it keeps details, statistics and
    timelines available when both keyed providers are down.

Dependencies:
    - matchhub.providers.http_client
    - matchhub.services.league_mappings
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
    StatisticRow,
    TeamLineup,
)
from matchhub.models.teams import TeamRef
from matchhub.models.timeline import (
    CardEvent,
    GoalEvent,
    PenaltyMissedEvent,
    Side,
    SubstitutionEvent,
    TimelineEvent,
)
from matchhub.providers.base import ProviderAdapter, ProviderError, ResolvedMatch
from matchhub.providers.http_client import ResilientClient
from matchhub.services.cache_service import CacheLayer
from matchhub.services.league_mappings import broadcast_slug, find_league, league_id_from_team_id, league_ref
from matchhub.services.statistics_service import BROADCAST_FEED_STATS, counters_from_named_list, pair_statistics
from matchhub.services.team_id_mapping import feed_team_id_for
from matchhub.services.timeline_service import resolve_side, sort_events
from matchhub.utils import ensure_utc, parse_utc, utcnow
from matchhub.utils.team_matching import find_matching_team, teams_match

logger = logging.getLogger("matchhub.broadcast_feed")

PROVIDER_NAME = "broadcast_feed"

# Team ids are only unique per league slug here, so they travel as "slug/id".
_TEAM_KEY_SEPARATOR = "/"


def team_key(slug: str, team_id: str) -> str:
    return f"{slug}{_TEAM_KEY_SEPARATOR}{team_id}"


def split_team_key(key: str | None) -> tuple[str | None, str | None]:
    text = str(key or "")
    if _TEAM_KEY_SEPARATOR not in text:
        return None, text or None
    slug, _, team_id = text.rpartition(_TEAM_KEY_SEPARATOR)
    return slug or None, team_id or None


def _to_int(value: Any) -> int | None:
    if isinstance(value, dict):
        value = value.get("value", value.get("displayValue"))
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError):
        return None


def _team(raw: Any) -> TeamRef | None:
    if not isinstance(raw, dict):
        return None
    team_id = str(raw.get("id") or "")
    name = str(raw.get("displayName") or raw.get("name") or "")
    if not team_id and not name:
        return None
    logo = raw.get("logo")
    if not logo:
        logos = raw.get("logos") or []
        logo = logos[0].get("href") if logos and isinstance(logos[0], dict) else None
    return TeamRef(
        name=name,
        short_name=raw.get("shortDisplayName") or raw.get("abbreviation") or None,
        logo_url=logo or None,
        external_ids={PROVIDER_NAME: team_id} if team_id else {},
    )


def _status(raw: Any) -> MatchStatus:
    status_type = raw.get("type") if isinstance(raw, dict) and isinstance(raw.get("type"), dict) else {}
    name = str(status_type.get("name") or "").upper()
    state = str(status_type.get("state") or "").lower()
    if "POSTPONED" in name or "SUSPENDED" in name or "DELAYED" in name:
        return MatchStatus.POSTPONED
    if "CANCELED" in name or "CANCELLED" in name or "ABANDONED" in name:
        return MatchStatus.CANCELLED
    if state == "post" or status_type.get("completed"):
        return MatchStatus.FINISHED
    if state == "in":
        return MatchStatus.HALFTIME if "HALFTIME" in name else MatchStatus.LIVE
    return MatchStatus.NOT_STARTED


def _competitors(competition: dict) -> tuple[dict | None, dict | None]:
    competitors = [c for c in competition.get("competitors") or [] if isinstance(c, dict)]
    home = next((c for c in competitors if c.get("homeAway") == "home"), None)
    away = next((c for c in competitors if c.get("homeAway") == "away"), None)
    if (home is None or away is None) and len(competitors) >= 2:
        home, away = competitors[0], competitors[1]
    return home, away


def _event_to_match(event: Any, slug: str | None) -> MatchRef | None:
    if not isinstance(event, dict) or not event.get("id"):
        return None
    competitions = event.get("competitions") or []
    competition = competitions[0] if competitions and isinstance(competitions[0], dict) else {}
    home_raw, away_raw = _competitors(competition)
    if home_raw is None or away_raw is None:
        return None
    home = _team(home_raw.get("team"))
    away = _team(away_raw.get("team"))
    if home is None or away is None:
        return None
    status = _status(competition.get("status") or event.get("status"))
    home_score = _to_int(home_raw.get("score"))
    away_score = _to_int(away_raw.get("score"))
    score = None
    if status is not MatchStatus.NOT_STARTED and home_score is not None and away_score is not None:
        score = Score(home=home_score, away=away_score)
    clock = ((competition.get("status") or {}).get("displayClock")) if status is MatchStatus.LIVE else None
    mapping = find_league(slug)
    return MatchRef(
        id=str(event["id"]),
        date=parse_utc(event.get("date") or competition.get("date")),
        status=status,
        home=home,
        away=away,
        league=league_ref(mapping.code or mapping.feed_id) if mapping else league_ref(slug),
        score=score,
        elapsed=str(clock).replace("'", "") if clock else None,
        external_ids={PROVIDER_NAME: str(event["id"])},
    )


def _minute(item: dict) -> str:
    clock = item.get("clock") if isinstance(item.get("clock"), dict) else {}
    display = str(clock.get("displayValue") or "").replace("'", "").replace(" ", "")
    return display or "0"


def _athletes(item: dict) -> list[dict]:
    athletes = [a for a in item.get("athletesInvolved") or [] if isinstance(a, dict)]
    for participant in item.get("participants") or []:
        if isinstance(participant, dict) and isinstance(participant.get("athlete"), dict):
            athletes.append(participant["athlete"])
    return athletes


def _athlete_name(athletes: list[dict], index: int) -> str:
    if len(athletes) > index:
        return str(athletes[index].get("displayName") or athletes[index].get("fullName") or "Unknown")
    return "Unknown"


def _event_side(team_raw: dict, home: TeamRef) -> Side | None:
    team_id = str(team_raw.get("id") or "")
    home_id = home.external_ids.get(PROVIDER_NAME)
    if team_id and home_id:
        return "home" if team_id == home_id else "away"
    return resolve_side(_team(team_raw), home)


def _timeline_event(item: Any, home: TeamRef) -> TimelineEvent | None:
    if not isinstance(item, dict):
        return None
    type_info = item.get("type") if isinstance(item.get("type"), dict) else {}
    text = str(type_info.get("text") or type_info.get("type") or "").lower().replace("-", " ")
    team_raw = item.get("team") if isinstance(item.get("team"), dict) else {}
    team_id = str(team_raw.get("id") or "")
    minute = _minute(item)
    period = (item.get("period") or {}).get("number") if isinstance(item.get("period"), dict) else None
    shared = {
        "minute": minute,
        "team_id": team_id,
        "side": _event_side(team_raw, home),
        "period": _to_int(period) or (2 if (_to_int(minute.split("+")[0]) or 0) > 45 else 1),
    }
    athletes = _athletes(item)

    if "substitution" in text:
        return SubstitutionEvent(**shared, player_in=_athlete_name(athletes, 0), player_out=_athlete_name(athletes, 1))
    if item.get("redCard") or "red card" in text:
        card = "yellow_red" if "second yellow" in text or "yellow red" in text else "red"
        return CardEvent(**shared, player_name=_athlete_name(athletes, 0), card=card)
    if item.get("yellowCard") or "yellow card" in text:
        return CardEvent(**shared, player_name=_athlete_name(athletes, 0), card="yellow")
    if "penalty" in text and ("missed" in text or "saved" in text):
        return PenaltyMissedEvent(**shared, player_name=_athlete_name(athletes, 0), saved="saved" in text)
    if item.get("scoringPlay") or "goal" in text:
        return GoalEvent(
            **shared,
            player_name=_athlete_name(athletes, 0),
            player_number=_to_int(athletes[0].get("jersey")) if athletes else None,
            assist_name=_athlete_name(athletes, 1) if len(athletes) > 1 else None,
            is_penalty=bool(item.get("penaltyKick")) or "penalty" in text,
            is_own_goal=bool(item.get("ownGoal")) or "own goal" in text,
        )
    return None


def _timeline(items: Any, home: TeamRef) -> list[TimelineEvent]:
    events = [e for e in (_timeline_event(item, home) for item in items or []) if e is not None]
    return sort_events(events)


def _side_entry(entries: list[dict], side: str, team: TeamRef, index: int) -> dict | None:
    by_side = next((e for e in entries if e.get("homeAway") == side), None)
    if by_side is not None:
        return by_side
    team_id = team.external_ids.get(PROVIDER_NAME)
    if team_id:
        by_id = next((e for e in entries if str((e.get("team") or {}).get("id") or "") == team_id), None)
        if by_id is not None:
            return by_id
    return entries[index] if len(entries) > index else None


def _team_lineup(entry: dict | None, fallback: TeamRef) -> TeamLineup | None:
    if entry is None:
        return None
    starters: list[LineupPlayer] = []
    substitutes: list[LineupPlayer] = []
    for raw in entry.get("roster") or []:
        if not isinstance(raw, dict):
            continue
        athlete = raw.get("athlete") if isinstance(raw.get("athlete"), dict) else {}
        position = raw.get("position") if isinstance(raw.get("position"), dict) else {}
        player = LineupPlayer(
            id=str(athlete.get("id") or ""),
            name=str(athlete.get("displayName") or "Unknown"),
            number=_to_int(raw.get("jersey")),
            position=position.get("abbreviation") or None,
            order=_to_int(raw.get("formationPlace")),
        )
        (starters if raw.get("starter") else substitutes).append(player)
    if not starters and not substitutes:
        return None
    return TeamLineup(
        team=_team(entry.get("team")) or fallback,
        formation=entry.get("formation") or None,
        starters=starters,
        substitutes=substitutes,
    )


def _channels(competition: dict) -> list[str]:
    channels: list[str] = []
    for broadcast in competition.get("broadcasts") or []:
        if not isinstance(broadcast, dict):
            continue
        names = broadcast.get("names") or []
        media = broadcast.get("media") if isinstance(broadcast.get("media"), dict) else {}
        if media.get("shortName"):
            names = [*names, media["shortName"]]
        for name in names:
            if name and name not in channels:
                channels.append(str(name))
    return channels


def _game_info(summary: dict, competition: dict) -> GameInfo | None:
    info_raw = summary.get("gameInfo") if isinstance(summary.get("gameInfo"), dict) else {}
    venue = info_raw.get("venue") or competition.get("venue") or {}
    address = venue.get("address") if isinstance(venue.get("address"), dict) else {}
    officials = [o for o in info_raw.get("officials") or [] if isinstance(o, dict)]
    info = GameInfo(
        venue=venue.get("fullName") or None,
        city=address.get("city") or None,
        referee=(officials[0].get("displayName") or None) if officials else None,
        attendance=_to_int(info_raw.get("attendance") or competition.get("attendance")),
        channels=_channels(competition),
    )
    return None if info == GameInfo() else info


class BroadcastFeedProvider(ProviderAdapter):
    """ESPN soccer scoreboard/summary adapter."""

    name = PROVIDER_NAME

    def __init__(self, cache: CacheLayer | None = None) -> None:
        super().__init__(cache)
        self._client = ResilientClient(PROVIDER_NAME)

    async def _get(self, path: str, *, call_kind: str, empty_call_kind: str | None = None, **params: Any) -> dict | None:
        payload = await self._cached_json(
            f"{settings.BROADCAST_FEED_BASE_URL.rstrip('/')}/{path}",
            endpoint=path,
            call_kind=call_kind,
            params=params or None,
            empty_call_kind=empty_call_kind,
        )
        return payload if isinstance(payload, dict) else None

    @staticmethod
    def _slug(league_id: str | None) -> str | None:
        return broadcast_slug(league_id)

    def _slug_for(self, match_ref: MatchRef) -> str | None:
        slug = self._slug(match_ref.league.id)
        if slug:
            return slug
        for team in (match_ref.home, match_ref.away):
            slug = self._slug(league_id_from_team_id(feed_team_id_for(team)))
            if slug:
                return slug
        return None

    # -- identifiers ---------------------------------------------------------

    async def _find_event(self, match_ref: MatchRef, slug: str) -> MatchRef | None:
        if match_ref.date is None:
            return None
        try:
            events = await self.fetch_schedule_by_date(slug, ensure_utc(match_ref.date).date())
        except ProviderError as exc:
            logger.warning("Scoreboard unavailable while resolving %s: %s", match_ref.id, exc)
            return None
        for candidate in events:
            if teams_match(candidate.home, match_ref.home) and teams_match(candidate.away, match_ref.away):
                return candidate
        return None

    async def _resolve_team_id(self, team: TeamRef, slug: str) -> str | None:
        known = team.external_ids.get(PROVIDER_NAME)
        if known:
            return team_key(slug, known)
        try:
            candidates = await self.fetch_league_teams(slug)
        except ProviderError as exc:
            logger.warning("Team listing unavailable for %s: %s", slug, exc)
            return None
        found = find_matching_team(team, candidates)
        found_id = found.external_ids.get(PROVIDER_NAME) if found is not None else None
        return team_key(slug, found_id) if found_id else None

    async def resolve_match(self, match_ref: MatchRef) -> ResolvedMatch | None:
        slug = self._slug_for(match_ref)
        if not slug:
            logger.info("No %s league for %s", PROVIDER_NAME, match_ref.id)
            return None
        event_id = match_ref.external_ids.get(PROVIDER_NAME)
        home, away = match_ref.home, match_ref.away
        if not event_id:
            event = await self._find_event(match_ref, slug)
            if event is not None:
                event_id = event.id
                home, away = event.home, event.away
        home_id = await self._resolve_team_id(home, slug)
        away_id = await self._resolve_team_id(away, slug)
        if not (event_id or home_id or away_id):
            return None
        return ResolvedMatch(
            provider=PROVIDER_NAME,
            match_ref=match_ref,
            match_id=event_id,
            home_team_id=home_id,
            away_team_id=away_id,
            league_id=slug,
        )

    # -- endpoints -----------------------------------------------------------

    async def fetch_schedule_by_date(self, league_id: str, day: date) -> list[MatchRef]:
        slug = self._slug(league_id)
        if not slug:
            return []
        payload = await self._get(
            f"{slug}/scoreboard",
            call_kind="live_schedule" if day == utcnow().date() else "schedule",
            empty_call_kind="empty_schedule",
            dates=day.strftime("%Y%m%d"),
        )
        events = (payload or {}).get("events") or []
        return [m for m in (_event_to_match(event, slug) for event in events) if m is not None]

    async def _summary(self, resolved: ResolvedMatch) -> dict | None:
        if not resolved.match_id or not resolved.league_id:
            return None
        return await self._get(f"{resolved.league_id}/summary", call_kind="match_details", event=resolved.match_id)

    @staticmethod
    def _header_competition(summary: dict) -> dict:
        header = summary.get("header") if isinstance(summary.get("header"), dict) else {}
        competitions = header.get("competitions") or []
        return competitions[0] if competitions and isinstance(competitions[0], dict) else {}

    def _summary_match(self, summary: dict, resolved: ResolvedMatch) -> MatchRef | None:
        header = summary.get("header") if isinstance(summary.get("header"), dict) else {}
        competition = self._header_competition(summary)
        event = {"id": header.get("id") or resolved.match_id, "date": competition.get("date"), "competitions": [competition]}
        return _event_to_match(event, resolved.league_id)

    @staticmethod
    def _timeline_items(summary: dict, competition: dict) -> list:
        return competition.get("details") or summary.get("keyEvents") or []

    def _lineups_from(self, summary: dict, home: TeamRef, away: TeamRef) -> MatchLineups | None:
        entries = [e for e in summary.get("rosters") or [] if isinstance(e, dict)]
        home_lineup = _team_lineup(_side_entry(entries, "home", home, 0), home)
        away_lineup = _team_lineup(_side_entry(entries, "away", away, 1), away)
        if home_lineup is None and away_lineup is None:
            return None
        return MatchLineups(home=home_lineup, away=away_lineup)

    def _statistics_from(self, summary: dict, home: TeamRef, away: TeamRef) -> list[StatisticRow]:
        boxscore = summary.get("boxscore") if isinstance(summary.get("boxscore"), dict) else {}
        entries = [e for e in boxscore.get("teams") or [] if isinstance(e, dict)]
        home_entry = _side_entry(entries, "home", home, 0)
        away_entry = _side_entry(entries, "away", away, 1)
        if home_entry is None or away_entry is None:
            return []
        return pair_statistics(
            counters_from_named_list(home_entry.get("statistics")),
            counters_from_named_list(away_entry.get("statistics")),
            BROADCAST_FEED_STATS,
        )

    async def fetch_match_details(self, resolved: ResolvedMatch) -> MatchDetailsFacet | None:
        summary = await self._summary(resolved)
        if summary is None:
            return None
        match = self._summary_match(summary, resolved)
        if match is None:
            return None
        competition = self._header_competition(summary)
        return MatchDetailsFacet(
            match=match,
            game_info=_game_info(summary, competition),
            lineups=self._lineups_from(summary, match.home, match.away),
            statistics=self._statistics_from(summary, match.home, match.away) or None,
            timeline=_timeline(self._timeline_items(summary, competition), match.home) or None,
        )

    async def _summary_teams(self, resolved: ResolvedMatch) -> tuple[dict | None, TeamRef, TeamRef]:
        summary = await self._summary(resolved)
        home, away = resolved.match_ref.home, resolved.match_ref.away
        if summary is not None:
            match = self._summary_match(summary, resolved)
            if match is not None:
                home, away = match.home, match.away
        return summary, home, away

    async def fetch_lineups(self, resolved: ResolvedMatch) -> MatchLineups | None:
        summary, home, away = await self._summary_teams(resolved)
        return self._lineups_from(summary, home, away) if summary is not None else None

    async def fetch_statistics(self, resolved: ResolvedMatch) -> list[StatisticRow] | None:
        summary, home, away = await self._summary_teams(resolved)
        return self._statistics_from(summary, home, away) if summary is not None else None

    async def fetch_timeline(self, resolved: ResolvedMatch) -> list[TimelineEvent] | None:
        summary, home, _ = await self._summary_teams(resolved)
        if summary is None:
            return None
        return _timeline(self._timeline_items(summary, self._header_competition(summary)), home)

    async def fetch_team_history(self, team_id: str, limit: int = 20) -> list[MatchRef]:
        slug, raw_id = split_team_key(team_id)
        if not slug or not raw_id:
            return []
        payload = await self._get(f"{slug}/teams/{raw_id}/schedule", call_kind="team_history")
        events = (payload or {}).get("events") or []
        matches = [m for m in (_event_to_match(event, slug) for event in events) if m is not None]
        finished = [m for m in matches if m.status is MatchStatus.FINISHED]
        finished.sort(key=lambda match: match.date.timestamp() if match.date else 0, reverse=True)
        return finished[:limit]

    async def fetch_league_teams(self, league_id: str) -> list[TeamRef]:
        slug = self._slug(league_id)
        if not slug:
            return []
        payload = await self._get(f"{slug}/teams", call_kind="league_teams")
        sports = (payload or {}).get("sports") or []
        leagues = (sports[0].get("leagues") or []) if sports and isinstance(sports[0], dict) else []
        entries = (leagues[0].get("teams") or []) if leagues and isinstance(leagues[0], dict) else []
        return [t for t in (_team(entry.get("team")) for entry in entries if isinstance(entry, dict)) if t is not None]


broadcast_feed_provider = BroadcastFeedProvider()
