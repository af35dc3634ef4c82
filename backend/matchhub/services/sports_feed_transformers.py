"""
backend/matchhub/services/sports_feed_transformers.py

Purpose:
    Validated parsing of Sports-Feed (MSN Sports) payloads into the shared
    domain models: games, team listings, lineups, standings, injuries, top
    players, player league statistics, polls and venue/broadcast info.

Notes:
    - Every field is optional upstream; helpers degrade to None/defaults.
    - Side assignment of per-team payloads goes through the entity matcher.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from matchhub.models.matches import (
    GameInfo,
    InjuredPlayer,
    LineupPlayer,
    MatchLineups,
    MatchRef,
    MatchStatus,
    PlayerSeasonStats,
    PollOption,
    PollResult,
    Score,
    StandingRow,
    TeamInjuries,
    TeamLineup,
    TeamTopPlayers,
    TopPlayer,
    WinProbability,
)
from matchhub.models.teams import TeamRef
from matchhub.services.league_mappings import clean_feed_league_id, league_ref, sport_for_league
from matchhub.utils import from_epoch_ms
from matchhub.utils.team_matching import teams_match

logger = logging.getLogger("matchhub.sports_feed_transformers")

_IMAGE_URL = "https://www.bing.com/th?id={image_id}&w=80&h=80"
_INJURY_STATUSES = {"Out", "Doubtful", "Injured", "GameTimeDecision"}
_HALFTIME_HINTS = ("halftime", "half time", "half-time", "break")


def first_value(payload: Any) -> dict | None:
    """Sports-Feed responses wrap the resource in value[0]."""
    if not isinstance(payload, dict):
        return None
    values = payload.get("value")
    if not isinstance(values, list) or not values or not isinstance(values[0], dict):
        return None
    return values[0]


def raw_name(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("rawName") or value.get("localizedName") or "").strip()
    return str(value or "").strip()


def localized_name(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("localizedName") or value.get("rawName") or "").strip()
    return str(value or "").strip()


def image_url(image: Any) -> str | None:
    if isinstance(image, dict) and image.get("id"):
        return _IMAGE_URL.format(image_id=image["id"])
    return None


def to_int(value: Any, default: int | None = None) -> int | None:
    try:
        if value is None or value == "" or value == "-":
            return default
        return int(float(str(value).strip()))
    except (TypeError, ValueError):
        return default


def last_segment(identifier: Any) -> str:
    return str(identifier or "").split("_")[-1]


def team_from_payload(team: Any) -> TeamRef | None:
    if not isinstance(team, dict) or not (team.get("id") or team.get("name")):
        return None
    short = localized_name(team.get("shortName")) or None
    return TeamRef(
        provider_id=str(team["id"]) if team.get("id") else None,
        name=localized_name(team.get("name")) or short or "Unknown",
        short_name=short,
        logo_url=image_url(team.get("image")),
    )


def _participant(game: dict, side: str) -> dict:
    for participant in game.get("participants") or []:
        if isinstance(participant, dict) and participant.get("homeAwayStatus") == side:
            return participant
    return {}


def game_status(game: dict) -> MatchStatus:
    state = game.get("gameState") if isinstance(game.get("gameState"), dict) else {}
    status = str(state.get("gameStatus") or "")
    detailed = str(state.get("detailedGameStatus") or "").lower()
    period = game.get("currentPlayingPeriod") if isinstance(game.get("currentPlayingPeriod"), dict) else {}
    if status in ("Final", "Post"):
        return MatchStatus.FINISHED
    if status in ("Postponed", "Delayed", "Suspended"):
        return MatchStatus.POSTPONED
    if status in ("Cancelled", "Canceled", "Abandoned"):
        return MatchStatus.CANCELLED
    if status in ("InProgress", "InProgressBreak"):
        is_break = (
            status == "InProgressBreak"
            or str(period.get("playingPeriodType") or "").lower() == "break"
            or any(hint in detailed for hint in _HALFTIME_HINTS)
        )
        quarter = to_int(period.get("number"), 1) or 1
        if is_break and quarter <= 2:
            return MatchStatus.HALFTIME
        return MatchStatus.LIVE
    return MatchStatus.NOT_STARTED


def _period_score(participant: dict, number: str) -> int | None:
    for entry in participant.get("playingPeriodScores") or []:
        if not isinstance(entry, dict):
            continue
        playing_period = entry.get("playingPeriod") if isinstance(entry.get("playingPeriod"), dict) else {}
        if str(playing_period.get("number")) == number:
            return to_int(entry.get("score"))
    return None


def game_league_id(game: dict) -> str:
    league = game.get("league") if isinstance(game.get("league"), dict) else {}
    return clean_feed_league_id(game.get("leagueId") or league.get("id") or game.get("seasonId") or game.get("sportWithLeague"))


def game_to_match(game: Any) -> MatchRef | None:
    """Sports-Feed game object -> MatchRef; None when either side is missing."""
    if not isinstance(game, dict):
        return None
    home_participant = _participant(game, "Home")
    away_participant = _participant(game, "Away")
    home = team_from_payload(home_participant.get("team"))
    away = team_from_payload(away_participant.get("team"))
    game_id = game.get("id") or game.get("gameId") or game.get("triggeringId")
    if home is None or away is None or not game_id:
        return None

    home_score = to_int((home_participant.get("result") or {}).get("score"))
    away_score = to_int((away_participant.get("result") or {}).get("score"))
    home_half = _period_score(home_participant, "1")
    away_half = _period_score(away_participant, "1")
    league_id = game_league_id(game)
    league = game.get("league") if isinstance(game.get("league"), dict) else {}
    state = game.get("gameState") if isinstance(game.get("gameState"), dict) else {}
    clock = state.get("gameClock") if isinstance(state.get("gameClock"), dict) else {}
    return MatchRef(
        id=str(game_id),
        date=from_epoch_ms(game.get("startDateTime")),
        status=game_status(game),
        home=home,
        away=away,
        league=league_ref(league_id, name=raw_name(league.get("name")) or None, logo_url=image_url(league.get("image"))),
        score=Score(home=home_score, away=away_score) if home_score is not None and away_score is not None else None,
        halftime_score=Score(home=home_half, away=away_half) if home_half is not None and away_half is not None else None,
        elapsed=str(clock["minutes"]) if clock.get("minutes") not in (None, "") else None,
        sport=sport_for_league(league_id),
        external_ids={"sports_feed": str(game_id)},
    )


def games_from_schedules(resource: Any) -> list[MatchRef]:
    """value[0].schedules[].games[] -> MatchRefs (malformed games skipped)."""
    matches: list[MatchRef] = []
    if not isinstance(resource, dict):
        return matches
    for schedule in resource.get("schedules") or []:
        if not isinstance(schedule, dict):
            continue
        for game in schedule.get("games") or []:
            match = game_to_match(game)
            if match is not None:
                matches.append(match)
    return matches


def _channels(raw_channels: Any) -> list[str]:
    names: list[str] = []
    for channel in raw_channels or []:
        if not isinstance(channel, dict):
            continue
        if isinstance(channel.get("channelNames"), list):
            names.extend(str(name) for name in channel["channelNames"] if isinstance(name, str) and name)
        elif channel.get("name") or channel.get("localizedName"):
            names.append(str(channel.get("name") or channel.get("localizedName")))
    return names


def _record(team: Any) -> str | None:
    record = team.get("winLossRecord") if isinstance(team, dict) else None
    if not isinstance(record, dict):
        return None
    return f"{to_int(record.get('wins'), 0)}-{to_int(record.get('ties'), 0)}-{to_int(record.get('losses'), 0)}"


def game_info(game: Any) -> GameInfo | None:
    if not isinstance(game, dict):
        return None
    venue = game.get("venue") if isinstance(game.get("venue"), dict) else {}
    location = venue.get("location") if isinstance(venue.get("location"), dict) else {}
    city = location.get("city") if isinstance(location.get("city"), dict) else {}
    weather = game.get("weatherForecast") if isinstance(game.get("weatherForecast"), dict) else {}
    temperature = weather.get("temperature") if isinstance(weather.get("temperature"), dict) else {}
    home_participant = _participant(game, "Home")
    away_participant = _participant(game, "Away")
    home_prob = (home_participant.get("probabilities") or [{}])[0]
    away_prob = (away_participant.get("probabilities") or [{}])[0]
    probability = None
    if isinstance(home_prob, dict) and isinstance(away_prob, dict) and (home_prob or away_prob):
        probability = WinProbability(
            home=float(home_prob.get("winProbability") or 0),
            draw=float(home_prob.get("tieProbability") or away_prob.get("tieProbability") or 0),
            away=float(away_prob.get("winProbability") or 0),
        )
    game_type = game.get("gameType") if isinstance(game.get("gameType"), dict) else {}
    info = GameInfo(
        venue=localized_name(venue.get("name")) or None,
        city=city.get("fullName") or raw_name(city.get("name")) or None,
        channels=_channels(game.get("channels")),
        weather=weather.get("condition") or None,
        temperature=(
            f"{temperature['value']} {temperature.get('unit') or 'Celsius'}" if temperature.get("value") is not None else None
        ),
        win_probability=probability,
        home_record=_record(home_participant.get("team")),
        away_record=_record(away_participant.get("team")),
        round=game_type.get("detailSeasonPhase") or game_type.get("simpleSeasonPhase") or game.get("week") or None,
    )
    if info == GameInfo():
        return None
    return info


def league_teams(resource: Any) -> list[TeamRef]:
    """value[0].teams or value[0].groups[].teams -> TeamRefs."""
    if not isinstance(resource, dict):
        return []
    raw_teams = list(resource.get("teams") or [])
    for group in resource.get("groups") or []:
        if isinstance(group, dict):
            raw_teams.extend(group.get("teams") or [])
    teams: list[TeamRef] = []
    for raw in raw_teams:
        team = team_from_payload(raw.get("team") if isinstance(raw, dict) and "team" in raw else raw)
        if team is not None:
            teams.append(team)
    return teams


def _lineup_player(player: dict) -> LineupPlayer:
    return LineupPlayer(
        id=last_segment(player.get("id")),
        name=raw_name(player.get("name")) or raw_name(player.get("lastName")) or "Unknown",
        number=to_int(player.get("jerseyNumber")),
        position=player.get("playerPosition") or None,
        grid=str(player["lineupOrder"]) if player.get("lineupOrder") else None,
        order=to_int(player.get("lineupOrder")),
    )


def _team_lineup(raw: dict) -> TeamLineup | None:
    team = team_from_payload(raw.get("team")) or (
        TeamRef(provider_id=str(raw["teamId"])) if raw.get("teamId") else None
    )
    if team is None:
        return None
    players = [player for player in raw.get("players") or [] if isinstance(player, dict)]
    return TeamLineup(
        team=team,
        formation=raw.get("formation") or None,
        coach=raw_name(raw.get("coach")) or None,
        starters=[_lineup_player(player) for player in players if player.get("isStarter") is True],
        substitutes=[_lineup_player(player) for player in players if player.get("isStarter") is False],
    )


def assign_sides(lineups: Iterable[TeamLineup], home: TeamRef, away: TeamRef) -> MatchLineups | None:
    """Place per-team lineups on the match sides using the entity matcher."""
    result = MatchLineups()
    unplaced: list[TeamLineup] = []
    for lineup in lineups:
        if result.home is None and teams_match(lineup.team, home):
            result.home = lineup
        elif result.away is None and teams_match(lineup.team, away):
            result.away = lineup
        else:
            unplaced.append(lineup)
    for lineup in unplaced:
        if result.home is None:
            result.home = lineup
        elif result.away is None:
            result.away = lineup
    if result.home is None and result.away is None:
        return None
    return result


def lineups(resource: Any, home: TeamRef, away: TeamRef) -> MatchLineups | None:
    if not isinstance(resource, dict):
        return None
    parsed = [
        lineup
        for lineup in (_team_lineup(raw) for raw in resource.get("lineups") or [] if isinstance(raw, dict))
        if lineup is not None and (lineup.starters or lineup.substitutes)
    ]
    return assign_sides(parsed, home, away)


def standings(resource: Any) -> list[StandingRow]:
    if not isinstance(resource, dict):
        return []
    rows: list[StandingRow] = []
    for raw in resource.get("standings") or []:
        if not isinstance(raw, dict):
            continue
        team = team_from_payload(raw.get("team"))
        if team is None:
            continue
        win_loss = raw.get("winLoss") if isinstance(raw.get("winLoss"), dict) else {}
        rows.append(
            StandingRow(
                position=to_int(raw.get("overallRank"), 0),
                team=team,
                played=to_int(raw.get("gamesPlayed"), 0),
                won=to_int(win_loss.get("wins"), 0),
                drawn=to_int(win_loss.get("ties"), 0),
                lost=to_int(win_loss.get("losses"), 0),
                goals_for=to_int(raw.get("pointsFor"), 0),
                goals_against=to_int(raw.get("pointsAgainst"), 0),
                goal_difference=to_int(raw.get("pointsDifference"), 0),
                points=to_int(raw.get("points"), 0),
            )
        )
    rows.sort(key=lambda row: row.position)
    return rows


def team_injuries(resource: Any, team_id: str) -> TeamInjuries:
    players: list[InjuredPlayer] = []
    raw_injuries = resource.get("injuries") if isinstance(resource, dict) else None
    for raw in raw_injuries or []:
        if not isinstance(raw, dict):
            continue
        player = raw.get("player") if isinstance(raw.get("player"), dict) else raw
        status = str(raw.get("injuryStatus") or raw.get("status") or "Unknown")
        players.append(
            InjuredPlayer(
                id=last_segment(player.get("id")),
                name=raw_name(player.get("name"))
                or f"{raw_name(player.get('firstName'))} {raw_name(player.get('lastName'))}".strip()
                or "Unknown",
                jersey_number=str(player["jerseyNumber"]) if player.get("jerseyNumber") is not None else None,
                position=player.get("playerPosition") or None,
                photo_url=image_url(player.get("image")),
                status=status if status in _INJURY_STATUSES else ("Unknown" if status == "Unknown" else "Other"),
                description=raw.get("description") or raw.get("injuryDescription") or None,
            )
        )
    return TeamInjuries(team_id=team_id, players=players)


def _top_player(raw: dict) -> TopPlayer:
    player = raw.get("player") if isinstance(raw.get("player"), dict) else raw
    return TopPlayer(
        id=last_segment(player.get("id")),
        name=raw_name(player.get("name")) or "Unknown",
        jersey_number=str(player["jerseyNumber"]) if player.get("jerseyNumber") is not None else None,
        position=player.get("playerPosition") or None,
        photo_url=image_url(player.get("image")),
        goals=to_int(raw.get("goalsScored"), 0),
        assists=to_int(raw.get("assists"), 0),
        yellow_cards=to_int(raw.get("yellowCards"), 0),
        minutes_played=to_int(raw.get("minutesPlayed"), 0),
    )


def team_top_players(resource: Any, team_id: str) -> TeamTopPlayers:
    """Leaders per category from topPlayers[].categoryPlayerStatistics[].statistics[]."""
    unique: dict[str, TopPlayer] = {}
    for top in (resource.get("topPlayers") if isinstance(resource, dict) else None) or []:
        if not isinstance(top, dict):
            continue
        for category in top.get("categoryPlayerStatistics") or []:
            if not isinstance(category, dict):
                continue
            for stat in category.get("statistics") or []:
                if not isinstance(stat, dict):
                    continue
                candidate = _top_player(stat)
                key = candidate.id or candidate.name
                known = unique.get(key)
                if known is None:
                    unique[key] = candidate
                else:
                    unique[key] = known.model_copy(
                        update={
                            "goals": max(known.goals, candidate.goals),
                            "assists": max(known.assists, candidate.assists),
                            "yellow_cards": max(known.yellow_cards, candidate.yellow_cards),
                            "minutes_played": max(known.minutes_played, candidate.minutes_played),
                        }
                    )
    players = list(unique.values())

    def _leader(attribute: str) -> TopPlayer | None:
        ranked = [player for player in players if getattr(player, attribute) > 0]
        return max(ranked, key=lambda player: getattr(player, attribute)) if ranked else None

    return TeamTopPlayers(
        team_id=team_id,
        goal_scorer=_leader("goals"),
        assist_leader=_leader("assists"),
        card_leader=_leader("yellow_cards"),
    )


def player_league_stats(resource: Any) -> list[PlayerSeasonStats]:
    """value[0].statistics[0].playerStatistics[] -> per-player season counters."""
    if not isinstance(resource, dict):
        return []
    statistics = resource.get("statistics") or []
    if not statistics or not isinstance(statistics[0], dict):
        return []
    rows: list[PlayerSeasonStats] = []
    for stat in statistics[0].get("playerStatistics") or []:
        if not isinstance(stat, dict):
            continue
        player = stat.get("player") if isinstance(stat.get("player"), dict) else {}
        rows.append(
            PlayerSeasonStats(
                id=last_segment(player.get("id") or stat.get("id")),
                name=raw_name(player.get("name") or stat.get("name")) or "Unknown",
                jersey_number=str(player["jerseyNumber"]) if player.get("jerseyNumber") is not None else None,
                position=player.get("playerPosition") or None,
                goals=to_int(stat.get("goalsScored"), 0),
                assists=to_int(stat.get("assists"), 0),
                yellow_cards=to_int(stat.get("yellowCards"), 0),
                red_cards=to_int(stat.get("redCards"), 0),
                minutes_played=to_int(stat.get("minutesPlayed"), 0),
                shots_on_target=to_int(stat.get("shotsOnTarget"), 0),
                shots_off_target=to_int(stat.get("shotsOffTarget"), 0),
            )
        )
    return rows


def poll(resource: Any) -> PollResult | None:
    """Poll with at least one option, else None."""
    if not isinstance(resource, dict):
        return None
    options = [
        PollOption(id=str(option.get("id")), count=to_int(option.get("count"), 0))
        for option in resource.get("options") or []
        if isinstance(option, dict) and option.get("id") is not None
    ]
    if not options:
        return None
    return PollResult(type=resource.get("type"), options=options)


def team_statistics(resource: Any, team_id: str | None, local_id: int | None = None) -> dict | None:
    """Counters of one team from value[0].statistics[], matched by id or `_{local_id}` suffix."""
    if not isinstance(resource, dict):
        return None
    entries = [entry for entry in resource.get("statistics") or [] if isinstance(entry, dict)]
    if team_id:
        for entry in entries:
            if entry.get("teamId") == team_id:
                return entry
    if local_id is not None:
        suffix = f"_{local_id}"
        for entry in entries:
            if str(entry.get("teamId") or "").endswith(suffix):
                return entry
    return None
