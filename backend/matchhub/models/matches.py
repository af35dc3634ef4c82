"""
backend/matchhub/models/matches.py

Purpose:
    Match references and the optional facets an enriched match can carry.
    Each facet is independently nullable; absence means "unavailable".

Dependencies:
    - pydantic
    - matchhub.models.teams
    - matchhub.models.timeline
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from matchhub.models.teams import LeagueRef, TeamRef
from matchhub.models.timeline import TimelineEvent


class MatchStatus(str, Enum):
    NOT_STARTED = "not_started"
    LIVE = "live"
    HALFTIME = "halftime"
    FINISHED = "finished"
    POSTPONED = "postponed"
    CANCELLED = "cancelled"


# Statuses for which in-game data (statistics, timeline) cannot exist yet.
PRE_GAME_STATUSES = frozenset({MatchStatus.NOT_STARTED, MatchStatus.POSTPONED, MatchStatus.CANCELLED})


class Score(BaseModel):
    home: int
    away: int

    model_config = ConfigDict(frozen=True)


class MatchRef(BaseModel):
    id: str
    date: datetime | None = None
    status: MatchStatus = MatchStatus.NOT_STARTED
    home: TeamRef
    away: TeamRef
    league: LeagueRef = Field(default_factory=LeagueRef)
    score: Score | None = None
    halftime_score: Score | None = None
    elapsed: str | None = None
    sport: str = "Soccer"
    external_ids: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class StatisticRow(BaseModel):
    type: str
    home_value: int | float | str
    away_value: int | float | str


class LineupPlayer(BaseModel):
    id: str = ""
    name: str = ""
    number: int | None = None
    position: str | None = None
    grid: str | None = None
    order: int | None = None


class TeamLineup(BaseModel):
    team: TeamRef
    formation: str | None = None
    coach: str | None = None
    starters: list[LineupPlayer] = Field(default_factory=list)
    substitutes: list[LineupPlayer] = Field(default_factory=list)


class MatchLineups(BaseModel):
    home: TeamLineup | None = None
    away: TeamLineup | None = None


class InjuredPlayer(BaseModel):
    id: str = ""
    name: str = ""
    jersey_number: str | None = None
    position: str | None = None
    photo_url: str | None = None
    status: str = "Unknown"
    description: str | None = None


class TeamInjuries(BaseModel):
    team_id: str = ""
    players: list[InjuredPlayer] = Field(default_factory=list)


class MatchInjuries(BaseModel):
    home: TeamInjuries
    away: TeamInjuries


class TopPlayer(BaseModel):
    id: str = ""
    name: str = ""
    jersey_number: str | None = None
    position: str | None = None
    photo_url: str | None = None
    goals: int = 0
    assists: int = 0
    yellow_cards: int = 0
    minutes_played: int = 0


class TeamTopPlayers(BaseModel):
    team_id: str = ""
    goal_scorer: TopPlayer | None = None
    assist_leader: TopPlayer | None = None
    card_leader: TopPlayer | None = None


class MatchTopPlayers(BaseModel):
    home: TeamTopPlayers
    away: TeamTopPlayers


class PlayerSeasonStats(BaseModel):
    id: str = ""
    name: str = ""
    jersey_number: str | None = None
    position: str | None = None
    goals: int = 0
    assists: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    minutes_played: int = 0
    shots_on_target: int = 0
    shots_off_target: int = 0


class MatchPlayerStats(BaseModel):
    home: list[PlayerSeasonStats] = Field(default_factory=list)
    away: list[PlayerSeasonStats] = Field(default_factory=list)


class StandingRow(BaseModel):
    position: int = 0
    team: TeamRef
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    goal_difference: int = 0
    points: int = 0


class LeagueStandPositions(BaseModel):
    home: int | None = None
    away: int | None = None


class RecentMatches(BaseModel):
    home: list[MatchRef] = Field(default_factory=list)
    away: list[MatchRef] = Field(default_factory=list)


class PollOption(BaseModel):
    id: str
    count: int = 0


class PollResult(BaseModel):
    type: str | None = None
    options: list[PollOption] = Field(default_factory=list)


class WinProbability(BaseModel):
    home: float = 0.0
    draw: float = 0.0
    away: float = 0.0


class GameInfo(BaseModel):
    venue: str | None = None
    city: str | None = None
    referee: str | None = None
    attendance: int | None = None
    channels: list[str] = Field(default_factory=list)
    weather: str | None = None
    temperature: str | None = None
    win_probability: WinProbability | None = None
    home_record: str | None = None
    away_record: str | None = None
    round: str | None = None


class MatchDetailsFacet(BaseModel):
    """What a provider's match-details call can contribute to an enriched match."""

    match: MatchRef | None = None
    game_info: GameInfo | None = None
    lineups: MatchLineups | None = None
    statistics: list[StatisticRow] | None = None
    timeline: list[TimelineEvent] | None = None


class EnrichedMatch(MatchRef):
    game_info: GameInfo | None = None
    statistics: list[StatisticRow] | None = None
    lineups: MatchLineups | None = None
    timeline: list[TimelineEvent] | None = None
    injuries: MatchInjuries | None = None
    top_players: MatchTopPlayers | None = None
    player_league_stats: MatchPlayerStats | None = None
    league_stand_positions: LeagueStandPositions | None = None
    recent_matches: RecentMatches | None = None
    poll_result: PollResult | None = None
