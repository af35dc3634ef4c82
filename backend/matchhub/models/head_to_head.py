"""
backend/matchhub/models/head_to_head.py

Purpose:
    Head-to-head input fixtures and the derived aggregate record.

Dependencies:
    - pydantic
    - matchhub.models.matches
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from matchhub.models.matches import MatchRef
from matchhub.models.teams import TeamRef


class RawFixture(BaseModel):
    """A historical fixture as reported by any provider, labels as the provider had them."""

    id: str | None = None
    date: datetime | None = None
    home: TeamRef
    away: TeamRef
    home_score: int | None = None
    away_score: int | None = None
    provider: str | None = None

    @classmethod
    def from_match(cls, match: MatchRef, provider: str | None = None) -> "RawFixture":
        return cls(
            id=match.id,
            date=match.date,
            home=match.home,
            away=match.away,
            home_score=match.score.home if match.score else None,
            away_score=match.score.away if match.score else None,
            provider=provider,
        )


class H2HMatch(BaseModel):
    date: datetime | None = None
    home_team_name: str
    away_team_name: str
    home_score: int
    away_score: int
    home_team_side: Literal["home", "away"]


class H2HRecord(BaseModel):
    total_matches: int = 0
    home_wins: int = 0
    away_wins: int = 0
    draws: int = 0
    home_goals: int = 0
    away_goals: int = 0
    matches: list[H2HMatch] = Field(default_factory=list)
