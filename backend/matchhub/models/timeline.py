"""
backend/matchhub/models/timeline.py

Purpose:
    Typed timeline events. A tagged union discriminated on `kind`; every
    variant shares minute/team_id/side/period.

Dependencies:
    - pydantic
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

Side = Literal["home", "away"]


class _TimelineEventBase(BaseModel):
    minute: str = "0"
    team_id: str = ""
    side: Side | None = None
    period: int | None = None

    model_config = ConfigDict(frozen=True)


class GoalEvent(_TimelineEventBase):
    kind: Literal["goal"] = "goal"
    player_name: str = "Unknown"
    player_number: int | None = None
    assist_name: str | None = None
    is_penalty: bool = False
    is_own_goal: bool = False
    is_disallowed: bool = False


class CardEvent(_TimelineEventBase):
    kind: Literal["card"] = "card"
    player_name: str = "Unknown"
    player_number: int | None = None
    card: Literal["yellow", "red", "yellow_red"] = "yellow"
    reason: str | None = None


class SubstitutionEvent(_TimelineEventBase):
    kind: Literal["substitution"] = "substitution"
    player_in: str = "Unknown"
    player_out: str = "Unknown"


class VARDecisionEvent(_TimelineEventBase):
    kind: Literal["var_decision"] = "var_decision"
    description: str = ""
    decision: str | None = None


class PenaltyMissedEvent(_TimelineEventBase):
    kind: Literal["penalty_missed"] = "penalty_missed"
    player_name: str = "Unknown"
    saved: bool = False


class PeriodStartEvent(_TimelineEventBase):
    kind: Literal["period_start"] = "period_start"


class PeriodEndEvent(_TimelineEventBase):
    kind: Literal["period_end"] = "period_end"


TimelineEvent = Annotated[
    Union[
        GoalEvent,
        CardEvent,
        SubstitutionEvent,
        VARDecisionEvent,
        PenaltyMissedEvent,
        PeriodStartEvent,
        PeriodEndEvent,
    ],
    Field(discriminator="kind"),
]


class TimelineGroups(BaseModel):
    goals: list[GoalEvent] = Field(default_factory=list)
    cards: list[CardEvent] = Field(default_factory=list)
    substitutions: list[SubstitutionEvent] = Field(default_factory=list)
    var_decisions: list[VARDecisionEvent] = Field(default_factory=list)
    penalties_missed: list[PenaltyMissedEvent] = Field(default_factory=list)
    periods: list[PeriodStartEvent | PeriodEndEvent] = Field(default_factory=list)
