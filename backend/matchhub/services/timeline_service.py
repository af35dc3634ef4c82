"""
backend/matchhub/services/timeline_service.py

Purpose:
    Timeline transformer: converts the Sports-Feed chronological event feed
    (timelines[].events[]) into typed TimelineEvents with home/away side
    attribution through the entity matcher. Unmapped event types are
    dropped; missing sub-payloads (assist, reason, ...) are tolerated.

Dependencies:
    - matchhub.models.timeline
    - matchhub.utils.team_matching
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Iterable

from matchhub.models.teams import TeamRef
from matchhub.models.timeline import (
    CardEvent,
    GoalEvent,
    PenaltyMissedEvent,
    PeriodEndEvent,
    PeriodStartEvent,
    Side,
    SubstitutionEvent,
    TimelineEvent,
    TimelineGroups,
    VARDecisionEvent,
)
from matchhub.utils.team_matching import teams_match

logger = logging.getLogger("matchhub.timeline")

_LEADING_INT_RE = re.compile(r"^\s*(\d+)")
_DISALLOWED_HINTS = ("disallowed", "offside", "ruled out")


def minute_sort_key(minute: str | None) -> int:
    match = _LEADING_INT_RE.match(str(minute or ""))
    return int(match.group(1)) if match else 0


def resolve_side(team: TeamRef | None, home_team: TeamRef | None) -> Side | None:
    """"home" when the event team is the home team, "away" otherwise, None without a team."""
    if team is None or not (team.provider_id or team.name):
        return None
    return "home" if teams_match(team, home_team) else "away"


def sort_events(events: Iterable[TimelineEvent]) -> list[TimelineEvent]:
    """Stable order by leading minute digits; the clock strings themselves stay verbatim."""
    return sorted(events, key=lambda event: minute_sort_key(event.minute))


def _raw_name(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("rawName") or value.get("localizedName") or "").strip()
    return str(value or "").strip()


def _player_name(player: Any) -> str:
    if not isinstance(player, dict):
        return "Unknown"
    name = _raw_name(player.get("name"))
    if name:
        return name
    joined = f"{_raw_name(player.get('firstName'))} {_raw_name(player.get('lastName'))}".strip()
    return joined or "Unknown"


def _jersey(player: Any) -> int | None:
    if not isinstance(player, dict):
        return None
    try:
        return int(str(player.get("jerseyNumber")).strip())
    except (TypeError, ValueError):
        return None


def _period(event: dict, minute: str) -> int:
    raw = None
    for key in ("period", "playingPeriod"):
        value = event.get(key)
        if isinstance(value, dict) and value.get("number") is not None:
            raw = value["number"]
            break
    if str(raw) == "2" or minute_sort_key(minute) > 45:
        return 2
    return 1


def _goal(event: dict, shared: dict, *, disallowed: bool = False) -> GoalEvent:
    description = str(event.get("description") or "")
    lowered = description.lower()
    change_type = event.get("scoreChangeType")
    assistants = event.get("assistantPlayers") or []
    assist = _player_name(assistants[0]) if assistants and isinstance(assistants[0], dict) else None
    is_disallowed = (
        disallowed
        or change_type == "Disallowed"
        or event.get("isDisallowed") is True
        or event.get("status") == "Disallowed"
        or any(hint in lowered for hint in _DISALLOWED_HINTS)
        or ("var" in lowered and "no goal" in lowered)
    )
    return GoalEvent(
        **shared,
        player_name=_player_name(event.get("player")),
        player_number=_jersey(event.get("player")),
        assist_name=assist,
        is_penalty=change_type == "Penalty" or "penalty" in lowered,
        is_own_goal=change_type == "OwnGoal" or "own goal" in lowered,
        is_disallowed=is_disallowed,
    )


def _card(event: dict, shared: dict) -> CardEvent:
    card_type = event.get("cardType")
    if card_type == "Red" or event.get("cardColor") == "Red":
        card = "red"
    elif card_type in ("YellowRed", "SecondYellow"):
        card = "yellow_red"
    else:
        card = "yellow"
    return CardEvent(
        **shared,
        player_name=_player_name(event.get("player")),
        player_number=_jersey(event.get("player")),
        card=card,
        reason=event.get("description") or event.get("foulDescription") or None,
    )


def _substitution(event: dict, shared: dict) -> SubstitutionEvent:
    return SubstitutionEvent(
        **shared,
        player_in=_player_name(event.get("playerIn")),
        player_out=_player_name(event.get("playerOut")),
    )


def _var(event: dict, shared: dict) -> VARDecisionEvent:
    return VARDecisionEvent(
        **shared,
        description=str(event.get("description") or "VAR review"),
        decision=event.get("varDecision") or event.get("decision") or None,
    )


def _penalty_missed(event: dict, shared: dict) -> PenaltyMissedEvent:
    return PenaltyMissedEvent(
        **shared,
        player_name=_player_name(event.get("player")),
        saved=event.get("eventType") == "PenaltySaved",
    )


_BUILDERS: dict[str, Callable[[dict, dict], TimelineEvent]] = {
    "ScoreChange": _goal,
    "GoalDisallowed": lambda event, shared: _goal(event, shared, disallowed=True),
    "DisallowedGoal": lambda event, shared: _goal(event, shared, disallowed=True),
    "Card": _card,
    "Substitution": _substitution,
    "VAR": _var,
    "VideoAssistantReferee": _var,
    "PenaltyMissed": _penalty_missed,
    "PenaltySaved": _penalty_missed,
    "PeriodStart": lambda event, shared: PeriodStartEvent(**shared),
    "PeriodEnd": lambda event, shared: PeriodEndEvent(**shared),
}

_TEAMLESS_TYPES = frozenset({"PeriodStart", "PeriodEnd"})


def _raw_events(raw_feed: Any) -> Iterable[dict]:
    if not isinstance(raw_feed, dict):
        return
    for timeline in raw_feed.get("timelines") or []:
        if not isinstance(timeline, dict):
            continue
        for event in timeline.get("events") or []:
            if isinstance(event, dict):
                yield event


def transform_timeline(raw_feed: Any, home_team: TeamRef | None = None) -> list[TimelineEvent]:
    """Typed, minute-ordered events from a raw Sports-Feed timeline payload."""
    events: list[TimelineEvent] = []
    dropped = 0
    for event in _raw_events(raw_feed):
        event_type = str(event.get("eventType") or "")
        builder = _BUILDERS.get(event_type)
        if builder is None:
            dropped += 1
            continue
        clock = event.get("gameClock") if isinstance(event.get("gameClock"), dict) else {}
        minute = str(clock.get("minutes") or event.get("time") or "0")
        team_id = "" if event_type in _TEAMLESS_TYPES else str(event.get("teamId") or "")
        shared = {
            "minute": minute,
            "team_id": team_id,
            "side": resolve_side(TeamRef(provider_id=team_id), home_team) if team_id else None,
            "period": _period(event, minute),
        }
        events.append(builder(event, shared))
    if dropped:
        logger.debug("Dropped %d timeline events with unmapped types", dropped)
    return sort_events(events)


def get_timeline(raw_feed: Any, home_team: TeamRef | None) -> list[TimelineEvent]:
    return transform_timeline(raw_feed, home_team)


def group_timeline(events: Iterable[TimelineEvent]) -> TimelineGroups:
    groups = TimelineGroups()
    buckets = {
        "goal": groups.goals,
        "card": groups.cards,
        "substitution": groups.substitutions,
        "var_decision": groups.var_decisions,
        "penalty_missed": groups.penalties_missed,
        "period_start": groups.periods,
        "period_end": groups.periods,
    }
    for event in events:
        buckets[event.kind].append(event)
    return groups
