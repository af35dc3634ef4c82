"""
backend/tests/test_timeline_service.py

Purpose:
    Raw Sports-Feed timeline payloads into typed, ordered events.
"""

from __future__ import annotations

from matchhub.models.teams import TeamRef
from matchhub.models.timeline import CardEvent, GoalEvent, PenaltyMissedEvent, SubstitutionEvent, VARDecisionEvent
from matchhub.services.timeline_service import get_timeline, group_timeline, resolve_side

_HOME_ID = "SportRadar_Soccer_SpainLaLiga_2025_Team_2829"
_AWAY_ID = "SportRadar_Soccer_SpainLaLiga_2025_Team_2817"
_HOME = TeamRef(provider_id=_HOME_ID, name="Real Madrid")


def _feed(*events: dict) -> dict:
    return {"timelines": [{"events": list(events)}]}


def test_events_are_typed_sided_and_ordered_by_minute():
    feed = _feed(
        {"eventType": "Card", "teamId": _AWAY_ID, "gameClock": {"minutes": "67"}, "cardType": "Red",
         "player": {"name": {"rawName": "Gavi"}}},
        {"eventType": "ScoreChange", "teamId": _HOME_ID, "gameClock": {"minutes": "12"},
         "player": {"firstName": {"rawName": "Vinícius"}, "lastName": {"rawName": "Júnior"}, "jerseyNumber": "7"},
         "assistantPlayers": [{"name": {"rawName": "Bellingham"}}]},
        {"eventType": "Substitution", "teamId": _HOME_ID, "gameClock": {"minutes": "45+2"},
         "playerIn": {"name": {"rawName": "Modric"}}, "playerOut": {"name": {"rawName": "Kroos"}}},
    )

    events = get_timeline(feed, _HOME)

    assert [event.minute for event in events] == ["12", "45+2", "67"]
    goal, substitution, card = events
    assert isinstance(goal, GoalEvent)
    assert goal.side == "home"
    assert goal.player_name == "Vinícius Júnior"
    assert goal.player_number == 7
    assert goal.assist_name == "Bellingham"
    assert isinstance(substitution, SubstitutionEvent)
    assert substitution.player_in == "Modric"
    assert isinstance(card, CardEvent)
    assert card.card == "red"
    assert card.side == "away"
    assert card.period == 2


def test_unmapped_event_types_are_dropped():
    feed = _feed(
        {"eventType": "ThrowIn", "teamId": _HOME_ID, "gameClock": {"minutes": "3"}},
        {"eventType": "Card", "teamId": _HOME_ID, "gameClock": {"minutes": "5"}},
    )
    events = get_timeline(feed, _HOME)
    assert len(events) == 1
    assert events[0].kind == "card"
    assert events[0].card == "yellow"


def test_goal_flags_from_score_change_type_and_description():
    feed = _feed(
        {"eventType": "ScoreChange", "teamId": _HOME_ID, "time": "30", "scoreChangeType": "Penalty"},
        {"eventType": "ScoreChange", "teamId": _AWAY_ID, "time": "50", "scoreChangeType": "OwnGoal"},
        {"eventType": "GoalDisallowed", "teamId": _HOME_ID, "time": "70"},
    )
    penalty, own_goal, disallowed = get_timeline(feed, _HOME)
    assert penalty.is_penalty and not penalty.is_own_goal
    assert own_goal.is_own_goal
    assert disallowed.is_disallowed
    assert penalty.player_name == "Unknown"


def test_var_penalty_and_period_events():
    feed = _feed(
        {"eventType": "PeriodStart", "teamId": _HOME_ID, "gameClock": {"minutes": "46"}, "period": {"number": "2"}},
        {"eventType": "VAR", "teamId": _AWAY_ID, "gameClock": {"minutes": "80"}},
        {"eventType": "PenaltySaved", "teamId": _AWAY_ID, "gameClock": {"minutes": "88"},
         "player": {"name": {"rawName": "Lewandowski"}}},
    )
    period, var, penalty = get_timeline(feed, _HOME)
    assert period.kind == "period_start"
    assert period.team_id == ""
    assert period.side is None
    assert period.period == 2
    assert isinstance(var, VARDecisionEvent)
    assert var.description == "VAR review"
    assert isinstance(penalty, PenaltyMissedEvent)
    assert penalty.saved is True


def test_malformed_feeds_yield_no_events():
    assert get_timeline(None, _HOME) == []
    assert get_timeline({"timelines": "nope"}, _HOME) == []
    assert get_timeline({"timelines": [{"events": [None, 3]}]}, _HOME) == []


def test_resolve_side_without_team_is_none():
    assert resolve_side(None, _HOME) is None
    assert resolve_side(TeamRef(), _HOME) is None
    assert resolve_side(TeamRef(provider_id=_HOME_ID), _HOME) == "home"


def test_group_timeline_buckets_by_kind():
    feed = _feed(
        {"eventType": "ScoreChange", "teamId": _HOME_ID, "time": "10"},
        {"eventType": "Card", "teamId": _AWAY_ID, "time": "20"},
        {"eventType": "PeriodEnd", "time": "45"},
    )
    groups = group_timeline(get_timeline(feed, _HOME))
    assert len(groups.goals) == 1
    assert len(groups.cards) == 1
    assert len(groups.periods) == 1
    assert groups.substitutions == []
