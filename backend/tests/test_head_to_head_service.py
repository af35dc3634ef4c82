"""
backend/tests/test_head_to_head_service.py

Purpose:
    Head-to-head aggregation over two team histories: filtering, per-day
    dedup, side orientation and counting.
"""

from __future__ import annotations

from datetime import datetime, timezone

from matchhub.models.matches import MatchRef, MatchStatus, Score
from matchhub.models.teams import TeamRef
from matchhub.services.head_to_head_service import compute_h2h, get_head_to_head

_HOME = TeamRef(name="Flamengo")
_AWAY = TeamRef(name="Palmeiras")


def _fixture(day: int, home: str, away: str, home_score, away_score, hour: int = 20) -> dict:
    return {
        "date": datetime(2025, 3, day, hour, tzinfo=timezone.utc).isoformat(),
        "home": {"name": home},
        "away": {"name": away},
        "home_score": home_score,
        "away_score": away_score,
    }


def test_empty_histories_give_zero_record():
    record = get_head_to_head(_HOME, _AWAY, [], None)
    assert record.total_matches == 0
    assert record.home_wins == record.away_wins == record.draws == 0
    assert record.matches == []


def test_fixture_seen_in_both_histories_counts_once():
    shared = _fixture(2, "Flamengo", "Palmeiras", 2, 1)
    record = compute_h2h(_HOME, _AWAY, [shared], [dict(shared)])

    assert record.total_matches == 1
    assert record.home_wins == 1


def test_scores_are_oriented_to_current_sides():
    home_history = [
        _fixture(1, "Palmeiras", "Flamengo", 3, 0),
        _fixture(8, "Flamengo", "Palmeiras", 1, 1),
        _fixture(15, "Flamengo", "Santos", 4, 0),
    ]
    record = compute_h2h(_HOME, _AWAY, home_history, [])

    assert record.total_matches == 2
    assert record.away_wins == 1
    assert record.draws == 1
    assert record.home_goals == 1
    assert record.away_goals == 4
    assert record.home_wins + record.away_wins + record.draws == record.total_matches
    latest, earlier = record.matches
    assert latest.home_team_side == "home"
    assert earlier.home_team_side == "away"
    assert earlier.home_team_name == "Palmeiras"
    assert earlier.home_score == 3


def test_fixtures_without_scores_or_malformed_items_are_skipped():
    history = [
        _fixture(1, "Flamengo", "Palmeiras", None, None),
        {"date": "bad", "home": "not a team"},
        "garbage",
        _fixture(2, "Flamengo", "Palmeiras", 0, 2),
    ]
    record = compute_h2h(_HOME, _AWAY, history, "not a list")
    assert record.total_matches == 1
    assert record.away_wins == 1


def test_accepts_match_refs_from_providers():
    match = MatchRef(
        id="1",
        date=datetime(2025, 4, 1, tzinfo=timezone.utc),
        status=MatchStatus.FINISHED,
        home=TeamRef(name="Palmeiras"),
        away=TeamRef(name="Flamengo"),
        score=Score(home=0, away=1),
    )
    record = compute_h2h(_HOME, _AWAY, [match], [])
    assert record.total_matches == 1
    assert record.home_wins == 1
    assert record.matches[0].home_team_side == "away"


def test_matches_sorted_most_recent_first_with_undated_last():
    undated = _fixture(1, "Flamengo", "Palmeiras", 1, 0)
    undated["date"] = None
    history = [undated, _fixture(3, "Flamengo", "Palmeiras", 2, 0), _fixture(20, "Palmeiras", "Flamengo", 2, 2)]
    record = compute_h2h(_HOME, _AWAY, history, [])
    assert [m.date.day if m.date else None for m in record.matches] == [20, 3, None]
