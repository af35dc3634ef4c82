"""
backend/matchhub/services/statistics_service.py

Purpose:
    Pair per-team raw counters into ordered {type, home_value, away_value}
    rows. A row is emitted only when both sides report a value; a metric one
    side lacks is dropped instead of being shown as zero.

Dependencies:
    - matchhub.models.matches
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from matchhub.models.matches import StatisticRow

# (raw key, label, is_percent), in display order.
StatLabel = tuple[str, str, bool]

SPORTS_FEED_STATS: tuple[StatLabel, ...] = (
    ("ballPossessionPercentage", "Ball Possession", True),
    ("passes", "Passes", False),
    ("passesAccurate", "Accurate Passes", False),
    ("passAccuracy", "Pass Accuracy", True),
    ("shotsTotal", "Total Shots", False),
    ("shotsOnTarget", "Shots on Goal", False),
    ("shotsOffTarget", "Shots off Goal", False),
    ("shotsBlocked", "Blocked Shots", False),
    ("shotsSaved", "Goalkeeper Saves", False),
    ("tackles", "Tackles", False),
    ("interceptions", "Interceptions", False),
    ("clearances", "Clearances", False),
    ("cornerKicks", "Corner Kicks", False),
    ("crosses", "Crosses", False),
    ("freeKicks", "Free Kicks", False),
    ("offsides", "Offsides", False),
    ("fouls", "Fouls", False),
    ("yellowCards", "Yellow Cards", False),
    ("redCards", "Red Cards", False),
    ("duelsWon", "Duels Won", False),
    ("aerialDuelsWon", "Aerial Duels Won", False),
    ("bigChances", "Big Chances", False),
    ("bigChancesMissed", "Big Chances Missed", False),
    ("touchesInBox", "Touches in Box", False),
    ("dribblesSuccessful", "Successful Dribbles", False),
)

COMPETITION_API_STATS: tuple[StatLabel, ...] = (
    ("ball_possession", "Ball Possession", True),
    ("shots", "Total Shots", False),
    ("shots_on_goal", "Shots on Goal", False),
    ("shots_off_goal", "Shots off Goal", False),
    ("saves", "Goalkeeper Saves", False),
    ("corner_kicks", "Corner Kicks", False),
    ("free_kicks", "Free Kicks", False),
    ("offsides", "Offsides", False),
    ("fouls", "Fouls", False),
    ("yellow_cards", "Yellow Cards", False),
    ("red_cards", "Red Cards", False),
)

BROADCAST_FEED_STATS: tuple[StatLabel, ...] = (
    ("possessionPct", "Ball Possession", True),
    ("totalPasses", "Passes", False),
    ("accuratePasses", "Accurate Passes", False),
    ("totalShots", "Total Shots", False),
    ("shotsOnTarget", "Shots on Goal", False),
    ("blockedShots", "Blocked Shots", False),
    ("saves", "Goalkeeper Saves", False),
    ("effectiveTackles", "Tackles", False),
    ("interceptions", "Interceptions", False),
    ("effectiveClearance", "Clearances", False),
    ("wonCorners", "Corner Kicks", False),
    ("totalCrosses", "Crosses", False),
    ("offsides", "Offsides", False),
    ("foulsCommitted", "Fouls", False),
    ("yellowCards", "Yellow Cards", False),
    ("redCards", "Red Cards", False),
)


def _coerce(value: Any) -> int | float | str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip().rstrip("%").strip()
    if not text or text == "-":
        return None
    try:
        number = float(text)
    except ValueError:
        return text
    return int(number) if number.is_integer() else number


def _format(value: int | float | str, is_percent: bool) -> int | float | str:
    if is_percent and isinstance(value, (int, float)):
        return f"{round(value)}%"
    return value


def pair_statistics(
    home: Mapping[str, Any] | None,
    away: Mapping[str, Any] | None,
    labels: Iterable[StatLabel] = SPORTS_FEED_STATS,
) -> list[StatisticRow]:
    """Pair two counter mappings into rows, in label order."""
    if not isinstance(home, Mapping) or not isinstance(away, Mapping):
        return []
    rows: list[StatisticRow] = []
    for key, label, is_percent in labels:
        home_value = _coerce(home.get(key))
        away_value = _coerce(away.get(key))
        if home_value is None or away_value is None:
            continue
        rows.append(
            StatisticRow(
                type=label,
                home_value=_format(home_value, is_percent),
                away_value=_format(away_value, is_percent),
            )
        )
    return rows


def counters_from_named_list(items: Iterable[Mapping[str, Any]] | None) -> dict[str, Any]:
    """[{name, displayValue|value}] -> {name: value}, as boxscores report them."""
    counters: dict[str, Any] = {}
    for item in items or []:
        if not isinstance(item, Mapping) or not item.get("name"):
            continue
        value = item.get("displayValue")
        if value is None:
            value = item.get("value")
        counters[str(item["name"])] = value
    return counters
