"""
backend/matchhub/services/head_to_head_service.py

Purpose:
    Head-to-head engine. Finds fixtures between two teams in their (noisy,
    partial, possibly cross-provider) histories, deduplicates them per day
    and participant pair, orients scores onto the current home/away sides
    and folds them into an H2HRecord.

Notes:
    - The dedup key truncates to the calendar day: two fixtures between the
      same pair on one day collapse into one.
    - Pure function over its inputs; malformed histories or items are skipped.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from pydantic import ValidationError

from matchhub.models.head_to_head import H2HMatch, H2HRecord, RawFixture
from matchhub.models.matches import MatchRef
from matchhub.models.teams import TeamRef
from matchhub.utils import day_key, ensure_utc
from matchhub.utils.name_normalizer import normalize_name
from matchhub.utils.team_matching import teams_match

logger = logging.getLogger("matchhub.head_to_head")

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _coerce_fixture(item: Any) -> RawFixture | None:
    if isinstance(item, RawFixture):
        return item
    if isinstance(item, MatchRef):
        return RawFixture.from_match(item)
    if isinstance(item, dict):
        try:
            return RawFixture.model_validate(item)
        except ValidationError:
            return None
    return None


def _iter_fixtures(history: Any) -> Iterable[RawFixture]:
    if history is None or isinstance(history, (str, bytes, dict)):
        return
    try:
        items = list(history)
    except TypeError:
        return
    for item in items:
        fixture = _coerce_fixture(item)
        if fixture is not None:
            yield fixture


def dedup_key(fixture: RawFixture) -> str:
    return "|".join(
        (
            day_key(fixture.date),
            normalize_name(fixture.home.display_name),
            normalize_name(fixture.away.display_name),
        )
    )


def _involves(fixture: RawFixture, team: TeamRef) -> bool:
    return teams_match(fixture.home, team) or teams_match(fixture.away, team)


def _collect(
    fixtures: Iterable[RawFixture],
    opponent: TeamRef,
    seen: set[str],
    accepted: list[RawFixture],
) -> None:
    for fixture in fixtures:
        if fixture.home_score is None or fixture.away_score is None:
            continue
        if not _involves(fixture, opponent):
            continue
        key = dedup_key(fixture)
        if key in seen:
            continue
        seen.add(key)
        accepted.append(fixture)


def compute_h2h(
    home_team: TeamRef,
    away_team: TeamRef,
    home_history: Any,
    away_history: Any,
) -> H2HRecord:
    seen: set[str] = set()
    accepted: list[RawFixture] = []
    _collect(_iter_fixtures(home_history), away_team, seen, accepted)
    _collect(_iter_fixtures(away_history), home_team, seen, accepted)

    accepted.sort(key=lambda fixture: ensure_utc(fixture.date) if fixture.date else _OLDEST, reverse=True)

    record = H2HRecord()
    for fixture in accepted:
        side = "home" if teams_match(fixture.home, home_team) else "away"
        if side == "home":
            current_home, current_away = fixture.home_score, fixture.away_score
        else:
            current_home, current_away = fixture.away_score, fixture.home_score

        record.matches.append(
            H2HMatch(
                date=fixture.date,
                home_team_name=fixture.home.display_name,
                away_team_name=fixture.away.display_name,
                home_score=fixture.home_score,
                away_score=fixture.away_score,
                home_team_side=side,
            )
        )
        record.total_matches += 1
        record.home_goals += current_home
        record.away_goals += current_away
        if current_home > current_away:
            record.home_wins += 1
        elif current_home == current_away:
            record.draws += 1
        else:
            record.away_wins += 1

    logger.debug(
        "H2H %s vs %s: %d fixtures", home_team.display_name, away_team.display_name, record.total_matches
    )
    return record


def get_head_to_head(
    home_team: TeamRef,
    away_team: TeamRef,
    home_history: Any,
    away_history: Any,
) -> H2HRecord:
    return compute_h2h(home_team, away_team, home_history, away_history)
