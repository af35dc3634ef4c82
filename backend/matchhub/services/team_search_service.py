"""
backend/matchhub/services/team_search_service.py

Purpose:
    Team search across league team listings. A query matches when its
    normalized form is a substring of a team's normalized name or short name.
    Leagues whose listing cannot be fetched are skipped.

Dependencies:
    - matchhub.providers.competition_api
    - matchhub.providers.sports_feed
    - matchhub.services.team_id_mapping
    - matchhub.utils.name_normalizer
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from matchhub.config import settings
from matchhub.models.teams import TeamRef
from matchhub.providers.base import ProviderAdapter
from matchhub.providers.competition_api import competition_api_provider
from matchhub.providers.sports_feed import sports_feed_provider
from matchhub.services.team_id_mapping import feed_team_id_for
from matchhub.utils.name_normalizer import normalize_name

logger = logging.getLogger("matchhub.team_search")


def adapter_for_league(league_id: str) -> ProviderAdapter:
    """Sports-Feed ids carry underscores ("Soccer_SpainLaLiga"); bare codes are Competition-API."""
    return sports_feed_provider if "_" in league_id else competition_api_provider


def _dedup_key(team: TeamRef) -> str:
    if team.local_id is not None:
        return f"local:{team.local_id}"
    if team.provider_id:
        return f"feed:{team.provider_id}"
    return f"name:{normalize_name(team.display_name)}"


def _matches(team: TeamRef, needle: str) -> bool:
    return needle in normalize_name(team.name) or needle in normalize_name(team.short_name)


def _with_feed_id(team: TeamRef) -> TeamRef:
    if team.provider_id:
        return team
    feed_id = feed_team_id_for(team)
    return team.model_copy(update={"provider_id": feed_id}) if feed_id else team


async def search_teams_by_name(
    query: str,
    league_scope: Iterable[str] | None = None,
    limit: int | None = None,
) -> list[TeamRef]:
    needle = normalize_name(query)
    if len(needle) < settings.TEAM_SEARCH_MIN_QUERY_LENGTH:
        return []
    leagues = list(league_scope) if league_scope else settings.split_csv(settings.TEAM_SEARCH_DEFAULT_LEAGUES)

    listings = await asyncio.gather(
        *(adapter_for_league(league).fetch_league_teams(league) for league in leagues),
        return_exceptions=True,
    )

    results: list[TeamRef] = []
    seen: set[str] = set()
    for league, listing in zip(leagues, listings):
        if isinstance(listing, Exception):
            logger.warning("Team search skipped league %s: %s", league, listing)
            continue
        for team in listing:
            if not _matches(team, needle):
                continue
            key = _dedup_key(team)
            if key in seen:
                continue
            seen.add(key)
            results.append(_with_feed_id(team))
    if limit is not None:
        results = results[:limit]
    logger.debug("Team search %r over %d leagues: %d hits", query, len(leagues), len(results))
    return results
