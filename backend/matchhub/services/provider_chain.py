"""
backend/matchhub/services/provider_chain.py

Purpose:
    Decide which provider chain a match-details request follows. Matches the
    Sports-Feed can identify take the primary (multi-provider) chain; all
    others fall back to a single Competition-API details call.

Dependencies:
    - matchhub.config
    - matchhub.services.team_id_mapping
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from matchhub.config import settings
from matchhub.models.matches import MatchRef
from matchhub.services.team_id_mapping import feed_team_id_for


@dataclass(frozen=True)
class PrimaryChain:
    reason: str


@dataclass(frozen=True)
class FallbackChain:
    reason: str


ProviderChain = Union[PrimaryChain, FallbackChain]


def _has_sport_prefix(league_id: str) -> bool:
    return any(prefix in league_id for prefix in settings.split_csv(settings.SPORTS_FEED_SPORT_PREFIXES))


def classify_provider_chain(match_ref: MatchRef) -> ProviderChain:
    """Tag a MatchRef with the chain that can serve it, plus the deciding signal."""
    if match_ref.external_ids.get("sports_feed"):
        return PrimaryChain(reason="sports_feed_match_id")
    for team in (match_ref.home, match_ref.away):
        if team.provider_id:
            return PrimaryChain(reason="sports_feed_team_id")
    if match_ref.league.id and _has_sport_prefix(match_ref.league.id):
        return PrimaryChain(reason="sports_feed_league_id")
    if feed_team_id_for(match_ref.home) or feed_team_id_for(match_ref.away):
        return PrimaryChain(reason="known_team_mapping")
    return FallbackChain(reason="no_sports_feed_identifier")
