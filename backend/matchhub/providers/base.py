"""
backend/matchhub/providers/base.py

Purpose:
    Shared adapter contract for the three upstream providers, the resolved
    provider-specific identifiers of a match, and the ProviderError taxonomy.
    Also implements the cached JSON GET every adapter builds on.

Dependencies:
    - httpx
    - matchhub.services.cache_service
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Any

import httpx

from matchhub.models.matches import (
    MatchDetailsFacet,
    MatchInjuries,
    MatchLineups,
    MatchPlayerStats,
    MatchRef,
    MatchTopPlayers,
    PollResult,
    StandingRow,
    StatisticRow,
)
from matchhub.models.teams import TeamRef
from matchhub.models.timeline import TimelineEvent
from matchhub.services.cache_service import CacheLayer, cache_layer

logger = logging.getLogger("matchhub.providers")


class ProviderError(Exception):
    """Transport, HTTP status or parse failure while asking a provider.

    "The provider has nothing" is never a ProviderError; adapters return an
    empty sequence or None for that.
    """

    def __init__(self, provider: str, endpoint: str, message: str) -> None:
        super().__init__(f"[{provider}] /{endpoint.lstrip('/')}: {message}")
        self.provider = provider
        self.endpoint = endpoint
        self.message = message


class ProviderTimeout(ProviderError):
    """A provider call exceeded its time budget."""


@dataclass(frozen=True)
class ResolvedMatch:
    """Provider-specific identifiers for a match known under foreign ids."""

    provider: str
    match_ref: MatchRef
    match_id: str | None = None
    home_team_id: str | None = None
    away_team_id: str | None = None
    league_id: str | None = None

    @property
    def has_teams(self) -> bool:
        return bool(self.home_team_id and self.away_team_id)


class ProviderAdapter(ABC):
    """Base adapter. Facets a provider cannot supply return None without I/O."""

    name: str = ""

    def __init__(self, cache: CacheLayer | None = None) -> None:
        self._cache = cache or cache_layer
        self._client: Any = None

    async def _request_json(
        self,
        url: str,
        *,
        endpoint: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        try:
            response = await self._client.get(url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            raise ProviderError(self.name, endpoint, f"transport error: {exc}") from exc
        status_code = int(getattr(response, "status_code", 0) or 0)
        if status_code == 404:
            logger.info("[%s] 404 for /%s, treating as no data", self.name, endpoint)
            return None
        if status_code >= 400:
            raise ProviderError(self.name, endpoint, f"HTTP {status_code}")
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(self.name, endpoint, f"invalid JSON: {exc}") from exc

    async def _cached_json(
        self,
        url: str,
        *,
        endpoint: str,
        call_kind: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        empty_call_kind: str | None = None,
    ) -> Any:
        return await self._cache.get_or_fetch(
            self.name,
            endpoint,
            params,
            call_kind,
            lambda: self._request_json(url, endpoint=endpoint, params=params, headers=headers),
            empty_call_kind=empty_call_kind,
        )

    @abstractmethod
    async def fetch_schedule_by_date(self, league_id: str, day: date) -> list[MatchRef]:
        """Matches of one league on one calendar day."""
        ...

    @abstractmethod
    async def resolve_match(self, match_ref: MatchRef) -> ResolvedMatch | None:
        """Map a (possibly foreign) MatchRef onto this provider's identifiers."""
        ...

    @abstractmethod
    async def fetch_match_details(self, resolved: ResolvedMatch) -> MatchDetailsFacet | None:
        ...

    @abstractmethod
    async def fetch_team_history(self, team_id: str, limit: int = 20) -> list[MatchRef]:
        """Recent matches of a team, most recent first where the provider orders them."""
        ...

    @abstractmethod
    async def fetch_league_teams(self, league_id: str) -> list[TeamRef]:
        ...

    async def fetch_lineups(self, resolved: ResolvedMatch) -> MatchLineups | None:
        return None

    async def fetch_statistics(self, resolved: ResolvedMatch) -> list[StatisticRow] | None:
        return None

    async def fetch_timeline(self, resolved: ResolvedMatch) -> list[TimelineEvent] | None:
        return None

    async def fetch_injuries(self, resolved: ResolvedMatch) -> MatchInjuries | None:
        return None

    async def fetch_top_players(self, resolved: ResolvedMatch) -> MatchTopPlayers | None:
        return None

    async def fetch_player_league_stats(self, resolved: ResolvedMatch) -> MatchPlayerStats | None:
        return None

    async def fetch_standings(self, league_id: str) -> list[StandingRow]:
        return []

    async def fetch_poll(self, resolved: ResolvedMatch) -> PollResult | None:
        return None

    async def aclose(self) -> None:
        if self._client is not None and hasattr(self._client, "aclose"):
            await self._client.aclose()
