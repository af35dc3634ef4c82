"""
backend/matchhub/services/match_details_service.py

Purpose:
    Aggregation orchestrator. Turns one MatchRef into an EnrichedMatch by
    resolving the match on every configured provider and fetching each facet
    concurrently from its preferred provider, falling back down the list on
    empty results or errors.

    Per-request lifecycle:
        idle -> fetching -> merging -> ready | partial_ready | failed
        idle | fetching | merging -> discarded   (caller token cancelled)

    Concurrent requests for the same match share one in-flight fetch. A
    cancelled caller stops waiting at merge time, while the shared fetch runs
    to completion and still populates the provider cache.

Dependencies:
    - matchhub.providers.*
    - matchhub.services.provider_chain
    - matchhub.services.head_to_head_service
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping

from pydantic import BaseModel, Field

from matchhub.config import settings
from matchhub.models.head_to_head import H2HRecord
from matchhub.models.matches import (
    PRE_GAME_STATUSES,
    EnrichedMatch,
    LeagueStandPositions,
    MatchDetailsFacet,
    MatchRef,
    MatchStatus,
    RecentMatches,
    StandingRow,
)
from matchhub.models.teams import TeamRef
from matchhub.providers.base import ProviderAdapter, ProviderError, ProviderTimeout, ResolvedMatch
from matchhub.providers.broadcast_feed import broadcast_feed_provider
from matchhub.providers.competition_api import competition_api_provider
from matchhub.providers.sports_feed import sports_feed_provider
from matchhub.services.head_to_head_service import compute_h2h
from matchhub.services.provider_chain import FallbackChain, ProviderChain, classify_provider_chain
from matchhub.utils.team_matching import find_matching_team

logger = logging.getLogger("matchhub.match_details")

FACET_PREFERENCES: dict[str, tuple[str, ...]] = {
    "details": ("sports_feed", "broadcast_feed"),
    "lineups": ("sports_feed", "competition_api", "broadcast_feed"),
    "statistics": ("sports_feed", "broadcast_feed", "competition_api"),
    "timeline": ("sports_feed", "broadcast_feed", "competition_api"),
    "injuries": ("sports_feed",),
    "top_players": ("sports_feed",),
    "player_league_stats": ("sports_feed",),
    "standings": ("sports_feed", "competition_api"),
    "recent_matches": ("sports_feed", "competition_api", "broadcast_feed"),
    "poll": ("sports_feed",),
}

IN_GAME_FACETS = frozenset({"statistics", "timeline"})


class RequestState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    MERGING = "merging"
    READY = "ready"
    PARTIAL_READY = "partial_ready"
    FAILED = "failed"
    DISCARDED = "discarded"


_TRANSITIONS: dict[RequestState, frozenset[RequestState]] = {
    RequestState.IDLE: frozenset({RequestState.FETCHING, RequestState.DISCARDED}),
    RequestState.FETCHING: frozenset({RequestState.MERGING, RequestState.DISCARDED}),
    RequestState.MERGING: frozenset(
        {RequestState.READY, RequestState.PARTIAL_READY, RequestState.FAILED, RequestState.DISCARDED}
    ),
}


class InvalidStateTransition(RuntimeError):
    pass


class RequestToken:
    """Cancellation handle a caller keeps for one match-details request."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class _RequestLifecycle:
    def __init__(self, key: str) -> None:
        self.key = key
        self.state = RequestState.IDLE

    def advance(self, new_state: RequestState) -> None:
        if new_state not in _TRANSITIONS.get(self.state, frozenset()):
            raise InvalidStateTransition(f"{self.state.value} -> {new_state.value}")
        logger.debug("Match details %s: %s -> %s", self.key, self.state.value, new_state.value)
        self.state = new_state


class MatchDetailsOutcome(BaseModel):
    state: RequestState
    match: EnrichedMatch | None = None
    facet_errors: dict[str, str] = Field(default_factory=dict)

    @property
    def discarded(self) -> bool:
        return self.state is RequestState.DISCARDED


@dataclass
class _FetchResult:
    chain: ProviderChain
    facets: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)


FacetFetch = Callable[[ProviderAdapter, ResolvedMatch], Awaitable[Any]]


def _has_content(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple, dict, str)):
        return bool(value)
    if isinstance(value, BaseModel):
        return any(_has_content(getattr(value, name)) for name in type(value).model_fields)
    return True


def _has_base_match(facets: Mapping[str, Any]) -> bool:
    details = facets.get("details")
    return details is not None and details.match is not None


async def _bounded(provider: str, endpoint: str, awaitable: Awaitable[Any]) -> Any:
    timeout = settings.PROVIDER_CALL_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise ProviderTimeout(provider, endpoint, f"no response within {timeout}s") from exc


class _ResolutionContext:
    """Per-fetch memo of provider resolution tasks; each is started at most once."""

    def __init__(self, match_ref: MatchRef) -> None:
        self.match_ref = match_ref
        self._tasks: dict[str, asyncio.Task] = {}

    async def resolve(self, provider: ProviderAdapter) -> ResolvedMatch | None:
        task = self._tasks.get(provider.name)
        if task is None:
            task = asyncio.ensure_future(_bounded(provider.name, "resolve", provider.resolve_match(self.match_ref)))
            self._tasks[provider.name] = task
        return await task

    async def aclose(self) -> None:
        pending = [task for task in self._tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


class MatchDetailsService:
    def __init__(self, providers: Mapping[str, ProviderAdapter] | None = None) -> None:
        if providers is None:
            providers = {
                adapter.name: adapter
                for adapter in (sports_feed_provider, competition_api_provider, broadcast_feed_provider)
            }
        self._providers = dict(providers)
        self._in_flight: dict[str, asyncio.Task] = {}

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    @staticmethod
    def request_key(match_ref: MatchRef) -> str:
        return match_ref.external_ids.get("sports_feed") or match_ref.id

    def providers_for(self, facet: str) -> list[ProviderAdapter]:
        enabled = set(settings.split_csv(settings.PROVIDER_PREFERENCE))
        return [
            self._providers[name]
            for name in FACET_PREFERENCES.get(facet, ())
            if name in enabled and name in self._providers
        ]

    # -- facet plan ----------------------------------------------------------

    async def _first_available(
        self,
        ctx: _ResolutionContext,
        facet: str,
        fetch: FacetFetch,
        errors: dict[str, str],
    ) -> Any:
        for provider in self.providers_for(facet):
            try:
                resolved = await ctx.resolve(provider)
                if resolved is None:
                    continue
                result = await _bounded(provider.name, facet, fetch(provider, resolved))
            except ProviderError as exc:
                logger.warning("Facet %s failed on %s: %s", facet, provider.name, exc)
                errors[facet] = str(exc)
                continue
            if _has_content(result):
                errors.pop(facet, None)
                return result
        return None

    @staticmethod
    async def _team_histories(provider: ProviderAdapter, resolved: ResolvedMatch, limit: int) -> RecentMatches | None:
        if not (resolved.home_team_id or resolved.away_team_id):
            return None
        home, away = await asyncio.gather(
            provider.fetch_team_history(resolved.home_team_id, limit) if resolved.home_team_id else _empty(),
            provider.fetch_team_history(resolved.away_team_id, limit) if resolved.away_team_id else _empty(),
        )
        return RecentMatches(home=home, away=away)

    async def _recent_matches(self, provider: ProviderAdapter, resolved: ResolvedMatch) -> RecentMatches | None:
        histories = await self._team_histories(provider, resolved, settings.RECENT_MATCHES_LIMIT)
        if histories is None:
            return None
        limit = settings.RECENT_MATCHES_LIMIT
        return RecentMatches(
            home=[m for m in histories.home if m.status is MatchStatus.FINISHED][:limit],
            away=[m for m in histories.away if m.status is MatchStatus.FINISHED][:limit],
        )

    @staticmethod
    async def _standings(provider: ProviderAdapter, resolved: ResolvedMatch) -> list[StandingRow]:
        league_id = resolved.league_id or resolved.match_ref.league.id
        if not league_id:
            return []
        return await provider.fetch_standings(league_id)

    def _plan(self, match_ref: MatchRef) -> dict[str, FacetFetch]:
        plan: dict[str, FacetFetch] = {
            "details": lambda p, r: p.fetch_match_details(r),
            "lineups": lambda p, r: p.fetch_lineups(r),
            "statistics": lambda p, r: p.fetch_statistics(r),
            "timeline": lambda p, r: p.fetch_timeline(r),
            "injuries": lambda p, r: p.fetch_injuries(r),
            "top_players": lambda p, r: p.fetch_top_players(r),
            "player_league_stats": lambda p, r: p.fetch_player_league_stats(r),
            "standings": self._standings,
            "recent_matches": self._recent_matches,
            "poll": lambda p, r: p.fetch_poll(r),
        }
        if match_ref.status in PRE_GAME_STATUSES:
            for facet in IN_GAME_FACETS:
                plan.pop(facet)
        return plan

    async def _primary(self, match_ref: MatchRef, result: _FetchResult) -> None:
        ctx = _ResolutionContext(match_ref)
        plan = self._plan(match_ref)
        try:
            outcomes = await asyncio.gather(
                *(self._first_available(ctx, facet, fetch, result.errors) for facet, fetch in plan.items()),
                return_exceptions=True,
            )
        finally:
            await ctx.aclose()
        for facet, value in zip(plan, outcomes):
            if isinstance(value, Exception):
                logger.error("Facet %s crashed for %s: %r", facet, match_ref.id, value)
                result.errors[facet] = repr(value)
            elif _has_content(value):
                result.facets[facet] = value

    async def _fallback(self, match_ref: MatchRef, result: _FetchResult) -> None:
        provider = self._providers.get("competition_api")
        if provider is None or provider.name not in settings.split_csv(settings.PROVIDER_PREFERENCE):
            return
        try:
            resolved = await _bounded(provider.name, "resolve", provider.resolve_match(match_ref))
            if resolved is None:
                return
            details = await _bounded(provider.name, "details", provider.fetch_match_details(resolved))
        except ProviderError as exc:
            logger.warning("Fallback details failed for %s: %s", match_ref.id, exc)
            result.errors["details"] = str(exc)
            return
        if not _has_content(details):
            return
        result.errors.pop("details", None)
        partial: MatchDetailsFacet | None = result.facets.get("details")
        if partial is not None:
            details = details.model_copy(
                update={
                    name: getattr(partial, name)
                    for name in type(details).model_fields
                    if getattr(details, name) is None and getattr(partial, name) is not None
                }
            )
        result.facets["details"] = details

    async def _fetch(self, match_ref: MatchRef) -> _FetchResult:
        chain = classify_provider_chain(match_ref)
        result = _FetchResult(chain=chain)
        if not isinstance(chain, FallbackChain):
            await self._primary(match_ref, result)
            if _has_base_match(result.facets):
                return result
            logger.info("Primary chain has no base match for %s, trying fallback", match_ref.id)
        else:
            logger.info("Fallback chain for %s (%s)", match_ref.id, chain.reason)
        await self._fallback(match_ref, result)
        return result

    # -- merge ---------------------------------------------------------------

    @staticmethod
    def _merge_team(original: TeamRef, fetched: TeamRef) -> TeamRef:
        return fetched.model_copy(
            update={
                "local_id": fetched.local_id if fetched.local_id is not None else original.local_id,
                "provider_id": fetched.provider_id or original.provider_id,
                "name": fetched.name or original.name,
                "short_name": fetched.short_name or original.short_name,
                "logo_url": fetched.logo_url or original.logo_url,
                "external_ids": {**original.external_ids, **fetched.external_ids},
            }
        )

    def _base_match(self, match_ref: MatchRef, details: MatchDetailsFacet | None) -> MatchRef:
        if details is None or details.match is None:
            return match_ref
        fetched = details.match
        return fetched.model_copy(
            update={
                "id": match_ref.id,
                "date": fetched.date or match_ref.date,
                "home": self._merge_team(match_ref.home, fetched.home),
                "away": self._merge_team(match_ref.away, fetched.away),
                "league": fetched.league if fetched.league.id else match_ref.league,
                "external_ids": {**match_ref.external_ids, **fetched.external_ids},
            }
        )

    @staticmethod
    def _stand_positions(base: MatchRef, rows: list[StandingRow] | None) -> LeagueStandPositions | None:
        if not rows:
            return None

        def _position(team: TeamRef) -> int | None:
            found = find_matching_team(team, [row.team for row in rows])
            if found is None:
                return None
            return next(row.position for row in rows if row.team is found)

        positions = LeagueStandPositions(home=_position(base.home), away=_position(base.away))
        if positions.home is None and positions.away is None:
            return None
        return positions

    def _merge(self, match_ref: MatchRef, fetched: _FetchResult) -> tuple[RequestState, EnrichedMatch]:
        facets = fetched.facets
        details: MatchDetailsFacet | None = facets.get("details")
        base = self._base_match(match_ref, details)
        in_game = base.status not in PRE_GAME_STATUSES

        statistics = facets.get("statistics") or (details.statistics if details and in_game else None)
        timeline = facets.get("timeline") or (details.timeline if details and in_game else None)
        poll = facets.get("poll")

        enriched = EnrichedMatch(
            **dict(base),
            game_info=details.game_info if details else None,
            lineups=facets.get("lineups") or (details.lineups if details else None),
            statistics=statistics or None,
            timeline=timeline or None,
            injuries=facets.get("injuries"),
            top_players=facets.get("top_players"),
            player_league_stats=facets.get("player_league_stats"),
            league_stand_positions=self._stand_positions(base, facets.get("standings")),
            recent_matches=facets.get("recent_matches"),
            poll_result=poll if poll is not None and poll.options else None,
        )
        if details is not None and details.match is not None:
            return RequestState.READY, enriched
        if facets:
            return RequestState.PARTIAL_READY, enriched
        return RequestState.FAILED, EnrichedMatch(**dict(match_ref))

    # -- public --------------------------------------------------------------

    async def _shared_fetch(self, match_ref: MatchRef) -> _FetchResult:
        key = self.request_key(match_ref)
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch(match_ref))
            self._in_flight[key] = task

            def _release(done: asyncio.Task, key: str = key) -> None:
                if self._in_flight.get(key) is done:
                    del self._in_flight[key]

            task.add_done_callback(_release)
        else:
            logger.debug("Joining in-flight fetch for %s", key)
        return await asyncio.shield(task)

    async def load_match_details(self, match_ref: MatchRef, token: RequestToken | None = None) -> MatchDetailsOutcome:
        token = token or RequestToken()
        lifecycle = _RequestLifecycle(self.request_key(match_ref))
        if token.cancelled:
            lifecycle.advance(RequestState.DISCARDED)
            return MatchDetailsOutcome(state=lifecycle.state)

        lifecycle.advance(RequestState.FETCHING)
        fetched = await self._shared_fetch(match_ref)
        if token.cancelled:
            lifecycle.advance(RequestState.DISCARDED)
            logger.info("Discarding match details for %s, caller cancelled", lifecycle.key)
            return MatchDetailsOutcome(state=lifecycle.state, facet_errors=dict(fetched.errors))

        lifecycle.advance(RequestState.MERGING)
        state, enriched = self._merge(match_ref, fetched)
        lifecycle.advance(state)
        logger.info(
            "Match details %s: %s (%d facets, %d errors)",
            lifecycle.key,
            state.value,
            len(fetched.facets),
            len(fetched.errors),
        )
        return MatchDetailsOutcome(state=state, match=enriched, facet_errors=dict(fetched.errors))

    async def get_match_details(self, match_ref: MatchRef, token: RequestToken | None = None) -> EnrichedMatch | None:
        outcome = await self.load_match_details(match_ref, token)
        return outcome.match

    async def get_head_to_head_for_match(self, match_ref: MatchRef) -> H2HRecord:
        ctx = _ResolutionContext(match_ref)
        errors: dict[str, str] = {}
        limit = settings.H2H_HISTORY_LIMIT
        try:
            histories = await self._first_available(
                ctx,
                "recent_matches",
                lambda p, r: self._team_histories(p, r, limit),
                errors,
            )
        finally:
            await ctx.aclose()
        if histories is None:
            return H2HRecord()
        return compute_h2h(match_ref.home, match_ref.away, histories.home, histories.away)


async def _empty() -> list:
    return []


match_details_service = MatchDetailsService()
