"""
backend/matchhub/routers/matches.py

Purpose:
    HTTP surface for match aggregation: enriched match details, head-to-head
    records, timeline transformation and per-provider schedules.

Dependencies:
    - matchhub.services.match_details_service
    - matchhub.services.head_to_head_service
    - matchhub.services.timeline_service
"""

import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from matchhub.models.head_to_head import H2HRecord
from matchhub.models.matches import MatchRef
from matchhub.models.teams import TeamRef
from matchhub.models.timeline import TimelineEvent
from matchhub.providers.base import ProviderAdapter, ProviderError
from matchhub.providers.broadcast_feed import broadcast_feed_provider
from matchhub.providers.competition_api import competition_api_provider
from matchhub.providers.sports_feed import sports_feed_provider
from matchhub.services.head_to_head_service import get_head_to_head
from matchhub.services.match_details_service import (
    MatchDetailsOutcome,
    MatchDetailsService,
    match_details_service,
)
from matchhub.services.timeline_service import get_timeline

logger = logging.getLogger("matchhub.matches")

router = APIRouter(prefix="/api/matches", tags=["matches"])


class HeadToHeadRequest(BaseModel):
    home_team: TeamRef
    away_team: TeamRef
    home_history: list[dict[str, Any]] = []
    away_history: list[dict[str, Any]] = []


class TimelineRequest(BaseModel):
    raw_feed: Any = None
    home_team: TeamRef | None = None


def get_match_details_service() -> MatchDetailsService:
    return match_details_service


def get_providers() -> dict[str, ProviderAdapter]:
    return {
        adapter.name: adapter
        for adapter in (sports_feed_provider, competition_api_provider, broadcast_feed_provider)
    }


@router.post("/details", response_model=MatchDetailsOutcome)
async def match_details(
    match_ref: MatchRef,
    service: MatchDetailsService = Depends(get_match_details_service),
):
    """Aggregate every available facet for one match."""
    return await service.load_match_details(match_ref)


@router.post("/head-to-head", response_model=H2HRecord)
async def head_to_head(body: HeadToHeadRequest):
    """Head-to-head record from two caller-supplied team histories."""
    return get_head_to_head(body.home_team, body.away_team, body.home_history, body.away_history)


@router.post("/head-to-head/by-match", response_model=H2HRecord)
async def head_to_head_by_match(
    match_ref: MatchRef,
    service: MatchDetailsService = Depends(get_match_details_service),
):
    """Head-to-head record from provider team histories."""
    return await service.get_head_to_head_for_match(match_ref)


@router.post("/timeline", response_model=list[TimelineEvent])
async def timeline(body: TimelineRequest):
    return get_timeline(body.raw_feed, body.home_team)


@router.get("/schedule", response_model=list[MatchRef])
async def schedule(
    provider: str = Query(..., description="sports_feed, competition_api or broadcast_feed"),
    league_id: str = Query(..., min_length=1),
    day: date = Query(..., alias="date"),
    providers: dict[str, ProviderAdapter] = Depends(get_providers),
):
    """Matches of one league on one day, straight from one provider."""
    adapter = providers.get(provider)
    if adapter is None:
        raise HTTPException(status_code=404, detail="Unknown provider.")
    try:
        return await adapter.fetch_schedule_by_date(league_id, day)
    except ProviderError as exc:
        logger.warning("Schedule request failed: %s", exc)
        raise HTTPException(status_code=502, detail="Upstream provider error.") from exc
