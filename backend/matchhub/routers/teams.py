"""Team search API: name lookup across league team listings."""

from fastapi import APIRouter, Query

from matchhub.models.teams import TeamRef
from matchhub.services.team_search_service import search_teams_by_name

router = APIRouter(prefix="/api/teams", tags=["teams"])


@router.get("/search", response_model=list[TeamRef])
async def search(
    q: str = Query(..., min_length=2, max_length=100),
    league: list[str] | None = Query(None, description="League ids to search; defaults to the configured set"),
    limit: int = Query(20, ge=1, le=50),
):
    """Search teams by name across leagues."""
    return await search_teams_by_name(q, league, limit)
