"""
backend/matchhub/models/teams.py

Purpose:
    Provider-neutral team and league references shared by every adapter,
    the entity matcher and the aggregation services.

Dependencies:
    - pydantic
"""

from pydantic import BaseModel, ConfigDict, Field


class TeamRef(BaseModel):
    """A team as one provider described it.

    local_id is only unique inside the Competition-API namespace; provider_id
    is the composite Sports-Feed id whose trailing number is the one reliable
    cross-provider anchor. Other provider ids live in external_ids.
    """

    local_id: int | None = None
    provider_id: str | None = None
    name: str = ""
    short_name: str | None = None
    logo_url: str | None = None
    external_ids: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @property
    def display_name(self) -> str:
        return self.name or self.short_name or ""


class LeagueRef(BaseModel):
    id: str = ""
    name: str = ""
    country: str | None = None
    logo_url: str | None = None
    sport: str = "Soccer"

    model_config = ConfigDict(frozen=True)
