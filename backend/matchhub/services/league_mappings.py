"""
backend/matchhub/services/league_mappings.py

Purpose:
    Static league identity table linking Competition-API codes, Sports-Feed
    league ids and Broadcast-Feed league slugs, plus helpers for cleaning
    Sports-Feed league ids (season prefixes/suffixes).

Dependencies:
    - re
    - matchhub.models.teams
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from matchhub.models.teams import LeagueRef

_FEED_PREFIX = "SportRadar_"
_SEASON_SUFFIX_RE = re.compile(r"_\d{4}$")


@dataclass(frozen=True)
class LeagueMapping:
    code: str | None
    feed_id: str
    broadcast_slug: str | None
    name: str
    country: str
    sport: str = "Soccer"

    def to_ref(self) -> LeagueRef:
        return LeagueRef(id=self.code or self.feed_id, name=self.name, country=self.country, sport=self.sport)


LEAGUES: tuple[LeagueMapping, ...] = (
    LeagueMapping("PL", "Soccer_EnglandPremierLeague", "eng.1", "Premier League", "England"),
    LeagueMapping("BL1", "Soccer_GermanyBundesliga", "ger.1", "Bundesliga", "Germany"),
    LeagueMapping("SA", "Soccer_ItalySerieA", "ita.1", "Serie A", "Italy"),
    LeagueMapping("FL1", "Soccer_FranceLigue1", "fra.1", "Ligue 1", "France"),
    LeagueMapping("PD", "Soccer_SpainLaLiga", "esp.1", "La Liga", "Spain"),
    LeagueMapping("PPL", "Soccer_PortugalPrimeiraLiga", "por.1", "Primeira Liga", "Portugal"),
    LeagueMapping("CL", "Soccer_InternationalClubsUEFAChampionsLeague", "uefa.champions", "UEFA Champions League", "Europe"),
    LeagueMapping("EL", "Soccer_UEFAEuropaLeague", "uefa.europa", "UEFA Europa League", "Europe"),
    LeagueMapping("BSA", "Soccer_BrazilBrasileiroSerieA", "bra.1", "Brasileirão Série A", "Brazil"),
    LeagueMapping(None, "Basketball_NBA", None, "NBA", "USA", sport="Basketball"),
)


def clean_feed_league_id(league_id: str | None) -> str:
    """"SportRadar_Soccer_SpainLaLiga_2025" -> "Soccer_SpainLaLiga"."""
    text = str(league_id or "").strip()
    if text.startswith(_FEED_PREFIX):
        text = text[len(_FEED_PREFIX):]
    return _SEASON_SUFFIX_RE.sub("", text)


def league_id_from_team_id(team_id: str | None) -> str | None:
    """Sports-Feed league id embedded in a composite team id (parts[1]_parts[2])."""
    parts = str(team_id or "").split("_")
    if len(parts) < 3 or not parts[1] or not parts[2]:
        return None
    return f"{parts[1]}_{parts[2]}"


def find_league(league_id: str | None) -> LeagueMapping | None:
    """Look a league up by any of its provider identifiers."""
    if not league_id:
        return None
    cleaned = clean_feed_league_id(league_id)
    for mapping in LEAGUES:
        if league_id == mapping.code or league_id == mapping.broadcast_slug or cleaned == mapping.feed_id:
            return mapping
    return None


def feed_league_id(league_id: str | None) -> str | None:
    mapping = find_league(league_id)
    if mapping is not None:
        return mapping.feed_id
    cleaned = clean_feed_league_id(league_id)
    return cleaned or None


def competition_code(league_id: str | None) -> str | None:
    mapping = find_league(league_id)
    return mapping.code if mapping is not None else None


def broadcast_slug(league_id: str | None) -> str | None:
    mapping = find_league(league_id)
    return mapping.broadcast_slug if mapping is not None else None


def sport_for_league(league_id: str | None) -> str:
    mapping = find_league(league_id)
    if mapping is not None:
        return mapping.sport
    return "Basketball" if "Basketball" in str(league_id or "") else "Soccer"


def league_ref(league_id: str | None, *, name: str | None = None, logo_url: str | None = None) -> LeagueRef:
    mapping = find_league(league_id)
    if mapping is None:
        return LeagueRef(id=str(league_id or ""), name=name or "", logo_url=logo_url, sport=sport_for_league(league_id))
    ref = mapping.to_ref()
    if logo_url:
        ref = ref.model_copy(update={"logo_url": logo_url})
    return ref
