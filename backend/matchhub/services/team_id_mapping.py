"""
backend/matchhub/services/team_id_mapping.py

Purpose:
    Known-mapping table of verified Competition-API team ids to Sports-Feed
    composite team ids. Adapters consult it before any name-based
    resolution; runtime registrations extend it for the process lifetime.

Dependencies:
    - matchhub.utils.name_normalizer
"""

from __future__ import annotations

import logging

from matchhub.models.teams import TeamRef
from matchhub.utils.name_normalizer import extract_numeric_suffix

logger = logging.getLogger("matchhub.team_id_mapping")

_BRA = "SportRadar_Soccer_BrazilBrasileiroSerieA_2025_Team_"
_GER = "SportRadar_Soccer_GermanyBundesliga_2025_Team_"
_ENG = "SportRadar_Soccer_EnglandPremierLeague_2025_Team_"
_ESP = "SportRadar_Soccer_SpainLaLiga_2025_Team_"
_ITA = "SportRadar_Soccer_ItalySerieA_2025_Team_"
_FRA = "SportRadar_Soccer_FranceLigue1_2025_Team_"
_POR = "SportRadar_Soccer_PortugalPrimeiraLiga_2025_Team_"

KNOWN_TEAM_FEED_IDS: dict[int, str] = {
    # Brasileirão
    1783: f"{_BRA}5981",  # Flamengo
    5981: f"{_BRA}5981",
    1769: f"{_BRA}1963",  # Palmeiras
    1963: f"{_BRA}1963",
    1778: f"{_BRA}1957",  # Corinthians
    1779: f"{_BRA}1981",  # São Paulo
    # Bundesliga
    5: f"{_GER}2672",  # Bayern München
    4: f"{_GER}2673",  # Borussia Dortmund
    # Premier League
    65: f"{_ENG}17",  # Manchester City
    57: f"{_ENG}18",  # Arsenal
    64: f"{_ENG}44",  # Liverpool
    # La Liga
    86: f"{_ESP}2829",  # Real Madrid
    81: f"{_ESP}2817",  # Barcelona
    # Serie A
    108: f"{_ITA}2687",  # Inter
    109: f"{_ITA}2685",  # Juventus
    # Ligue 1
    524: f"{_FRA}1644",  # Paris Saint-Germain
    # Primeira Liga
    1903: f"{_POR}2995",  # Benfica
    503: f"{_POR}3002",  # Porto
    498: f"{_POR}3008",  # Sporting CP
}

_runtime_mappings: dict[int, str] = {}


def register_feed_team_id(local_id: int, feed_id: str) -> None:
    """Remember a resolved pair so later lookups skip name matching."""
    if local_id is None or not feed_id:
        return
    if _runtime_mappings.get(int(local_id)) != feed_id:
        logger.info("Registered team mapping %s -> %s", local_id, feed_id)
    _runtime_mappings[int(local_id)] = feed_id


def clear_runtime_mappings() -> None:
    _runtime_mappings.clear()


def feed_team_id_for(team: TeamRef) -> str | None:
    """Sports-Feed id for a team: own provider_id, then the known table."""
    if team.provider_id:
        return team.provider_id
    if team.local_id is None:
        return None
    return _runtime_mappings.get(team.local_id) or KNOWN_TEAM_FEED_IDS.get(team.local_id)


def local_team_id_for(team: TeamRef) -> int | None:
    """Competition-API id for a team: own local_id, then reverse lookup by id suffix."""
    if team.local_id is not None:
        return team.local_id
    suffix = extract_numeric_suffix(team.provider_id)
    if suffix is None:
        return None
    for table in (_runtime_mappings, KNOWN_TEAM_FEED_IDS):
        for local_id, feed_id in table.items():
            # Some rows key the feed's own number; only real Competition-API ids qualify.
            if extract_numeric_suffix(feed_id) == suffix and str(local_id) != suffix:
                return local_id
    return None
