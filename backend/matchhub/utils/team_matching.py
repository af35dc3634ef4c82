"""
backend/matchhub/utils/team_matching.py

Purpose:
    Entity matcher deciding whether two TeamRefs denote the same real-world
    team. Rules run in strict precedence and short-circuit on the first hit:
    numeric id suffix, exact normalized name, containment, token overlap.

Notes:
    - Only the id-suffix rule is high confidence. Name rules are best-effort
      and may link the wrong team; results feed display aggregation only.
    - All fuzzy team logic lives here. Callers never compare names inline.
"""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from matchhub.models.teams import TeamRef
from matchhub.utils.name_normalizer import extract_numeric_suffix, normalize_name

logger = logging.getLogger("matchhub.team_matching")


class MatchRule(Protocol):
    name: str

    def matches(self, a: TeamRef, b: TeamRef) -> bool:
        ...


class NumericSuffixRule:
    name = "numeric_suffix"

    def matches(self, a: TeamRef, b: TeamRef) -> bool:
        suffix_a = extract_numeric_suffix(a.provider_id)
        suffix_b = extract_numeric_suffix(b.provider_id)
        return suffix_a is not None and suffix_a == suffix_b


class ExactNameRule:
    name = "exact_name"

    def matches(self, a: TeamRef, b: TeamRef) -> bool:
        name_a = normalize_name(a.name)
        return bool(name_a) and name_a == normalize_name(b.name)


class ContainmentRule:
    name = "containment"
    min_length = 2

    def matches(self, a: TeamRef, b: TeamRef) -> bool:
        name_a = normalize_name(a.name)
        name_b = normalize_name(b.name)
        if len(name_a) <= self.min_length or len(name_b) <= self.min_length:
            return False
        return name_a in name_b or name_b in name_a


class TokenOverlapRule:
    name = "token_overlap"
    min_token_length = 3

    def _tokens(self, name: str) -> set[str]:
        return {token for token in normalize_name(name).split(" ") if len(token) > self.min_token_length}

    def matches(self, a: TeamRef, b: TeamRef) -> bool:
        return bool(self._tokens(a.name) & self._tokens(b.name))


DEFAULT_RULES: tuple[MatchRule, ...] = (
    NumericSuffixRule(),
    ExactNameRule(),
    ContainmentRule(),
    TokenOverlapRule(),
)


def match_rule_for(a: TeamRef | None, b: TeamRef | None, rules: Iterable[MatchRule] = DEFAULT_RULES) -> str | None:
    """Return the name of the first rule linking a and b, or None."""
    if a is None or b is None:
        return None
    for rule in rules:
        if rule.matches(a, b):
            return rule.name
    return None


def teams_match(a: TeamRef | None, b: TeamRef | None) -> bool:
    """Return True when both references likely denote the same team. Never raises."""
    return match_rule_for(a, b) is not None


def find_matching_team(anchor: TeamRef, candidates: Iterable[TeamRef]) -> TeamRef | None:
    """First candidate linked to the anchor, preferring id-suffix links over name links."""
    pool = list(candidates)
    fallback: TeamRef | None = None
    for candidate in pool:
        rule = match_rule_for(anchor, candidate)
        if rule == NumericSuffixRule.name:
            return candidate
        if rule is not None and fallback is None:
            fallback = candidate
    if fallback is not None:
        logger.debug("Name-based team link: %r -> %r", anchor.name, fallback.name)
    return fallback
