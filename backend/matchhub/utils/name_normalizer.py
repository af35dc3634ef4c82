"""
backend/matchhub/utils/name_normalizer.py

Purpose:
    Identity normalization for free-text team/player names and composite
    provider identifiers. Every cross-provider comparison goes through these
    helpers so that case, accents and spacing never decide a match.

Dependencies:
    - re
    - unicodedata
"""

from __future__ import annotations

import re
import unicodedata

_SPACE_RE = re.compile(r"\s+")
_DIGITS_RE = re.compile(r"^(\d+)")

TEAM_ID_MARKER = "_Team_"
GAME_ID_MARKER = "_Game_"


def _strip_marks(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_name(raw: str | None) -> str:
    """
    Normalize a display name into a comparison key.

    Steps:
        1. NFKD decomposition + combining mark removal
        2. lowercase, then decompose and strip again
        3. whitespace collapse + trim

    Idempotent: normalize_name(normalize_name(s)) == normalize_name(s).
    """
    if not raw:
        return ""
    text = _strip_marks(str(raw)).lower()
    text = _strip_marks(text)
    return _SPACE_RE.sub(" ", text).strip()


def extract_numeric_id(composite_id: str | None, marker: str) -> str | None:
    """Return the digit run that follows the last case-insensitive marker, or None."""
    if not composite_id or not isinstance(composite_id, str) or not marker:
        return None
    tail = re.match(rf"(?is).*{re.escape(marker)}(.*)", composite_id)
    if tail is None:
        return None
    match = _DIGITS_RE.match(tail.group(1))
    return match.group(1) if match else None


def extract_numeric_suffix(composite_id: str | None) -> str | None:
    """Numeric team anchor of a composite id ("..._Team_5981" -> "5981")."""
    return extract_numeric_id(composite_id, TEAM_ID_MARKER)
