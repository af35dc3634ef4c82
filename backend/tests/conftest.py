"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap: import path for the backend package and a clean
    provider cache and runtime team-id map for every test.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_THIS_FILE = Path(__file__).resolve()
_BACKEND_DIR = _THIS_FILE.parents[1]

if str(_BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(_BACKEND_DIR))

from matchhub.services.cache_service import InMemoryStore, cache_layer  # noqa: E402
from matchhub.services.team_id_mapping import clear_runtime_mappings  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_state():
    cache_layer.use_store(InMemoryStore())
    clear_runtime_mappings()
    yield
    clear_runtime_mappings()
