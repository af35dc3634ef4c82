"""
backend/matchhub/services/cache_service.py

Purpose:
    Time-boxed key/value cache fronting every provider call. Keys are
    deterministic sha256 signatures of (provider, endpoint, params); entries
    are immutable JSON blobs carrying an absolute expiry that is checked
    lazily on read. Writes always overwrite.

Dependencies:
    - matchhub.config
    - matchhub.database (Mongo-backed store)
    - pymongo.errors
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from datetime import timedelta
from typing import Any, Awaitable, Callable, Protocol

from pymongo.errors import PyMongoError

import matchhub.database as _db
from matchhub.config import settings
from matchhub.utils import ensure_utc, utcnow

logger = logging.getLogger("matchhub.cache")

# Parameters that change on every call and never identify a resource.
VOLATILE_PARAMS = frozenset({"apikey", "activityId", "api_key", "token"})


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None:
        ...

    async def set(self, key: str, blob: str, ttl: int) -> None:
        ...


class InMemoryStore:
    """Process-local store; expired entries are dropped when read."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        blob, expires_at = entry
        if time.monotonic() >= expires_at:
            self._entries.pop(key, None)
            return None
        return blob

    async def set(self, key: str, blob: str, ttl: int) -> None:
        self._entries[key] = (blob, time.monotonic() + max(0, int(ttl)))

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class MongoStore:
    """Store backed by a motor collection: {_id: key, blob, expires_at, updated_at}."""

    def __init__(self, collection_name: str | None = None) -> None:
        self._collection_name = collection_name or settings.CACHE_COLLECTION

    def _collection(self):
        db = _db.db
        if db is None:
            return None
        return db[self._collection_name]

    async def get(self, key: str) -> str | None:
        collection = self._collection()
        if collection is None:
            return None
        try:
            doc = await collection.find_one({"_id": key})
        except PyMongoError as exc:
            logger.warning("Cache read failed for %s: %s", key[:12], exc)
            return None
        if not isinstance(doc, dict):
            return None
        expires_at = doc.get("expires_at")
        if expires_at is None or ensure_utc(expires_at) <= utcnow():
            return None
        blob = doc.get("blob")
        return blob if isinstance(blob, str) else None

    async def set(self, key: str, blob: str, ttl: int) -> None:
        collection = self._collection()
        if collection is None:
            return
        now = utcnow()
        try:
            await collection.update_one(
                {"_id": key},
                {"$set": {"blob": blob, "expires_at": now + timedelta(seconds=max(0, int(ttl))), "updated_at": now}},
                upsert=True,
            )
        except PyMongoError as exc:
            logger.warning("Cache write failed for %s: %s", key[:12], exc)


def normalize_cache_params(params: dict[str, Any] | None) -> dict[str, str]:
    normalized: dict[str, str] = {}
    for key, value in (params or {}).items():
        if key in VOLATILE_PARAMS or value is None:
            continue
        text = str(value).strip()
        if text:
            normalized[str(key)] = text
    return dict(sorted(normalized.items(), key=lambda kv: kv[0]))


def make_cache_key(provider: str, endpoint: str, params: dict[str, Any] | None = None) -> str:
    material = {
        "provider": str(provider or ""),
        "endpoint": str(endpoint or "").lstrip("/"),
        "params": normalize_cache_params(params),
    }
    payload = json.dumps(material, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def ttl_for(call_kind: str) -> int:
    """TTL in seconds for a call kind (schedule vs match details ...)."""
    ttls = {
        "live_schedule": settings.CACHE_TTL_LIVE_SCHEDULE_SECONDS,
        "schedule": settings.CACHE_TTL_SCHEDULE_SECONDS,
        "empty_schedule": settings.CACHE_TTL_EMPTY_SCHEDULE_SECONDS,
        "match_details": settings.CACHE_TTL_MATCH_DETAILS_SECONDS,
        "lineups": settings.CACHE_TTL_LINEUPS_SECONDS,
        "statistics": settings.CACHE_TTL_STATISTICS_SECONDS,
        "timeline": settings.CACHE_TTL_TIMELINE_SECONDS,
        "injuries": settings.CACHE_TTL_INJURIES_SECONDS,
        "standings": settings.CACHE_TTL_STANDINGS_SECONDS,
        "team_history": settings.CACHE_TTL_TEAM_HISTORY_SECONDS,
        "top_players": settings.CACHE_TTL_TOP_PLAYERS_SECONDS,
        "player_stats": settings.CACHE_TTL_PLAYER_STATS_SECONDS,
        "league_teams": settings.CACHE_TTL_LEAGUE_TEAMS_SECONDS,
        "poll": settings.CACHE_TTL_POLL_SECONDS,
    }
    if call_kind not in ttls:
        raise ValueError(f"Unknown cache call kind: {call_kind}")
    return int(ttls[call_kind])


class CacheLayer:
    """Read-through/write-through cache shared by adapters and the orchestrator."""

    def __init__(self, store: KeyValueStore | None = None) -> None:
        self._store: KeyValueStore = store if store is not None else InMemoryStore()

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def use_store(self, store: KeyValueStore) -> None:
        self._store = store

    async def get(self, provider: str, endpoint: str, params: dict[str, Any] | None = None) -> tuple[bool, Any]:
        """Return (hit, payload). A cached JSON null is a hit with payload None."""
        blob = await self._store.get(make_cache_key(provider, endpoint, params))
        if blob is None:
            return False, None
        try:
            return True, json.loads(blob)["data"]
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding unreadable cache entry for %s /%s", provider, endpoint)
            return False, None

    async def set(
        self,
        provider: str,
        endpoint: str,
        params: dict[str, Any] | None,
        payload: Any,
        ttl: int,
    ) -> None:
        blob = json.dumps({"data": payload}, separators=(",", ":"), default=str)
        await self._store.set(make_cache_key(provider, endpoint, params), blob, ttl)

    async def get_or_fetch(
        self,
        provider: str,
        endpoint: str,
        params: dict[str, Any] | None,
        call_kind: str,
        loader: Callable[[], Awaitable[Any]],
        empty_call_kind: str | None = None,
    ) -> Any:
        """Serve from cache, else await loader() and write the result through.

        Loader exceptions propagate and nothing is written, so failures are
        never cached. Empty results may use a shorter TTL via empty_call_kind.
        """
        hit, payload = await self.get(provider, endpoint, params)
        if hit:
            logger.info("Cache HIT for %s /%s", provider, endpoint)
            return payload
        logger.info("Cache MISS for %s /%s", provider, endpoint)
        payload = await loader()
        kind = empty_call_kind if (empty_call_kind and not payload) else call_kind
        await self.set(provider, endpoint, params, payload, ttl_for(kind))
        return payload


cache_layer = CacheLayer()
