"""
backend/matchhub/database.py

Purpose:
    MongoDB connection bootstrap for the persistent provider cache store.
    Only connected when CACHE_BACKEND is "mongo"; the in-memory store needs
    no database.

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - matchhub.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import OperationFailure

from matchhub.config import settings

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

logger = logging.getLogger("matchhub.database")


async def connect_db() -> None:
    global client, db
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=10,
        minPoolSize=1,
    )
    db = client[settings.MONGO_DB]
    await _ensure_indexes()


async def close_db() -> None:
    global client, db
    if client:
        client.close()
    client = None
    db = None


async def get_db() -> AsyncIOMotorDatabase:
    return db


async def _ensure_indexes() -> None:
    # Reads compare expires_at themselves; the index only keeps the collection small.
    try:
        await db[settings.CACHE_COLLECTION].create_index("expires_at", expireAfterSeconds=0)
    except OperationFailure as exc:
        logger.warning("Could not ensure cache TTL index: %s", exc)
    logger.info("Mongo cache indexes ensured on %s.%s", settings.MONGO_DB, settings.CACHE_COLLECTION)
