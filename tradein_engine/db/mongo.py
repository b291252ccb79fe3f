# tradein_engine/db/mongo.py
"""
MongoDB connection + FastAPI dependency.

- Connects once at app startup (lifespan).
- Stores db on app.state.db
- Creates required indexes in an idempotent way.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timezone

from fastapi import FastAPI, Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import OperationFailure

from tradein_engine.core.config import config

logger = logging.getLogger(__name__)

TRADE_IN_COLLECTION = "trade_in_requests"
USERS_COLLECTION = "users"


async def _ensure_index(col, keys, **kwargs) -> None:
    """
    Create an index if it doesn't exist.

    If an index with the same keys already exists under a different name,
    Mongo raises code=85 (IndexOptionsConflict). In that case we keep the
    existing index and continue.
    """
    try:
        await col.create_index(keys, **kwargs)
    except OperationFailure as e:
        if getattr(e, "code", None) == 85:
            logger.warning(
                "Index conflict on %s keys=%s name=%s; keeping existing index",
                col.name,
                keys,
                kwargs.get("name"),
            )
            return
        raise


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    col = db[TRADE_IN_COLLECTION]

    await _ensure_index(col, [("id", 1)], unique=True, name="uniq_trade_in_id")
    await _ensure_index(
        col,
        [("owner_id", 1), ("created_at", -1)],
        unique=False,
        name="idx_trade_in_owner_created",
    )
    await _ensure_index(
        col,
        [("owner_id", 1), ("status", 1)],
        unique=False,
        name="idx_trade_in_owner_status",
    )
    await _ensure_index(col, [("status", 1), ("created_at", -1)], unique=False, name="idx_trade_in_status_created")

    await _ensure_index(db[USERS_COLLECTION], [("id", 1)], unique=True, name="uniq_users_id")


@asynccontextmanager
async def mongo_lifespan(fastapi_app: FastAPI):
    client = AsyncIOMotorClient(
        config.mongo_uri,
        tz_aware=True,
        tzinfo=timezone.utc,
    )
    db = client[config.mongo_db]

    logger.info("Mongo connected: uri=%s db=%s", config.mongo_uri, db.name)

    state = getattr(fastapi_app, "state")
    setattr(state, "mongo_client", client)
    setattr(state, "db", db)

    await ensure_indexes(db)

    try:
        yield
    finally:
        client.close()


async def get_db(request: Request) -> AsyncIOMotorDatabase:
    return request.app.state.db
