"""
MongoDB connection for PawMart

One MongoConnection is built at import time of the app and owned by
``app.state``. The first request that needs the store opens the client;
every request arriving while that attempt is in flight awaits the same
attempt. A failed attempt is dropped so the next request starts over.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from bson import ObjectId
from pymongo import AsyncMongoClient
from pymongo.server_api import ServerApi

logger = logging.getLogger("pawmart.db")

DEFAULT_DB_NAME = "pawmartDB"


@dataclass(frozen=True)
class Collections:
    listings: Any
    orders: Any
    users: Any


class ConnectionState(str, Enum):
    UNSTARTED = "unstarted"
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class MongoConnection:
    def __init__(
        self,
        uri: Optional[str],
        db_name: str = DEFAULT_DB_NAME,
        client_factory: Callable[..., Any] = AsyncMongoClient,
    ):
        self.uri = uri
        self.db_name = db_name
        self._client_factory = client_factory
        self._client = None
        self._collections: Optional[Collections] = None
        self._pending: Optional[asyncio.Future] = None
        self.state = ConnectionState.UNSTARTED
        self.last_error: Optional[BaseException] = None

    async def ensure_connected(self) -> Collections:
        """Return the collections handle, connecting on first use."""
        if self.state == ConnectionState.READY:
            return self._collections

        if self._pending is None:
            self.state = ConnectionState.PENDING
            self._pending = asyncio.ensure_future(self._connect())

        # shield so one cancelled request does not abort the attempt for the rest
        return await asyncio.shield(self._pending)

    async def _connect(self) -> Collections:
        try:
            if not self.uri:
                raise RuntimeError("DB_URI is undefined or client failed to initialize.")
            client = self._client_factory(
                self.uri,
                server_api=ServerApi("1", strict=True, deprecation_errors=True),
            )
            try:
                await client.admin.command("ping")
            except Exception:
                await client.close()
                raise
        except Exception as e:
            logger.exception("MongoDB connection error: %s", e)
            self.last_error = e
            self.state = ConnectionState.FAILED
            self._pending = None
            raise

        db = client[self.db_name]
        self._client = client
        self._collections = Collections(
            listings=db["listings"],
            orders=db["orders"],
            users=db["users"],
        )
        self.state = ConnectionState.READY
        self.last_error = None
        logger.info("Successfully connected to MongoDB database %s", self.db_name)
        return self._collections

    async def list_collection_names(self):
        collections = await self.ensure_connected()
        return await collections.listings.database.list_collection_names()

    async def close(self):
        if self._client is not None:
            await self._client.close()
            logger.info("MongoDB client closed")
        self._client = None
        self._collections = None
        self._pending = None
        self.state = ConnectionState.UNSTARTED


# Serialization helpers

def is_valid_id(value: str) -> bool:
    return ObjectId.is_valid(value)


def _plain(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def to_dict(doc):
    if doc is None:
        return None
    return _plain(dict(doc))


def to_list(docs):
    return [to_dict(d) for d in docs]


def insert_result(res) -> dict:
    return {"acknowledged": res.acknowledged, "insertedId": str(res.inserted_id)}


def update_result(res) -> dict:
    upserted_id = res.upserted_id
    return {
        "acknowledged": res.acknowledged,
        "matchedCount": res.matched_count,
        "modifiedCount": res.modified_count,
        "upsertedCount": 1 if upserted_id is not None else 0,
        "upsertedId": str(upserted_id) if upserted_id is not None else None,
    }


def delete_result(res) -> dict:
    return {"acknowledged": res.acknowledged, "deletedCount": res.deleted_count}
