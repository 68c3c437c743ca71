# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Mongo-backed lease-lock store.

One document per lock in a dedicated collection:

    {_id: <lock name>, owner, token, deadline_ms, expires_at, meta}

Acquire is a single upsert that only matches an expired lease; when an
unexpired lease exists the upsert collides on ``_id`` and the store reports
"held by someone else". ``expires_at`` carries a TTL index so abandoned
leases are eventually removed by the server.

``collection`` is injected (e.g., a Motor ``AsyncIOMotorCollection``).
"""

import uuid
from datetime import UTC, datetime
from typing import Any, Mapping

from pymongo.errors import DuplicateKeyError, PyMongoError

from ..api.errors import LockError
from ..core.log import get_logger
from ..core.time import Clock, SystemClock
from .kv import LockInfo

__all__ = ["DEFAULT_LOCK_COLLECTION", "MongoLockStore"]

DEFAULT_LOCK_COLLECTION = "seedkit_locks"


def _to_dt(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000.0, tz=UTC)


class MongoLockStore:
    """Lease locks persisted in a Mongo collection shared by all replicas."""

    def __init__(self, collection, *, clock: Clock | None = None) -> None:
        self.coll = collection
        self.clock: Clock = clock or SystemClock()
        self.log = get_logger("locks.mongo")

    @classmethod
    def from_database(
        cls, database, *, collection: str = DEFAULT_LOCK_COLLECTION, clock: Clock | None = None
    ) -> MongoLockStore:
        """Store on ``database[collection]``; every replica must use the same collection."""
        return cls(database[collection], clock=clock)

    async def ensure_indexes(self) -> None:
        try:
            await self.coll.create_index([("expires_at", 1)], expireAfterSeconds=0, name="ttl_lock_expires")
        except PyMongoError as e:
            raise LockError("failed to create lock TTL index") from e

    def _info(self, doc: Mapping[str, Any]) -> LockInfo:
        return LockInfo(
            name=doc["_id"],
            owner=doc["owner"],
            token=doc["token"],
            deadline_ms=int(doc["deadline_ms"]),
            meta=doc.get("meta"),
        )

    async def acquire_lock(
        self,
        name: str,
        *,
        owner: str,
        ttl_ms: int,
        meta: Mapping[str, Any] | None = None,
    ) -> LockInfo | None:
        now = self.clock.now_ms()
        deadline = now + int(ttl_ms)
        token = uuid.uuid4().hex
        doc = {
            "owner": owner,
            "token": token,
            "deadline_ms": deadline,
            "expires_at": _to_dt(deadline),
            "acquired_ms": now,
            "meta": dict(meta) if meta else None,
        }
        try:
            await self.coll.update_one(
                {"_id": name, "deadline_ms": {"$lte": now}},
                {"$set": doc},
                upsert=True,
            )
        except DuplicateKeyError:
            return None
        except PyMongoError as e:
            raise LockError(f"failed to acquire lock {name!r}") from e

        # A concurrent taker of an expired lease may have won the update race.
        current = await self.get_lock(name)
        if current is None or current.token != token:
            self.log.debug("lock lost race", event="lock.race.lost", lock=name, owner=owner)
            return None
        return current

    async def renew_lock(self, name: str, *, owner: str, token: str, ttl_ms: int) -> bool:
        now = self.clock.now_ms()
        deadline = now + int(ttl_ms)
        try:
            res = await self.coll.update_one(
                {"_id": name, "owner": owner, "token": token, "deadline_ms": {"$gt": now}},
                {"$set": {"deadline_ms": deadline, "expires_at": _to_dt(deadline)}},
            )
        except PyMongoError as e:
            raise LockError(f"failed to renew lock {name!r}") from e
        return bool(getattr(res, "matched_count", 0))

    async def release_lock(self, name: str, *, owner: str, token: str) -> bool:
        try:
            res = await self.coll.delete_one({"_id": name, "owner": owner, "token": token})
        except PyMongoError as e:
            raise LockError(f"failed to release lock {name!r}") from e
        return bool(getattr(res, "deleted_count", 0))

    async def get_lock(self, name: str) -> LockInfo | None:
        try:
            doc = await self.coll.find_one({"_id": name, "deadline_ms": {"$gt": self.clock.now_ms()}})
        except PyMongoError as e:
            raise LockError(f"failed to read lock {name!r}") from e
        return self._info(doc) if doc else None
