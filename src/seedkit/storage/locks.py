# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Cluster-wide named mutex used to serialize bootstrap across replicas.

- ``LockProvider.try_acquire(name)`` returns a ``LockHandle`` or ``None`` when
  another owner holds the lock. There is no blocking variant.
- ``LockHandle`` is an async context manager; leaving the block releases the
  lock exactly once, whether the block exits normally or by an exception.
"""

import asyncio
import uuid
from typing import Any, Mapping, Protocol, runtime_checkable

from ..core.log import get_logger
from ..core.time import Clock, SystemClock
from .kv import LockInfo, LockStore

__all__ = [
    "InMemoryLockStore",
    "KVLockProvider",
    "LockHandle",
    "LockProvider",
]


class LockHandle:
    """Proof of a held lock. ``release()`` is idempotent; only the first call reaches the store."""

    def __init__(self, info: LockInfo, store: LockStore) -> None:
        self.info = info
        self._store = store
        self._released = False
        self.release_result: bool | None = None

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def released(self) -> bool:
        return self._released

    async def release(self) -> bool:
        if self._released:
            return False
        # Mark first: a failing store call must not lead to a second release attempt.
        self._released = True
        self.release_result = await self._store.release_lock(
            self.info.name, owner=self.info.owner, token=self.info.token
        )
        return self.release_result

    async def __aenter__(self) -> LockHandle:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()

    def __repr__(self) -> str:
        return f"LockHandle(name={self.info.name!r}, owner={self.info.owner!r}, released={self._released})"


@runtime_checkable
class LockProvider(Protocol):
    """Try-acquire contract consumed by the coordinator."""

    async def try_acquire(self, name: str) -> LockHandle | None: ...


class KVLockProvider:
    """
    Adapts a ``LockStore`` to the provider contract with a fixed owner and TTL.
    Store errors during acquire propagate; ``None`` from the store means a peer holds the lock.
    """

    def __init__(
        self,
        store: LockStore,
        *,
        owner: str,
        ttl_ms: int,
        meta: Mapping[str, Any] | None = None,
    ) -> None:
        if ttl_ms <= 0:
            raise ValueError("ttl_ms must be positive")
        self.store = store
        self.owner = owner
        self.ttl_ms = int(ttl_ms)
        self.meta = dict(meta) if meta else None
        self.log = get_logger("locks")

    async def try_acquire(self, name: str) -> LockHandle | None:
        info = await self.store.acquire_lock(name, owner=self.owner, ttl_ms=self.ttl_ms, meta=self.meta)
        if info is None:
            self.log.debug("lock busy", event="lock.busy", lock=name, owner=self.owner)
            return None
        return LockHandle(info, self.store)


class InMemoryLockStore:
    """
    Process-local lease store. Serializes access with an ``asyncio.Lock`` so
    concurrent coordinators in one event loop observe a single winner.
    """

    def __init__(self, *, clock: Clock | None = None) -> None:
        self.clock: Clock = clock or SystemClock()
        self._locks: dict[str, LockInfo] = {}
        self._guard = asyncio.Lock()
        self.acquired = 0
        self.released = 0

    def _live(self, name: str) -> LockInfo | None:
        info = self._locks.get(name)
        if info is not None and info.deadline_ms <= self.clock.now_ms():
            del self._locks[name]
            return None
        return info

    async def acquire_lock(
        self,
        name: str,
        *,
        owner: str,
        ttl_ms: int,
        meta: Mapping[str, Any] | None = None,
    ) -> LockInfo | None:
        async with self._guard:
            if self._live(name) is not None:
                return None
            info = LockInfo(
                name=name,
                owner=owner,
                token=uuid.uuid4().hex,
                deadline_ms=self.clock.now_ms() + int(ttl_ms),
                meta=dict(meta) if meta else None,
            )
            self._locks[name] = info
            self.acquired += 1
            return info

    async def renew_lock(self, name: str, *, owner: str, token: str, ttl_ms: int) -> bool:
        async with self._guard:
            info = self._live(name)
            if info is None or info.owner != owner or info.token != token:
                return False
            self._locks[name] = LockInfo(
                name=name,
                owner=owner,
                token=token,
                deadline_ms=self.clock.now_ms() + int(ttl_ms),
                meta=info.meta,
            )
            return True

    async def release_lock(self, name: str, *, owner: str, token: str) -> bool:
        async with self._guard:
            info = self._locks.get(name)
            if info is None or info.owner != owner or info.token != token:
                return False
            del self._locks[name]
            self.released += 1
            return True

    async def get_lock(self, name: str) -> LockInfo | None:
        async with self._guard:
            return self._live(name)
