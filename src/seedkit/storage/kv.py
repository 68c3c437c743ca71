# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Lease-lock store interface (DB-agnostic).

A lock store keeps coarse-grained named locks with a TTL. Lock providers build
the try-acquire / scoped-release contract used by the bootstrap coordinator on
top of it. Implementations may use Mongo, Redis, Postgres, or process memory.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Protocol, runtime_checkable

__all__ = [
    "LockInfo",
    "LockStore",
]


@dataclass(frozen=True)
class LockInfo:
    """
    Introspective lock info for observability and debugging.

    Attributes:
        name: Lock name (global namespace within the store).
        owner: Owner identifier (host:pid:nonce of the replica).
        token: Opaque token returned on acquire; must be presented to renew/release.
        deadline_ms: Epoch milliseconds when the lease expires.
        meta: Optional metadata provided by the owner.
    """

    name: str
    owner: str
    token: str
    deadline_ms: int
    meta: Mapping[str, Any] | None = None


@runtime_checkable
class LockStore(Protocol):
    """
    Minimal async lease-lock interface.

    Notes:
        - acquire is try-once: it never waits for the current holder.
        - an expired lease may be taken over by any owner.
        - release with a stale token is a no-op returning False.
    """

    async def acquire_lock(
        self,
        name: str,
        *,
        owner: str,
        ttl_ms: int,
        meta: Mapping[str, Any] | None = None,
    ) -> LockInfo | None:
        """Try to acquire a lock. Return LockInfo on success, or None if held by someone else."""
        ...

    async def renew_lock(self, name: str, *, owner: str, token: str, ttl_ms: int) -> bool:
        """Extend the lease if the caller owns it (by matching token)."""
        ...

    async def release_lock(self, name: str, *, owner: str, token: str) -> bool:
        """Release the lock if owned. Return True if the lock was released."""
        ...

    async def get_lock(self, name: str) -> LockInfo | None:
        """Return current (unexpired) lock info, if any."""
        ...
