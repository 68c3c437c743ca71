# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Lock stores and the lock provider contract used by the bootstrap coordinator.
"""

from .kv import LockInfo, LockStore
from .locks import InMemoryLockStore, KVLockProvider, LockHandle, LockProvider
from .mongo import DEFAULT_LOCK_COLLECTION, MongoLockStore

__all__ = [
    # kv
    "LockInfo",
    "LockStore",
    # providers
    "InMemoryLockStore",
    "KVLockProvider",
    "LockHandle",
    "LockProvider",
    # mongo
    "DEFAULT_LOCK_COLLECTION",
    "MongoLockStore",
]
