# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Startup bootstrap coordinator.

Runs once per service process, before the service takes traffic:

    host scope (tenant cleared)
      outer unit scope
        try-acquire "Migration_Mongo_<database>"      (peer holds it -> return)
          inner unit scope
            for each document context: resolve -> parse -> client -> bind
            complete inner scope -> seeder runs (still under the lock)
        release lock
      complete outer scope

Every failure unwinds the scopes (so the lock is released) and is then logged
and suppressed by a ``BestEffortRunner``: a failed bootstrap never stops the
host from starting.
"""

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Callable, Iterable

from motor.motor_asyncio import AsyncIOMotorClient

from ..api.errors import BindFailure, BootstrapError, SeedFailure
from ..contexts.base import ContextHandle, connection_string_name
from ..contexts.registry import ContextRegistry
from ..contexts.resolver import ConnectionResolver, StaticConnectionResolver, is_blank
from ..contexts.uri import ParsedConnection, effective_database_name, parse_connection_string
from ..core.config import BootstrapConfig
from ..core.log import adapt_logger, get_logger, log_context, swallow
from ..seeding.seeder import SeedContext, Seeder
from ..storage.kv import LockStore
from ..storage.locks import KVLockProvider, LockHandle, LockProvider
from .best_effort import BestEffortRunner
from .tenancy import CurrentTenant
from .unit import UnitScope, UnitScopeManager

__all__ = [
    "BootstrapCoordinator",
    "BootstrapDeps",
    "BootstrapOutcome",
    "BootstrapResult",
    "motor_client_factory",
]


def motor_client_factory(uri: str) -> AsyncIOMotorClient:
    # Motor connects lazily; the first server round-trip happens on bind.
    return AsyncIOMotorClient(uri)


class BootstrapOutcome(str, Enum):
    completed = "completed"
    lock_unavailable = "lock_unavailable"
    failed = "failed"


@dataclass
class BootstrapResult:
    """What one bootstrap call did. Returned on every path; never raised."""

    database: str
    outcome: BootstrapOutcome = BootstrapOutcome.failed
    bound: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    seeded: bool = False
    error: Exception | None = None

    @property
    def error_kind(self) -> str | None:
        if self.error is None:
            return None
        if isinstance(self.error, (BindFailure, SeedFailure)):
            return type(self.error).__name__
        return "UnexpectedFailure"


@dataclass(frozen=True)
class BootstrapDeps:
    """Collaborators of the coordinator, all supplied by the host."""

    lock_provider: LockProvider
    contexts: ContextRegistry | Iterable[ContextHandle]
    resolver: ConnectionResolver
    seeder: Seeder
    client_factory: Callable[[str], Any] = motor_client_factory
    units: UnitScopeManager = field(default_factory=UnitScopeManager)
    tenant: CurrentTenant = field(default_factory=CurrentTenant)


class BootstrapCoordinator:
    """
    Ensures collections/indexes exist and seed data is present, serialized
    across replicas by a cluster-wide lock keyed by the database identity.
    """

    def __init__(
        self,
        deps: BootstrapDeps,
        *,
        cfg: BootstrapConfig | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        close_clients: bool = True,
    ) -> None:
        self.deps = deps
        self.cfg = copy.deepcopy(cfg) if cfg is not None else BootstrapConfig.load()
        self._database_identity = self.cfg.database_identity
        self._lock_name = self.cfg.lock_name()
        self.close_clients = close_clients
        self.log = adapt_logger(logger) if logger is not None else get_logger("bootstrap")
        self._runner = BestEffortRunner(self.log, code="bootstrap.failed", msg="database bootstrap failed")

    @classmethod
    def from_config(
        cls,
        cfg: BootstrapConfig,
        *,
        lock_store: LockStore,
        contexts: ContextRegistry | Iterable[ContextHandle],
        seeder: Seeder,
        resolver: ConnectionResolver | None = None,
        **kwargs: Any,
    ) -> BootstrapCoordinator:
        """Wire the default lock provider and resolver from configuration."""
        deps = BootstrapDeps(
            lock_provider=KVLockProvider(lock_store, owner=cfg.lock_owner, ttl_ms=cfg.lock_ttl_ms),
            contexts=contexts,
            resolver=resolver or StaticConnectionResolver.from_config(cfg),
            seeder=seeder,
        )
        return cls(deps, cfg=cfg, **kwargs)

    @property
    def database_identity(self) -> str:
        return self._database_identity

    @property
    def lock_name(self) -> str:
        return self._lock_name

    # ---- public entrypoint

    async def check_and_apply_database_bootstrap(self) -> BootstrapResult:
        """
        Best-effort: returns normally on success, when a peer holds the lock,
        and on failure (after an ERROR log with the exception).
        """
        result = BootstrapResult(database=self._database_identity)
        with log_context(database=self._database_identity):
            self.log.debug("bootstrap start", event="bootstrap.start", lock=self._lock_name)
            _, err = await self._runner.run(self._bootstrap, result, extra={"database": self._database_identity})
            if err is not None:
                result.outcome = BootstrapOutcome.failed
                result.error = err
            self.log.debug(
                "bootstrap finished",
                event="bootstrap.finished",
                outcome=result.outcome.value,
                bound=result.bound,
                skipped=result.skipped,
                seeded=result.seeded,
            )
        return result

    async def _bootstrap(self, result: BootstrapResult) -> None:
        with self.deps.tenant.change(None):
            async with self.deps.units.begin(requires_new=True, transactional=False, name="bootstrap") as outer:
                acquired = await self.migrate_database_schema(result)
                await outer.complete()
        result.outcome = BootstrapOutcome.completed if acquired else BootstrapOutcome.lock_unavailable

    # ---- schema & seed routine

    async def migrate_database_schema(self, result: BootstrapResult | None = None) -> bool:
        """
        Bind every configured context and run the seeder under the cluster lock.
        Returns False without doing anything when another replica holds the lock.
        """
        result = result if result is not None else BootstrapResult(database=self._database_identity)
        handle = await self.deps.lock_provider.try_acquire(self._lock_name)
        if handle is None:
            self.log.debug("lock held by a peer, skipping", event="lock.unavailable", lock=self._lock_name)
            return False

        try:
            self.log.info(
                f"Lock is acquired for db migration and seeding on database named: {self._database_identity}",
                event="lock.acquired",
                database=self._database_identity,
                lock=self._lock_name,
            )
            async with self.deps.units.begin(requires_new=True, transactional=False, name="schema") as inner:
                inner.on_completed(partial(self._seed, result))
                for ctx in self._contexts():
                    await self._bind_context(ctx, inner, result)
                await inner.complete()
        finally:
            await self._release_lock(handle)
        return True

    async def _release_lock(self, handle: LockHandle) -> None:
        # A failed release never replaces the bootstrap outcome; the lease expires on its own.
        with swallow(
            logger=self.log,
            level=logging.WARNING,
            code="lock.release.failed",
            msg=f"Lock release failed for: {self._database_identity}",
            expected=False,
            extra={"event": "lock.release.failed", "database": self._database_identity, "lock": self._lock_name},
        ):
            released = await handle.release()
            self.log.info(
                f"Lock is released for: {self._database_identity}",
                event="lock.released",
                database=self._database_identity,
                lock=self._lock_name,
                released=released,
            )

    def _contexts(self) -> list[ContextHandle]:
        src = self.deps.contexts
        if isinstance(src, ContextRegistry):
            return src.contexts()
        return list(src)

    async def _bind_context(self, ctx: ContextHandle, unit: UnitScope, result: BootstrapResult) -> None:
        name = connection_string_name(ctx)
        connection_string = await self.deps.resolver.resolve(name)
        if is_blank(connection_string):
            self.log.debug("no connection string, context skipped", event="context.skipped", context=name)
            result.skipped.append(name)
            return

        with log_context(context=name):
            try:
                # mongodb+srv parsing and client construction resolve DNS synchronously.
                parsed, client = await asyncio.to_thread(self._open_client, connection_string)
                if self.close_clients:
                    unit.add_resource(client)
                    unbind = getattr(ctx, "unbind", None)
                    if callable(unbind):
                        unit.on_disposed(unbind)
                database_name = effective_database_name(parsed, name)
                await ctx.initialize_collections(client.get_database(database_name))
            except BootstrapError:
                raise
            except Exception as e:
                raise BindFailure(name, f"failed to bind document context {name!r}: {e}") from e
            self.log.debug("context bound", event="context.bind.ok", target_database=database_name)
        result.bound.append(name)

    def _open_client(self, connection_string: str) -> tuple[ParsedConnection, Any]:
        parsed = parse_connection_string(connection_string)
        return parsed, self.deps.client_factory(parsed.uri)

    async def _seed(self, result: BootstrapResult) -> None:
        try:
            await self.deps.seeder.seed(SeedContext(tenant_id=self.deps.tenant.id))
        except BootstrapError:
            raise
        except Exception as e:
            raise SeedFailure(f"seeding database {self._database_identity!r} failed: {e}") from e
        result.seeded = True
