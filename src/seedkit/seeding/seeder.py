# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Seed data.

A ``Seeder`` is invoked once per bootstrap after every document context is
bound. ``DataSeeder`` fans out to contributors in registration order; each
contributor must be idempotent with respect to data already present.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol, runtime_checkable

from ..core.log import get_logger

__all__ = [
    "DataSeeder",
    "SeedContext",
    "SeedContributor",
    "Seeder",
    "UpsertSeedContributor",
]


@dataclass(frozen=True)
class SeedContext:
    """Tenant the seed runs for (``None`` = host scope) and free-form properties."""

    tenant_id: str | None = None
    properties: Mapping[str, Any] = field(default_factory=dict)


@runtime_checkable
class Seeder(Protocol):
    async def seed(self, context: SeedContext | None = None) -> None: ...


@runtime_checkable
class SeedContributor(Protocol):
    async def seed(self, context: SeedContext) -> None: ...


class DataSeeder:
    def __init__(self, contributors: list[SeedContributor] | None = None) -> None:
        self.contributors: list[SeedContributor] = list(contributors or [])
        self.log = get_logger("seeding")

    def add(self, contributor: SeedContributor) -> SeedContributor:
        self.contributors.append(contributor)
        return contributor

    async def seed(self, context: SeedContext | None = None) -> None:
        ctx = context or SeedContext()
        for contributor in self.contributors:
            name = type(contributor).__qualname__
            self.log.debug("seed contributor start", event="seed.contributor.start", contributor=name)
            await contributor.seed(ctx)
        self.log.debug("seed done", event="seed.done", contributors=len(self.contributors), tenant=ctx.tenant_id)


class UpsertSeedContributor:
    """
    Inserts documents that are not there yet, matched by ``key`` fields.
    Existing documents are left untouched (``$setOnInsert``).

    ``collection`` is a callable returning the target collection, so the
    contributor can be built before contexts are bound.
    """

    def __init__(self, collection: Callable[[], Any], documents: list[Mapping[str, Any]], *, key: tuple[str, ...]) -> None:
        if not key:
            raise ValueError("key must name at least one field")
        self._collection = collection
        self.documents = [dict(d) for d in documents]
        self.key = key

    async def seed(self, context: SeedContext) -> None:
        coll = self._collection()
        for doc in self.documents:
            missing = [k for k in self.key if k not in doc]
            if missing:
                raise ValueError(f"seed document lacks key fields {missing}")
            flt = {k: doc[k] for k in self.key}
            await coll.update_one(flt, {"$setOnInsert": doc}, upsert=True)
