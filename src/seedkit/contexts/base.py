# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Document contexts: logical groups of collections owned by the service.

A context declares its collections and indexes and knows how to bind them to
a live database handle (Motor ``AsyncIOMotorDatabase`` or any object with the
same ``list_collection_names`` / ``create_collection`` / ``__getitem__`` shape).

Each context class carries a connection-string name, the key used to look up
its connection string. It defaults to the class's qualified name and can be
set with ``connection_string_name_of("Orders")`` or a class attribute.
"""

from typing import Any, ClassVar, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..api.errors import ContextNotBound
from ..core.log import get_logger

__all__ = [
    "CollectionSpec",
    "ContextHandle",
    "DocumentContext",
    "IndexSpec",
    "connection_string_name",
    "connection_string_name_of",
]

_ATTR = "connection_string_name"


@runtime_checkable
class ContextHandle(Protocol):
    """Anything that can bind its collection descriptors to a live database."""

    async def initialize_collections(self, database: Any) -> None: ...


def connection_string_name_of(name: str):
    """Class decorator that sets the connection-string name of a context type."""
    if not name or not name.strip():
        raise ValueError("connection string name must be non-empty")

    def _wrap(cls):
        setattr(cls, _ATTR, name)
        return cls

    return _wrap


def connection_string_name(ctx: Any) -> str:
    """
    Static connection-string name for a context instance or type.
    Only the class is consulted, never instance state.
    """
    cls = ctx if isinstance(ctx, type) else type(ctx)
    name = getattr(cls, _ATTR, None)
    if isinstance(name, str) and name.strip():
        return name
    return cls.__qualname__


class IndexSpec(BaseModel):
    """Declared index: keys as ``[(field, 1|-1)]`` plus common options."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    keys: list[tuple[str, int]]
    name: str | None = None
    unique: bool = False
    sparse: bool = False
    expire_after_seconds: int | None = Field(default=None, ge=0)

    @field_validator("keys")
    @classmethod
    def _non_empty(cls, v: list[tuple[str, int]]) -> list[tuple[str, int]]:
        if not v:
            raise ValueError("index keys must be non-empty")
        for _field, order in v:
            if order not in (1, -1):
                raise ValueError("index key order must be 1 or -1")
        return v

    def create_kwargs(self) -> dict[str, Any]:
        kw: dict[str, Any] = {}
        if self.name:
            kw["name"] = self.name
        if self.unique:
            kw["unique"] = True
        if self.sparse:
            kw["sparse"] = True
        if self.expire_after_seconds is not None:
            kw["expireAfterSeconds"] = self.expire_after_seconds
        return kw


class CollectionSpec(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(min_length=1)
    indexes: list[IndexSpec] = Field(default_factory=list)


class DocumentContext:
    """
    Declarative context: subclasses list their collections in ``collections``.

        @connection_string_name_of("Orders")
        class OrdersContext(DocumentContext):
            collections = [
                CollectionSpec(name="orders", indexes=[IndexSpec(keys=[("number", 1)], unique=True)]),
            ]

    ``initialize_collections`` is idempotent: existing collections are not
    recreated and identical indexes are a no-op on the server.
    """

    collections: ClassVar[list[CollectionSpec]] = []

    def __init__(self) -> None:
        self._database: Any = None
        self.log = get_logger("contexts")

    @property
    def database(self) -> Any:
        """
        Database handle bound by ``initialize_collections``. The coordinator
        unbinds the context when it closes the client it built for binding.
        """
        if self._database is None:
            raise ContextNotBound(f"{type(self).__qualname__} is not bound to a database")
        return self._database

    @property
    def is_bound(self) -> bool:
        return self._database is not None

    def collection(self, name: str) -> Any:
        return self.database[name]

    def unbind(self) -> None:
        self._database = None

    async def initialize_collections(self, database: Any) -> None:
        existing = set(await database.list_collection_names())
        for spec in self.collections:
            if spec.name not in existing:
                await database.create_collection(spec.name)
                self.log.debug("collection created", event="collection.created", collection=spec.name)
            coll = database[spec.name]
            for idx in spec.indexes:
                await coll.create_index(list(idx.keys), **idx.create_kwargs())
        self._database = database
        self.log.debug(
            "context bound",
            event="context.bound",
            context=connection_string_name(self),
            collections=[c.name for c in self.collections],
        )
