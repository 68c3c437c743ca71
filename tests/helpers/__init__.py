from .fakes import (
    AuditContext,
    CountingLockStore,
    ExplodingContext,
    MapResolver,
    OrdersContext,
    PeerHoldsLockProvider,
    RecordingSeeder,
    ReportingContext,
    SlowContext,
    UnnamedContext,
)
from .inmemory_db import InMemClient, InMemCollection, InMemDB, InMemServer

__all__ = [
    "AuditContext",
    "CountingLockStore",
    "ExplodingContext",
    "InMemClient",
    "InMemCollection",
    "InMemDB",
    "InMemServer",
    "MapResolver",
    "OrdersContext",
    "PeerHoldsLockProvider",
    "RecordingSeeder",
    "ReportingContext",
    "SlowContext",
    "UnnamedContext",
]
