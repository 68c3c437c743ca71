# tests/integration/test_bootstrap_scenarios.py
"""
End-to-end bootstrap scenarios against in-memory collaborators.

Covers:
- Happy path: lock name, target database, one seeder run, acquire/release log pair
- Peer holds the lock: nothing bound, nothing seeded, no error
- URI without database path falls back to the context's connection-string name
- Blank connection strings skip the context and no client is built for it
- Client construction failure mid-way: lock released once, one error log, no seeding
- Two replicas racing: exactly one acquires and binds
"""

from __future__ import annotations

import asyncio
import logging
import threading

import pytest

from seedkit.api.errors import BindFailure
from seedkit.bootstrap.coordinator import BootstrapOutcome
from seedkit.contexts import uri as uri_module
from tests.helpers import (
    AuditContext,
    OrdersContext,
    PeerHoldsLockProvider,
    RecordingSeeder,
    ReportingContext,
    SlowContext,
)

pytestmark = [pytest.mark.integration]


def _events(caplog, name: str) -> list[logging.LogRecord]:
    return [r for r in caplog.records if getattr(r, "event", None) == name]


@pytest.mark.asyncio
async def test_happy_path_single_context(make_coordinator, lock_store, server, seeder, caplog):
    """S1: lock Migration_Mongo_orders acquired then released, client targets ordersdb, one seed."""
    caplog.set_level(logging.DEBUG, logger="seedkit")
    ctx = OrdersContext()
    coord = make_coordinator(contexts=[ctx], strings={"OrdersCtx": "mongodb://h/ordersdb"})

    result = await coord.check_and_apply_database_bootstrap()

    assert coord.lock_name == "Migration_Mongo_orders"
    assert result.outcome is BootstrapOutcome.completed
    assert result.error is None
    assert result.bound == ["OrdersCtx"]
    assert result.seeded is True
    assert server.requested == ["ordersdb"]
    assert [c.uri for c in server.clients] == ["mongodb://h/ordersdb"]
    assert len(seeder.calls) == 1

    assert (lock_store.acquired, lock_store.released, lock_store.release_calls) == (1, 1, 1)
    assert await lock_store.get_lock("Migration_Mongo_orders") is None

    db = server.database("ordersdb")
    assert db.created == ["orders"]
    assert "uniq_order_number" in db.orders.index_names()
    assert "ix_orders_customer" in db.orders.index_names()
    assert not ctx.is_bound
    assert all(c.closed for c in server.clients)

    acquired = _events(caplog, "lock.acquired")
    released = _events(caplog, "lock.released")
    assert len(acquired) == 1 and len(released) == 1
    assert acquired[0].levelno == logging.INFO and released[0].levelno == logging.INFO
    assert acquired[0].database == "orders" and released[0].database == "orders"
    assert caplog.records.index(acquired[0]) < caplog.records.index(released[0])
    assert not [r for r in caplog.records if r.levelno >= logging.ERROR]


@pytest.mark.asyncio
async def test_peer_holds_lock_yields_quietly(make_coordinator, server, seeder, caplog):
    """S2: try-acquire returns None -> no acquired log, no binding, no seeding, no error."""
    caplog.set_level(logging.DEBUG, logger="seedkit")
    provider = PeerHoldsLockProvider()
    ctx = OrdersContext()
    coord = make_coordinator(
        contexts=[ctx], strings={"OrdersCtx": "mongodb://h/ordersdb"}, lock_provider=provider
    )

    result = await coord.check_and_apply_database_bootstrap()

    assert result.outcome is BootstrapOutcome.lock_unavailable
    assert result.error is None
    assert provider.attempts == ["Migration_Mongo_orders"]
    assert server.clients == []
    assert seeder.calls == []
    assert not ctx.is_bound
    assert _events(caplog, "lock.acquired") == []
    assert _events(caplog, "lock.released") == []
    assert not [r for r in caplog.records if r.levelno >= logging.ERROR]


@pytest.mark.asyncio
@pytest.mark.parametrize("uri", ["mongodb://h/", "mongodb://h", "mongodb://user:pw@h1:27017,h2:27018/?replicaSet=rs0"])
async def test_missing_database_path_falls_back_to_context_name(make_coordinator, server, uri):
    """S3: no database component in the URI -> database named after the context."""
    coord = make_coordinator(contexts=[ReportingContext()], strings={"reporting": uri})

    result = await coord.check_and_apply_database_bootstrap()

    assert result.outcome is BootstrapOutcome.completed
    assert server.requested == ["reporting"]
    assert server.database("reporting").created == ["daily_reports"]


@pytest.mark.asyncio
@pytest.mark.parametrize("blank", ["", "   ", "\t\n"])
async def test_blank_connection_string_skips_context(make_coordinator, lock_store, server, seeder, blank):
    """S4: Audit resolves blank -> skipped without a client; Orders still bound; lock released."""
    audit = AuditContext()
    orders = OrdersContext()
    coord = make_coordinator(
        contexts=[audit, orders],
        strings={"Audit": blank, "OrdersCtx": "mongodb://h/ordersdb"},
    )

    result = await coord.check_and_apply_database_bootstrap()

    assert result.outcome is BootstrapOutcome.completed
    assert result.skipped == ["Audit"]
    assert result.bound == ["OrdersCtx"]
    assert not audit.is_bound
    assert [c.uri for c in server.clients] == ["mongodb://h/ordersdb"]
    assert len(seeder.calls) == 1
    assert lock_store.release_calls == 1


@pytest.mark.asyncio
async def test_unknown_context_name_is_skipped(make_coordinator, server):
    coord = make_coordinator(contexts=[AuditContext()], strings={})

    result = await coord.check_and_apply_database_bootstrap()

    assert result.outcome is BootstrapOutcome.completed
    assert result.skipped == ["Audit"]
    assert server.clients == []


@pytest.mark.asyncio
async def test_client_construction_failure_releases_lock_and_skips_seeding(
    make_coordinator, lock_store, server, seeder, caplog
):
    """S5: second of three clients fails to build -> lock released once, one error log, seeder not run."""
    caplog.set_level(logging.DEBUG, logger="seedkit")

    def factory(uri: str):
        if "broken-host" in uri:
            raise ConnectionError("handshake refused")
        return server.factory(uri)

    orders, audit, reporting = OrdersContext(), AuditContext(), ReportingContext()
    coord = make_coordinator(
        contexts=[orders, audit, reporting],
        strings={
            "OrdersCtx": "mongodb://h/ordersdb",
            "Audit": "mongodb://broken-host/audit",
            "reporting": "mongodb://h/reports",
        },
        client_factory=factory,
    )

    result = await coord.check_and_apply_database_bootstrap()

    assert result.outcome is BootstrapOutcome.failed
    assert isinstance(result.error, BindFailure)
    assert result.error.context_name == "Audit"
    assert isinstance(result.error.__cause__, ConnectionError)
    assert result.error_kind == "BindFailure"
    assert result.bound == ["OrdersCtx"]
    assert not reporting.is_bound
    assert seeder.calls == []
    assert result.seeded is False

    assert (lock_store.acquired, lock_store.release_calls, lock_store.released) == (1, 1, 1)
    assert all(c.closed for c in server.clients)

    errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
    assert len(errors) == 1
    assert errors[0].event == "bootstrap.failed"
    assert errors[0].exc_info is not None
    assert len(_events(caplog, "lock.released")) == 1


@pytest.mark.asyncio
async def test_concurrent_replicas_only_one_binds(make_coordinator, lock_store, server, seeder, caplog):
    """S6: two coordinators share a lock store; exactly one acquires, the other sees the peer outcome."""
    caplog.set_level(logging.DEBUG, logger="seedkit")
    a_ctx, b_ctx = SlowContext(delay=0.05), SlowContext(delay=0.05)
    strings = {"Slow": "mongodb://h/slowdb"}
    a = make_coordinator(contexts=[a_ctx], strings=strings, owner="replica-a")
    b = make_coordinator(contexts=[b_ctx], strings=strings, owner="replica-b")

    ra, rb = await asyncio.gather(
        a.check_and_apply_database_bootstrap(),
        b.check_and_apply_database_bootstrap(),
    )

    outcomes = sorted([ra.outcome.value, rb.outcome.value])
    assert outcomes == ["completed", "lock_unavailable"]
    assert a_ctx.bind_count + b_ctx.bind_count == 1
    assert len(seeder.calls) == 1
    assert len(_events(caplog, "lock.acquired")) == 1
    assert (lock_store.acquired, lock_store.released) == (1, 1)


@pytest.mark.asyncio
async def test_many_concurrent_replicas_mutual_exclusion(make_coordinator, lock_store, seeder):
    contexts = [SlowContext(delay=0.02) for _ in range(5)]
    coords = [
        make_coordinator(contexts=[ctx], strings={"Slow": "mongodb://h/slowdb"}, owner=f"replica-{i}")
        for i, ctx in enumerate(contexts)
    ]

    results = await asyncio.gather(*(c.check_and_apply_database_bootstrap() for c in coords))

    assert [r.outcome for r in results].count(BootstrapOutcome.completed) == 1
    assert sum(ctx.bind_count for ctx in contexts) == 1
    assert len(seeder.calls) == 1
    assert lock_store.acquired == 1


@pytest.mark.asyncio
async def test_lock_is_free_again_after_a_run(make_coordinator, lock_store, seeder):
    strings = {"OrdersCtx": "mongodb://h/ordersdb"}
    first = make_coordinator(contexts=[OrdersContext()], strings=strings, owner="replica-a")
    second = make_coordinator(
        contexts=[OrdersContext()], strings=strings, owner="replica-b", seeder=RecordingSeeder()
    )

    r1 = await first.check_and_apply_database_bootstrap()
    r2 = await second.check_and_apply_database_bootstrap()

    assert r1.outcome is BootstrapOutcome.completed
    assert r2.outcome is BootstrapOutcome.completed
    assert lock_store.acquired == 2 and lock_store.released == 2


@pytest.mark.asyncio
async def test_srv_uri_is_parsed_and_connected_off_the_event_loop(make_coordinator, server, monkeypatch):
    """mongodb+srv resolution blocks on DNS, so parsing and client construction run in a worker thread."""
    loop_thread = threading.get_ident()
    seen: dict[str, int] = {}

    def fake_parse_uri(uri):
        seen["parse"] = threading.get_ident()
        assert uri == "mongodb+srv://cluster0.example.net/ordersdb"
        return {"database": "ordersdb", "nodelist": [("shard-00.example.net", 27017)]}

    def factory(uri: str):
        seen["connect"] = threading.get_ident()
        return server.factory(uri)

    monkeypatch.setattr(uri_module, "parse_uri", fake_parse_uri)
    coord = make_coordinator(
        contexts=[OrdersContext()],
        strings={"OrdersCtx": "mongodb+srv://cluster0.example.net/ordersdb"},
        client_factory=factory,
    )

    result = await coord.check_and_apply_database_bootstrap()

    assert result.outcome is BootstrapOutcome.completed
    assert server.requested == ["ordersdb"]
    assert seen["parse"] != loop_thread and seen["connect"] != loop_thread
