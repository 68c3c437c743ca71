# conftest.py
from __future__ import annotations

import os
import uuid

import pytest

from seedkit.bootstrap.coordinator import BootstrapCoordinator, BootstrapDeps
from seedkit.contexts.registry import ContextRegistry
from seedkit.core.config import BootstrapConfig
from seedkit.core.log import bind_context, configure_from_env, enable_stdout_logging, get_logger, log_context
from seedkit.core.time import ManualClock
from seedkit.storage.locks import KVLockProvider
from tests.helpers import CountingLockStore, InMemServer, MapResolver, RecordingSeeder


def pytest_addoption(parser):
    parser.addoption(
        "--log-json",
        action="store_true",
        default=False,
        help="Emit seedkit logs in JSON format during tests",
    )


@pytest.fixture(scope="session", autouse=True)
def _configure_seedkit_logging(request):
    configure_from_env()
    prefer_json = request.config.getoption("--log-json")
    if os.getenv("SEEDKIT_LOG_STDOUT", "").lower() not in ("1", "true", "yes", "on"):
        enable_stdout_logging(
            level="DEBUG",
            json_output=prefer_json,
            pretty=not prefer_json,
            route_errors_to_stderr=True,
        )
    bind_context(role="pytest")


@pytest.fixture(scope="session")
def session_run_id():
    return uuid.uuid4().hex[:8]


@pytest.fixture(autouse=True)
def _test_log_context(request, session_run_id):
    log = get_logger("test")
    with log_context(test=request.node.name, test_run=session_run_id):
        log.debug("pytest.test.start", event="pytest.test.start")
        yield


@pytest.fixture
def clock():
    return ManualClock(start_ms=1_700_000_000_000)


@pytest.fixture
def lock_store(clock):
    return CountingLockStore(clock=clock)


@pytest.fixture
def server():
    return InMemServer()


@pytest.fixture
def seeder():
    return RecordingSeeder()


@pytest.fixture
def cfg():
    return BootstrapConfig(database_identity="orders", lock_owner="replica-a", lock_ttl_sec=60)


@pytest.fixture
def make_coordinator(cfg, lock_store, server, seeder):
    """
    Build a coordinator around in-memory collaborators. Keyword overrides:
    contexts, strings (resolver map), resolver, seeder, lock_provider, owner,
    cfg, client_factory, tenant, units; anything else goes to the coordinator.
    """

    def _make(*, contexts=(), strings=None, resolver=None, owner=None, **overrides) -> BootstrapCoordinator:
        c = overrides.pop("cfg", cfg)
        provider = overrides.pop("lock_provider", None) or KVLockProvider(
            lock_store, owner=owner or c.lock_owner, ttl_ms=c.lock_ttl_ms
        )
        scopes = {k: overrides.pop(k) for k in ("tenant", "units") if k in overrides}
        deps = BootstrapDeps(
            lock_provider=provider,
            contexts=ContextRegistry(list(contexts)),
            resolver=resolver or MapResolver(strings or {}),
            seeder=overrides.pop("seeder", seeder),
            client_factory=overrides.pop("client_factory", server.factory),
            **scopes,
        )
        return BootstrapCoordinator(deps, cfg=c, **overrides)

    return _make
