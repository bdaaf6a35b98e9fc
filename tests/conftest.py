"""Shared pytest fixtures and configuration."""

import pytest

from tabkeeper.config import Config
from tabkeeper.sessions.reconciler import ReconciliationEngine
from tabkeeper.sessions.restore import RestoreGuard, RestoreOrchestrator
from tabkeeper.sessions.store import SessionStore
from tabkeeper.service import TabSyncService
from tabkeeper.storage import MemoryKeyValueStore
from tabkeeper.tabs.memory import MemoryTabPlatform


@pytest.fixture
def config():
    """Settings for offline tests: no settle delay, no startup restore."""
    return Config(
        restore_settle_seconds=0,
        restore_on_startup=False,
        storage_backend="memory",
    )


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def store(kv):
    return SessionStore(kv)


@pytest.fixture
def guard():
    return RestoreGuard(settle_delay=0)


@pytest.fixture
def platform():
    return MemoryTabPlatform()


@pytest.fixture
def engine(store, guard, platform, config):
    engine = ReconciliationEngine(store, guard, platform=platform, config=config)
    platform.set_event_callback(engine.submit)
    return engine


@pytest.fixture
def orchestrator(store, guard, platform, config):
    return RestoreOrchestrator(store, guard, platform=platform, config=config)


@pytest.fixture
def service(kv, config):
    return TabSyncService(kv=kv, config=config)
