"""Eval test fixtures -- temp store, fast config, manager over a scripted gateway."""

import pytest
import pytest_asyncio

from evals.helpers import RecordingSink, scripted_gateway
from warroom.agents.roster import default_registry
from warroom.config import DeliberationConfig
from warroom.orchestration.phases import default_phase_plan
from warroom.orchestration.session_manager import SessionManager
from warroom.storage.store import SessionStore


@pytest.fixture
def fast_config(tmp_path):
    """Config with no pacing pause and a fast escalation poll."""
    return DeliberationConfig(
        poll_interval_seconds=0.01,
        escalation_timeout_seconds=5.0,
        turn_pause_seconds=0.0,
        db_path=tmp_path / "warroom.db",
    )


@pytest.fixture
def store(fast_config):
    return SessionStore(fast_config.db_path)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def plan():
    return default_phase_plan()


@pytest.fixture
def gateway():
    return scripted_gateway()


@pytest_asyncio.fixture
async def manager(gateway, sink, fast_config, store):
    """SessionManager over a scripted gateway; shut down after the test."""
    manager = SessionManager.build(gateway, sink=sink, config=fast_config, store=store)
    yield manager
    await manager.shutdown()


@pytest_asyncio.fixture
async def make_manager(sink, fast_config, store):
    """Factory for managers over custom gateways/stores; all shut down after the test."""
    built = []

    def make(gateway, **overrides):
        overrides.setdefault("store", store)
        manager = SessionManager.build(gateway, sink=sink, config=fast_config, **overrides)
        built.append(manager)
        return manager

    yield make
    for manager in built:
        await manager.shutdown()
