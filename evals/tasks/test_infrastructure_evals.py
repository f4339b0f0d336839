"""
Infrastructure Evals -- event fan-out, configuration, CLI entrypoints.
"""

import asyncio
from pathlib import Path

import pytest
from typer.testing import CliRunner

from warroom.cli import app
from warroom.config import DEFAULT_DB_PATH, DeliberationConfig
from warroom.events.sink import DeliberationEvent, EventHub, EventSink, EventType
from warroom.orchestration.models import Session
from warroom.storage.store import SessionStore


def _event(n: int = 0) -> DeliberationEvent:
    return DeliberationEvent(EventType.MESSAGE, "a1b2c3d4e5", {"n": n})


class TestEventHub:
    """Eval: Does every observer get its own copy, and can none block the core?"""

    @pytest.mark.asyncio
    async def test_fan_out_to_every_subscriber(self):
        hub = EventHub()
        first, second = hub.subscribe(), hub.subscribe()

        hub.emit(_event())

        assert (await first.get()).data == {"n": 0}
        assert (await second.get()).data == {"n": 0}
        hub.unsubscribe(first)
        assert hub.subscriber_count == 1

    @pytest.mark.asyncio
    async def test_full_queue_drops_instead_of_blocking(self):
        hub = EventHub(queue_size=2)
        queue = hub.subscribe()
        for n in range(5):
            hub.emit(_event(n))
        assert queue.qsize() == 2
        assert [queue.get_nowait().data["n"] for _ in range(2)] == [0, 1]

    def test_failing_listener_does_not_break_others(self):
        hub = EventHub()
        received = []

        def broken(event):
            raise RuntimeError("listener bug")

        hub.add_listener(broken)
        hub.add_listener(received.append)
        hub.emit(_event())
        assert len(received) == 1

    def test_wire_format_flattens_data(self):
        assert _event(3).to_dict() == {"type": "message", "session_id": "a1b2c3d4e5", "n": 3}

    def test_hub_is_an_event_sink(self):
        assert isinstance(EventHub(), EventSink)

    @pytest.mark.asyncio
    async def test_unsubscribed_queue_gets_nothing(self):
        hub = EventHub()
        queue = hub.subscribe()
        hub.unsubscribe(queue)
        hub.emit(_event())
        with pytest.raises(asyncio.QueueEmpty):
            queue.get_nowait()


class TestConfig:
    """Eval: Do env overrides apply, and bad values fall back to defaults?"""

    def test_defaults(self):
        config = DeliberationConfig()
        assert config.poll_interval_seconds == 2.0
        assert config.escalation_timeout_seconds == 300.0
        assert config.db_path == DEFAULT_DB_PATH

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("WARROOM_ESCALATION_TIMEOUT", "30")
        monkeypatch.setenv("WARROOM_TURN_PAUSE", "0")
        monkeypatch.setenv("WARROOM_DB_PATH", "/tmp/wr.db")
        monkeypatch.setenv("WARROOM_MAX_FILE_CHARS", "not-a-number")

        config = DeliberationConfig.from_env()

        assert config.escalation_timeout_seconds == 30.0
        assert config.turn_pause_seconds == 0.0
        assert config.db_path == Path("/tmp/wr.db")
        assert config.max_file_chars == 10_000


class TestCLI:
    """Eval: Do the read-only CLI commands run?"""

    def test_phases(self):
        result = CliRunner().invoke(app, ["phases"])
        assert result.exit_code == 0
        assert "15 turns" in result.output
        assert "Synthesis" in result.output

    def test_agents(self):
        result = CliRunner().invoke(app, ["agents"])
        assert result.exit_code == 0
        assert "Agents" in result.output

    def test_sessions_on_empty_store(self, tmp_path):
        result = CliRunner().invoke(app, ["sessions", "--db", str(tmp_path / "cli.db")])
        assert result.exit_code == 0
        assert (tmp_path / "cli.db").exists()

    def test_sessions_search(self, tmp_path):
        db = tmp_path / "cli.db"
        store = SessionStore(db)
        store.create_session(Session(problem="Migrate billing to Stripe"))
        store.create_session(Session(problem="Hire a data team"))

        result = CliRunner().invoke(app, ["sessions", "--db", str(db), "--search", "billing"])

        assert result.exit_code == 0
        assert "Migrate billing" in result.output
        assert "Hire a data team" not in result.output
