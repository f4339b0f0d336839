"""
API Evals -- REST and WebSocket surface over a scripted gateway.

TestClient is always used as a context manager so the deliberation tasks
keep running on its event loop between requests.
"""

import time
from contextlib import ExitStack

import pytest
from fastapi.testclient import TestClient

from evals.helpers import scripted_gateway
from warroom.api.gateway import create_app
from warroom.api.middleware.rate_limit import RateLimiter
from warroom.events.sink import EventHub
from warroom.orchestration.errors import StorageError
from warroom.orchestration.session_manager import SessionManager
from warroom.storage.store import SessionStore

PROBLEM = "How should we price the enterprise tier?"


def _escalating(agent_id, n):
    if n == 1:
        return "Framing.\nNEED_HUMAN_INPUT: What do competitors charge?"
    return f"Contribution from {agent_id}."


@pytest.fixture
def make_client(fast_config, store):
    """Factory for TestClients over fresh managers; all closed after the test."""
    with ExitStack() as stack:

        def make(script=None, store_override=None, limiter=None) -> TestClient:
            manager = SessionManager.build(
                scripted_gateway(script),
                sink=EventHub(),
                config=fast_config,
                store=store_override or store,
            )
            app = create_app(manager=manager, rate_limiter=limiter or RateLimiter(limit=100))
            return stack.enter_context(TestClient(app))

        yield make


@pytest.fixture
def client(make_client):
    return make_client()


def _detail(client, session_id):
    response = client.get(f"/api/v1/sessions/{session_id}")
    assert response.status_code == 200
    return response.json()


def _wait(client, session_id, predicate, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        detail = _detail(client, session_id)
        if predicate(detail):
            return detail
        time.sleep(0.02)
    raise AssertionError("session did not reach the expected state")


def _wait_done(client, session_id):
    return _wait(client, session_id, lambda d: not d["session"]["active"])


def _create(client, **body):
    response = client.post("/api/v1/sessions", json={"problem": PROBLEM, **body})
    assert response.status_code == 201, response.text
    return response.json()


class TestRosterEndpoints:
    """Eval: Are health, agents and phases served correctly?"""

    def test_health(self, client):
        data = client.get("/api/health").json()
        assert data["status"] == "healthy"
        assert data["agents_registered"] == 8
        assert data["phases"] == 5
        assert data["active_sessions"] == 0
        assert data["llm_configured"] is True
        assert data["search_enabled"] is False

    def test_agents(self, client):
        data = client.get("/api/v1/agents").json()
        assert data["total"] == 8
        assert all("system_prompt" not in a for a in data["agents"])
        assert client.get("/api/v1/agents/red-teamer").json()["name"] == "Red Teamer"
        assert client.get("/api/v1/agents/nobody").status_code == 404

    def test_phases(self, client):
        data = client.get("/api/v1/phases").json()
        assert data["total_turns"] == 15
        assert [p["name"] for p in data["phases"]][-1] == "Synthesis"


class TestSessionLifecycle:
    """Eval: Can a client run a deliberation end to end over HTTP?"""

    def test_create_run_and_inspect(self, client):
        created = _create(
            client,
            files=[{"name": "pricing.csv", "size": 9, "mime_type": "text/csv", "text": "tier,usd"}],
        )
        assert created["active"] is True
        assert created["files"] == [{"name": "pricing.csv", "size": 9, "mime_type": "text/csv"}]

        detail = _wait_done(client, created["id"])
        assert len(detail["messages"]) == 15
        assert detail["messages"][-1]["phase"] == "Synthesis"
        assert "text" not in detail["session"]["files"][0]

        listing = client.get("/api/v1/sessions").json()
        assert listing["total"] == 1
        assert listing["sessions"][0]["id"] == created["id"]

        export = client.get(f"/api/v1/sessions/{created['id']}/export/options").json()
        assert export["is_complete"] is True
        assert export["has_synthesis"] is True
        assert [f["id"] for f in export["formats"]] == ["txt", "md", "json"]

    def test_followup_message(self, client):
        session_id = _create(client)["id"]
        _wait_done(client, session_id)

        response = client.post(
            f"/api/v1/sessions/{session_id}/messages", json={"content": "And for startups?"}
        )
        assert response.status_code == 200
        assert response.json()["content"] == "And for startups?"

        detail = _wait(client, session_id, lambda d: len(d["messages"]) == 16)
        assert detail["messages"][-1]["phase"] == "Follow-up"
        assert detail["human_messages"][0]["content"] == "And for startups?"

    def test_answer_escalation(self, make_client):
        client = make_client(_escalating)
        session_id = _create(client)["id"]
        detail = _wait(client, session_id, lambda d: d["escalations"])
        escalation_id = detail["escalations"][0]["id"]
        url = f"/api/v1/sessions/{session_id}/escalations/{escalation_id}/answer"

        first = client.post(url, json={"answer": "Around $40 per seat"})
        assert first.status_code == 200
        assert first.json()["status"] == "answered"
        assert client.post(url, json={"answer": "again"}).status_code == 409

        missing = f"/api/v1/sessions/{session_id}/escalations/nosuchid/answer"
        assert client.post(missing, json={"answer": "x"}).status_code == 404

        assert len(_wait_done(client, session_id)["messages"]) == 15

    def test_search_and_filtered_listings(self, make_client):
        client = make_client(_escalating)
        session_id = _create(client)["id"]
        _wait(client, session_id, lambda d: d["escalations"])
        base = f"/api/v1/sessions/{session_id}"

        pending = client.get(f"{base}/escalations", params={"pending": "true"}).json()
        assert pending["total"] == 1
        escalation_id = pending["escalations"][0]["id"]
        client.post(f"{base}/escalations/{escalation_id}/answer", json={"answer": "About $30"})
        _wait_done(client, session_id)
        assert client.get(f"{base}/escalations", params={"pending": "true"}).json()["total"] == 0
        assert client.get(f"{base}/escalations").json()["escalations"][0]["answer"] == "About $30"

        scout = client.get(f"{base}/messages", params={"agent_id": "research-scout"}).json()
        assert scout["total"] >= 1
        assert {m["agent_id"] for m in scout["messages"]} == {"research-scout"}
        assert client.get(f"{base}/messages", params={"phase": "Synthesis"}).json()["total"] == 1
        assert client.get(f"{base}/messages", params={"phase": "Brainstorm"}).status_code == 400

        search = "/api/v1/sessions/search"
        found = client.get(search, params={"q": "enterprise tier"}).json()
        assert [s["id"] for s in found["sessions"]] == [session_id]
        assert client.get(search, params={"q": "competitors charge"}).json()["total"] == 1
        assert client.get(search, params={"q": "no such words"}).json()["total"] == 0
        assert client.get(search).status_code == 400

    def test_stop_then_delete(self, make_client):
        client = make_client(_escalating)
        session_id = _create(client)["id"]
        _wait(client, session_id, lambda d: d["escalations"])

        stopped = client.post(f"/api/v1/sessions/{session_id}/stop")
        assert stopped.json() == {"status": "stopped", "session_id": session_id}
        assert len(_wait_done(client, session_id)["messages"]) == 1

        assert client.delete(f"/api/v1/sessions/{session_id}").status_code == 200
        assert client.get(f"/api/v1/sessions/{session_id}").status_code == 404


class TestErrorMapping:
    """Eval: Do orchestrator errors map to the right status codes?"""

    def test_invalid_input_is_400(self, client):
        assert client.post("/api/v1/sessions", json={"problem": "  "}).status_code == 400
        assert client.post("/api/v1/sessions", json={}).status_code == 400
        assert client.get("/api/v1/sessions/abc").status_code == 400

    def test_unknown_session_is_404(self, client):
        assert client.get("/api/v1/sessions/abcdef1234").status_code == 404
        assert client.post("/api/v1/sessions/abcdef1234/stop").status_code == 404
        assert client.delete("/api/v1/sessions/abcdef1234").status_code == 404
        assert client.get("/api/v1/sessions/abcdef1234/messages").status_code == 404
        assert client.get("/api/v1/sessions/abcdef1234/escalations").status_code == 404
        response = client.post(
            "/api/v1/sessions/abcdef1234/messages", json={"content": "hello"}
        )
        assert response.status_code == 404

    def test_store_unavailable_is_503(self, make_client, fast_config):
        class FailingStore(SessionStore):
            def create_session(self, session):
                raise StorageError("disk I/O error")

        client = make_client(store_override=FailingStore(fast_config.db_path))
        response = client.post("/api/v1/sessions", json={"problem": PROBLEM})
        assert response.status_code == 503
        assert "disk" not in response.text

    def test_rate_limit_is_429(self, make_client):
        client = make_client(limiter=RateLimiter(limit=1))
        _create(client)
        response = client.post("/api/v1/sessions", json={"problem": PROBLEM})
        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"


class TestWebSocket:
    """Eval: Does the live channel bootstrap, reject bad requests and stream events?"""

    def test_bootstrap_and_errors(self, client):
        with client.websocket_connect("/ws") as ws:
            assert [ws.receive_json()["type"] for _ in range(3)] == [
                "sessions", "agents", "phases",
            ]

            ws.send_json({"type": "launch-missiles"})
            error = ws.receive_json()
            assert error["type"] == "error"
            assert error["request"] == "launch-missiles"

            ws.send_json({"type": "join-session", "session_id": "abcdef1234"})
            error = ws.receive_json()
            assert error["type"] == "error"
            assert "not found" in error["message"]

            ws.send_json({"type": "new-session", "problem": ""})
            assert ws.receive_json()["type"] == "error"

    def test_new_session_streams_to_completion(self, client):
        with client.websocket_connect("/ws") as ws:
            for _ in range(3):
                ws.receive_json()

            ws.send_json({"type": "new-session", "problem": PROBLEM})
            seen = []
            for _ in range(500):
                event = ws.receive_json()
                seen.append(event["type"])
                if event["type"] == "deliberation-complete":
                    break

            assert seen[0] == "session-created"
            assert seen.count("message") == 15
            assert seen.count("phase-change") == 5
            assert event["outcome"] == "complete"
            session_id = event["session_id"]

            ws.send_json({"type": "join-session", "session_id": session_id})
            state = ws.receive_json()
            assert state["type"] == "session-state"
            assert len(state["messages"]) == 15
            assert state["session"]["active"] is False
