"""
Turn Evals -- one agent's contribution, end to end, against mocked gateways.

The model gateway is an AsyncMock; the store is a real SQLite file.
"""

from unittest.mock import AsyncMock

import pytest

from evals.helpers import scripted_gateway
from warroom.events.sink import EventType
from warroom.orchestration.context_builder import FOLLOWUP_PHASE, QA_MODE_INSTRUCTIONS
from warroom.orchestration.escalations import EscalationLedger
from warroom.orchestration.models import HumanInterjection, Session
from warroom.orchestration.turn_executor import TurnExecutor
from warroom.search.client import SearchGatewayError, SearchResult, SearchSource


@pytest.fixture
def session(store):
    return store.create_session(Session(problem="Where should we open the next office?"))


def _executor(registry, plan, gateway, store, sink, config, search=None):
    executor = TurnExecutor(
        registry, plan, gateway, store, EscalationLedger(store), sink, config, search=search
    )
    return executor


def _states(sink, agent_id):
    return [
        e.data["state"] for e in sink.of(EventType.AGENT_STATE) if e.data["agent_id"] == agent_id
    ]


class TestPlainTurn:
    """Eval: Does a turn emit the right events in the right order?"""

    @pytest.mark.asyncio
    async def test_turn_persists_and_emits(self, registry, plan, store, sink, fast_config, session):
        gateway = scripted_gateway(lambda agent_id, n: "The office should be in Lisbon.")
        executor = _executor(registry, plan, gateway, store, sink, fast_config)
        executor.activate(session.id)

        message = await executor.run_turn(session, "red-teamer", 3)

        assert message.content == "The office should be in Lisbon."
        assert message.phase == "Red Team"
        assert sink.types() == [
            EventType.AGENT_STATE,
            EventType.AGENT_STATE,
            EventType.MESSAGE,
            EventType.AGENT_STATE,
        ]
        assert _states(sink, "red-teamer") == ["thinking", "speaking", "idle"]
        payload = sink.of(EventType.MESSAGE)[0].data
        assert payload["agent_name"] == "Red Teamer"
        assert payload["id"] == message.id
        assert store.load(session.id).messages == [message]
        assert executor.states(session.id)["red-teamer"].value == "idle"

    @pytest.mark.asyncio
    async def test_escalations_follow_the_message(
        self, registry, plan, store, sink, fast_config, session
    ):
        gateway = scripted_gateway(
            lambda agent_id, n: "Risky.\nNEED_HUMAN_INPUT: What is the budget?\n"
            "NEED_HUMAN_INPUT: Who signs off?"
        )
        executor = _executor(registry, plan, gateway, store, sink, fast_config)

        await executor.run_turn(session, "red-teamer", 3)

        assert sink.types()[2:] == [
            EventType.MESSAGE,
            EventType.ESCALATION,
            EventType.ESCALATION,
            EventType.AGENT_STATE,
        ]
        questions = [e.data["question"] for e in sink.of(EventType.ESCALATION)]
        assert questions == ["What is the budget?", "Who signs off?"]
        assert all(e.data["status"] == "pending" for e in sink.of(EventType.ESCALATION))
        assert len(store.escalations_for(session.id)) == 2

    @pytest.mark.asyncio
    async def test_model_failure_is_contained(
        self, registry, plan, store, sink, fast_config, session
    ):
        gateway = AsyncMock()
        gateway.invoke.side_effect = RuntimeError("provider down")
        executor = _executor(registry, plan, gateway, store, sink, fast_config)

        assert await executor.run_turn(session, "red-teamer", 3) is None

        assert sink.of(EventType.MESSAGE) == []
        error = sink.of(EventType.ERROR)[0]
        assert error.data["agent_id"] == "red-teamer"
        assert "Red Teamer" in error.data["message"]
        assert "provider down" in error.data["message"]
        assert _states(sink, "red-teamer") == ["thinking", "idle"]
        assert store.load(session.id).messages == []


class TestSearchTurn:
    """Eval: Does the research scout run the two-pass search protocol?"""

    @pytest.mark.asyncio
    async def test_two_pass_with_partial_failure(
        self, registry, plan, store, sink, fast_config, session
    ):
        def script(agent_id, n):
            if n == 1:
                return "Let me check.\nSEARCH: office rents lisbon\nSEARCH: tech hiring porto"
            return "Lisbon rents are moderate [1]."

        async def search(query):
            if query == "office rents lisbon":
                return SearchResult(
                    query=query,
                    summary="Rents rose 8% in 2025.",
                    sources=[SearchSource(title="Rent Report", url="https://example.com/rent")],
                )
            raise SearchGatewayError("timeout")

        gateway = scripted_gateway(script)
        search_gateway = AsyncMock()
        search_gateway.search.side_effect = search
        executor = _executor(registry, plan, gateway, store, sink, fast_config, search_gateway)

        message = await executor.run_turn(session, "research-scout", 0)

        assert message.content == "Lisbon rents are moderate [1]."
        assert gateway.invoke.await_count == 2
        assert _states(sink, "research-scout") == [
            "thinking", "searching", "thinking", "speaking", "idle",
        ]

        started = sink.of(EventType.SEARCH_STARTED)[0].data
        assert started["queries"] == ["office rents lisbon", "tech hiring porto"]
        complete = sink.of(EventType.SEARCH_COMPLETE)[0].data
        assert complete["source_count"] == 1
        assert complete["failed_queries"] == ["tech hiring porto"]

        system_prompt, conversation = gateway.invoke.call_args_list[1].args
        assert "SEARCH:" in system_prompt
        assert [t.role for t in conversation] == ["user", "assistant", "user"]
        results = conversation[-1].content
        assert results.startswith("SEARCH RESULTS:")
        assert '[1] "office rents lisbon"' in results
        assert "Summary: Rents rose 8% in 2025." in results
        assert "- Rent Report (https://example.com/rent)" in results
        assert '[2] "tech hiring porto": SEARCH FAILED (timeout)' in results

    @pytest.mark.asyncio
    async def test_empty_search_result_counts_as_failure(
        self, registry, plan, store, sink, fast_config, session
    ):
        gateway = scripted_gateway(
            lambda agent_id, n: "SEARCH: obscure topic" if n == 1 else "Nothing found."
        )
        search_gateway = AsyncMock()
        search_gateway.search.return_value = None
        executor = _executor(registry, plan, gateway, store, sink, fast_config, search_gateway)

        message = await executor.run_turn(session, "research-scout", 0)

        assert message.content == "Nothing found."
        assert sink.of(EventType.SEARCH_COMPLETE)[0].data["failed_queries"] == ["obscure topic"]

    @pytest.mark.asyncio
    async def test_numbered_directives_run_and_never_persist(
        self, registry, plan, store, sink, fast_config, session
    ):
        def script(agent_id, n):
            if n == 1:
                return "Plan:\n1. SEARCH: office rents lisbon\n2. SEARCH: hiring porto"
            return "Findings:\n- Rents are moderate.\n3. SEARCH: one more thing"

        gateway = scripted_gateway(script)
        search_gateway = AsyncMock()
        search_gateway.search.return_value = SearchResult(query="q", summary="Found it.")
        executor = _executor(registry, plan, gateway, store, sink, fast_config, search_gateway)

        message = await executor.run_turn(session, "research-scout", 0)

        assert [c.args[0] for c in search_gateway.search.await_args_list] == [
            "office rents lisbon", "hiring porto",
        ]
        assert gateway.invoke.await_count == 2
        assert message.content == "Findings:\n- Rents are moderate."
        assert "SEARCH:" not in store.load(session.id).messages[0].content

    @pytest.mark.asyncio
    async def test_without_search_gateway_directives_are_stripped(
        self, registry, plan, store, sink, fast_config, session
    ):
        gateway = scripted_gateway(
            lambda agent_id, n: "Framing first.\nSEARCH: something\nDone."
        )
        executor = _executor(registry, plan, gateway, store, sink, fast_config)

        message = await executor.run_turn(session, "research-scout", 0)

        assert gateway.invoke.await_count == 1
        assert "SEARCH:" not in message.content
        assert sink.of(EventType.SEARCH_STARTED) == []
        system_prompt = gateway.invoke.call_args.args[0]
        assert system_prompt == registry.get("research-scout").system_prompt

    @pytest.mark.asyncio
    async def test_no_directives_means_single_call(
        self, registry, plan, store, sink, fast_config, session
    ):
        gateway = scripted_gateway()
        search_gateway = AsyncMock()
        executor = _executor(registry, plan, gateway, store, sink, fast_config, search_gateway)

        await executor.run_turn(session, "research-scout", 0)

        assert gateway.invoke.await_count == 1
        search_gateway.search.assert_not_awaited()


class TestFollowup:
    """Eval: Is a follow-up answered by the synthesis agent in Q&A mode?"""

    @pytest.mark.asyncio
    async def test_followup_message(self, registry, plan, store, sink, fast_config, session):
        gateway = scripted_gateway(lambda agent_id, n: "Costs are covered in section 2.")
        executor = _executor(registry, plan, gateway, store, sink, fast_config)
        question = store.save_interjection(HumanInterjection(session.id, "What about cost?"))

        message = await executor.run_followup(session, question.content, question.id)

        assert message.agent_id == "process-architect"
        assert message.phase == FOLLOWUP_PHASE
        system_prompt, conversation = gateway.invoke.call_args.args
        assert system_prompt.endswith(QA_MODE_INSTRUCTIONS)
        assert "HUMAN FOLLOW-UP QUESTION:\nWhat about cost?" in conversation[0].content

    @pytest.mark.asyncio
    async def test_followup_failure_is_contained(
        self, registry, plan, store, sink, fast_config, session
    ):
        gateway = AsyncMock()
        gateway.invoke.side_effect = RuntimeError("provider down")
        executor = _executor(registry, plan, gateway, store, sink, fast_config)

        assert await executor.run_followup(session, "What about cost?") is None

        error = sink.of(EventType.ERROR)[0]
        assert error.data["agent_id"] == "process-architect"
        assert "provider down" in error.data["message"]
        assert sink.of(EventType.MESSAGE) == []
        assert _states(sink, "process-architect") == ["thinking", "idle"]
        assert store.load(session.id).messages == []
