"""
TurnExecutor -- runs exactly one agent's contribution within a phase.

A turn, in order:

    1. agent -> thinking
    2. build context, call the model gateway
    2a. (search-capable agent + search gateway configured)
        SEARCH: directives -> searching -> run queries -> thinking ->
        second model call with the results; the second answer wins
    3. agent -> speaking, persist the message, emit it
    4. NEED_HUMAN_INPUT: directives -> pending escalations
    5. agent -> idle, pacing pause

Failures inside a turn (model, search, storage) are contained here: the agent
goes back to idle, an `error` event names it, and the turn contributes no
message. The scheduler never sees the exception.

Usage:
    executor = TurnExecutor(registry, plan, gateway, store, ledger, sink, config)
    executor.activate(session.id)
    message = await executor.run_turn(session, "red-teamer", phase_index=3)
"""

import asyncio
import logging
from typing import TYPE_CHECKING

from ..agents.registry import AgentProfile, AgentRegistry
from ..agents.roster import SEARCH_INSTRUCTIONS
from ..config import DeliberationConfig
from ..events.sink import DeliberationEvent, EventSink, EventType
from ..llm.client import ConversationTurn, ModelGateway
from ..search.client import SearchGateway, SearchResult
from .context_builder import (
    FOLLOWUP_PHASE,
    build_context,
    build_followup_context,
    followup_system_prompt,
)
from .directives import DirectiveExtractor, MarkerDirectiveExtractor
from .escalations import EscalationLedger
from .models import AgentState, Message, Session, SessionSnapshot
from .phases import PhasePlan

if TYPE_CHECKING:
    from ..storage.store import SessionStore

logger = logging.getLogger(__name__)


class TurnExecutor:
    """Executes single agent turns and tracks per-session agent states."""

    def __init__(
        self,
        registry: AgentRegistry,
        plan: PhasePlan,
        gateway: ModelGateway,
        store: "SessionStore",
        ledger: EscalationLedger,
        sink: EventSink,
        config: DeliberationConfig | None = None,
        search: SearchGateway | None = None,
        extractor: DirectiveExtractor | None = None,
    ):
        self._registry = registry
        self._plan = plan
        self._gateway = gateway
        self._store = store
        self._ledger = ledger
        self._sink = sink
        self._config = config or DeliberationConfig()
        self._search = search
        self._extractor = extractor or MarkerDirectiveExtractor()
        self._states: dict[str, dict[str, AgentState]] = {}

    @property
    def search_enabled(self) -> bool:
        return self._search is not None

    @property
    def llm_configured(self) -> bool:
        """False only when the gateway reports it cannot make calls."""
        return bool(getattr(self._gateway, "is_configured", self._gateway is not None))

    # =========================================================================
    # AGENT STATES
    # =========================================================================

    def activate(self, session_id: str) -> None:
        """Reset every agent to idle for a session that is (re)starting."""
        self._states[session_id] = {a.id: AgentState.IDLE for a in self._registry.all()}

    def release(self, session_id: str) -> None:
        self._states.pop(session_id, None)

    def states(self, session_id: str) -> dict[str, AgentState]:
        return dict(self._states.get(session_id, {}))

    def _set_state(self, session_id: str, agent_id: str, state: AgentState) -> None:
        self._states.setdefault(session_id, {})[agent_id] = state
        self._emit(
            EventType.AGENT_STATE, session_id, {"agent_id": agent_id, "state": state.value}
        )

    def _emit(self, event_type: str, session_id: str, data: dict) -> None:
        self._sink.emit(DeliberationEvent(event_type, session_id, data))

    def _load(self, session_id: str) -> SessionSnapshot:
        snapshot = self._store.load(session_id)
        if snapshot is None:
            raise LookupError(f"Session {session_id} disappeared from the store")
        return snapshot

    # =========================================================================
    # TURNS
    # =========================================================================

    def system_prompt_for(self, agent: AgentProfile) -> str:
        if agent.can_search and self.search_enabled:
            return agent.system_prompt + SEARCH_INSTRUCTIONS
        return agent.system_prompt

    async def run_turn(self, session: Session, agent_id: str, phase_index: int) -> Message | None:
        """Run one agent turn. Returns the persisted message, or None on failure."""
        agent = self._registry.get(agent_id)
        phase = self._plan[phase_index]
        self._set_state(session.id, agent.id, AgentState.THINKING)

        try:
            snapshot = self._load(session.id)
            conversation = build_context(
                snapshot,
                agent,
                phase_index,
                self._plan,
                self._registry,
                max_file_chars=self._config.max_file_chars,
            )
            system_prompt = self.system_prompt_for(agent)
            content = await self._gateway.invoke(system_prompt, conversation)

            if agent.can_search and self.search_enabled:
                content = await self._search_pass(
                    session, agent, phase.name, system_prompt, conversation, content
                )
            if agent.can_search:
                content = self._extractor.strip_search_directives(content)

            self._set_state(session.id, agent.id, AgentState.SPEAKING)
            message = self._store.save_message(
                Message(
                    session_id=session.id,
                    agent_id=agent.id,
                    content=content,
                    phase=phase.name,
                )
            )
            self._emit(EventType.MESSAGE, session.id, self._message_payload(message, agent))

            for question in self._extractor.escalations(
                content, limit=self._config.max_escalations_per_turn
            ):
                escalation = self._ledger.create(session.id, agent.id, question)
                self._emit(
                    EventType.ESCALATION,
                    session.id,
                    {**escalation.to_dict(), "agent_name": agent.name, "glyph": agent.glyph},
                )
        except Exception as e:
            self._fail(session.id, agent, e)
            return None

        self._set_state(session.id, agent.id, AgentState.IDLE)
        session.touch()
        logger.info(
            f"[TurnExecutor] {agent.name} spoke in {phase.name} "
            f"({len(message.content)} chars, session={session.id})"
        )
        if self._config.turn_pause_seconds > 0:
            await asyncio.sleep(self._config.turn_pause_seconds)
        return message

    async def run_followup(
        self, session: Session, question: str, question_id: str | None = None
    ) -> Message | None:
        """Answer a post-deliberation question with the synthesis agent."""
        agent = self._registry.get(self._plan.synthesis_agent_id)
        self._set_state(session.id, agent.id, AgentState.THINKING)
        try:
            snapshot = self._load(session.id)
            conversation = build_followup_context(
                snapshot,
                question,
                self._registry,
                max_file_chars=self._config.max_file_chars,
                question_id=question_id,
            )
            content = await self._gateway.invoke(followup_system_prompt(agent), conversation)

            self._set_state(session.id, agent.id, AgentState.SPEAKING)
            message = self._store.save_message(
                Message(
                    session_id=session.id,
                    agent_id=agent.id,
                    content=content,
                    phase=FOLLOWUP_PHASE,
                )
            )
            self._emit(EventType.MESSAGE, session.id, self._message_payload(message, agent))
        except Exception as e:
            self._fail(session.id, agent, e)
            return None

        self._set_state(session.id, agent.id, AgentState.IDLE)
        logger.info(f"[TurnExecutor] Follow-up answered in session {session.id}")
        return message

    def _fail(self, session_id: str, agent: AgentProfile, error: Exception) -> None:
        logger.error(f"[TurnExecutor] {agent.id} failed in session {session_id}: {error}")
        self._set_state(session_id, agent.id, AgentState.IDLE)
        self._emit(
            EventType.ERROR,
            session_id,
            {
                "agent_id": agent.id,
                "message": f"{agent.name} encountered an error: {error}",
            },
        )

    def _message_payload(self, message: Message, agent: AgentProfile) -> dict:
        return {
            **message.to_dict(),
            "agent_name": agent.name,
            "glyph": agent.glyph,
            "color": agent.color,
        }

    # =========================================================================
    # SEARCH SUB-PROTOCOL
    # =========================================================================

    async def _search_pass(
        self,
        session: Session,
        agent: AgentProfile,
        phase_name: str,
        system_prompt: str,
        conversation: list[ConversationTurn],
        first_response: str,
    ) -> str:
        """Run the SEARCH directives in first_response; return the final answer."""
        queries = self._extractor.search_queries(
            first_response, limit=self._config.max_search_queries
        )
        if not queries:
            return first_response

        self._set_state(session.id, agent.id, AgentState.SEARCHING)
        self._emit(
            EventType.SEARCH_STARTED, session.id, {"agent_id": agent.id, "queries": queries}
        )

        outcomes: list[tuple[str, SearchResult | None, str | None]] = []
        for query in queries:
            outcomes.append(await self._run_query(query))

        source_count = sum(len(r.sources) for _, r, _ in outcomes if r is not None)
        failed = [q for q, r, _ in outcomes if r is None]
        self._emit(
            EventType.SEARCH_COMPLETE,
            session.id,
            {
                "agent_id": agent.id,
                "queries": queries,
                "source_count": source_count,
                "failed_queries": failed,
            },
        )
        logger.info(
            f"[TurnExecutor] {agent.name} searched {len(queries)} queries "
            f"-> {source_count} sources ({len(failed)} failed)"
        )

        self._set_state(session.id, agent.id, AgentState.THINKING)
        follow_up = [
            *conversation,
            ConversationTurn(role="assistant", content=first_response),
            ConversationTurn(
                role="user",
                content=self._results_block(outcomes)
                + "\n\nSynthesize these findings into your contribution as "
                f"{agent.name} ({agent.role}) for the {phase_name} phase. Cite "
                "sources where they support a claim. Do NOT include any further "
                "SEARCH: lines.",
            ),
        ]
        return await self._gateway.invoke(system_prompt, follow_up)

    async def _run_query(self, query: str) -> tuple[str, SearchResult | None, str | None]:
        try:
            result = await self._search.search(query)
        except Exception as e:
            logger.warning(f"[TurnExecutor] Search failed for '{query[:80]}': {e}")
            return query, None, str(e) or type(e).__name__
        if result is None:
            return query, None, "no results"
        return query, result, None

    @staticmethod
    def _results_block(outcomes: list[tuple[str, SearchResult | None, str | None]]) -> str:
        sections = ["SEARCH RESULTS:"]
        for number, (query, result, reason) in enumerate(outcomes, start=1):
            if result is None:
                sections.append(f'[{number}] "{query}": SEARCH FAILED ({reason})')
                continue
            lines = [f'[{number}] "{query}"']
            if result.summary:
                lines.append(f"Summary: {result.summary}")
            for source in result.sources:
                lines.append(f"- {source.title} ({source.url})")
                if source.snippet:
                    lines.append(f"  {source.snippet}")
            sections.append("\n".join(lines))
        return "\n\n".join(sections)
