"""
SessionManager -- inbound operations and the registry of running sessions.

Every external surface (HTTP routes, WebSocket handler, CLI) goes through this
class. It validates input, writes through the store, emits events and owns the
asyncio tasks that run deliberations and follow-up answers.

Usage:
    manager = SessionManager.build(gateway, sink=hub, config=config)
    session = await manager.create_session("Should we use microservices?")
    manager.submit_escalation_answer(session.id, escalation_id, "About $2M")
    snapshot = manager.join_session(session.id)
    manager.list_messages(session.id, phase="Synthesis")
    await manager.shutdown()

A session stays in the in-memory registry only while its deliberation or a
follow-up is running. Sessions a previous process left active are closed
when the manager is built.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from ..agents.registry import AgentRegistry
from ..agents.roster import default_registry
from ..config import DeliberationConfig
from ..events.sink import DeliberationEvent, EventHub, EventSink, EventType
from ..llm.client import ModelGateway
from ..search.client import SearchGateway
from ..security.prompt_guard import detect_injection_attempt
from ..security.validators import (
    validate_in_choices,
    validate_length,
    validate_list_size,
    validate_not_empty,
    validate_record_id,
    validate_session_id,
)
from ..storage.store import SessionStore
from .context_builder import FOLLOWUP_PHASE
from .directives import DirectiveExtractor
from .errors import StorageError, UnknownSession
from .escalations import EscalationLedger
from .models import (
    Escalation,
    ExportSummary,
    FileRef,
    HumanInterjection,
    Message,
    Session,
    SessionSnapshot,
)
from .phases import PhasePlan, default_phase_plan
from .scheduler import DeliberationScheduler
from .turn_executor import TurnExecutor

logger = logging.getLogger(__name__)


@dataclass
class ActiveSession:
    """A session with a deliberation or follow-up running in this process.

    Entries are dropped when the last task finishes; a later follow-up
    recreates one from the stored session.
    """

    session: Session
    task: asyncio.Task | None = None
    followups: set[asyncio.Task] = field(default_factory=set)
    turn_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


def _session_payload(session: Session) -> dict[str, Any]:
    """Session fields for events and listings; file text is left out."""
    return {
        "id": session.id,
        "problem": session.problem,
        "phase_index": session.phase_index,
        "active": session.active,
        "created_at": session.created_at,
        "updated_at": session.updated_at,
        "finished_at": session.finished_at,
        "files": [
            {"name": f.name, "size": f.size, "mime_type": f.mime_type} for f in session.files
        ],
    }


class SessionManager:
    """Single entry point for creating, steering and inspecting deliberations."""

    def __init__(
        self,
        registry: AgentRegistry,
        plan: PhasePlan,
        store: SessionStore,
        executor: TurnExecutor,
        scheduler: DeliberationScheduler,
        ledger: EscalationLedger,
        sink: EventSink,
        config: DeliberationConfig,
    ):
        self.registry = registry
        self.plan = plan
        self.store = store
        self.config = config
        self._executor = executor
        self._scheduler = scheduler
        self._ledger = ledger
        self._sink = sink
        self._active: dict[str, ActiveSession] = {}

    @classmethod
    def build(
        cls,
        gateway: ModelGateway,
        sink: EventSink | None = None,
        config: DeliberationConfig | None = None,
        search: SearchGateway | None = None,
        registry: AgentRegistry | None = None,
        plan: PhasePlan | None = None,
        store: SessionStore | None = None,
        extractor: DirectiveExtractor | None = None,
    ) -> "SessionManager":
        """Wire the default components together."""
        config = config or DeliberationConfig()
        registry = registry or default_registry()
        plan = plan or default_phase_plan()
        plan.validate_against(registry)
        store = store or SessionStore(config.db_path)
        store.finish_interrupted()
        sink = sink or EventHub()
        ledger = EscalationLedger(store)
        executor = TurnExecutor(
            registry, plan, gateway, store, ledger, sink,
            config=config, search=search, extractor=extractor,
        )
        scheduler = DeliberationScheduler(plan, executor, ledger, store, sink, config)
        return cls(registry, plan, store, executor, scheduler, ledger, sink, config)

    @property
    def sink(self) -> EventSink:
        return self._sink

    @property
    def search_enabled(self) -> bool:
        return self._executor.search_enabled

    @property
    def llm_configured(self) -> bool:
        return self._executor.llm_configured

    def _emit(self, event_type: str, session_id: str, data: dict) -> None:
        self._sink.emit(DeliberationEvent(event_type, session_id, data))

    def _lookup(self, session_id: str) -> Session:
        """Active in-memory session, else the persisted one. Raises UnknownSession."""
        validate_session_id(session_id)
        entry = self._active.get(session_id)
        if entry is not None:
            return entry.session
        session = self.store.get_session(session_id)
        if session is None:
            raise UnknownSession(session_id)
        return session

    def is_running(self, session_id: str) -> bool:
        entry = self._active.get(session_id)
        return entry is not None and entry.task is not None and not entry.task.done()

    # =========================================================================
    # CREATE / RUN
    # =========================================================================

    async def create_session(
        self, problem: str, files: list[FileRef] | None = None
    ) -> Session:
        """
        Persist a new session and start its deliberation in the background.

        Raises ValidationError for bad input and StorageError if the store is
        unavailable; in both cases nothing is started.
        """
        problem = validate_not_empty(problem, "problem")
        validate_length(problem, "problem", max_length=self.config.max_problem_length)
        files = validate_list_size(list(files or []), "files", max_items=self.config.max_files)
        if detect_injection_attempt(problem):
            logger.warning("[SessionManager] Problem statement contains injection patterns")

        session = Session(problem=problem, files=files)
        try:
            self.store.create_session(session)
        except StorageError:
            logger.error(f"[SessionManager] Could not persist new session {session.id}")
            raise

        entry = ActiveSession(session=session)
        self._active[session.id] = entry
        self._emit(EventType.SESSION_CREATED, session.id, {"session": _session_payload(session)})

        entry.task = asyncio.create_task(self._run(entry), name=f"deliberation-{session.id}")
        logger.info(
            f"[SessionManager] Session {session.id} created "
            f"({len(problem)} chars, {len(files)} files)"
        )
        return session

    async def _run(self, entry: ActiveSession) -> ExportSummary:
        try:
            async with entry.turn_lock:
                return await self._scheduler.run(entry.session)
        finally:
            self._retire(entry)

    def _retire(self, entry: ActiveSession) -> None:
        """Drop in-memory state once the deliberation and every follow-up are done."""
        current = asyncio.current_task()
        if entry.task is not None and entry.task is not current and not entry.task.done():
            return
        if any(t is not current and not t.done() for t in entry.followups):
            return
        session_id = entry.session.id
        if self._active.get(session_id) is entry:
            del self._active[session_id]
        self._ledger.forget(session_id)
        self._executor.release(session_id)
        logger.debug(f"[SessionManager] Released in-memory state for {session_id}")

    async def wait_for(self, session_id: str) -> None:
        """Wait until the session's deliberation and follow-ups have finished."""
        entry = self._active.get(session_id)
        if entry is None:
            return
        tasks = [t for t in (entry.task, *entry.followups) if t is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # =========================================================================
    # HUMAN INPUT
    # =========================================================================

    def submit_escalation_answer(
        self, session_id: str, escalation_id: str, answer: str
    ) -> Escalation:
        """Answer a pending escalation; unblocks the scheduler on its next poll."""
        self._lookup(session_id)
        validate_record_id(escalation_id, "escalation_id")
        answer = validate_not_empty(answer, "answer")
        validate_length(answer, "answer", max_length=self.config.max_message_length)

        try:
            escalation = self._ledger.answer(session_id, escalation_id, answer)
            pending_count = len(self._ledger.pending(session_id))
        finally:
            if session_id not in self._active:
                self._ledger.forget(session_id)
        self._emit(
            EventType.ESCALATION_ANSWERED,
            session_id,
            {
                "escalation": escalation.to_dict(),
                "pending_count": pending_count,
            },
        )
        return escalation

    def submit_human_message(self, session_id: str, content: str) -> HumanInterjection:
        """
        Add a free-form human message to the session's context.

        After the deliberation has finished, the message is treated as a
        follow-up question and answered by the synthesis agent.
        """
        session = self._lookup(session_id)
        content = validate_not_empty(content, "content")
        validate_length(content, "content", max_length=self.config.max_message_length)
        if detect_injection_attempt(content):
            logger.warning(f"[SessionManager] Interjection in {session_id} has injection patterns")

        interjection = self.store.save_interjection(
            HumanInterjection(session_id=session_id, content=content)
        )
        self._emit(EventType.HUMAN_MESSAGE, session_id, interjection.to_dict())

        if not session.active and not self.is_running(session_id):
            self._start_followup(session, interjection)
        return interjection

    def _start_followup(self, session: Session, interjection: HumanInterjection) -> None:
        entry = self._active.setdefault(session.id, ActiveSession(session=session))

        async def answer() -> None:
            try:
                async with entry.turn_lock:
                    await self._executor.run_followup(
                        session, interjection.content, question_id=interjection.id
                    )
            finally:
                self._retire(entry)

        task = asyncio.create_task(answer(), name=f"followup-{interjection.id}")
        entry.followups.add(task)
        task.add_done_callback(entry.followups.discard)
        logger.info(f"[SessionManager] Follow-up question queued for {session.id}")

    # =========================================================================
    # STOP / DELETE
    # =========================================================================

    def stop_session(self, session_id: str) -> Session:
        """Stop a deliberation at its next safe point. Idempotent."""
        session = self._lookup(session_id)
        if not session.active:
            return session

        session.active = False
        session.touch()
        self.store.update_session(session)
        self._emit(EventType.SESSION_STOPPED, session_id, {"session": _session_payload(session)})
        logger.info(f"[SessionManager] Session {session_id} stopped")
        return session

    def delete_session(self, session_id: str) -> None:
        """Stop the session and remove it with all its records."""
        session = self._lookup(session_id)
        session.active = False
        self.store.delete_session(session_id)
        self._ledger.forget(session_id)
        self._active.pop(session_id, None)
        self._emit(EventType.SESSION_DELETED, session_id, {})
        logger.info(f"[SessionManager] Session {session_id} deleted")

    # =========================================================================
    # READ
    # =========================================================================

    def join_session(self, session_id: str) -> SessionSnapshot:
        """Materialized session state, including live agent states."""
        validate_session_id(session_id)
        snapshot = self.store.load(session_id)
        if snapshot is None:
            raise UnknownSession(session_id)
        entry = self._active.get(session_id)
        if entry is not None:
            snapshot.session = entry.session
        snapshot.agent_states = self._executor.states(session_id)
        return snapshot

    def list_sessions(self, limit: int = 100) -> list[dict[str, Any]]:
        sessions = []
        for session in self.store.list_sessions(limit=limit):
            entry = self._active.get(session.id)
            sessions.append(_session_payload(entry.session if entry else session))
        return sessions

    def export_summary(self, session_id: str) -> ExportSummary:
        snapshot = self.join_session(session_id)
        return ExportSummary.from_snapshot(snapshot, self.plan.synthesis_phase_name)

    def pending_escalations(self, session_id: str) -> list[Escalation]:
        return self.list_escalations(session_id, only_pending=True)

    def list_escalations(self, session_id: str, only_pending: bool = False) -> list[Escalation]:
        """Escalations of a session in creation order."""
        self._lookup(session_id)
        if session_id in self._active:
            escalations = self._ledger.all(session_id)
        else:
            escalations = self.store.escalations_for(session_id)
        if only_pending:
            return [e for e in escalations if e.is_pending]
        return escalations

    def list_messages(
        self,
        session_id: str,
        agent_id: str | None = None,
        phase: str | None = None,
    ) -> list[Message]:
        """Transcript of a session, optionally narrowed to one agent or phase."""
        self._lookup(session_id)
        if agent_id is not None:
            validate_in_choices(agent_id, [a.id for a in self.registry.all()], "agent_id")
        if phase is not None:
            phases = [p.name for p in self.plan] + [FOLLOWUP_PHASE]
            validate_in_choices(phase, phases, "phase")
        return self.store.messages_for(session_id, agent_id=agent_id, phase=phase)

    def search_sessions(self, query: str, limit: int = 20) -> list[dict[str, Any]]:
        """Sessions whose problem statement or transcript mentions `query`."""
        query = validate_not_empty(query, "query")
        validate_length(query, "query", max_length=200)
        return [
            _session_payload(self._active[s.id].session if s.id in self._active else s)
            for s in self.store.search_sessions(query, limit=limit)
        ]

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def shutdown(self) -> None:
        """Cancel running deliberations and follow-ups; sessions end inactive."""
        tasks = []
        for entry in self._active.values():
            tasks.extend(t for t in (entry.task, *entry.followups) if t and not t.done())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"[SessionManager] Shut down ({len(tasks)} task(s) cancelled)")
