"""
DeliberationScheduler -- drives one session through the phase plan.

    Framing -> Divergence -> Convergence -> Red Team -> Synthesis -> Complete
                 (any point) -- stop --> Stopped
           (between turns) -- pending escalations --> AwaitingHuman

Before every agent turn the scheduler consults the escalation ledger. While
escalations are blocking it polls (default every 2s) until they are answered,
the session is stopped, or the wait ceiling (default 300s) is reached. At the
ceiling it announces `escalation-timeout`, waives the outstanding questions
and proceeds without them.

Stopping is level-triggered: `session.active` is checked before each phase,
before each agent and on every poll. An in-flight model call is allowed to
finish.

Whatever happens, the session ends inactive and `deliberation-complete` is
emitted with the export-readiness summary.

Usage:
    scheduler = DeliberationScheduler(plan, executor, ledger, store, sink, config)
    summary = await scheduler.run(session)
"""

import asyncio
import logging
from typing import TYPE_CHECKING

from ..config import DeliberationConfig
from ..events.sink import DeliberationEvent, EventSink, EventType
from .escalations import EscalationLedger
from .models import ExportSummary, Session
from .phases import Phase, PhasePlan
from .turn_executor import TurnExecutor

if TYPE_CHECKING:
    from ..storage.store import SessionStore

logger = logging.getLogger(__name__)


class Outcome:
    COMPLETE = "complete"
    STOPPED = "stopped"
    FAILED = "failed"


class DeliberationScheduler:
    """Sequences phases and agents for a session, gated by human escalations."""

    def __init__(
        self,
        plan: PhasePlan,
        executor: TurnExecutor,
        ledger: EscalationLedger,
        store: "SessionStore",
        sink: EventSink,
        config: DeliberationConfig | None = None,
    ):
        self._plan = plan
        self._executor = executor
        self._ledger = ledger
        self._store = store
        self._sink = sink
        self._config = config or DeliberationConfig()

    def _emit(self, event_type: str, session_id: str, data: dict) -> None:
        self._sink.emit(DeliberationEvent(event_type, session_id, data))

    async def run(self, session: Session) -> ExportSummary:
        """Run the full deliberation. Never raises except on cancellation."""
        self._executor.activate(session.id)
        logger.info(
            f"[Scheduler] Starting session {session.id} "
            f"({len(self._plan)} phases, {self._plan.total_turns} turns)"
        )

        try:
            outcome = await self._run_phases(session)
        except asyncio.CancelledError:
            logger.warning(f"[Scheduler] Session {session.id} cancelled")
            self._finalize(session)
            raise
        except Exception as e:
            logger.exception(f"[Scheduler] Session {session.id} failed: {e}")
            self._emit(
                EventType.ERROR,
                session.id,
                {"agent_id": None, "message": f"Deliberation failed: {e}"},
            )
            outcome = Outcome.FAILED

        self._finalize(session)
        summary = self.summarize(session)
        self._emit(
            EventType.DELIBERATION_COMPLETE,
            session.id,
            {"outcome": outcome, "summary": summary.to_dict()},
        )
        logger.info(
            f"[Scheduler] Session {session.id} {outcome}: "
            f"{summary.message_count} messages, synthesis={summary.has_synthesis}"
        )
        return summary

    async def _run_phases(self, session: Session) -> str:
        for phase in self._plan:
            if not session.active:
                return Outcome.STOPPED
            self._enter_phase(session, phase)

            for agent_id in phase.agent_ids:
                if not session.active:
                    return Outcome.STOPPED
                await self._await_human(session)
                if not session.active:
                    return Outcome.STOPPED
                await self._executor.run_turn(session, agent_id, phase.index)

        return Outcome.COMPLETE if session.active else Outcome.STOPPED

    def _enter_phase(self, session: Session, phase: Phase) -> None:
        session.phase_index = phase.index
        session.touch()
        self._store.update_session(session)
        self._emit(
            EventType.PHASE_CHANGE,
            session.id,
            {
                "phase_index": phase.index,
                "phase_id": phase.id,
                "phase_name": phase.name,
                "agents": list(phase.agent_ids),
            },
        )
        logger.info(f"[Scheduler] Session {session.id} -> phase {phase.index} {phase.name}")

    async def _await_human(self, session: Session) -> None:
        """Block while escalations are outstanding, up to the wait ceiling."""
        blocking = self._ledger.blocking(session.id)
        if not blocking:
            return

        self._emit(
            EventType.WAITING_FOR_HUMAN,
            session.id,
            {"pending_count": len(blocking), "escalation_ids": [e.id for e in blocking]},
        )
        logger.info(
            f"[Scheduler] Session {session.id} waiting on {len(blocking)} escalation(s)"
        )

        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + self._config.escalation_timeout_seconds

        while session.active:
            await asyncio.sleep(self._config.poll_interval_seconds)
            blocking = self._ledger.blocking(session.id)
            if not blocking:
                logger.info(f"[Scheduler] Session {session.id} unblocked by the human")
                return
            if loop.time() >= deadline:
                ids = [e.id for e in blocking]
                self._emit(
                    EventType.ESCALATION_TIMEOUT,
                    session.id,
                    {
                        "escalation_ids": ids,
                        "waited_seconds": round(loop.time() - started, 3),
                        "message": "Proceeding without answers to pending questions",
                    },
                )
                self._ledger.waive(session.id, ids)
                logger.warning(
                    f"[Scheduler] Session {session.id} proceeding past "
                    f"{len(ids)} unanswered escalation(s)"
                )
                return

    def _finalize(self, session: Session) -> None:
        session.finish()
        self._executor.release(session.id)
        try:
            self._store.update_session(session)
        except Exception as e:
            logger.error(f"[Scheduler] Could not persist end of session {session.id}: {e}")

    def summarize(self, session: Session) -> ExportSummary:
        """Export-readiness summary from the persisted records."""
        try:
            snapshot = self._store.load(session.id)
        except Exception as e:
            logger.error(f"[Scheduler] Could not load session {session.id}: {e}")
            snapshot = None
        if snapshot is None:
            return ExportSummary(
                session_id=session.id, problem=session.problem, is_complete=not session.active
            )
        return ExportSummary.from_snapshot(snapshot, self._plan.synthesis_phase_name)
