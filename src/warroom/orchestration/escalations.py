"""
EscalationLedger -- the human questions each session is waiting on.

Agents raise escalations with NEED_HUMAN_INPUT; the human answers them at any
time. The ledger keeps a per-session in-memory index backed by the session
store, so the scheduler's poll never touches SQLite.

Escalations move pending -> answered exactly once. A pending escalation can
also be *waived*: the scheduler stops waiting for it after the wait ceiling,
but it stays pending and the human can still answer it later.

Usage:
    ledger = EscalationLedger(store)
    esc = ledger.create(session_id, "red-teamer", "What is the budget?")
    ledger.blocking(session_id)        # [esc]
    ledger.answer(session_id, esc.id, "$2M")
    ledger.blocking(session_id)        # []
"""

import logging
from typing import TYPE_CHECKING

from .errors import UnknownEscalation
from .models import Escalation

if TYPE_CHECKING:
    from ..storage.store import SessionStore

logger = logging.getLogger(__name__)


class EscalationLedger:
    """Per-session escalation index with write-through persistence."""

    def __init__(self, store: "SessionStore"):
        self._store = store
        self._by_session: dict[str, dict[str, Escalation]] = {}
        self._waived: dict[str, set[str]] = {}

    def _index(self, session_id: str) -> dict[str, Escalation]:
        """Escalations of a session, loading them from the store on first use."""
        index = self._by_session.get(session_id)
        if index is None:
            index = {e.id: e for e in self._store.escalations_for(session_id)}
            self._by_session[session_id] = index
        return index

    def create(self, session_id: str, agent_id: str, question: str) -> Escalation:
        """Record a new pending escalation. Persists before indexing."""
        escalation = Escalation(session_id=session_id, agent_id=agent_id, question=question)
        self._store.save_escalation(escalation)
        self._index(session_id)[escalation.id] = escalation
        logger.info(
            f"[Escalations] {agent_id} asked the human ({escalation.id}): {question[:80]}"
        )
        return escalation

    def answer(self, session_id: str, escalation_id: str, answer: str) -> Escalation:
        """
        Answer a pending escalation.

        Raises UnknownEscalation if the id does not belong to the session and
        AlreadyAnswered if it was answered before. Nothing changes on failure.
        """
        escalation = self._index(session_id).get(escalation_id)
        if escalation is None:
            raise UnknownEscalation(session_id, escalation_id)

        previous = (escalation.answer, escalation.status, escalation.answered_at)
        escalation.resolve(answer)
        try:
            self._store.update_escalation(escalation)
        except Exception:
            escalation.answer, escalation.status, escalation.answered_at = previous
            raise

        self._waived.get(session_id, set()).discard(escalation_id)
        logger.info(f"[Escalations] {escalation_id} answered")
        return escalation

    def get(self, session_id: str, escalation_id: str) -> Escalation:
        escalation = self._index(session_id).get(escalation_id)
        if escalation is None:
            raise UnknownEscalation(session_id, escalation_id)
        return escalation

    def all(self, session_id: str) -> list[Escalation]:
        return sorted(self._index(session_id).values(), key=lambda e: e.created_at)

    def pending(self, session_id: str) -> list[Escalation]:
        return [e for e in self.all(session_id) if e.is_pending]

    def blocking(self, session_id: str) -> list[Escalation]:
        """Pending escalations the scheduler must still wait for."""
        waived = self._waived.get(session_id, set())
        return [e for e in self.pending(session_id) if e.id not in waived]

    def waive(self, session_id: str, escalation_ids: list[str]) -> None:
        """Stop blocking on these escalations; they remain answerable."""
        self._waived.setdefault(session_id, set()).update(escalation_ids)
        logger.info(
            f"[Escalations] Waived {len(escalation_ids)} escalation(s) in {session_id}"
        )

    def forget(self, session_id: str) -> None:
        """Drop in-memory state for a session (after deletion)."""
        self._by_session.pop(session_id, None)
        self._waived.pop(session_id, None)
