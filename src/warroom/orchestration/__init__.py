"""
Deliberation orchestration.

A session moves through the PhasePlan one agent turn at a time:

  DeliberationScheduler  phases -> agents, escalation gate, finalization
  TurnExecutor           one agent turn (context, model call, search, directives)
  EscalationLedger       pending / answered / waived human questions
  SessionManager         inbound operations and the active-session registry

Only the data model and error taxonomy are re-exported here; import the
components from their modules.
"""
from .errors import (
    AlreadyAnswered,
    StorageError,
    UnknownAgent,
    UnknownEscalation,
    UnknownSession,
    WarRoomError,
)
from .models import (
    AgentState,
    Escalation,
    EscalationStatus,
    ExportSummary,
    FileRef,
    HumanInterjection,
    Message,
    Session,
    SessionSnapshot,
)
