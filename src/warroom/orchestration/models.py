"""
Deliberation data models -- sessions, messages, escalations, interjections.

Records are plain dataclasses; timestamps are ISO-8601 UTC strings so they
sort lexicographically and round-trip through SQLite TEXT columns unchanged.

Lifecycles:
  Session            created on problem submission, mutated per phase/turn
  Message            append-only (agent_id None = human-authored)
  Escalation         pending -> answered, exactly once
  HumanInterjection  append-only, independent of the turn flow
  AgentState         transient, only tracked while a session is active
"""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .errors import AlreadyAnswered


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


def new_session_id() -> str:
    return uuid.uuid4().hex[:10]


def new_record_id() -> str:
    return uuid.uuid4().hex[:12]


class AgentState(str, Enum):
    """What an agent is doing right now within an active session."""

    IDLE = "idle"
    THINKING = "thinking"
    SEARCHING = "searching"
    SPEAKING = "speaking"


class EscalationStatus:
    PENDING = "pending"
    ANSWERED = "answered"


# =============================================================================
# RECORDS
# =============================================================================


@dataclass
class FileRef:
    """An uploaded file. `text` is the extracted text, None for binary files."""

    name: str
    size: int = 0
    mime_type: str = "application/octet-stream"
    text: str | None = None

    @property
    def is_binary(self) -> bool:
        return self.text is None


@dataclass
class Session:
    """One deliberation over a problem statement."""

    problem: str
    files: list[FileRef] = field(default_factory=list)
    id: str = field(default_factory=new_session_id)
    phase_index: int = 0
    active: bool = True
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)
    finished_at: str | None = None

    def touch(self) -> None:
        self.updated_at = utc_now()

    def finish(self) -> None:
        self.active = False
        self.finished_at = utc_now()
        self.updated_at = self.finished_at

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Message:
    """A contribution to the transcript. agent_id None means a human wrote it."""

    session_id: str
    agent_id: str | None
    content: str
    phase: str
    id: str = field(default_factory=new_record_id)
    created_at: str = field(default_factory=utc_now)

    @property
    def is_human(self) -> bool:
        return self.agent_id is None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Escalation:
    """A question an agent raised for the human."""

    session_id: str
    agent_id: str
    question: str
    id: str = field(default_factory=new_record_id)
    answer: str | None = None
    status: str = EscalationStatus.PENDING
    created_at: str = field(default_factory=utc_now)
    answered_at: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == EscalationStatus.PENDING

    def resolve(self, answer: str) -> None:
        """Record the human's answer. Answers are write-once."""
        if not self.is_pending:
            raise AlreadyAnswered(self.id)
        answered_at = utc_now()
        # answered_at never precedes created_at
        self.answered_at = max(answered_at, self.created_at)
        self.answer = answer
        self.status = EscalationStatus.ANSWERED

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class HumanInterjection:
    """Free-form human input injected into a session's context."""

    session_id: str
    content: str
    id: str = field(default_factory=new_record_id)
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# MATERIALIZED VIEWS
# =============================================================================


@dataclass
class SessionSnapshot:
    """Full materialized state of a session, as observers and exporters see it."""

    session: Session
    messages: list[Message] = field(default_factory=list)
    escalations: list[Escalation] = field(default_factory=list)
    interjections: list[HumanInterjection] = field(default_factory=list)
    agent_states: dict[str, AgentState] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session": self.session.to_dict(),
            "messages": [m.to_dict() for m in self.messages],
            "escalations": [e.to_dict() for e in self.escalations],
            "human_messages": [h.to_dict() for h in self.interjections],
            "agent_states": {k: v.value for k, v in self.agent_states.items()},
        }


EXPORT_FORMATS = [
    {"id": "txt", "label": "Plain Text", "mime_type": "text/plain"},
    {"id": "md", "label": "Markdown", "mime_type": "text/markdown"},
    {"id": "json", "label": "JSON", "mime_type": "application/json"},
]


@dataclass
class ExportSummary:
    """Export readiness: what a document renderer would have to work with."""

    session_id: str
    problem: str
    is_complete: bool
    message_count: int = 0
    synthesis_count: int = 0
    escalation_count: int = 0
    answered_escalation_count: int = 0
    human_message_count: int = 0

    @property
    def has_synthesis(self) -> bool:
        return self.synthesis_count > 0

    @property
    def has_qa(self) -> bool:
        return self.escalation_count > 0 or self.human_message_count > 0

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot, synthesis_phase: str) -> "ExportSummary":
        return cls(
            session_id=snapshot.session.id,
            problem=snapshot.session.problem,
            is_complete=not snapshot.session.active,
            message_count=len(snapshot.messages),
            synthesis_count=sum(
                1 for m in snapshot.messages if m.phase == synthesis_phase
            ),
            escalation_count=len(snapshot.escalations),
            answered_escalation_count=sum(
                1 for e in snapshot.escalations if not e.is_pending
            ),
            human_message_count=len(snapshot.interjections),
        )

    def modes(self) -> list[dict[str, Any]]:
        return [
            {
                "id": "full_transcript",
                "label": "Full Transcript",
                "description": "Every agent message across all phases",
                "available": self.message_count > 0,
            },
            {
                "id": "end_result",
                "label": "End Result Only",
                "description": "The final synthesis",
                "available": self.has_synthesis,
            },
            {
                "id": "end_result_with_qa",
                "label": "End Result + Q&A",
                "description": "Synthesis plus questions and human answers",
                "available": self.has_synthesis,
            },
        ]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["has_synthesis"] = self.has_synthesis
        data["has_qa"] = self.has_qa
        data["modes"] = self.modes()
        data["formats"] = list(EXPORT_FORMATS)
        return data
