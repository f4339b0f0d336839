"""
Error taxonomy for the deliberation core.

Validation failures on inbound operations are raised to the caller with no
state mutated. Per-turn model/search failures never surface here -- the turn
executor contains them and reports them as `error` events.
"""


class WarRoomError(Exception):
    """Base class for orchestrator errors."""


class UnknownAgent(WarRoomError, KeyError):
    """Agent id is not part of the registry."""

    def __init__(self, agent_id: str):
        super().__init__(f"Unknown agent '{agent_id}'")
        self.agent_id = agent_id

    def __str__(self) -> str:
        return self.args[0]


class UnknownSession(WarRoomError):
    """Session id does not exist."""

    def __init__(self, session_id: str):
        super().__init__(f"Session '{session_id}' not found")
        self.session_id = session_id


class UnknownEscalation(WarRoomError):
    """Escalation id does not belong to the given session."""

    def __init__(self, session_id: str, escalation_id: str):
        super().__init__(
            f"Escalation '{escalation_id}' not found in session '{session_id}'"
        )
        self.session_id = session_id
        self.escalation_id = escalation_id


class AlreadyAnswered(WarRoomError):
    """Escalation was answered before; answers are write-once."""

    def __init__(self, escalation_id: str):
        super().__init__(f"Escalation '{escalation_id}' has already been answered")
        self.escalation_id = escalation_id


class StorageError(WarRoomError):
    """The session store could not complete a read or write."""
