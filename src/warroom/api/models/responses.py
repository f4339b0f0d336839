"""
Pydantic response models -- what the war room API returns.
"""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "healthy"
    agents_registered: int = 0
    phases: int = 0
    active_sessions: int = 0
    llm_configured: bool = False
    search_enabled: bool = False
    uptime_seconds: float = 0.0


class AgentInfo(BaseModel):
    """Display info for one agent. Prompts are never exposed."""

    id: str
    name: str
    glyph: str
    color: str
    role: str
    hat: str = ""
    can_search: bool = False


class AgentListResponse(BaseModel):
    agents: list[AgentInfo]
    total: int


class PhaseInfo(BaseModel):
    index: int
    id: str
    name: str
    agents: list[str]


class PhaseListResponse(BaseModel):
    phases: list[PhaseInfo]
    total_turns: int


class FileInfo(BaseModel):
    name: str
    size: int = 0
    mime_type: str = "application/octet-stream"


class SessionInfo(BaseModel):
    """Session fields without file contents."""

    id: str
    problem: str
    phase_index: int
    active: bool
    created_at: str
    updated_at: str
    finished_at: str | None = None
    files: list[FileInfo] = Field(default_factory=list)


class SessionListResponse(BaseModel):
    sessions: list[SessionInfo]
    total: int


class SessionSearchResponse(BaseModel):
    query: str
    sessions: list[SessionInfo]
    total: int


class MessageInfo(BaseModel):
    id: str
    session_id: str
    agent_id: str | None
    content: str
    phase: str
    created_at: str


class EscalationInfo(BaseModel):
    id: str
    session_id: str
    agent_id: str
    question: str
    answer: str | None = None
    status: str
    created_at: str
    answered_at: str | None = None


class MessageListResponse(BaseModel):
    session_id: str
    messages: list[MessageInfo]
    total: int


class EscalationListResponse(BaseModel):
    session_id: str
    escalations: list[EscalationInfo]
    total: int


class HumanMessageInfo(BaseModel):
    id: str
    session_id: str
    content: str
    created_at: str


class SessionDetailResponse(BaseModel):
    """Full session snapshot, as returned when joining a session."""

    session: SessionInfo
    messages: list[MessageInfo] = Field(default_factory=list)
    escalations: list[EscalationInfo] = Field(default_factory=list)
    human_messages: list[HumanMessageInfo] = Field(default_factory=list)
    agent_states: dict[str, str] = Field(default_factory=dict)


class ExportMode(BaseModel):
    id: str
    label: str
    description: str
    available: bool


class ExportFormat(BaseModel):
    id: str
    label: str
    mime_type: str


class ExportOptionsResponse(BaseModel):
    """Export readiness for a session."""

    session_id: str
    problem: str
    is_complete: bool
    message_count: int
    synthesis_count: int
    escalation_count: int
    answered_escalation_count: int
    human_message_count: int
    has_synthesis: bool
    has_qa: bool
    modes: list[ExportMode]
    formats: list[ExportFormat]


class StatusResponse(BaseModel):
    status: str
    session_id: str
