"""
Session API -- start, steer, inspect and remove deliberations.

  POST   /api/v1/sessions                                   -- Start a deliberation
  GET    /api/v1/sessions                                   -- List sessions
  GET    /api/v1/sessions/search?q=...                      -- Keyword search (problem + transcript)
  GET    /api/v1/sessions/{id}                              -- Full session snapshot
  DELETE /api/v1/sessions/{id}                              -- Delete with all records
  POST   /api/v1/sessions/{id}/stop                         -- Stop at the next safe point
  GET    /api/v1/sessions/{id}/messages?agent_id=&phase=    -- Transcript, optionally filtered
  POST   /api/v1/sessions/{id}/messages                     -- Human interjection / follow-up
  GET    /api/v1/sessions/{id}/escalations?pending=true     -- Agent questions for the human
  POST   /api/v1/sessions/{id}/escalations/{eid}/answer     -- Answer an agent's question
  GET    /api/v1/sessions/{id}/export/options               -- Export readiness

Errors:
  400 invalid input, 404 unknown session/escalation, 409 already answered,
  429 too many new sessions, 503 store unavailable when creating.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from ...orchestration.errors import (
    AlreadyAnswered,
    StorageError,
    UnknownEscalation,
    UnknownSession,
    WarRoomError,
)
from ...security import ValidationError
from ..middleware.rate_limit import check_session_rate_limit
from ..models.requests import (
    CreateSessionRequest,
    EscalationAnswerRequest,
    HumanMessageRequest,
)
from ..models.responses import (
    EscalationInfo,
    EscalationListResponse,
    ExportOptionsResponse,
    HumanMessageInfo,
    MessageInfo,
    MessageListResponse,
    SessionDetailResponse,
    SessionInfo,
    SessionListResponse,
    SessionSearchResponse,
    StatusResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def to_http_error(error: Exception) -> HTTPException:
    """Map orchestrator errors to HTTP status codes."""
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, (UnknownSession, UnknownEscalation)):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, AlreadyAnswered):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, StorageError):
        return HTTPException(status_code=503, detail="Session store unavailable")
    return HTTPException(status_code=500, detail="Internal error")


def _strip_file_text(session: dict) -> dict:
    session["files"] = [
        {k: v for k, v in f.items() if k != "text"} for f in session.get("files", [])
    ]
    return session


@router.post("/sessions", response_model=SessionInfo, status_code=201)
async def create_session(
    body: CreateSessionRequest,
    request: Request,
    _rate: None = Depends(check_session_rate_limit),
) -> SessionInfo:
    """Start a deliberation. Returns immediately; progress streams over /ws."""
    manager = request.app.state.manager
    try:
        session = await manager.create_session(
            body.problem, [f.to_file_ref() for f in body.files]
        )
    except (ValidationError, StorageError) as e:
        raise to_http_error(e)
    logger.info(f"[SessionsAPI] Created session {session.id}")
    return SessionInfo(**_strip_file_text(session.to_dict()))


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(request: Request, limit: int = 100) -> SessionListResponse:
    sessions = request.app.state.manager.list_sessions(limit=min(max(limit, 1), 500))
    return SessionListResponse(
        sessions=[SessionInfo(**s) for s in sessions], total=len(sessions)
    )


@router.get("/sessions/search", response_model=SessionSearchResponse)
async def search_sessions(
    request: Request, q: str, limit: int = 20
) -> SessionSearchResponse:
    """Sessions whose problem statement or transcript mentions the query."""
    try:
        sessions = request.app.state.manager.search_sessions(q, limit=min(max(limit, 1), 100))
    except ValidationError as e:
        raise to_http_error(e)
    return SessionSearchResponse(
        query=q, sessions=[SessionInfo(**s) for s in sessions], total=len(sessions)
    )


@router.get("/sessions/{session_id}", response_model=SessionDetailResponse)
async def get_session(session_id: str, request: Request) -> SessionDetailResponse:
    """Full snapshot: messages, escalations, human messages, agent states."""
    try:
        snapshot = request.app.state.manager.join_session(session_id)
    except (ValidationError, WarRoomError) as e:
        raise to_http_error(e)
    data = snapshot.to_dict()
    data["session"] = _strip_file_text(data["session"])
    return SessionDetailResponse(**data)


@router.delete("/sessions/{session_id}", response_model=StatusResponse)
async def delete_session(session_id: str, request: Request) -> StatusResponse:
    try:
        request.app.state.manager.delete_session(session_id)
    except (ValidationError, WarRoomError) as e:
        raise to_http_error(e)
    return StatusResponse(status="deleted", session_id=session_id)


@router.post("/sessions/{session_id}/stop", response_model=StatusResponse)
async def stop_session(session_id: str, request: Request) -> StatusResponse:
    try:
        request.app.state.manager.stop_session(session_id)
    except (ValidationError, WarRoomError) as e:
        raise to_http_error(e)
    return StatusResponse(status="stopped", session_id=session_id)


@router.post("/sessions/{session_id}/messages", response_model=HumanMessageInfo)
async def post_message(
    session_id: str, body: HumanMessageRequest, request: Request
) -> HumanMessageInfo:
    """Interject during a deliberation, or ask a follow-up after it finished."""
    try:
        interjection = request.app.state.manager.submit_human_message(
            session_id, body.content
        )
    except (ValidationError, WarRoomError) as e:
        raise to_http_error(e)
    return HumanMessageInfo(**interjection.to_dict())


@router.get("/sessions/{session_id}/messages", response_model=MessageListResponse)
async def list_messages(
    session_id: str,
    request: Request,
    agent_id: str | None = None,
    phase: str | None = None,
) -> MessageListResponse:
    try:
        messages = request.app.state.manager.list_messages(
            session_id, agent_id=agent_id, phase=phase
        )
    except (ValidationError, WarRoomError) as e:
        raise to_http_error(e)
    return MessageListResponse(
        session_id=session_id,
        messages=[MessageInfo(**m.to_dict()) for m in messages],
        total=len(messages),
    )


@router.get("/sessions/{session_id}/escalations", response_model=EscalationListResponse)
async def list_escalations(
    session_id: str, request: Request, pending: bool = False
) -> EscalationListResponse:
    """Agent questions for the human; `pending=true` keeps only unanswered ones."""
    try:
        escalations = request.app.state.manager.list_escalations(
            session_id, only_pending=pending
        )
    except (ValidationError, WarRoomError) as e:
        raise to_http_error(e)
    return EscalationListResponse(
        session_id=session_id,
        escalations=[EscalationInfo(**e.to_dict()) for e in escalations],
        total=len(escalations),
    )


@router.post(
    "/sessions/{session_id}/escalations/{escalation_id}/answer",
    response_model=EscalationInfo,
)
async def answer_escalation(
    session_id: str, escalation_id: str, body: EscalationAnswerRequest, request: Request
) -> EscalationInfo:
    try:
        escalation = request.app.state.manager.submit_escalation_answer(
            session_id, escalation_id, body.answer
        )
    except (ValidationError, WarRoomError) as e:
        raise to_http_error(e)
    return EscalationInfo(**escalation.to_dict())


@router.get("/sessions/{session_id}/export/options", response_model=ExportOptionsResponse)
async def export_options(session_id: str, request: Request) -> ExportOptionsResponse:
    """Which export modes and formats make sense for this session right now."""
    try:
        summary = request.app.state.manager.export_summary(session_id)
    except (ValidationError, WarRoomError) as e:
        raise to_http_error(e)
    return ExportOptionsResponse(**summary.to_dict())
