"""
Health endpoint.

  GET /api/health -- Liveness probe plus a short configuration summary
"""

import logging
import time

from fastapi import APIRouter, Request

from ..models.responses import HealthResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def liveness(request: Request) -> HealthResponse:
    """Liveness probe -- returns 200 if the process is running."""
    manager = request.app.state.manager
    start_time = getattr(request.app.state, "start_time", time.time())
    return HealthResponse(
        status="healthy",
        agents_registered=manager.registry.count,
        phases=len(manager.plan),
        active_sessions=sum(1 for s in manager.list_sessions() if s["active"]),
        llm_configured=request.app.state.llm_configured,
        search_enabled=request.app.state.search_enabled,
        uptime_seconds=round(time.time() - start_time, 1),
    )
