"""
Roster API -- the agents and the phase plan every deliberation follows.

  GET /api/v1/agents       -- List the agents (no system prompts)
  GET /api/v1/agents/{id}  -- One agent
  GET /api/v1/phases       -- The phase plan, in order
"""

import logging

from fastapi import APIRouter, HTTPException, Request

from ...orchestration.errors import UnknownAgent
from ..models.responses import AgentInfo, AgentListResponse, PhaseInfo, PhaseListResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/agents", response_model=AgentListResponse)
async def list_agents(request: Request) -> AgentListResponse:
    """List all agents in roster order."""
    registry = request.app.state.manager.registry
    return AgentListResponse(
        agents=[AgentInfo(**info) for info in registry.list_info()],
        total=registry.count,
    )


@router.get("/agents/{agent_id}", response_model=AgentInfo)
async def get_agent(agent_id: str, request: Request) -> AgentInfo:
    registry = request.app.state.manager.registry
    try:
        return AgentInfo(**registry.get(agent_id).to_dict())
    except UnknownAgent as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/phases", response_model=PhaseListResponse)
async def list_phases(request: Request) -> PhaseListResponse:
    plan = request.app.state.manager.plan
    return PhaseListResponse(
        phases=[PhaseInfo(**p) for p in plan.list_info()],
        total_turns=plan.total_turns,
    )
