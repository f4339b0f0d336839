"""
AgentRegistry -- Immutable roster of the cognitive agents in the war room.

Every deliberation shares the same registry. It is reference data: sessions
point at agents by id only and never own or mutate them. Enumeration order is
stable but only used for listings -- scheduling order comes from the PhasePlan.

Usage:
    registry = AgentRegistry(default_agents())

    architect = registry.get("process-architect")
    registry.get("nobody")      # raises UnknownAgent

    for agent in registry.all():
        print(agent.glyph, agent.name)
"""

import logging
from dataclasses import dataclass
from typing import Iterable

from ..orchestration.errors import UnknownAgent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentProfile:
    """Identity and configuration of one agent.

    system_prompt is opaque configuration text handed to the model gateway.
    can_search marks the information-gathering role allowed to issue SEARCH
    directives when a search gateway is configured.
    """

    id: str
    name: str
    glyph: str
    role: str
    system_prompt: str
    hat: str = ""
    color: str = "#00ff41"
    can_search: bool = False

    def to_dict(self) -> dict:
        """Serialize for listings. The system prompt is never exposed."""
        return {
            "id": self.id,
            "name": self.name,
            "glyph": self.glyph,
            "color": self.color,
            "role": self.role,
            "hat": self.hat,
            "can_search": self.can_search,
        }


class AgentRegistry:
    """Read-only lookup over a fixed, ordered agent roster."""

    def __init__(self, agents: Iterable[AgentProfile]):
        self._agents: dict[str, AgentProfile] = {}
        for agent in agents:
            if agent.id in self._agents:
                raise ValueError(f"Duplicate agent id '{agent.id}'")
            self._agents[agent.id] = agent
        logger.info(f"[AgentRegistry] Loaded {len(self._agents)} agents")

    def get(self, agent_id: str) -> AgentProfile:
        """Look up an agent by id. Raises UnknownAgent if absent."""
        try:
            return self._agents[agent_id]
        except KeyError:
            raise UnknownAgent(agent_id) from None

    def find(self, agent_id: str | None) -> AgentProfile | None:
        """Like get(), but returns None for unknown (or human) ids."""
        if agent_id is None:
            return None
        return self._agents.get(agent_id)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def all(self) -> list[AgentProfile]:
        """All agents in roster order."""
        return list(self._agents.values())

    def ids(self) -> list[str]:
        return list(self._agents)

    def searchers(self) -> list[AgentProfile]:
        """Agents empowered to run live searches."""
        return [a for a in self._agents.values() if a.can_search]

    def display_name(self, agent_id: str | None) -> str:
        """Transcript label: agent name, or "Human" for interjections."""
        agent = self.find(agent_id)
        if agent is None:
            return "Human" if agent_id is None else agent_id
        return agent.name

    def list_info(self) -> list[dict]:
        """Serializable info for all agents (for API responses)."""
        return [agent.to_dict() for agent in self._agents.values()]

    @property
    def count(self) -> int:
        return len(self._agents)
