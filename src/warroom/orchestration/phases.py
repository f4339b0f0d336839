"""
Phase Plan -- the fixed, ordered stages of a deliberation.

    0 Problem Framing  -> 1 Divergence -> 2 Convergence -> 3 Red Team -> 4 Synthesis

Each phase names the agents that speak, in order. A phase may carry closing
instructions: extra directions appended to the context of the phase's last
speaker. The default plan uses this for the synthesis brief, so the rule keeps
working if more phases are added.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from ..agents.registry import AgentRegistry

logger = logging.getLogger(__name__)

SYNTHESIS_INSTRUCTIONS = (
    "This is the FINAL SYNTHESIS phase. Deliver a comprehensive summary that includes:\n"
    "1. Key findings and recommendations\n"
    "2. Confidence levels (high/medium/low) for each recommendation\n"
    "3. Key uncertainties and open questions\n"
    "4. Dissenting views and their merit\n"
    "5. Recommended next steps\n"
    "Format this as a clear, actionable brief."
)


@dataclass(frozen=True)
class Phase:
    """One stage of the deliberation."""

    index: int
    id: str
    name: str
    agent_ids: tuple[str, ...]
    closing_instructions: str = ""

    @property
    def closing_agent_id(self) -> str | None:
        return self.agent_ids[-1] if self.agent_ids else None

    def closing_instructions_for(self, agent_id: str) -> str:
        """Instructions for agent_id if it closes this phase, else ""."""
        if self.closing_instructions and agent_id == self.closing_agent_id:
            return self.closing_instructions
        return ""

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "id": self.id,
            "name": self.name,
            "agents": list(self.agent_ids),
        }


@dataclass(frozen=True)
class PhasePlan:
    """Immutable ordered sequence of phases."""

    phases: tuple[Phase, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.phases:
            raise ValueError("A phase plan needs at least one phase")
        for expected, phase in enumerate(self.phases):
            if phase.index != expected:
                raise ValueError(
                    f"Phase '{phase.id}' has index {phase.index}, expected {expected}"
                )
            if not phase.agent_ids:
                raise ValueError(f"Phase '{phase.id}' has no agents")

    def __iter__(self) -> Iterator[Phase]:
        return iter(self.phases)

    def __len__(self) -> int:
        return len(self.phases)

    def __getitem__(self, index: int) -> Phase:
        return self.phases[index]

    @property
    def final_phase(self) -> Phase:
        return self.phases[-1]

    @property
    def synthesis_agent_id(self) -> str:
        """The agent that closes the final phase; also answers follow-ups."""
        return self.final_phase.agent_ids[-1]

    @property
    def synthesis_phase_name(self) -> str:
        return self.final_phase.name

    @property
    def total_turns(self) -> int:
        return sum(len(p.agent_ids) for p in self.phases)

    def validate_against(self, registry: "AgentRegistry") -> None:
        """Fail fast if any phase names an agent the registry doesn't know."""
        for phase in self.phases:
            for agent_id in phase.agent_ids:
                registry.get(agent_id)
        logger.debug(
            f"[PhasePlan] {len(self.phases)} phases, {self.total_turns} turns validated"
        )

    def list_info(self) -> list[dict]:
        return [p.to_dict() for p in self.phases]


def default_phase_plan() -> PhasePlan:
    return PhasePlan(
        phases=(
            Phase(
                0, "framing", "Problem Framing",
                ("process-architect", "research-scout", "systems-synthesizer"),
            ),
            Phase(
                1, "divergence", "Divergence",
                ("divergent-generator", "systems-synthesizer",
                 "quantitative-expert", "qualitative-expert"),
            ),
            Phase(
                2, "convergence", "Convergence",
                ("convergent-evaluator", "quantitative-expert",
                 "qualitative-expert", "research-scout"),
            ),
            Phase(
                3, "red-team", "Red Team",
                ("red-teamer", "convergent-evaluator", "process-architect"),
            ),
            Phase(
                4, "synthesis", "Synthesis",
                ("process-architect",),
                closing_instructions=SYNTHESIS_INSTRUCTIONS,
            ),
        )
    )
