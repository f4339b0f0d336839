"""
Roster Evals -- agent registry and phase plan invariants.

CODE-BASED graders: deterministic, no LLM needed.
"""

import pytest

from warroom.agents.registry import AgentProfile, AgentRegistry
from warroom.orchestration.errors import UnknownAgent
from warroom.orchestration.phases import SYNTHESIS_INSTRUCTIONS, Phase, PhasePlan


class TestAgentRegistry:
    """Eval: Is the roster complete, stable and read-only?"""

    def test_default_roster_has_eight_agents(self, registry):
        assert registry.count == 8
        assert registry.ids() == [
            "process-architect",
            "systems-synthesizer",
            "divergent-generator",
            "convergent-evaluator",
            "red-teamer",
            "quantitative-expert",
            "qualitative-expert",
            "research-scout",
        ]

    def test_only_research_scout_can_search(self, registry):
        assert [a.id for a in registry.searchers()] == ["research-scout"]

    def test_unknown_agent_raises(self, registry):
        with pytest.raises(UnknownAgent) as exc:
            registry.get("nobody")
        assert "nobody" in str(exc.value)
        assert isinstance(exc.value, KeyError)

    def test_duplicate_ids_rejected(self):
        agent = AgentProfile(id="a", name="A", glyph="*", role="r", system_prompt="p")
        with pytest.raises(ValueError):
            AgentRegistry([agent, agent])

    def test_display_name_for_humans(self, registry):
        assert registry.display_name(None) == "Human"
        assert registry.display_name("red-teamer") == "Red Teamer"

    def test_listing_never_exposes_prompts(self, registry):
        for info in registry.list_info():
            assert "system_prompt" not in info
            assert set(info) >= {"id", "name", "glyph", "color", "role"}

    def test_every_prompt_teaches_the_escalation_marker(self, registry):
        for agent in registry.all():
            assert "NEED_HUMAN_INPUT:" in agent.system_prompt


class TestPhasePlan:
    """Eval: Does the default plan match the deliberation structure?"""

    def test_default_plan_shape(self, plan):
        assert [p.name for p in plan] == [
            "Problem Framing", "Divergence", "Convergence", "Red Team", "Synthesis",
        ]
        assert [len(p.agent_ids) for p in plan] == [3, 4, 4, 3, 1]
        assert plan.total_turns == 15

    def test_synthesis_agent_is_last_of_last_phase(self, plan):
        assert plan.synthesis_agent_id == "process-architect"
        assert plan.synthesis_phase_name == "Synthesis"

    def test_closing_instructions_only_for_phase_closer(self, plan):
        synthesis = plan.final_phase
        assert synthesis.closing_instructions_for("process-architect") == SYNTHESIS_INSTRUCTIONS
        # process-architect also closes Red Team, which has no closing instructions
        assert plan[3].closing_instructions_for("process-architect") == ""
        assert plan[0].closing_instructions_for("process-architect") == ""

    def test_validates_against_registry(self, plan, registry):
        plan.validate_against(registry)
        bad = PhasePlan(phases=(Phase(0, "x", "X", ("ghost",)),))
        with pytest.raises(UnknownAgent):
            bad.validate_against(registry)

    def test_rejects_malformed_plans(self):
        with pytest.raises(ValueError):
            PhasePlan(phases=())
        with pytest.raises(ValueError):
            PhasePlan(phases=(Phase(1, "x", "X", ("a",)),))
        with pytest.raises(ValueError):
            PhasePlan(phases=(Phase(0, "x", "X", ()),))

    def test_list_info_is_serializable(self, plan):
        info = plan.list_info()
        assert info[0] == {
            "index": 0,
            "id": "framing",
            "name": "Problem Framing",
            "agents": ["process-architect", "research-scout", "systems-synthesizer"],
        }
