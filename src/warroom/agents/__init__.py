"""
Agent roster.

- registry.py: AgentProfile and the immutable AgentRegistry
- roster.py: the eight default war-room agents and their prompts
"""
