"""Shared eval helpers -- scripted model gateway, recording sink, polling."""

import asyncio
from typing import Callable
from unittest.mock import AsyncMock

from warroom.agents.roster import default_registry
from warroom.events.sink import DeliberationEvent


class RecordingSink:
    """EventSink that keeps every event, in order."""

    def __init__(self):
        self.events: list[DeliberationEvent] = []

    def emit(self, event: DeliberationEvent) -> None:
        self.events.append(event)

    def types(self, session_id: str | None = None) -> list[str]:
        return [
            e.type for e in self.events if session_id is None or e.session_id == session_id
        ]

    def of(self, event_type: str, session_id: str | None = None) -> list[DeliberationEvent]:
        return [
            e for e in self.events
            if e.type == event_type and (session_id is None or e.session_id == session_id)
        ]


def agent_for_prompt(system_prompt: str) -> str:
    """Which default agent a system prompt belongs to."""
    for agent in default_registry().all():
        if system_prompt.startswith(agent.system_prompt):
            return agent.id
    raise AssertionError("system prompt does not belong to a default agent")


def scripted_gateway(script: Callable[[str, int], str] | None = None) -> AsyncMock:
    """
    Model gateway mock. `script(agent_id, call_number)` returns the text for a
    call (call_number counts from 1 across all agents); the default is a
    short contribution naming the agent.
    """
    calls = {"n": 0}

    async def respond(system_prompt, conversation):
        calls["n"] += 1
        agent_id = agent_for_prompt(system_prompt)
        if script is not None:
            return script(agent_id, calls["n"])
        return f"Contribution from {agent_id}."

    gateway = AsyncMock()
    gateway.invoke.side_effect = respond
    return gateway


async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll `predicate` on the event loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)

