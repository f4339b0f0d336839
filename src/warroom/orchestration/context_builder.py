"""
Context Builder -- assembles the conversation an agent sees on its turn.

Pure functions over a SessionSnapshot: same snapshot in, same text out, and
the snapshot is never mutated. Sections appear in a fixed order and empty
sections are omitted:

    PROBLEM
    CURRENT PHASE
    ATTACHED FILES            (text capped per file, binary as size only)
    HUMAN INTERJECTIONS       (with their timestamps)
    PRIOR DELIBERATION        ([Agent Name]: ... / [Human]: ...)
    YOUR ESCALATION ANSWERS   (answers to this agent's own questions)
    SHARED HUMAN INPUT        (answers to everyone else's questions)
    <directive line>
    <closing instructions, if this agent closes the phase>

Usage:
    conversation = build_context(snapshot, agent, phase_index, plan, registry)
    text = await gateway.invoke(agent.system_prompt, conversation)
"""

from ..agents.registry import AgentProfile, AgentRegistry
from ..llm.client import ConversationTurn
from ..security.prompt_guard import sanitize_for_prompt
from .models import FileRef, SessionSnapshot
from .phases import PhasePlan

DEFAULT_MAX_FILE_CHARS = 10_000
FOLLOWUP_PHASE = "Follow-up"

QA_MODE_INSTRUCTIONS = (
    "\n\nYou are now in Q&A mode. Answer the human's follow-up question based "
    "on the full deliberation context."
)


def _file_block(file: FileRef, max_chars: int) -> str:
    if file.is_binary:
        return f"--- {file.name} ({file.mime_type}, {file.size} bytes) ---\n[binary file, content not shown]"
    excerpt = sanitize_for_prompt(file.text or "", max_length=max_chars)
    return f"--- {file.name} ---\n{excerpt}"


def _files_section(snapshot: SessionSnapshot, max_chars: int) -> str:
    if not snapshot.session.files:
        return ""
    blocks = "\n\n".join(_file_block(f, max_chars) for f in snapshot.session.files)
    return f"ATTACHED FILES:\n{blocks}\n\n"


def _interjections_section(snapshot: SessionSnapshot) -> str:
    if not snapshot.interjections:
        return ""
    lines = "\n".join(
        f"[{h.created_at}] {h.content}" for h in snapshot.interjections
    )
    return f"HUMAN INTERJECTIONS:\n{lines}\n\n"


def _transcript(snapshot: SessionSnapshot, registry: AgentRegistry) -> str:
    return "\n\n".join(
        f"[{registry.display_name(m.agent_id)}]: {m.content}"
        for m in snapshot.messages
    )


def build_context(
    snapshot: SessionSnapshot,
    agent: AgentProfile,
    phase_index: int,
    plan: PhasePlan,
    registry: AgentRegistry,
    max_file_chars: int = DEFAULT_MAX_FILE_CHARS,
) -> list[ConversationTurn]:
    """Build the single-user-turn conversation for `agent` in `phase_index`."""
    phase = plan[phase_index]
    answered = [e for e in snapshot.escalations if not e.is_pending]

    content = f"PROBLEM: {snapshot.session.problem}\n\nCURRENT PHASE: {phase.name}\n\n"
    content += _files_section(snapshot, max_file_chars)
    content += _interjections_section(snapshot)

    prior = _transcript(snapshot, registry)
    if prior:
        content += f"PRIOR DELIBERATION:\n{prior}\n\n"

    own = [
        f'Human answered your question "{e.question}": {e.answer}'
        for e in answered
        if e.agent_id == agent.id
    ]
    if own:
        content += "YOUR ESCALATION ANSWERS:\n" + "\n".join(own) + "\n\n"

    shared = [
        f'[Human responded to {registry.display_name(e.agent_id)}]: '
        f'Q: "{e.question}" A: {e.answer}'
        for e in answered
        if e.agent_id != agent.id
    ]
    if shared:
        content += "SHARED HUMAN INPUT:\n" + "\n".join(shared) + "\n\n"

    content += (
        f"Now provide your contribution as {agent.name} ({agent.role}) for the "
        f"{phase.name} phase. Stay in character. Be concise but thorough."
    )

    closing = phase.closing_instructions_for(agent.id)
    if closing:
        content += f"\n\n{closing}"

    return [ConversationTurn(role="user", content=content)]


def build_followup_context(
    snapshot: SessionSnapshot,
    question: str,
    registry: AgentRegistry,
    max_file_chars: int = DEFAULT_MAX_FILE_CHARS,
    question_id: str | None = None,
) -> list[ConversationTurn]:
    """Q&A-mode conversation: the whole session plus a new human question.

    question_id is the interjection that carries the question, if it was
    already persisted; it is left out of the earlier-messages section.
    """
    content = f"ORIGINAL PROBLEM:\n{snapshot.session.problem}\n\n"
    content += _files_section(snapshot, max_file_chars)
    content += f"FULL DELIBERATION:\n{_transcript(snapshot, registry)}\n\n"

    answered = [e for e in snapshot.escalations if not e.is_pending]
    if answered:
        qa = "\n".join(
            f'[{registry.display_name(e.agent_id)}] Q: "{e.question}" A: {e.answer}'
            for e in answered
        )
        content += f"QUESTIONS ANSWERED BY THE HUMAN:\n{qa}\n\n"

    earlier = [h for h in snapshot.interjections if h.id != question_id]
    if earlier:
        lines = "\n".join(f"[{h.created_at}] {h.content}" for h in earlier)
        content += f"EARLIER HUMAN MESSAGES:\n{lines}\n\n"

    content += (
        f"HUMAN FOLLOW-UP QUESTION:\n{question}\n\n"
        "Provide a comprehensive answer based on the full context of the "
        "research session."
    )
    return [ConversationTurn(role="user", content=content)]


def followup_system_prompt(agent: AgentProfile) -> str:
    return agent.system_prompt + QA_MODE_INSTRUCTIONS
