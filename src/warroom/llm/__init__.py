"""
Model gateway -- the single-call LLM contract used by the turn executor.

Usage:
    from .llm import ConversationTurn, create_client

    client = create_client()  # Auto-detects provider from env
    text = await client.invoke(system_prompt, [ConversationTurn("user", "...")])
"""

from .client import (
    ConversationTurn,
    LLMClient,
    LLMResponse,
    ModelGateway,
    ModelGatewayError,
    TokenUsage,
    create_client,
)
