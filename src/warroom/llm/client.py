"""
Model gateway -- provider-agnostic LLM client behind a single-call contract.

The orchestrator only needs:

    text = await gateway.invoke(system_prompt, conversation)

where conversation is an ordered list of ConversationTurn(role, content).
Failures (timeouts, non-success responses, missing SDK or key) raise
ModelGatewayError; the turn executor treats that as non-fatal to the session.

LLMClient implements the contract for Anthropic (Claude), OpenAI (GPT) and
Google (Gemini), with a short bounded retry on transient errors, token
tracking, and prompt size limits. The agent system prompt is marked for
provider-side caching since it is identical on every turn of that agent.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ..security.prompt_guard import sanitize_for_prompt

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120
DEFAULT_MAX_RETRIES = 2
DEFAULT_MAX_TOKENS = 1500
DEFAULT_MAX_PROMPT_LENGTH = 400_000
RETRY_BASE_DELAY = 1.0
RETRY_MAX_DELAY = 30.0

ANTHROPIC_COST_PER_1K_INPUT = 0.003
ANTHROPIC_COST_PER_1K_CACHED = 0.0003
ANTHROPIC_COST_PER_1K_OUTPUT = 0.015
OPENAI_COST_PER_1K_INPUT = 0.005
OPENAI_COST_PER_1K_CACHED = 0.0025
OPENAI_COST_PER_1K_OUTPUT = 0.015


class ModelGatewayError(RuntimeError):
    """A model call failed (transport, provider, or configuration)."""


# =============================================================================
# CONTRACT
# =============================================================================


@dataclass
class ConversationTurn:
    """One entry of the conversation sent to the model."""

    role: str  # "user" or "assistant"
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@runtime_checkable
class ModelGateway(Protocol):
    """Single-call request/response abstraction over a language model."""

    async def invoke(
        self, system_prompt: str, conversation: list[ConversationTurn]
    ) -> str: ...


# =============================================================================
# USAGE TRACKING
# =============================================================================


@dataclass
class TokenUsage:
    """Token usage for a single call (or accumulated across calls)."""

    input_tokens: int = 0
    output_tokens: int = 0
    cached_input_tokens: int = 0
    total_tokens: int = 0
    estimated_cost_usd: float = 0.0

    def __post_init__(self):
        self.total_tokens = self.input_tokens + self.output_tokens


@dataclass
class LLMResponse:
    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: str = ""
    provider: str = ""
    latency_ms: float = 0.0


# =============================================================================
# LLM CLIENT
# =============================================================================


class LLMClient:
    """
    Provider-agnostic implementation of ModelGateway.

    Usage:
        client = LLMClient(provider="anthropic")
        text = await client.invoke(
            "You are the Red Teamer...",
            [ConversationTurn("user", "PROBLEM: ...")],
        )
    """

    def __init__(
        self,
        provider: str = "anthropic",
        model: str | None = None,
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        max_prompt_length: int = DEFAULT_MAX_PROMPT_LENGTH,
    ):
        self._provider = provider.lower()
        self._model = model or self._default_model()
        self._api_key = api_key or self._load_api_key()
        self._timeout = timeout
        self._max_retries = max_retries
        self._max_tokens = max_tokens
        self._max_prompt_length = max_prompt_length
        self._client: Any = None
        self._total_usage = TokenUsage()

        self._init_client()
        logger.info(
            f"[LLM] Initialized {self._provider} client "
            f"(model={self._model}, timeout={self._timeout}s)"
        )

    def _default_model(self) -> str:
        defaults = {
            "anthropic": "claude-sonnet-4-5",
            "openai": "gpt-4o",
            "google": "gemini-2.0-flash",
        }
        return defaults.get(self._provider, "claude-sonnet-4-5")

    def _load_api_key(self) -> str:
        key_map = {
            "anthropic": "ANTHROPIC_API_KEY",
            "openai": "OPENAI_API_KEY",
            "google": "GOOGLE_API_KEY",
        }
        env_var = key_map.get(self._provider, "ANTHROPIC_API_KEY")
        key = os.environ.get(env_var, "")
        if not key:
            logger.warning(f"[LLM] {env_var} not set -- calls will fail")
        return key

    def _init_client(self) -> None:
        """Initialize the provider-specific SDK client."""
        try:
            if self._provider == "anthropic":
                import anthropic

                self._client = anthropic.AsyncAnthropic(
                    api_key=self._api_key, timeout=self._timeout
                )
            elif self._provider == "openai":
                import openai

                self._client = openai.AsyncOpenAI(
                    api_key=self._api_key, timeout=self._timeout
                )
            elif self._provider == "google":
                import google.generativeai as genai

                genai.configure(api_key=self._api_key)
                self._client = genai
            else:
                raise ValueError(f"Unsupported provider: {self._provider}")
        except ImportError:
            logger.error(
                f"[LLM] {self._provider} SDK not installed. "
                f"Install the '{self._provider}' extra."
            )
            self._client = None

    async def invoke(
        self, system_prompt: str, conversation: list[ConversationTurn]
    ) -> str:
        """Call the model and return its text. Raises ModelGatewayError."""
        response = await self.call(system_prompt, conversation)
        return response.content

    async def call(
        self, system_prompt: str, conversation: list[ConversationTurn]
    ) -> LLMResponse:
        """Make a model call with retries; returns the full LLMResponse."""
        if self._client is None:
            raise ModelGatewayError(
                f"{self._provider} client not initialized -- check SDK and API key"
            )
        if not conversation:
            raise ModelGatewayError("Conversation must contain at least one turn")

        system_prompt, conversation = self._sanitize(system_prompt, conversation)

        start = time.time()
        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                response = await self._call_provider(system_prompt, conversation)
                response.latency_ms = (time.time() - start) * 1000
                self._track_usage(response.usage)

                logger.debug(
                    f"[LLM] {self._provider}: "
                    f"{response.usage.input_tokens}in "
                    f"({response.usage.cached_input_tokens} cached) + "
                    f"{response.usage.output_tokens}out "
                    f"${response.usage.estimated_cost_usd:.4f} "
                    f"({response.latency_ms:.0f}ms)"
                )
                return response

            except Exception as e:
                last_error = e
                if self._is_retryable(e) and attempt < self._max_retries:
                    delay = min(RETRY_BASE_DELAY * (2**attempt), RETRY_MAX_DELAY)
                    logger.warning(
                        f"[LLM] Retryable error (attempt {attempt + 1}): "
                        f"{type(e).__name__}. Retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                else:
                    break

        logger.error(
            f"[LLM] Call failed after {attempt + 1} attempt(s): {last_error}"
        )
        raise ModelGatewayError(
            f"{type(last_error).__name__}: {last_error}"
        ) from last_error

    def _sanitize(
        self, system_prompt: str, conversation: list[ConversationTurn]
    ) -> tuple[str, list[ConversationTurn]]:
        """Enforce size limits and strip null bytes."""
        per_turn = self._max_prompt_length // (len(conversation) + 1)
        return (
            sanitize_for_prompt(system_prompt, max_length=per_turn),
            [
                ConversationTurn(t.role, sanitize_for_prompt(t.content, max_length=per_turn))
                for t in conversation
            ],
        )

    async def _call_provider(
        self, system_prompt: str, conversation: list[ConversationTurn]
    ) -> LLMResponse:
        if self._provider == "anthropic":
            return await self._call_anthropic(system_prompt, conversation)
        elif self._provider == "openai":
            return await self._call_openai(system_prompt, conversation)
        elif self._provider == "google":
            return await self._call_google(system_prompt, conversation)
        raise ValueError(f"Unsupported provider: {self._provider}")

    async def _call_anthropic(
        self, system_prompt: str, conversation: list[ConversationTurn]
    ) -> LLMResponse:
        """Anthropic Claude; the agent system prompt is cached (cache_control)."""
        system_blocks = []
        if system_prompt:
            system_blocks.append({
                "type": "text",
                "text": system_prompt,
                "cache_control": {"type": "ephemeral"},
            })

        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "messages": [t.to_dict() for t in conversation],
        }
        if system_blocks:
            kwargs["system"] = system_blocks

        response = await self._client.messages.create(**kwargs)

        usage_data = response.usage
        cached = getattr(usage_data, "cache_read_input_tokens", 0) or 0
        input_tok = getattr(usage_data, "input_tokens", 0) or 0
        output_tok = getattr(usage_data, "output_tokens", 0) or 0

        cost = (
            input_tok * ANTHROPIC_COST_PER_1K_INPUT / 1000
            + cached * ANTHROPIC_COST_PER_1K_CACHED / 1000
            + output_tok * ANTHROPIC_COST_PER_1K_OUTPUT / 1000
        )

        text = "".join(
            getattr(block, "text", "") for block in response.content
        )
        if not text:
            raise ModelGatewayError("Anthropic returned an empty response")

        return LLMResponse(
            content=text,
            usage=TokenUsage(
                input_tokens=input_tok,
                output_tokens=output_tok,
                cached_input_tokens=cached,
                estimated_cost_usd=round(cost, 6),
            ),
            model=self._model,
            provider="anthropic",
        )

    async def _call_openai(
        self, system_prompt: str, conversation: list[ConversationTurn]
    ) -> LLMResponse:
        """OpenAI with automatic prefix caching."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.extend(t.to_dict() for t in conversation)

        response = await self._client.chat.completions.create(
            model=self._model,
            messages=messages,
            max_tokens=self._max_tokens,
        )

        usage_data = response.usage
        input_tok = usage_data.prompt_tokens if usage_data else 0
        output_tok = usage_data.completion_tokens if usage_data else 0
        details = getattr(usage_data, "prompt_tokens_details", None)
        cached_tok = getattr(details, "cached_tokens", 0) if details else 0

        cost = (
            (input_tok - cached_tok) * OPENAI_COST_PER_1K_INPUT / 1000
            + cached_tok * OPENAI_COST_PER_1K_CACHED / 1000
            + output_tok * OPENAI_COST_PER_1K_OUTPUT / 1000
        )

        text = response.choices[0].message.content or ""
        if not text:
            raise ModelGatewayError("OpenAI returned an empty response")

        return LLMResponse(
            content=text,
            usage=TokenUsage(
                input_tokens=input_tok,
                output_tokens=output_tok,
                cached_input_tokens=cached_tok,
                estimated_cost_usd=round(cost, 6),
            ),
            model=self._model,
            provider="openai",
        )

    async def _call_google(
        self, system_prompt: str, conversation: list[ConversationTurn]
    ) -> LLMResponse:
        """Google Gemini (sync SDK run in a worker thread)."""
        model = self._client.GenerativeModel(
            self._model, system_instruction=system_prompt or None
        )
        contents = [
            {"role": "model" if t.role == "assistant" else "user", "parts": [t.content]}
            for t in conversation
        ]

        response = await asyncio.to_thread(
            model.generate_content,
            contents,
            generation_config={"max_output_tokens": self._max_tokens},
        )

        input_tok = 0
        output_tok = 0
        if hasattr(response, "usage_metadata"):
            input_tok = getattr(response.usage_metadata, "prompt_token_count", 0)
            output_tok = getattr(response.usage_metadata, "candidates_token_count", 0)

        return LLMResponse(
            content=response.text,
            usage=TokenUsage(input_tokens=input_tok, output_tokens=output_tok),
            model=self._model,
            provider="google",
        )

    def _is_retryable(self, error: Exception) -> bool:
        """Check if an error is transient and worth retrying."""
        retryable_types = {
            "RateLimitError",
            "APITimeoutError",
            "InternalServerError",
            "ServiceUnavailableError",
            "APIConnectionError",
            "OverloadedError",
            "Timeout",
            "ConnectError",
        }
        return type(error).__name__ in retryable_types

    def _track_usage(self, usage: TokenUsage) -> None:
        self._total_usage.input_tokens += usage.input_tokens
        self._total_usage.output_tokens += usage.output_tokens
        self._total_usage.cached_input_tokens += usage.cached_input_tokens
        self._total_usage.total_tokens += usage.total_tokens
        self._total_usage.estimated_cost_usd += usage.estimated_cost_usd

    @property
    def total_usage(self) -> TokenUsage:
        """Cumulative token usage across all calls in this client's lifetime."""
        return self._total_usage

    @property
    def is_configured(self) -> bool:
        """SDK importable and an API key present."""
        return self._client is not None and bool(self._api_key)

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def model(self) -> str:
        return self._model


# =============================================================================
# FACTORY
# =============================================================================


def create_client(
    provider: str | None = None,
    model: str | None = None,
    api_key: str | None = None,
    **kwargs,
) -> LLMClient:
    """
    Create an LLM client, auto-detecting provider from environment if not specified.

    Detection order:
      1. Explicit provider argument (or WARROOM_LLM_PROVIDER)
      2. ANTHROPIC_API_KEY set -> anthropic
      3. OPENAI_API_KEY set -> openai
      4. GOOGLE_API_KEY set -> google
      5. Default: anthropic
    """
    provider = provider or os.environ.get("WARROOM_LLM_PROVIDER")
    if provider is None:
        if os.environ.get("ANTHROPIC_API_KEY"):
            provider = "anthropic"
        elif os.environ.get("OPENAI_API_KEY"):
            provider = "openai"
        elif os.environ.get("GOOGLE_API_KEY"):
            provider = "google"
        else:
            provider = "anthropic"
            logger.warning("[LLM] No API key found. Defaulting to anthropic.")

    model = model or os.environ.get("WARROOM_LLM_MODEL")
    return LLMClient(provider=provider, model=model, api_key=api_key, **kwargs)
