"""
Search gateway -- query -> result set, used only by the search-capable agent.

Contract:

    result = await gateway.search("EU AI act timeline")
    result.summary            # optional provider-written answer
    result.sources            # [SearchSource(title, url, snippet, score)]

None (or an exception) is a valid, handled outcome: the turn executor records
it as a per-query failure and moves on.

TavilySearchClient implements the contract over Tavily's REST API with httpx.

Security:
  - Responses are size-capped and every string field is sanitized
  - Source count per query is bounded
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import httpx

from ..security.prompt_guard import detect_injection_attempt, sanitize_for_prompt
from ..security.validators import validate_url

logger = logging.getLogger(__name__)

TAVILY_URL = "https://api.tavily.com/search"
DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_MAX_RESULTS = 5
MAX_RESPONSE_BYTES = 2_000_000
MAX_SNIPPET_LENGTH = 2_000


class SearchGatewayError(RuntimeError):
    """A search request failed."""


@dataclass
class SearchSource:
    title: str
    url: str
    snippet: str = ""
    score: float = 0.0


@dataclass
class SearchResult:
    """Result set for one query."""

    query: str
    summary: str | None = None
    sources: list[SearchSource] = field(default_factory=list)


@runtime_checkable
class SearchGateway(Protocol):
    """Query -> result-set abstraction. May return None when nothing was found."""

    async def search(self, query: str) -> SearchResult | None: ...


class TavilySearchClient:
    """
    SearchGateway backed by the Tavily search API.

    Usage:
        client = TavilySearchClient(api_key=os.environ["TAVILY_API_KEY"])
        result = await client.search("state of solid-state batteries 2026")
    """

    def __init__(
        self,
        api_key: str,
        max_results: int = DEFAULT_MAX_RESULTS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        base_url: str = TAVILY_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self._max_results = max_results
        self._timeout = timeout
        self._base_url = validate_url(base_url, "search base_url")
        self._transport = transport

    async def search(self, query: str) -> SearchResult | None:
        """Run one query. Raises SearchGatewayError on transport/provider failure."""
        payload = {
            "api_key": self._api_key,
            "query": query,
            "max_results": self._max_results,
            "include_answer": True,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(self._base_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise SearchGatewayError(f"{type(e).__name__}: {e}") from e

        if len(response.content) > MAX_RESPONSE_BYTES:
            raise SearchGatewayError(
                f"Response too large ({len(response.content)} bytes)"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise SearchGatewayError("Search provider returned invalid JSON") from e

        sources = [
            self._to_source(item)
            for item in (data.get("results") or [])[: self._max_results]
            if isinstance(item, dict) and item.get("url")
        ]
        summary = data.get("answer") or None
        if not sources and not summary:
            logger.info(f"[Search] No results for '{query[:80]}'")
            return None

        logger.debug(f"[Search] '{query[:80]}' -> {len(sources)} sources")
        return SearchResult(
            query=query,
            summary=self._clean(summary) if summary else None,
            sources=sources,
        )

    def _to_source(self, item: dict) -> SearchSource:
        try:
            score = float(item.get("score") or 0.0)
        except (TypeError, ValueError):
            score = 0.0
        return SearchSource(
            title=self._clean(str(item.get("title") or "")),
            url=str(item["url"]),
            snippet=self._clean(str(item.get("content") or "")),
            score=score,
        )

    def _clean(self, value: str) -> str:
        cleaned = sanitize_for_prompt(value, max_length=MAX_SNIPPET_LENGTH)
        if detect_injection_attempt(cleaned):
            logger.warning("[Search] Injection patterns found in a search result")
        return cleaned


def create_search_client() -> TavilySearchClient | None:
    """Build a search client from TAVILY_API_KEY, or None when unset."""
    api_key = os.environ.get("TAVILY_API_KEY", "")
    if not api_key:
        logger.info("[Search] TAVILY_API_KEY not set -- live search disabled")
        return None
    return TavilySearchClient(api_key=api_key)
