"""
Output directive extraction -- find sentinel lines in free-text model output.

Agents talk to the orchestrator through markers embedded in
their prose, one directive per line:

    NEED_HUMAN_INPUT: What is the budget?     -> escalation to the human
    SEARCH: EU AI act compliance timeline     -> live search query

The turn executor depends on the DirectiveExtractor protocol only, so the
parsing strategy (regex today, structured output tomorrow) can be swapped
without touching the scheduler.
"""

import re
from typing import Protocol, runtime_checkable

ESCALATION_MARKER = "NEED_HUMAN_INPUT"
SEARCH_MARKER = "SEARCH"


@runtime_checkable
class DirectiveExtractor(Protocol):
    """Interface for pulling orchestrator directives out of agent output."""

    def escalations(self, text: str, limit: int) -> list[str]: ...

    def search_queries(self, text: str, limit: int) -> list[str]: ...

    def strip_search_directives(self, text: str) -> str: ...


class MarkerDirectiveExtractor:
    """Regex-based extractor for `MARKER: payload` directives.

    A marker counts anywhere on a line (list numbering, bullets, markdown
    emphasis and leading prose are tolerated) as long as it is not part of a
    longer word. The payload runs to the end of the line, so each line yields
    at most one directive. Empty payloads are ignored and square brackets
    around the payload, as in the prompt template, are removed.
    """

    def __init__(
        self,
        escalation_marker: str = ESCALATION_MARKER,
        search_marker: str = SEARCH_MARKER,
    ):
        self._escalation_re = self._line_pattern(escalation_marker)
        self._search_re = self._line_pattern(search_marker)
        self._search_line_re = re.compile(
            rf"^.*{self._marker_pattern(search_marker)}.*$", re.MULTILINE
        )

    @staticmethod
    def _marker_pattern(marker: str) -> str:
        return rf"(?<![A-Za-z0-9_]){re.escape(marker)}(?:\*\*)?:"

    @classmethod
    def _line_pattern(cls, marker: str) -> re.Pattern:
        return re.compile(
            rf"{cls._marker_pattern(marker)}[ \t]*(.+?)[ \t]*$",
            re.MULTILINE,
        )

    @staticmethod
    def _clean(payload: str) -> str:
        payload = payload.strip().strip("*").strip()
        if payload.startswith("[") and payload.endswith("]"):
            payload = payload[1:-1].strip()
        return payload

    def _extract(self, pattern: re.Pattern, text: str, limit: int) -> list[str]:
        found = []
        for match in pattern.finditer(text or ""):
            payload = self._clean(match.group(1))
            if payload:
                found.append(payload)
            if len(found) >= limit:
                break
        return found

    def escalations(self, text: str, limit: int = 5) -> list[str]:
        """Questions for the human, one per marker line, in order."""
        return self._extract(self._escalation_re, text, limit)

    def search_queries(self, text: str, limit: int = 5) -> list[str]:
        """Distinct search queries, in order of first appearance."""
        queries: list[str] = []
        for query in self._extract(self._search_re, text, limit * 2):
            if query not in queries:
                queries.append(query)
            if len(queries) >= limit:
                break
        return queries

    def strip_search_directives(self, text: str) -> str:
        """Drop every line that carries a SEARCH marker."""
        stripped = self._search_line_re.sub("", text or "")
        return re.sub(r"\n{3,}", "\n\n", stripped).strip()
