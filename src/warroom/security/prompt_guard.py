"""
Prompt Guard - Keep untrusted human content safe and bounded inside prompts.

Problem statements, uploaded file text and interjections all flow verbatim
into agent context. Two functions guard that path:

  sanitize_for_prompt()      -- null byte removal, length cap with explicit marker
  detect_injection_attempt() -- scans for known injection patterns (logs, doesn't block)

Reference: OWASP LLM Top 10 (2025) - LLM01: Prompt Injection
"""

import logging
import re

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "[TRUNCATED]"

INJECTION_PATTERNS = [
    r"ignore\s+(all\s+)?previous\s+instructions",
    r"you\s+are\s+now\s+a",
    r"forget\s+(all\s+)?(your|previous)\s+instructions",
    r"^\s*system\s*:\s*",
    r"<\|im_start\|>",
    r"<\|im_end\|>",
    r"\[INST\]",
    r"\[/INST\]",
    r"override\s+safety",
    r"jailbreak",
]


def detect_injection_attempt(text: str) -> list[str]:
    """
    Detect potential prompt injection patterns in human-provided content.

    Returns list of matched patterns (empty = clean). Does NOT block --
    the deliberation proceeds; findings are logged for the operator.
    """
    if not text:
        return []

    findings = [
        pattern
        for pattern in INJECTION_PATTERNS
        if re.search(pattern, text, re.IGNORECASE | re.MULTILINE)
    ]

    if findings:
        logger.warning(
            f"[PromptGuard] Detected {len(findings)} potential injection pattern(s) "
            f"in input ({len(text)} chars)"
        )

    return findings


def sanitize_for_prompt(
    content: str,
    max_length: int = 100_000,
    strip_null: bool = True,
) -> str:
    """
    Sanitize content for inclusion in an LLM prompt.

    - Strips null bytes
    - Truncates to max_length and appends TRUNCATION_MARKER so the agent
      knows it is looking at an excerpt
    - Does NOT remove injection patterns (that would alter user content)
    """
    if not content:
        return ""

    if strip_null:
        content = content.replace("\x00", "")

    if len(content) > max_length:
        content = content[:max_length] + f"\n{TRUNCATION_MARKER}"
        logger.debug(f"[PromptGuard] Content truncated to {max_length} chars")

    return content
