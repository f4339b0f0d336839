"""
Input Validators - Validation for untrusted input at the war room's boundaries.

Parse at the boundary: the HTTP/WebSocket layer and the SessionManager
validate ids, problem statements, answers and file lists before anything is
persisted. A failed check raises ValidationError and mutates nothing.
"""

import ipaddress
import logging
import re
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

ALLOWED_URL_SCHEMES = {"http", "https"}
BLOCKED_HOSTNAMES = {"localhost", "metadata.google.internal"}

# Session ids are 10 hex chars today; accept any alphanumeric id of sane length
SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9]{6,32}$")
RECORD_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class ValidationError(ValueError):
    """Raised when input validation fails. Contains a user-friendly message."""

    pass


def validate_not_empty(value: str, field_name: str = "input") -> str:
    """Validate that a string is not empty or whitespace-only."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} cannot be empty")
    return value.strip()


def validate_length(
    value: str,
    field_name: str = "input",
    min_length: int = 0,
    max_length: int = 100_000,
) -> str:
    """Validate string length is within bounds."""
    if len(value) < min_length:
        raise ValidationError(f"{field_name} must be at least {min_length} characters")
    if len(value) > max_length:
        raise ValidationError(f"{field_name} must be at most {max_length} characters")
    return value


def validate_session_id(value: str, field_name: str = "session_id") -> str:
    """Validate a session id: 6-32 ASCII letters or digits, nothing else."""
    if not isinstance(value, str) or not SESSION_ID_PATTERN.match(value):
        raise ValidationError(
            f"{field_name} must be 6-32 letters or digits"
        )
    return value


def validate_record_id(value: str, field_name: str = "id") -> str:
    """Validate a child-record id (escalation, message)."""
    if not isinstance(value, str) or not RECORD_ID_PATTERN.match(value):
        raise ValidationError(
            f"{field_name} must be 1-64 letters, digits, underscores or hyphens"
        )
    return value


def validate_in_choices(value: str, choices: list[str], field_name: str = "value") -> str:
    """Validate that a value is one of the allowed choices."""
    if value not in choices:
        raise ValidationError(f"{field_name} must be one of: {', '.join(choices)}")
    return value


def _is_private_ip(hostname: str) -> bool:
    """Check if a hostname is a private/loopback IP address."""
    try:
        addr = ipaddress.ip_address(hostname)
        return addr.is_private or addr.is_loopback or addr.is_link_local
    except ValueError:
        return False


def validate_url(
    url: str,
    field_name: str = "url",
    allow_private: bool = False,
) -> str:
    """
    Validate a URL for outbound requests (anti-SSRF).

    Used for the configurable search endpoint. Blocks non-http(s) schemes,
    private/loopback/link-local addresses and known metadata hostnames.

    Raises:
        ValidationError: If the URL is unsafe.
    """
    if not url or not url.strip():
        raise ValidationError(f"{field_name} cannot be empty")

    parsed = urlparse(url.strip())

    if parsed.scheme not in ALLOWED_URL_SCHEMES:
        raise ValidationError(
            f"{field_name} must use http or https (got '{parsed.scheme}')"
        )

    hostname = parsed.hostname
    if not hostname:
        raise ValidationError(f"{field_name} must include a hostname")

    hostname_lower = hostname.lower()
    if hostname_lower in BLOCKED_HOSTNAMES:
        raise ValidationError(f"{field_name} cannot point to {hostname_lower}")

    if not allow_private and _is_private_ip(hostname):
        raise ValidationError(
            f"{field_name} cannot point to private/internal addresses"
        )

    if not allow_private and hostname_lower.endswith(".internal"):
        raise ValidationError(f"{field_name} cannot point to internal hostnames")

    logger.debug(f"[Validators] URL validated: {parsed.scheme}://{hostname}")
    return url.strip()


def validate_list_size(
    items: list,
    field_name: str = "list",
    max_items: int = 100,
) -> list:
    """Validate that a list does not exceed a maximum number of items."""
    if len(items) > max_items:
        raise ValidationError(
            f"{field_name} cannot have more than {max_items} items (got {len(items)})"
        )
    return items
