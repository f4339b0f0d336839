"""
Deliberation configuration.

Every knob has a sane default; deployments override through environment
variables (WARROOM_*) via DeliberationConfig.from_env().

  WARROOM_DB_PATH=data/warroom.db
  WARROOM_POLL_INTERVAL=2.0           seconds between escalation checks
  WARROOM_ESCALATION_TIMEOUT=300      seconds before proceeding without answers
  WARROOM_TURN_PAUSE=0.5              pacing pause after each agent turn
  WARROOM_MAX_FILE_CHARS=10000        per-file excerpt size in agent context
  WARROOM_MAX_TOKENS=1500             output tokens per model call
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("data/warroom.db")


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except ValueError:
        logger.warning(f"[Config] {name} is not a number -- using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        logger.warning(f"[Config] {name} is not an integer -- using {default}")
        return default


@dataclass
class DeliberationConfig:
    """Configuration shared by the scheduler, turn executor and session manager."""

    poll_interval_seconds: float = 2.0
    escalation_timeout_seconds: float = 300.0
    turn_pause_seconds: float = 0.5
    max_file_chars: int = 10_000
    max_search_queries: int = 5
    max_escalations_per_turn: int = 5
    max_problem_length: int = 50_000
    max_message_length: int = 20_000
    max_files: int = 20
    max_tokens: int = 1500
    db_path: Path = field(default_factory=lambda: DEFAULT_DB_PATH)

    @classmethod
    def from_env(cls) -> "DeliberationConfig":
        """Build a config from WARROOM_* environment variables."""
        return cls(
            poll_interval_seconds=_env_float("WARROOM_POLL_INTERVAL", 2.0),
            escalation_timeout_seconds=_env_float("WARROOM_ESCALATION_TIMEOUT", 300.0),
            turn_pause_seconds=_env_float("WARROOM_TURN_PAUSE", 0.5),
            max_file_chars=_env_int("WARROOM_MAX_FILE_CHARS", 10_000),
            max_tokens=_env_int("WARROOM_MAX_TOKENS", 1500),
            db_path=Path(os.environ.get("WARROOM_DB_PATH", str(DEFAULT_DB_PATH))),
        )
