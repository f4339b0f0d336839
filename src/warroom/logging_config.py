"""
Logging setup for the CLI and server entrypoints.

Library modules only do `logger = logging.getLogger(__name__)`; handlers are
installed here, once, by whoever owns the process.

  WARROOM_LOG_LEVEL=INFO
  WARROOM_LOG_FILE=data/logs/warroom.log   (optional, plain-text copy)
"""

import logging
import os
from pathlib import Path

from rich.logging import RichHandler

DEFAULT_LEVEL = "INFO"


def configure_logging(level: str | None = None, log_file: str | None = None) -> None:
    """Install a rich console handler (and optionally a file handler) on the root logger."""
    level = (level or os.environ.get("WARROOM_LOG_LEVEL", DEFAULT_LEVEL)).upper()
    log_file = log_file or os.environ.get("WARROOM_LOG_FILE")

    handlers: list[logging.Handler] = [
        RichHandler(rich_tracebacks=True, show_path=False, markup=False)
    ]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(level=level, format="%(message)s", handlers=handlers, force=True)
    # SDK chatter drowns out the deliberation log
    for noisy in ("httpx", "httpcore", "anthropic", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
