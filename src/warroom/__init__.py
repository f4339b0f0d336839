"""War room -- multi-agent deliberation orchestrator."""

__version__ = "0.1.0"
