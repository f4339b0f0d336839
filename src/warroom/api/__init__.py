"""War room HTTP API."""
