"""API request guards."""
