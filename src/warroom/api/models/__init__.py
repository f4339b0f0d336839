"""Pydantic models for the war room API."""
