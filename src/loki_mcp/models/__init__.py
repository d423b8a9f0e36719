"""Pydantic models for configuration, tool arguments, Loki responses and errors."""
