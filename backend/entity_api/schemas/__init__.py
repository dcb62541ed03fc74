"""Pydantic DTOs (create / edit / output) for the registered entities."""
