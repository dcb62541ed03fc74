"""
DTOs for the hook administration endpoints.
"""

from .base import CamelModel


class HookOutput(CamelModel):
    name: str
    entity_name: str
    phases: list[str]
    priority: int
    enabled: bool


class HookToggleOutput(CamelModel):
    name: str
    enabled: bool
