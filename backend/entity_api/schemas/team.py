"""
DTOs for Team.
"""

from typing import Optional

from pydantic import Field

from .base import CamelModel, EntityOutput


class TeamCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


class TeamEdit(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None


class TeamOutput(EntityOutput):
    name: str
    description: Optional[str] = None
