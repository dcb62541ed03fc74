"""
Shared pydantic configuration for entity DTOs.

JSON uses camelCase (``ownerIds``, ``createdAt``); Python code keeps
snake_case field names. Input accepts either form.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class EntityOutput(CamelModel):
    """Server-set fields every output DTO carries."""

    id: UUID
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None
    owner_ids: list[str] = []
