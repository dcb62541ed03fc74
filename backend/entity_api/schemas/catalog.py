"""
DTOs for Item, Parent and Child.
"""

from typing import Optional
from uuid import UUID

from pydantic import Field

from .base import CamelModel, EntityOutput


class ItemCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    sku: Optional[str] = Field(default=None, max_length=64)
    quantity: int = Field(default=0, ge=0)


class ItemEdit(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    sku: Optional[str] = Field(default=None, max_length=64)
    quantity: Optional[int] = Field(default=None, ge=0)


class ItemOutput(EntityOutput):
    name: str
    sku: Optional[str] = None
    quantity: int


class ParentCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)


class ParentEdit(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)


class ParentOutput(EntityOutput):
    name: str


class ChildCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    parent_id: UUID


class ChildEdit(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)


class ChildOutput(EntityOutput):
    name: str
    parent_id: UUID
    parent: Optional[ParentOutput] = None
