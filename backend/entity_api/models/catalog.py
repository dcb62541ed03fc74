"""
Catalog models: a flat Item and the Parent/Child pair.

Child.parent_id is ON DELETE RESTRICT: a parent cannot be removed while a
child still references it.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, EntityMixin


class Item(EntityMixin, Base):
    __tablename__ = "items"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, unique=True)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class Parent(EntityMixin, Base):
    __tablename__ = "parents"

    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Child(EntityMixin, Base):
    __tablename__ = "children"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("parents.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    parent: Mapped["Parent"] = relationship()
