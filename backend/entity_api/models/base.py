"""
Base class and EntityMixin for all managed SQLAlchemy models.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from entity_api.services.entity.ids import new_id


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JSONText(TypeDecorator):
    """
    JSON persisted as text. Every non-null value is encoded, strings included.
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect) -> Optional[str]:
        if value is None:
            return None
        return json.dumps(value)

    def process_result_value(self, value: Optional[str], dialect) -> Any:
        if value is None:
            return None
        return json.loads(value)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class EntityMixin:
    """
    Fields every managed entity carries.

    - id: time-ordered UUIDv7, immutable
    - created_at, updated_at: audit timestamps
    - deleted_at: soft-delete tombstone (None = live)
    - owner_ids: ordered subject identifiers, the creator first
    """

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    owner_ids: Mapped[list[str]] = mapped_column(JSONText, default=list, nullable=False)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def add_owner(self, user_id: str) -> None:
        """Append an owner, keeping order and uniqueness."""
        owners = list(self.owner_ids or [])
        if user_id not in owners:
            owners.append(user_id)
        self.owner_ids = owners

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        id_val = getattr(self, "id", None)
        state = "deleted" if self.is_deleted else "active"
        return f"<{class_name}(id={id_val}, {state})>"
