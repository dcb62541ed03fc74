"""
Team model and its member table.

``team_members`` is plain bookkeeping, not a managed entity: one row per
(team, subject) with an ``is_active`` flag. Team lists are scoped to the
caller's active memberships.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Table, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, EntityMixin, utcnow


team_members = Table(
    "team_members",
    Base.metadata,
    Column("team_id", Uuid, ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(255), primary_key=True),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("joined_at", DateTime(timezone=True), nullable=False, default=utcnow),
)


class Team(EntityMixin, Base):
    __tablename__ = "teams"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
