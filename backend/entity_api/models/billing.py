"""
Billing models: SubscriptionPlan.

``features`` is a JSON-serialised column: a list of feature keys stored as
text.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, EntityMixin, JSONText


class SubscriptionPlan(EntityMixin, Base):
    __tablename__ = "subscription_plans"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # cents
    currency: Mapped[str] = mapped_column(String(3), default="EUR", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    features: Mapped[list[str]] = mapped_column(JSONText, default=list, nullable=False)
