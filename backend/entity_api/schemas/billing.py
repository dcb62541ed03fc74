"""
DTOs for SubscriptionPlan.
"""

from typing import Optional

from pydantic import Field

from .base import CamelModel, EntityOutput


class SubscriptionPlanCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    price_amount: int = Field(default=0, ge=0)
    currency: str = Field(default="EUR", min_length=3, max_length=3)
    is_active: bool = True
    features: list[str] = []


class SubscriptionPlanEdit(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    price_amount: Optional[int] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    is_active: Optional[bool] = None
    features: Optional[list[str]] = None


class SubscriptionPlanOutput(EntityOutput):
    name: str
    description: Optional[str] = None
    price_amount: int
    currency: str
    is_active: bool
    features: list[str] = []
