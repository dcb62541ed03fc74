"""
SubscriptionPlan registration.

``features`` is stored as JSON text; partial updates encode it before the
UPDATE is issued.
"""

from sqlalchemy.orm import Session

from entity_shared.config.constants import Actions, Roles
from entity_api.models import SubscriptionPlan
from entity_api.schemas.billing import (
    SubscriptionPlanCreate,
    SubscriptionPlanEdit,
    SubscriptionPlanOutput,
)
from entity_api.services.entity.converters import build_output, fields_to_model
from entity_api.services.entity.descriptor import Converters, EntityDescriptor, SwaggerConfig, edit_to_map
from entity_api.services.entity.hooks import HookRegistry
from entity_api.services.entity.registry import EntityRegistry


def plan_to_model(dto: SubscriptionPlanCreate, db: Session) -> SubscriptionPlan:
    return fields_to_model(SubscriptionPlan, dto)


def plan_to_output(plan: SubscriptionPlan, _seen: frozenset = frozenset()) -> SubscriptionPlanOutput:
    return build_output(SubscriptionPlanOutput, plan, _seen=_seen)


def register_billing_entities(registry: EntityRegistry, hooks: HookRegistry, service) -> None:
    registry.register(
        EntityDescriptor(
            entity_name="SubscriptionPlan",
            model=SubscriptionPlan,
            create_dto=SubscriptionPlanCreate,
            edit_dto=SubscriptionPlanEdit,
            output_dto=SubscriptionPlanOutput,
            converters=Converters(plan_to_model, plan_to_output, edit_to_map),
            default_roles={
                Roles.USER: Actions.READ,
                Roles.ADMINISTRATOR: Actions.ALL,
            },
            swagger_config=SwaggerConfig(tag="subscription-plans", summary="Subscription plan"),
            json_columns=("features",),
        )
    )
