"""
Item, Parent and Child registrations.

Items are flat. A Child references its Parent with ON DELETE RESTRICT, so
deleting a referenced parent answers 409 (ENT011).
"""

from sqlalchemy.orm import Session

from entity_shared.config.constants import Actions, Roles
from entity_api.models import Child, Item, Parent
from entity_api.schemas.catalog import (
    ChildCreate,
    ChildEdit,
    ChildOutput,
    ItemCreate,
    ItemEdit,
    ItemOutput,
    ParentCreate,
    ParentEdit,
    ParentOutput,
)
from entity_api.services.entity.converters import build_output, fields_to_model, resolve_related
from entity_api.services.entity.descriptor import Converters, EntityDescriptor, SwaggerConfig, edit_to_map
from entity_api.services.entity.hooks import HookRegistry
from entity_api.services.entity.registry import EntityRegistry


DEFAULT_ROLES = {
    Roles.USER: Actions.READ_CREATE,
    Roles.ADMINISTRATOR: Actions.ALL,
}


def item_to_model(dto: ItemCreate, db: Session) -> Item:
    return fields_to_model(Item, dto)


def item_to_output(item: Item, _seen: frozenset = frozenset()) -> ItemOutput:
    return build_output(ItemOutput, item, _seen=_seen)


def parent_to_model(dto: ParentCreate, db: Session) -> Parent:
    return fields_to_model(Parent, dto)


def parent_to_output(parent: Parent, _seen: frozenset = frozenset()) -> ParentOutput:
    return build_output(ParentOutput, parent, _seen=_seen)


def child_to_model(dto: ChildCreate, db: Session) -> Child:
    # Reject unknown parents as bad input rather than an FK failure on insert
    resolve_related(db, Parent, [dto.parent_id], "parentId")
    return fields_to_model(Child, dto)


def child_to_output(child: Child, _seen: frozenset = frozenset()) -> ChildOutput:
    return build_output(ChildOutput, child, {"parent": parent_to_output}, _seen)


def register_catalog_entities(registry: EntityRegistry, hooks: HookRegistry, service) -> None:
    registry.register(
        EntityDescriptor(
            entity_name="Item",
            model=Item,
            create_dto=ItemCreate,
            edit_dto=ItemEdit,
            output_dto=ItemOutput,
            converters=Converters(item_to_model, item_to_output, edit_to_map),
            default_roles=dict(DEFAULT_ROLES),
            swagger_config=SwaggerConfig(tag="items", summary="Item"),
        )
    )
    registry.register(
        EntityDescriptor(
            entity_name="Parent",
            model=Parent,
            create_dto=ParentCreate,
            edit_dto=ParentEdit,
            output_dto=ParentOutput,
            converters=Converters(parent_to_model, parent_to_output, edit_to_map),
            default_roles=dict(DEFAULT_ROLES),
            swagger_config=SwaggerConfig(tag="parents", summary="Parent"),
        )
    )
    registry.register(
        EntityDescriptor(
            entity_name="Child",
            model=Child,
            create_dto=ChildCreate,
            edit_dto=ChildEdit,
            output_dto=ChildOutput,
            converters=Converters(child_to_model, child_to_output, edit_to_map),
            sub_entities=("parent",),
            default_roles=dict(DEFAULT_ROLES),
            swagger_config=SwaggerConfig(tag="children", summary="Child"),
        )
    )
