"""
Registration descriptors.

An ``EntityDescriptor`` is everything the kernel knows about one managed
type: the ORM model, the three DTO shapes, the converters between them,
which relations can be preloaded, named relationship filters, the default
role policies, optional membership scoping and documentation metadata.

Usage:
    descriptor = EntityDescriptor(
        entity_name="Course",
        model=Course,
        create_dto=CourseCreate,
        edit_dto=CourseEdit,
        output_dto=CourseOutput,
        converters=Converters(
            dto_to_model=course_to_model,
            model_to_dto=course_to_output,
            edit_to_map=edit_to_map,
        ),
        sub_entities=("chapters",),
        default_roles={Roles.USER: Actions.READ_CREATE},
    )
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from pydantic import BaseModel
from sqlalchemy.orm import Session

from entity_shared.config.constants import Roles
from entity_shared.utils.exceptions import ConversionFailedError, EntityError
from entity_api.services.entity.naming import collection_path, resource_segment


@dataclass(frozen=True)
class RelationshipStep:
    """
    One hop of a relationship filter.

    ``join_table.source_column`` references the current table,
    ``join_table.target_column`` references ``next_table``.
    """

    join_table: str
    source_column: str
    target_column: str
    next_table: str


@dataclass(frozen=True)
class RelationshipFilter:
    """
    A named query parameter that filters through a chain of join tables.

    ``?courseId=<id>`` on sections walks ``chapter_sections`` then
    ``course_chapters`` and compares the last ``target_column``.
    """

    filter_name: str
    path: tuple[RelationshipStep, ...]
    target_column: str = "id"


@dataclass(frozen=True)
class MembershipConfig:
    """
    Restricts lists to rows the caller is an active member of.

    ``member_table.entity_id_column`` references the entity,
    ``member_table.user_id_column`` holds the subject identifier. Callers
    holding one of ``bypass_roles`` see every row.
    """

    member_table: str
    entity_id_column: str
    user_id_column: str = "user_id"
    is_active_column: str = "is_active"
    bypass_roles: tuple[str, ...] = (Roles.ADMINISTRATOR,)


@dataclass(frozen=True)
class Converters:
    """
    The three boundary conversions of an entity.

    - dto_to_model(create_dto, session) -> model
    - model_to_dto(model) -> output_dto
    - edit_to_map(edit_dto) -> partial update (only fields the client set)

    The session lets a converter resolve related rows by id.
    """

    dto_to_model: Callable[[BaseModel, Session], Any]
    model_to_dto: Callable[[Any], BaseModel]
    edit_to_map: Callable[[BaseModel], dict[str, Any]]


@dataclass(frozen=True)
class SwaggerConfig:
    """Documentation metadata, passed through to the generated routes."""

    tag: str = ""
    summary: str = ""
    description: str = ""


def edit_to_map(dto: BaseModel) -> dict[str, Any]:
    """Default edit converter: every field the client explicitly set."""
    return dto.model_dump(exclude_unset=True)


@dataclass
class EntityDescriptor:
    """Registration record for one managed entity type."""

    entity_name: str
    model: type
    create_dto: type[BaseModel]
    edit_dto: type[BaseModel]
    output_dto: type[BaseModel]
    converters: Converters
    sub_entities: tuple[str, ...] = ()
    relationship_filters: tuple[RelationshipFilter, ...] = ()
    default_roles: dict[str, str] = field(default_factory=dict)
    swagger_config: SwaggerConfig | None = None
    default_includes: tuple[str, ...] = ()
    membership_config: MembershipConfig | None = None
    # Columns persisted as JSON text; derived from the model when empty
    json_columns: tuple[str, ...] = ()

    _ops: "TypedEntityOps | None" = field(default=None, init=False, repr=False, compare=False)

    @property
    def collection_path(self) -> str:
        return collection_path(self.entity_name)

    @property
    def resource_segment(self) -> str:
        return resource_segment(self.entity_name)

    @property
    def table_name(self) -> str:
        return self.model.__tablename__

    @property
    def ops(self) -> "TypedEntityOps":
        if self._ops is None:
            self._ops = TypedEntityOps(self)
        return self._ops


class TypedEntityOps:
    """
    Per-entity capability set built from the descriptor's converters.

    Converter failures other than kernel errors surface as
    ``ConversionFailedError`` (ENT003).
    """

    def __init__(self, descriptor: EntityDescriptor):
        self._descriptor = descriptor

    @property
    def entity_name(self) -> str:
        return self._descriptor.entity_name

    def _convert(self, direction: str, fn: Callable, *args: Any) -> Any:
        try:
            return fn(*args)
        except EntityError:
            raise
        except Exception as e:
            raise ConversionFailedError(
                self.entity_name, f"{direction}: {e}", wrapped=e
            ) from e

    def convert_create(self, dto: BaseModel, session: Session) -> Any:
        model = self._convert("dto_to_model", self._descriptor.converters.dto_to_model, dto, session)
        if not isinstance(model, self._descriptor.model):
            raise ConversionFailedError(
                self.entity_name,
                f"dto_to_model returned {type(model).__name__}, "
                f"expected {self._descriptor.model.__name__}",
            )
        return model

    def convert_read(self, model: Any) -> BaseModel:
        return self._convert("model_to_dto", self._descriptor.converters.model_to_dto, model)

    def convert_edit(self, dto: BaseModel) -> dict[str, Any]:
        partial = self._convert("edit_to_map", self._descriptor.converters.edit_to_map, dto)
        if not isinstance(partial, dict):
            raise ConversionFailedError(self.entity_name, "edit_to_map must return a dict")
        return partial

    def convert_slice(self, models: Sequence[Any]) -> list[BaseModel]:
        return [self.convert_read(m) for m in models]

    def new_model(self) -> Any:
        return self._descriptor.model()

    def extract_id(self, model: Any) -> uuid.UUID:
        return model.id
