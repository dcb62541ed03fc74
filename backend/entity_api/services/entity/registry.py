"""
Entity registry: process-wide mapping from entity name to descriptor.

Populated at startup, frozen once the first request has been served.
Reads after freezing need no locking; registration takes a lock.
"""

from __future__ import annotations

import re
import threading
from typing import TYPE_CHECKING, Iterator

from pydantic import BaseModel
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable

from entity_shared.config.logging import get_logger
from entity_shared.utils.exceptions import (
    EntityAlreadyRegistered,
    EntityNotRegisteredError,
    InvalidDescriptor,
    RegistryFrozen,
)
from entity_api.models.base import JSONText
from entity_api.services.entity.descriptor import EntityDescriptor
from entity_api.services.entity.naming import entity_name_from_path
from entity_api.services.entity.preload import normalize_include, resolve_include_path

if TYPE_CHECKING:
    from entity_api.services.permissions.binder import AuthorizationBinder

logger = get_logger(__name__)

_ENTITY_NAME_RE = re.compile(r"^[A-Z][A-Za-z0-9]*$")

_REQUIRED_COLUMNS = ("id", "created_at", "updated_at", "deleted_at", "owner_ids")


class EntityRegistry:
    """
    Holds one descriptor per entity name.

    Usage:
        registry = EntityRegistry(binder=binder)
        registry.register(course_descriptor)
        registry.freeze()
        registry.lookup("Course")
    """

    def __init__(self, binder: "AuthorizationBinder | None" = None):
        self._descriptors: dict[str, EntityDescriptor] = {}
        self._frozen = False
        self._lock = threading.RLock()
        self._binder = binder

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(self, descriptor: EntityDescriptor) -> EntityDescriptor:
        """
        Validate and store a descriptor, then seed its role policies.

        Raises:
            RegistryFrozen: after the first request was served.
            EntityAlreadyRegistered: the name is in use.
            InvalidDescriptor: converters, relations or filter paths are malformed.
        """
        with self._lock:
            name = descriptor.entity_name
            if self._frozen:
                raise RegistryFrozen(name)
            if name in self._descriptors:
                raise EntityAlreadyRegistered(name)

            self._validate(descriptor)
            self._descriptors[name] = descriptor

        if self._binder is not None:
            self._binder.seed_role_policies(descriptor)

        logger.info(
            "Entity registered",
            entity=descriptor.entity_name,
            path=descriptor.collection_path,
            sub_entities=list(descriptor.sub_entities),
        )
        return descriptor

    def unregister(self, entity_name: str) -> None:
        """Remove a descriptor (test support). Unknown names are ignored."""
        with self._lock:
            if self._frozen:
                raise RegistryFrozen(entity_name)
            self._descriptors.pop(entity_name, None)

    def reset(self) -> None:
        """Drop every descriptor and unfreeze (test support)."""
        with self._lock:
            self._descriptors.clear()
            self._frozen = False

    def freeze(self) -> None:
        """One-way switch; later ``register`` calls fail with RegistryFrozen."""
        with self._lock:
            if not self._frozen:
                self._frozen = True
                logger.info("Entity registry frozen", entities=len(self._descriptors))

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def lookup(self, entity_name: str) -> EntityDescriptor:
        descriptor = self._descriptors.get(entity_name)
        if descriptor is None:
            raise EntityNotRegisteredError(entity_name)
        return descriptor

    def lookup_by_path(self, path: str) -> EntityDescriptor:
        """Resolve ``/api/v1/subscription-plans/...`` to its descriptor."""
        return self.lookup(entity_name_from_path(path))

    def is_registered(self, entity_name: str) -> bool:
        return entity_name in self._descriptors

    def list(self) -> list[EntityDescriptor]:
        """Descriptors in registration order."""
        return list(self._descriptors.values())

    def __iter__(self) -> Iterator[EntityDescriptor]:
        return iter(self.list())

    def __len__(self) -> int:
        return len(self._descriptors)

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def _validate(self, descriptor: EntityDescriptor) -> None:
        name = descriptor.entity_name or "<unnamed>"

        if not _ENTITY_NAME_RE.match(descriptor.entity_name or ""):
            raise InvalidDescriptor(name, "entity name must be PascalCase")

        try:
            mapper = sa_inspect(descriptor.model)
        except NoInspectionAvailable:
            raise InvalidDescriptor(name, "model is not a mapped class")

        columns = {attr.key for attr in mapper.column_attrs}
        missing = [c for c in _REQUIRED_COLUMNS if c not in columns]
        if missing:
            raise InvalidDescriptor(name, f"model lacks base columns: {', '.join(missing)}")

        for label, dto in (
            ("create_dto", descriptor.create_dto),
            ("edit_dto", descriptor.edit_dto),
            ("output_dto", descriptor.output_dto),
        ):
            if not (isinstance(dto, type) and issubclass(dto, BaseModel)):
                raise InvalidDescriptor(name, f"{label} must be a pydantic model")

        converters = descriptor.converters
        for label in ("dto_to_model", "model_to_dto", "edit_to_map"):
            if not callable(getattr(converters, label, None)):
                raise InvalidDescriptor(name, f"converter {label} is not callable")

        for include in (*descriptor.sub_entities, *descriptor.default_includes):
            path = normalize_include(include)
            if path is None:
                raise InvalidDescriptor(name, f"empty include {include!r}")
            if resolve_include_path(descriptor.model, path) is None:
                raise InvalidDescriptor(name, f"unknown relation {include!r}")

        for action in descriptor.default_roles.values():
            if action != "*":
                try:
                    re.compile(action)
                except re.error as e:
                    raise InvalidDescriptor(name, f"invalid action pattern {action!r}: {e}")

        self._validate_relationship_filters(descriptor)
        self._validate_membership(descriptor)

        if descriptor.json_columns:
            unknown = [c for c in descriptor.json_columns if c not in columns]
            if unknown:
                raise InvalidDescriptor(name, f"unknown JSON columns: {', '.join(unknown)}")
        else:
            descriptor.json_columns = tuple(
                attr.key
                for attr in mapper.column_attrs
                if isinstance(attr.columns[0].type, JSONText)
            )

    def _validate_relationship_filters(self, descriptor: EntityDescriptor) -> None:
        name = descriptor.entity_name
        tables = descriptor.model.metadata.tables
        seen: set[str] = set()

        for rel_filter in descriptor.relationship_filters:
            if rel_filter.filter_name in seen:
                raise InvalidDescriptor(name, f"duplicate filter {rel_filter.filter_name!r}")
            seen.add(rel_filter.filter_name)

            if not rel_filter.path:
                raise InvalidDescriptor(name, f"filter {rel_filter.filter_name!r} has an empty path")

            current_table = descriptor.table_name
            for index, step in enumerate(rel_filter.path):
                where = f"filter {rel_filter.filter_name!r} step {index}"
                join_table = tables.get(step.join_table)
                if join_table is None:
                    raise InvalidDescriptor(name, f"{where}: unknown table {step.join_table!r}")
                for column_name in (step.source_column, step.target_column):
                    if column_name not in join_table.c:
                        raise InvalidDescriptor(
                            name, f"{where}: unknown column {step.join_table}.{column_name}"
                        )
                if step.next_table not in tables:
                    raise InvalidDescriptor(name, f"{where}: unknown table {step.next_table!r}")

                # The source column must point back at the table reached so far
                source_refs = _referenced_tables(join_table.c[step.source_column])
                if source_refs and current_table not in source_refs:
                    raise InvalidDescriptor(
                        name,
                        f"{where}: {step.join_table}.{step.source_column} does not "
                        f"reference {current_table!r}; path is not connected",
                    )
                target_refs = _referenced_tables(join_table.c[step.target_column])
                if target_refs and step.next_table not in target_refs:
                    raise InvalidDescriptor(
                        name,
                        f"{where}: {step.join_table}.{step.target_column} does not "
                        f"reference {step.next_table!r}",
                    )
                current_table = step.next_table

    def _validate_membership(self, descriptor: EntityDescriptor) -> None:
        config = descriptor.membership_config
        if config is None:
            return
        name = descriptor.entity_name
        members = descriptor.model.metadata.tables.get(config.member_table)
        if members is None:
            raise InvalidDescriptor(name, f"membership: unknown table {config.member_table!r}")
        for column_name in (config.entity_id_column, config.user_id_column, config.is_active_column):
            if column_name not in members.c:
                raise InvalidDescriptor(name, f"membership: unknown column {config.member_table}.{column_name}")


def _referenced_tables(column) -> set[str]:
    return {fk.column.table.name for fk in column.foreign_keys}
