"""
Generic entity service: the write pipeline.

Binds the registry, repository, hook registry and authorization binder.
Every mutation runs in one transaction:

    Before hooks -> repository -> After hooks -> commit -> authorization binder

A hook that calls back into the service (cascade delete) joins the
enclosing transaction; policy updates for the whole cascade run once the
outermost transaction has committed.

Usage:
    service = EntityService(registry, hooks, binder)
    output = service.create(db, "Course", CourseCreate(name="X", title="Y"), user_id="user-1")
    service.update(db, "Course", output.id, CourseEdit(title="Z"))
    service.delete(db, "Course", output.id, scoped=False)
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from copy import deepcopy
from types import MappingProxyType
from typing import Any, Callable, Generator, Mapping

from pydantic import BaseModel
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from entity_shared.config.constants import HookPhase
from entity_shared.config.logging import get_logger
from entity_shared.infrastructure.db import in_transaction, transaction
from entity_shared.infrastructure.deadline import check_deadline
from entity_shared.utils.exceptions import DatabaseError, EntityError
from entity_api.services.entity.descriptor import EntityDescriptor
from entity_api.services.entity.hooks import HookContext, HookRegistry
from entity_api.services.entity.json_columns import preprocess_json_fields, resolve_column_key
from entity_api.services.entity.pagination import CursorPage, CursorParams, OffsetPage, OffsetParams
from entity_api.services.entity.registry import EntityRegistry
from entity_api.services.entity.repository import EntityRepository
from entity_api.services.permissions.binder import AuthorizationBinder

logger = get_logger(__name__)

_AFTER_COMMIT_KEY = "entity_after_commit"


def snapshot_model(entity: Any, overrides: Mapping[str, Any] | None = None) -> Any:
    """
    Detached copy of an entity's column values.

    Hooks receive snapshots for the pre-mutation state and the proposed
    state, so later changes to the persistent object do not leak into them.
    """
    model_cls = type(entity)
    copy = model_cls()
    for attr in sa_inspect(model_cls).column_attrs:
        value = getattr(entity, attr.key)
        if isinstance(value, (list, dict)):
            value = type(value)(value)
        setattr(copy, attr.key, value)
    for key, value in (overrides or {}).items():
        setattr(copy, key, value)
    return copy


def column_values(model: Any) -> dict[str, Any]:
    """Deep copy of a model's column values keyed by attribute name."""
    return {attr.key: deepcopy(getattr(model, attr.key)) for attr in sa_inspect(type(model)).column_attrs}


class EntityService:
    """Generic CRUD over every registered entity."""

    def __init__(
        self,
        registry: EntityRegistry,
        hooks: HookRegistry,
        binder: AuthorizationBinder | None = None,
    ):
        self.registry = registry
        self.hooks = hooks
        self.binder = binder

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def repository(self, descriptor: EntityDescriptor, db: Session) -> EntityRepository:
        return EntityRepository(descriptor, db)

    @contextmanager
    def _unit_of_work(self, db: Session) -> Generator[None, None, None]:
        """
        One transaction per mutation; nested calls join the outer one.

        Actions queued with :meth:`_after_commit` run once the outermost
        transaction has committed and are dropped on rollback.
        """
        outermost = not in_transaction(db)
        if outermost:
            db.info[_AFTER_COMMIT_KEY] = []
        try:
            with transaction(db):
                yield
        except BaseException:
            if outermost:
                db.info.pop(_AFTER_COMMIT_KEY, None)
            raise

        if outermost:
            for action, description in db.info.pop(_AFTER_COMMIT_KEY, []):
                try:
                    action()
                except EntityError:
                    raise
                except Exception as e:
                    logger.error(
                        "Post-commit policy update failed; resource may lack policies",
                        action=description,
                        error=str(e),
                    )
                    raise DatabaseError(description, e) from e

    def _after_commit(self, db: Session, action: Callable[[], Any], description: str) -> None:
        db.info.setdefault(_AFTER_COMMIT_KEY, []).append((action, description))

    def _run_hooks(
        self,
        phase: str,
        descriptor: EntityDescriptor,
        db: Session,
        old_model: Any,
        new_model: Any,
        user_id: str | None,
        request_scope: Mapping[str, Any],
    ) -> None:
        ctx = HookContext(
            phase=phase,
            entity_name=descriptor.entity_name,
            old_model=old_model,
            new_model=new_model,
            store=db,
            user_id=user_id,
            request_scope=request_scope,
        )
        self.hooks.execute(ctx)

    @staticmethod
    def _scope(request_scope: Mapping[str, Any] | None, **extra: Any) -> Mapping[str, Any]:
        return MappingProxyType({**(request_scope or {}), **extra})

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def create(
        self,
        db: Session,
        entity_name: str,
        dto: BaseModel,
        user_id: str | None = None,
        request_scope: Mapping[str, Any] | None = None,
    ) -> BaseModel:
        """
        Convert, run hooks, insert, commit, grant the owner policy.

        Raises:
            EntityNotRegisteredError, ConversionFailedError, HookExecutionError,
            DatabaseError
        """
        descriptor = self.registry.lookup(entity_name)
        ops = descriptor.ops
        scope = self._scope(request_scope)
        check_deadline(f"create {entity_name}")

        with self._unit_of_work(db):
            entity = ops.convert_create(dto, db)
            if user_id:
                entity.add_owner(user_id)

            self._run_hooks(HookPhase.BEFORE_CREATE, descriptor, db, None, entity, user_id, scope)
            self.repository(descriptor, db).create(entity)
            self._run_hooks(HookPhase.AFTER_CREATE, descriptor, db, None, entity, user_id, scope)

            entity_id = ops.extract_id(entity)
            if self.binder is not None and user_id:
                self._after_commit(
                    db,
                    lambda: self.binder.grant_owner(descriptor, entity_id, user_id),
                    f"grant owner on {descriptor.collection_path}/{entity_id}",
                )

        logger.info("Entity created", entity=entity_name, entity_id=str(entity_id))
        return ops.convert_read(entity)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_model(
        self,
        db: Session,
        entity_name: str,
        entity_id: uuid.UUID,
        include: list[str] | None = None,
    ) -> Any:
        descriptor = self.registry.lookup(entity_name)
        return self.repository(descriptor, db).find_by_id(entity_id, include=include)

    def get(
        self,
        db: Session,
        entity_name: str,
        entity_id: uuid.UUID,
        include: list[str] | None = None,
    ) -> BaseModel:
        """
        Raises:
            EntityNotFoundError: missing or soft-deleted.
        """
        descriptor = self.registry.lookup(entity_name)
        entity = self.repository(descriptor, db).find_by_id(entity_id, include=include)
        return descriptor.ops.convert_read(entity)

    def list_offset(
        self,
        db: Session,
        entity_name: str,
        params: OffsetParams,
        filters: Mapping[str, Any] | None = None,
        include: list[str] | None = None,
    ) -> OffsetPage:
        """Offset page whose ``items`` are output DTOs."""
        descriptor = self.registry.lookup(entity_name)
        page = self.repository(descriptor, db).list_offset(params, filters=filters, include=include)
        page.items = descriptor.ops.convert_slice(page.items)
        return page

    def list_cursor(
        self,
        db: Session,
        entity_name: str,
        params: CursorParams,
        filters: Mapping[str, Any] | None = None,
        include: list[str] | None = None,
    ) -> CursorPage:
        """Cursor page whose ``items`` are output DTOs."""
        descriptor = self.registry.lookup(entity_name)
        page = self.repository(descriptor, db).list_cursor(params, filters=filters, include=include)
        page.items = descriptor.ops.convert_slice(page.items)
        return page

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    def update(
        self,
        db: Session,
        entity_name: str,
        entity_id: uuid.UUID,
        dto: BaseModel,
        user_id: str | None = None,
        request_scope: Mapping[str, Any] | None = None,
    ) -> None:
        """
        Apply only the fields the client set.

        Before hooks see the stored record and the merged proposal; changes
        they make to the proposal are written with the client's fields. After
        hooks see the stored record and the persisted result.
        """
        descriptor = self.registry.lookup(entity_name)
        ops = descriptor.ops
        scope = self._scope(request_scope)
        check_deadline(f"update {entity_name}")

        with self._unit_of_work(db):
            repo = self.repository(descriptor, db)
            entity = repo.find_by_id(entity_id)

            raw_partial = ops.convert_edit(dto)

            old_model = snapshot_model(entity)
            proposed_values = {}
            for key, value in raw_partial.items():
                column_key = resolve_column_key(descriptor.model, key)
                if column_key is not None:
                    proposed_values[column_key] = value
            proposed = snapshot_model(entity, proposed_values)
            before_hooks = column_values(proposed)

            self._run_hooks(HookPhase.BEFORE_UPDATE, descriptor, db, old_model, proposed, user_id, scope)
            hook_changes = {
                key: value for key, value in column_values(proposed).items() if value != before_hooks[key]
            }
            partial = preprocess_json_fields(descriptor, {**raw_partial, **hook_changes})
            repo.update(entity, partial)
            self._run_hooks(HookPhase.AFTER_UPDATE, descriptor, db, old_model, entity, user_id, scope)

        logger.info(
            "Entity updated",
            entity=entity_name,
            entity_id=str(entity_id),
            fields=sorted(partial.keys()),
        )

    # -------------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------------

    def delete(
        self,
        db: Session,
        entity_name: str,
        entity_id: uuid.UUID,
        scoped: bool = False,
        user_id: str | None = None,
        request_scope: Mapping[str, Any] | None = None,
    ) -> None:
        """
        Soft-delete (``scoped``) or remove the row, then revoke its policies.

        Raises:
            EntityNotFoundError, HookExecutionError,
            ConstraintViolationError: a foreign key still references the row.
        """
        descriptor = self.registry.lookup(entity_name)
        scope = self._scope(request_scope, scoped=scoped)
        check_deadline(f"delete {entity_name}")

        with self._unit_of_work(db):
            repo = self.repository(descriptor, db)
            entity = repo.find_by_id(entity_id)
            old_model = snapshot_model(entity)

            self._run_hooks(HookPhase.BEFORE_DELETE, descriptor, db, entity, None, user_id, scope)
            repo.delete(entity, scoped=scoped)
            self._run_hooks(HookPhase.AFTER_DELETE, descriptor, db, old_model, None, user_id, scope)

            if self.binder is not None:
                self._after_commit(
                    db,
                    lambda: self.binder.revoke_resource(descriptor, entity_id),
                    f"revoke {descriptor.collection_path}/{entity_id}",
                )

        logger.info("Entity deleted", entity=entity_name, entity_id=str(entity_id), scoped=scoped)
