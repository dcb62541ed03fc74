"""
Cascade-orphan delete hooks.

When a parent is deleted, children linked to it through a join table are
deleted too, unless another live parent still links them. Children go
through the generic service, so their own hooks run and the cascade
recurses down the graph (the domain graph must be acyclic; recursion depth
is its depth).

Usage:
    hooks.register(
        CascadeOrphanDeleteHook(
            name="course_chapters_cascade",
            parent_entity="Course",
            child_entity="Chapter",
            join_table=course_chapters,
            parent_column="course_id",
            child_column="chapter_id",
            service=service,
        )
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Table, func, select

from entity_shared.config.constants import HookPhase
from entity_shared.config.logging import get_logger
from entity_api.services.entity.hooks import Hook, HookContext

if TYPE_CHECKING:
    from entity_api.services.entity.service import EntityService

logger = get_logger(__name__)


class CascadeOrphanDeleteHook(Hook):
    phases = (HookPhase.BEFORE_DELETE,)

    def __init__(
        self,
        name: str,
        parent_entity: str,
        child_entity: str,
        join_table: Table,
        parent_column: str,
        child_column: str,
        service: "EntityService",
        priority: int = 10,
    ):
        self.name = name
        self.entity_name = parent_entity
        self.child_entity = child_entity
        self.join_table = join_table
        self.parent_column = parent_column
        self.child_column = child_column
        self.service = service
        self.priority = priority

    def _child_model(self):
        return self.service.registry.lookup(self.child_entity).model

    def _parent_model(self):
        return self.service.registry.lookup(self.entity_name).model

    def orphaned_children(self, ctx: HookContext) -> list:
        """Live children of the departing parent that no other live parent links."""
        db = ctx.store
        jt = self.join_table
        parent_id = ctx.old_model.id
        child_model = self._child_model()
        parent_model = self._parent_model()

        child_ids = db.scalars(
            select(jt.c[self.child_column])
            .join(child_model, child_model.id == jt.c[self.child_column])
            .where(jt.c[self.parent_column] == parent_id, child_model.deleted_at.is_(None))
            .order_by(jt.c[self.child_column])
        ).all()

        orphans = []
        for child_id in child_ids:
            other_parents = db.scalar(
                select(func.count())
                .select_from(jt)
                .join(parent_model, parent_model.id == jt.c[self.parent_column])
                .where(
                    jt.c[self.child_column] == child_id,
                    jt.c[self.parent_column] != parent_id,
                    parent_model.deleted_at.is_(None),
                )
            )
            if not other_parents:
                orphans.append(child_id)
        return orphans

    def run(self, ctx: HookContext) -> None:
        scoped = bool(ctx.request_scope.get("scoped", False))
        orphans = self.orphaned_children(ctx)

        for child_id in orphans:
            self.service.delete(
                ctx.store,
                self.child_entity,
                child_id,
                scoped=scoped,
                user_id=ctx.user_id,
                request_scope=ctx.request_scope,
            )

        if orphans:
            logger.info(
                "Cascade deleted orphaned children",
                parent=self.entity_name,
                parent_id=str(ctx.old_model.id),
                child=self.child_entity,
                count=len(orphans),
                scoped=scoped,
            )
