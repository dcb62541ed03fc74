"""
Creator membership hook.

After an entity with a member table is created, the creating subject gets
an active membership row in the same transaction, so the new row shows up
in the creator's membership-scoped lists.

Usage:
    hooks.register(
        CreatorMembershipHook(
            name="team_creator_membership",
            entity_name="Team",
            member_table=team_members,
            entity_id_column="team_id",
        )
    )
"""

from __future__ import annotations

from sqlalchemy import Table, insert

from entity_shared.config.constants import HookPhase
from entity_shared.config.logging import get_logger
from entity_api.services.entity.hooks import Hook, HookContext

logger = get_logger(__name__)


class CreatorMembershipHook(Hook):
    phases = (HookPhase.AFTER_CREATE,)

    def __init__(
        self,
        name: str,
        entity_name: str,
        member_table: Table,
        entity_id_column: str,
        user_id_column: str = "user_id",
        priority: int = 10,
    ):
        self.name = name
        self.entity_name = entity_name
        self.member_table = member_table
        self.entity_id_column = entity_id_column
        self.user_id_column = user_id_column
        self.priority = priority

    def should_execute(self, ctx: HookContext) -> bool:
        # Anonymous service calls have nobody to enrol
        return bool(ctx.user_id)

    def run(self, ctx: HookContext) -> None:
        entity_id = ctx.new_model.id
        ctx.store.execute(
            insert(self.member_table).values(
                {self.entity_id_column: entity_id, self.user_id_column: ctx.user_id}
            )
        )
        logger.info(
            "Creator enrolled as member",
            entity=self.entity_name,
            entity_id=str(entity_id),
            user_id=ctx.user_id,
        )
