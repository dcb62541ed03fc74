"""
Team registration.

Team lists are membership-scoped: a caller sees the teams where
``team_members`` holds an active row for them. Administrators see every
team. The creator is enrolled by ``team_creator_membership``.
"""

from sqlalchemy.orm import Session

from entity_shared.config.constants import Actions, Roles
from entity_api.hooks.membership import CreatorMembershipHook
from entity_api.models import Team, team_members
from entity_api.schemas.team import TeamCreate, TeamEdit, TeamOutput
from entity_api.services.entity.converters import build_output, fields_to_model
from entity_api.services.entity.descriptor import (
    Converters,
    EntityDescriptor,
    MembershipConfig,
    SwaggerConfig,
    edit_to_map,
)
from entity_api.services.entity.hooks import HookRegistry
from entity_api.services.entity.registry import EntityRegistry


def team_to_model(dto: TeamCreate, db: Session) -> Team:
    return fields_to_model(Team, dto)


def team_to_output(team: Team, _seen: frozenset = frozenset()) -> TeamOutput:
    return build_output(TeamOutput, team, _seen=_seen)


def team_descriptor() -> EntityDescriptor:
    return EntityDescriptor(
        entity_name="Team",
        model=Team,
        create_dto=TeamCreate,
        edit_dto=TeamEdit,
        output_dto=TeamOutput,
        converters=Converters(team_to_model, team_to_output, edit_to_map),
        default_roles={
            Roles.USER: Actions.READ_CREATE,
            Roles.ADMINISTRATOR: Actions.ALL,
        },
        membership_config=MembershipConfig(member_table="team_members", entity_id_column="team_id"),
        swagger_config=SwaggerConfig(tag="teams", summary="Team"),
    )


def register_team_entities(registry: EntityRegistry, hooks: HookRegistry, service) -> None:
    registry.register(team_descriptor())
    hooks.register(
        CreatorMembershipHook(
            name="team_creator_membership",
            entity_name="Team",
            member_table=team_members,
            entity_id_column="team_id",
        )
    )
