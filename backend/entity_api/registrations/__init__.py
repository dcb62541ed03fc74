"""
Illustrative entity registrations.

``register_all`` is called once while the application is built, before
the first request freezes the registry.
"""

from entity_api.services.entity.hooks import HookRegistry
from entity_api.services.entity.registry import EntityRegistry

from .billing import register_billing_entities
from .catalog import register_catalog_entities
from .courses import register_course_entities
from .teams import register_team_entities


def register_all(registry: EntityRegistry, hooks: HookRegistry, service) -> None:
    register_course_entities(registry, hooks, service)
    register_catalog_entities(registry, hooks, service)
    register_billing_entities(registry, hooks, service)
    register_team_entities(registry, hooks, service)


__all__ = [
    "register_all",
    "register_course_entities",
    "register_catalog_entities",
    "register_billing_entities",
    "register_team_entities",
]
