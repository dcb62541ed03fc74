"""
Kernel assembly.

Builds the long-lived collaborators the dispatcher needs (entity and hook
registries, generic service, enforcer and binder) and registers the
illustrative entities.
"""

from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session

from entity_shared.config.logging import kernel_logger as logger
from entity_shared.config.settings import settings
from entity_api.registrations import register_all
from entity_api.services.entity.hooks import HookRegistry
from entity_api.services.entity.registry import EntityRegistry
from entity_api.services.entity.service import EntityService
from entity_api.services.permissions import (
    AuthorizationBinder,
    Enforcer,
    PolicyAdapter,
    SqlPolicyAdapter,
)


@dataclass
class Kernel:
    registry: EntityRegistry
    hooks: HookRegistry
    service: EntityService
    enforcer: Enforcer
    binder: AuthorizationBinder


def build_kernel(
    session_factory: Callable[[], Session],
    policy_adapter: PolicyAdapter | None = None,
    hooks_disabled: bool | None = None,
    register: bool = True,
) -> Kernel:
    """
    Wire the kernel.

    Policies are stored through ``policy_adapter`` (the ``policy_rules``
    table by default). Hooks start in test mode when ``hooks_disabled`` is
    true, falling back to ``settings.hooks_disabled``.
    """
    adapter = policy_adapter if policy_adapter is not None else SqlPolicyAdapter(session_factory)
    enforcer = Enforcer(adapter)
    binder = AuthorizationBinder(enforcer)
    registry = EntityRegistry(binder)
    hooks = HookRegistry(test_mode=settings.hooks_disabled if hooks_disabled is None else hooks_disabled)
    service = EntityService(registry, hooks, binder)

    if register:
        register_all(registry, hooks, service)

    logger.info(
        "Kernel assembled",
        entities=[d.entity_name for d in registry.list()],
        hooks=len(hooks.list_hooks()),
        hooks_disabled=hooks.test_mode,
    )
    return Kernel(registry=registry, hooks=hooks, service=service, enforcer=enforcer, binder=binder)
