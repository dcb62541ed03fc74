"""
Hook administration endpoints (admin roles only).

    GET  /hooks                 registered hooks, in registration order
    POST /hooks/{name}/enable   turn a hook on
    POST /hooks/{name}/disable  turn a hook off
"""

from typing import Any

from fastapi import APIRouter, Depends

from entity_shared.config.logging import entity_api_logger as logger
from entity_shared.config.settings import settings
from entity_shared.security.auth import current_user_context as current_user
from entity_shared.security.auth import require_roles
from entity_shared.utils.exceptions import EntityNotFoundError, HookNotFound
from entity_api.core.kernel import Kernel
from entity_api.routers.dependencies import get_kernel
from entity_api.schemas.hooks import HookOutput, HookToggleOutput


router = APIRouter(prefix="/hooks", tags=["hooks"])


@router.get("", response_model=list[HookOutput], response_model_by_alias=True)
def list_hooks(
    user: dict[str, Any] = Depends(current_user),
    kernel: Kernel = Depends(get_kernel),
) -> list[HookOutput]:
    """List registered hooks with entity, phases, priority and enabled state."""
    require_roles(user, settings.admin_roles, "/hooks", "GET")
    return [HookOutput.model_validate(entry) for entry in kernel.hooks.list_hooks()]


def _toggle(kernel: Kernel, user: dict[str, Any], name: str, enabled: bool) -> HookToggleOutput:
    action = "enable" if enabled else "disable"
    require_roles(user, settings.admin_roles, f"/hooks/{name}/{action}", "POST")
    try:
        kernel.hooks.enable(name, enabled)
    except HookNotFound:
        raise EntityNotFoundError("Hook", name)

    logger.info("Hook toggled by administrator", hook=name, enabled=enabled, user_id=user.get("sub"))
    return HookToggleOutput(name=name, enabled=enabled)


@router.post("/{name}/enable", response_model=HookToggleOutput, response_model_by_alias=True)
def enable_hook(
    name: str,
    user: dict[str, Any] = Depends(current_user),
    kernel: Kernel = Depends(get_kernel),
) -> HookToggleOutput:
    return _toggle(kernel, user, name, True)


@router.post("/{name}/disable", response_model=HookToggleOutput, response_model_by_alias=True)
def disable_hook(
    name: str,
    user: dict[str, Any] = Depends(current_user),
    kernel: Kernel = Depends(get_kernel),
) -> HookToggleOutput:
    return _toggle(kernel, user, name, False)
