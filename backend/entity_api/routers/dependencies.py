"""
FastAPI dependencies shared by the entity and hook routers.
"""

import uuid
from typing import Any

from fastapi import Depends, Request

from entity_shared.infrastructure.correlation import get_request_id
from entity_shared.security.auth import current_user_context
from entity_shared.utils.exceptions import InvalidInputError, UnauthorizedError
from entity_api.core.kernel import Kernel


def get_kernel(request: Request) -> Kernel:
    """The kernel stored on the application by ``create_app``."""
    return request.app.state.kernel


def authorize_request(
    request: Request,
    ctx: dict[str, Any] = Depends(current_user_context),
    kernel: Kernel = Depends(get_kernel),
) -> dict[str, Any]:
    """
    Enforce (user, request path, method) before any entity work.

    Raises:
        UnauthorizedError: no policy of the user or their roles allows it.
    """
    user_id = ctx["sub"]
    roles = ctx.get("roles", [])
    path = request.url.path
    if not kernel.binder.check(user_id, roles, path, request.method):
        raise UnauthorizedError(user_id, path, request.method)
    return ctx


def request_scope(request: Request, ctx: dict[str, Any]) -> dict[str, Any]:
    """Read-only values handed to hooks alongside the user id."""
    return {
        "request_id": get_request_id(),
        "method": request.method,
        "path": request.url.path,
        "roles": tuple(ctx.get("roles", [])),
    }


def parse_entity_id(raw: str) -> uuid.UUID:
    """
    Raises:
        InvalidInputError: not a valid identifier.
    """
    try:
        return uuid.UUID(raw)
    except (ValueError, AttributeError, TypeError):
        raise InvalidInputError("id", raw, "not a valid identifier")
