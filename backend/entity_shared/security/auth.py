"""
Identity provider: resolves a bearer token to a user identifier and roles.

Tokens are HS256 JWTs carrying ``sub`` (user id) and ``roles`` claims.
"""

from __future__ import annotations

import time
import uuid
from typing import Any

import jwt
from fastapi import HTTPException, Header, Request, status

from entity_shared.config.constants import RequestState
from entity_shared.config.logging import get_logger
from entity_shared.config.settings import settings
from entity_shared.utils.exceptions import UnauthorizedError

logger = get_logger(__name__)


# =============================================================================
# JWT Functions
# =============================================================================


def sign_jwt(
    payload: dict[str, Any],
    ttl_seconds: int | None = None,
) -> str:
    """
    Sign a JWT token with the given payload.

    Args:
        payload: Claims to include in the token (sub, roles, ...)
        ttl_seconds: Token lifetime in seconds. Defaults to access token expiry.

    Returns:
        Signed JWT token string.
    """
    if ttl_seconds is None:
        ttl_seconds = settings.jwt_access_token_expire_minutes * 60

    now = int(time.time())
    data = {
        **payload,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + ttl_seconds,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(data, settings.jwt_secret, algorithm="HS256")


def create_access_token(user_id: str, roles: list[str] | None = None, **claims: Any) -> str:
    """Convenience wrapper used by tooling and tests."""
    return sign_jwt({"sub": user_id, "roles": list(roles or []), **claims})


def verify_jwt(token: str) -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Returns:
        Decoded token claims.

    Raises:
        HTTPException: If token is invalid, expired, or lacks a subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
        )
    except jwt.InvalidTokenError as e:
        # Log the actual error, return a generic message to the client
        logger.warning("JWT validation failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing subject claim",
        )

    roles = payload.get("roles", [])
    if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: malformed roles claim",
        )

    return payload


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract bearer token from Authorization header.

    Raises:
        HTTPException: If header is missing or malformed.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
        )
    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format. Expected: Bearer <token>",
        )
    return authorization.split(" ", 1)[1].strip()


def current_user_context(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """
    FastAPI dependency to get the current user context from JWT.

    Populates the request-scoped state (``user_id``, ``user_roles``) the
    dispatcher reads.

    Usage:
        @app.get("/protected")
        def protected_endpoint(ctx = Depends(current_user_context)):
            user_id = ctx["sub"]
            ...

    Returns:
        Dict with: sub (user_id), roles
    """
    token = get_bearer_token(authorization)
    payload = verify_jwt(token)
    setattr(request.state, RequestState.USER_ID, payload["sub"])
    setattr(request.state, RequestState.USER_ROLES, list(payload.get("roles", [])))
    return payload


def require_roles(ctx: dict[str, Any], allowed: list[str], resource: str = "", action: str = "") -> None:
    """
    Verify that the user has at least one of the allowed roles.

    Raises:
        UnauthorizedError: If user lacks required role.
    """
    user_roles = set(ctx.get("roles", []))
    if not user_roles.intersection(set(allowed)):
        raise UnauthorizedError(ctx.get("sub"), resource, action)
