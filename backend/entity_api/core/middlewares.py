"""
Request middlewares for the entity API.

- RegistryFreezeMiddleware: freezes the entity registry on the first request
- DeadlineMiddleware: binds the per-request deadline (X-Request-Timeout)
"""

from typing import Callable

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from entity_shared.config.logging import entity_api_logger as logger
from entity_shared.config.settings import settings
from entity_shared.infrastructure.correlation import CorrelationIdMiddleware
from entity_shared.infrastructure.deadline import reset_deadline, set_deadline


class RegistryFreezeMiddleware(BaseHTTPMiddleware):
    """
    Freeze the entity registry once traffic starts.

    Registrations must precede the first request; afterwards lookups need
    no locking.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        registry = request.app.state.kernel.registry
        if not registry.is_frozen:
            registry.freeze()
        return await call_next(request)


class DeadlineMiddleware(BaseHTTPMiddleware):
    """
    Bind a deadline for the request.

    Uses ``settings.request_timeout_seconds``; a client may shorten it with
    ``X-Request-Timeout`` (seconds). Values that are not positive numbers
    are ignored.
    """

    HEADER_NAME = "X-Request-Timeout"

    def _timeout(self, request: Request) -> float | None:
        default = settings.request_timeout_seconds or None
        raw = request.headers.get(self.HEADER_NAME)
        if raw is None:
            return default
        try:
            requested = float(raw)
        except ValueError:
            logger.warning("Ignoring invalid request timeout", value=raw)
            return default
        if requested <= 0:
            logger.warning("Ignoring invalid request timeout", value=raw)
            return default
        return min(requested, default) if default else requested

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        token = set_deadline(self._timeout(request))
        try:
            return await call_next(request)
        finally:
            reset_deadline(token)


def register_middlewares(app: FastAPI) -> None:
    """
    Register request middlewares on the application.

    Order matters: middlewares are executed in reverse order of registration.
    CorrelationId runs first, then Deadline, then RegistryFreeze.
    """
    app.add_middleware(RegistryFreezeMiddleware)
    app.add_middleware(DeadlineMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
