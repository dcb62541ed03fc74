"""
Entity error taxonomy.

Every error produced by the kernel carries a stable code, a human message,
the HTTP status the dispatcher answers with, and a details map naming the
offending field or operation. Wrapped causes are kept on ``wrapped`` and
chained as ``__cause__`` so ``isinstance`` checks keep working.

Usage:
    from entity_shared.utils.exceptions import EntityNotFoundError, wrap_database_error

    raise EntityNotFoundError("Course", course_id)

    try:
        db.flush()
    except SQLAlchemyError as e:
        raise wrap_database_error(e, "delete entity") from e

Codes:
    ENT001 Entity not found (404)
    ENT002 Entity not registered (500)
    ENT003 Conversion failed (500)
    ENT004 Validation failed (400)
    ENT005 Database operation failed (500)
    ENT006 Unauthorized (403)
    ENT007 Hook execution failed (500)
    ENT008 Invalid input data (400)
    ENT009 Invalid pagination parameters (400)
    ENT010 Invalid cursor (400)
    ENT011 Foreign key constraint violation (409)
    ENT012 Request deadline exceeded (499)
"""

from typing import Any

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError

from entity_shared.config.logging import get_logger

logger = get_logger(__name__)


# Non-standard status used by several proxies for "client closed request"
HTTP_499_CLIENT_CLOSED_REQUEST = 499

UNKNOWN_ERROR_CODE = "ERR000"

FK_VIOLATION_SQLSTATE = "23503"


class EntityError(Exception):
    """
    Base kernel error with automatic logging.

    Subclasses declare ``code``, ``default_message``, ``http_status`` and
    ``log_level``; the instance logs itself once on construction.
    """

    code: str = UNKNOWN_ERROR_CODE
    default_message: str = "Internal server error"
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    log_level: str = "error"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        wrapped: BaseException | None = None,
    ):
        self.message = message or self.default_message
        self.details: dict[str, Any] = dict(details or {})
        self.wrapped = wrapped
        if wrapped is not None:
            self.__cause__ = wrapped

        log_fn = getattr(logger, self.log_level, logger.warning)
        log_fn(
            self.message,
            code=self.code,
            status_code=self.http_status,
            cause=str(wrapped) if wrapped is not None else None,
            **{f"detail_{k}": v for k, v in self.details.items()},
        )

        super().__init__(str(self))

    def __str__(self) -> str:
        if self.wrapped is not None:
            return f"{self.code}: {self.message} ({self.wrapped})"
        return f"{self.code}: {self.message}"

    def with_details(self, key: str, value: Any) -> "EntityError":
        """Add a detail entry (chainable)."""
        self.details[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Body of the ``{"error": ...}`` envelope."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# 404 Not Found
# =============================================================================


class EntityNotFoundError(EntityError):
    """Entity not found (ENT001)."""

    code = "ENT001"
    default_message = "Entity not found"
    http_status = status.HTTP_404_NOT_FOUND
    log_level = "warning"

    def __init__(self, entity_name: str, entity_id: Any):
        super().__init__(details={"entityName": entity_name, "id": str(entity_id)})


# =============================================================================
# 500 Kernel / store failures
# =============================================================================


class EntityNotRegisteredError(EntityError):
    """Entity type has no registration (ENT002)."""

    code = "ENT002"
    default_message = "Entity not registered in the system"

    def __init__(self, entity_name: str):
        super().__init__(details={"entityName": entity_name})


class ConversionFailedError(EntityError):
    """A converter raised while mapping DTO and model (ENT003)."""

    code = "ENT003"
    default_message = "Entity conversion failed"

    def __init__(self, entity_name: str, reason: str, wrapped: BaseException | None = None):
        super().__init__(
            details={"entityName": entity_name, "reason": reason},
            wrapped=wrapped,
        )


class DatabaseError(EntityError):
    """A store operation failed (ENT005)."""

    code = "ENT005"
    default_message = "Database operation failed"

    def __init__(self, operation: str, wrapped: BaseException | None = None):
        super().__init__(details={"operation": operation}, wrapped=wrapped)


class HookExecutionError(EntityError):
    """A lifecycle hook failed; the mutation was rolled back (ENT007)."""

    code = "ENT007"
    default_message = "Hook execution failed"

    def __init__(self, hook_name: str, entity_name: str, wrapped: BaseException):
        super().__init__(
            details={
                "hookName": hook_name,
                "entityName": entity_name,
                "original": client_safe_message(wrapped),
            },
            wrapped=wrapped,
        )


# =============================================================================
# 400 Bad Request
# =============================================================================


class ValidationFailedError(EntityError):
    """Input failed validation (ENT004)."""

    code = "ENT004"
    default_message = "Validation failed"
    http_status = status.HTTP_400_BAD_REQUEST
    log_level = "warning"

    def __init__(self, field: str, reason: str, errors: list[dict[str, Any]] | None = None):
        details: dict[str, Any] = {"field": field, "reason": reason}
        if errors:
            details["errors"] = errors
        super().__init__(details=details)


class InvalidInputError(EntityError):
    """Input value cannot be used (ENT008)."""

    code = "ENT008"
    default_message = "Invalid input data"
    http_status = status.HTTP_400_BAD_REQUEST
    log_level = "warning"

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(details={"field": field, "value": str(value), "reason": reason})


class InvalidPaginationError(EntityError):
    """Page, page size or limit out of range (ENT009)."""

    code = "ENT009"
    default_message = "Invalid pagination parameters"
    http_status = status.HTTP_400_BAD_REQUEST
    log_level = "warning"

    def __init__(self, parameter: str, value: Any, reason: str):
        super().__init__(
            details={"parameter": parameter, "value": str(value), "reason": reason}
        )


class InvalidCursorError(EntityError):
    """Cursor payload cannot be decoded (ENT010)."""

    code = "ENT010"
    default_message = "Invalid cursor"
    http_status = status.HTTP_400_BAD_REQUEST
    log_level = "warning"

    def __init__(self, cursor: str, reason: str):
        super().__init__(details={"cursor": cursor, "reason": reason})


# =============================================================================
# 403 / 409 / 499
# =============================================================================


class UnauthorizedError(EntityError):
    """The authorization engine denied the request (ENT006)."""

    code = "ENT006"
    default_message = "Unauthorized access"
    http_status = status.HTTP_403_FORBIDDEN
    log_level = "warning"

    def __init__(self, user_id: str | None, resource: str, action: str):
        super().__init__(
            details={"userId": user_id or "", "resource": resource, "action": action}
        )


class ConstraintViolationError(EntityError):
    """Delete blocked by a referencing row (ENT011)."""

    code = "ENT011"
    default_message = (
        "Cannot delete: foreign key constraint violation, "
        "entity is referenced by other records"
    )
    http_status = status.HTTP_409_CONFLICT
    log_level = "warning"

    def __init__(self, operation: str, wrapped: BaseException):
        super().__init__(
            details={
                "operation": operation,
                "fix": "Delete or reassign the referencing records before retrying",
            },
            wrapped=wrapped,
        )


class DeadlineExceededError(EntityError):
    """The request deadline elapsed at a suspension point (ENT012)."""

    code = "ENT012"
    default_message = "Request deadline exceeded"
    http_status = HTTP_499_CLIENT_CLOSED_REQUEST
    log_level = "warning"

    def __init__(self, operation: str):
        super().__init__(details={"operation": operation})


# =============================================================================
# Registration-time errors (never reach HTTP)
# =============================================================================


class RegistrationError(Exception):
    """Base class for registry misuse detected at startup."""


class EntityAlreadyRegistered(RegistrationError):
    def __init__(self, entity_name: str):
        self.entity_name = entity_name
        super().__init__(f"entity {entity_name!r} is already registered")


class InvalidDescriptor(RegistrationError):
    def __init__(self, entity_name: str, reason: str):
        self.entity_name = entity_name
        self.reason = reason
        super().__init__(f"invalid descriptor for {entity_name!r}: {reason}")


class RegistryFrozen(RegistrationError):
    def __init__(self, entity_name: str):
        self.entity_name = entity_name
        super().__init__(
            f"cannot register {entity_name!r}: registry is frozen after the first request"
        )


class HookAlreadyRegistered(RegistrationError):
    def __init__(self, hook_name: str):
        self.hook_name = hook_name
        super().__init__(f"hook {hook_name!r} is already registered")


class HookNotFound(RegistrationError):
    def __init__(self, hook_name: str):
        self.hook_name = hook_name
        super().__init__(f"hook {hook_name!r} is not registered")


# =============================================================================
# Helpers
# =============================================================================


def is_foreign_key_violation(err: BaseException) -> bool:
    """
    Detect a referential-integrity failure in a store error.

    Matches PostgreSQL SQLSTATE 23503 (psycopg exposes ``sqlstate``,
    psycopg2 ``pgcode``) and the SQLite message.
    """
    orig = getattr(err, "orig", None) or err
    for attr in ("sqlstate", "pgcode"):
        if getattr(orig, attr, None) == FK_VIOLATION_SQLSTATE:
            return True
    text = str(orig).lower()
    return (
        "foreign key constraint failed" in text
        or "violates foreign key constraint" in text
    )


def wrap_database_error(err: BaseException, operation: str) -> EntityError:
    """
    Translate a store error into the taxonomy.

    Kernel errors pass through unchanged; FK violations become
    ``ConstraintViolationError`` (409); anything else ``DatabaseError`` (500).
    """
    if isinstance(err, EntityError):
        return err
    if is_foreign_key_violation(err):
        return ConstraintViolationError(operation, err)
    return DatabaseError(operation, err)


def wrap_hook_error(hook_name: str, entity_name: str, err: BaseException) -> EntityError:
    """
    Wrap a hook failure.

    A nested hook failure is not wrapped twice and an elapsed deadline keeps
    its own code.
    """
    if isinstance(err, (HookExecutionError, DeadlineExceededError)):
        return err
    return HookExecutionError(hook_name, entity_name, err)


def client_safe_message(err: BaseException) -> str:
    """
    Text of a wrapped error that may be shown to clients.

    Store errors carry SQL and bound parameters; only their kernel message
    or a generic label leaves the process. The full text is logged.
    """
    if isinstance(err, EntityError):
        return err.message
    if isinstance(err, SQLAlchemyError):
        return "database error"
    return str(err)
