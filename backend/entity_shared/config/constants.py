"""
Centralized constants for the entity kernel.

Usage:
    from entity_shared.config.constants import Roles, HookPhase, ALL_ACTIONS

    if phase not in HookPhase.ALL:
        ...
"""

from typing import Final


# =============================================================================
# Roles
# =============================================================================


class Roles:
    """Role constants resolved by the identity provider."""

    ADMINISTRATOR: Final[str] = "administrator"
    EDITOR: Final[str] = "editor"
    USER: Final[str] = "user"


# =============================================================================
# Authorization actions
# =============================================================================


class Actions:
    """Action regexes used by role-default policies."""

    ALL: Final[str] = "*"
    READ: Final[str] = "GET"
    WRITE: Final[str] = "(GET|POST|PATCH|PUT|DELETE)"
    READ_CREATE: Final[str] = "(GET|POST)"


# Action granted to the owner of a single resource
ALL_ACTIONS: Final[str] = Actions.ALL


# =============================================================================
# Hook phases
# =============================================================================


class HookPhase:
    """Lifecycle phases a hook can bind to."""

    BEFORE_CREATE: Final[str] = "BeforeCreate"
    AFTER_CREATE: Final[str] = "AfterCreate"
    BEFORE_UPDATE: Final[str] = "BeforeUpdate"
    AFTER_UPDATE: Final[str] = "AfterUpdate"
    BEFORE_DELETE: Final[str] = "BeforeDelete"
    AFTER_DELETE: Final[str] = "AfterDelete"

    ALL: Final[tuple[str, ...]] = (
        BEFORE_CREATE,
        AFTER_CREATE,
        BEFORE_UPDATE,
        AFTER_UPDATE,
        BEFORE_DELETE,
        AFTER_DELETE,
    )


# =============================================================================
# Query parameters reserved by the dispatcher
# =============================================================================


class QueryParams:
    """Query parameter names that never reach the filter engine."""

    PAGE: Final[str] = "page"
    PAGE_SIZE: Final[str] = "pageSize"
    CURSOR: Final[str] = "cursor"
    LIMIT: Final[str] = "limit"
    INCLUDE: Final[str] = "include"
    SCOPED: Final[str] = "scoped"

    RESERVED: Final[frozenset[str]] = frozenset({PAGE, PAGE_SIZE, CURSOR, LIMIT, INCLUDE, SCOPED})

    # Set by the server from the caller's identity, never taken from the client
    MEMBER: Final[str] = "user_member_id"


# Include value that selects every registered sub-entity
INCLUDE_ALL: Final[str] = "*"


# =============================================================================
# Request state keys
# =============================================================================


class RequestState:
    """Attribute names stored on ``request.state`` by the transport."""

    USER_ID: Final[str] = "user_id"
    USER_ROLES: Final[str] = "user_roles"
