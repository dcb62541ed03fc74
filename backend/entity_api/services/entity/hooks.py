"""
Lifecycle hook registry.

Hooks bind to an entity and one or more phases. Within a phase they run
in priority order (lower first, ties in registration order). A failing
hook aborts the sequence and the surrounding transaction.

Usage:
    class AuditHook(Hook):
        name = "course_audit"
        entity_name = "Course"
        phases = (HookPhase.AFTER_CREATE,)
        priority = 50

        def run(self, ctx: HookContext) -> None:
            logger.info("Course created", course_id=str(ctx.new_model.id))

    hooks = HookRegistry()
    hooks.register(AuditHook())
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Sequence

from sqlalchemy.orm import Session

from entity_shared.config.constants import HookPhase
from entity_shared.config.logging import get_logger
from entity_shared.infrastructure.deadline import check_deadline
from entity_shared.utils.exceptions import (
    HookAlreadyRegistered,
    HookNotFound,
    InvalidDescriptor,
    wrap_hook_error,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class HookContext:
    """
    Immutable per-invocation context.

    - old_model: pre-mutation record (None for create)
    - new_model: proposed state in Before phases, persisted state in After
      phases (None for delete)
    - store: the session of the enclosing transaction
    """

    phase: str
    entity_name: str
    old_model: Any
    new_model: Any
    store: Session
    user_id: str | None = None
    request_scope: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


class Hook:
    """
    Base class for lifecycle hooks.

    Subclasses set ``name``, ``entity_name``, ``phases`` and ``priority``
    and implement ``run``. ``should_execute`` may veto a run.
    """

    name: str = ""
    entity_name: str = ""
    phases: Sequence[str] = ()
    priority: int = 100
    enabled: bool = True

    def run(self, ctx: HookContext) -> None:
        raise NotImplementedError

    def should_execute(self, ctx: HookContext) -> bool:
        return True


class FunctionHook(Hook):
    """Adapter that turns a plain function into a hook."""

    def __init__(
        self,
        name: str,
        entity_name: str,
        phases: Sequence[str],
        fn: Callable[[HookContext], None],
        priority: int = 100,
        enabled: bool = True,
        condition: Callable[[HookContext], bool] | None = None,
    ):
        self.name = name
        self.entity_name = entity_name
        self.phases = tuple(phases)
        self.priority = priority
        self.enabled = enabled
        self._fn = fn
        self._condition = condition

    def run(self, ctx: HookContext) -> None:
        self._fn(ctx)

    def should_execute(self, ctx: HookContext) -> bool:
        return self._condition(ctx) if self._condition is not None else True


@dataclass
class _Entry:
    hook: Hook
    sequence: int
    enabled: bool


class HookRegistry:
    """
    Stores hooks by name and answers ``hooks_for(entity, phase)``.

    Thread-safe; enabling and disabling at runtime is allowed.
    """

    def __init__(self, test_mode: bool = False):
        self._entries: dict[str, _Entry] = {}
        self._sequence = 0
        self._lock = threading.RLock()
        self._test_mode = test_mode

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(self, hook: Hook) -> None:
        """
        Raises:
            HookAlreadyRegistered: another hook uses the same name.
            InvalidDescriptor: name, entity or phases are missing or unknown.
        """
        if not hook.name:
            raise InvalidDescriptor(hook.entity_name or "<hook>", "hook name is required")
        if not hook.entity_name:
            raise InvalidDescriptor(hook.name, "hook entity_name is required")
        unknown = [p for p in hook.phases if p not in HookPhase.ALL]
        if not hook.phases or unknown:
            raise InvalidDescriptor(hook.entity_name, f"hook {hook.name!r} has invalid phases {unknown or '[]'}")

        with self._lock:
            if hook.name in self._entries:
                raise HookAlreadyRegistered(hook.name)
            self._sequence += 1
            self._entries[hook.name] = _Entry(hook=hook, sequence=self._sequence, enabled=hook.enabled)

        logger.info(
            "Hook registered",
            hook=hook.name,
            entity=hook.entity_name,
            phases=list(hook.phases),
            priority=hook.priority,
        )

    def unregister(self, name: str) -> None:
        with self._lock:
            if self._entries.pop(name, None) is None:
                raise HookNotFound(name)
        logger.info("Hook unregistered", hook=name)

    def enable(self, name: str, enabled: bool = True) -> None:
        with self._lock:
            entry = self._entries.get(name)
            if entry is None:
                raise HookNotFound(name)
            entry.enabled = enabled
        logger.info("Hook toggled", hook=name, enabled=enabled)

    def disable(self, name: str) -> None:
        self.enable(name, False)

    def is_enabled(self, name: str) -> bool:
        entry = self._entries.get(name)
        if entry is None:
            raise HookNotFound(name)
        return entry.enabled

    def disable_all(self, disabled: bool = True) -> None:
        """Test mode: when on, no hook runs regardless of its own flag."""
        self._test_mode = disabled
        logger.info("Hook test mode", disabled=disabled)

    @property
    def test_mode(self) -> bool:
        return self._test_mode

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._sequence = 0

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, name: str) -> Hook:
        entry = self._entries.get(name)
        if entry is None:
            raise HookNotFound(name)
        return entry.hook

    def list_hooks(self) -> list[dict[str, Any]]:
        """Summaries of every registered hook, in registration order."""
        with self._lock:
            entries = sorted(self._entries.values(), key=lambda e: e.sequence)
        return [
            {
                "name": e.hook.name,
                "entityName": e.hook.entity_name,
                "phases": list(e.hook.phases),
                "priority": e.hook.priority,
                "enabled": e.enabled,
            }
            for e in entries
        ]

    def hooks_for(self, entity_name: str, phase: str) -> list[Hook]:
        """Enabled hooks for an entity and phase, in execution order."""
        if self._test_mode:
            return []
        with self._lock:
            entries = [
                e
                for e in self._entries.values()
                if e.enabled and e.hook.entity_name == entity_name and phase in e.hook.phases
            ]
        entries.sort(key=lambda e: (e.hook.priority, e.sequence))
        return [e.hook for e in entries]

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def execute(self, ctx: HookContext) -> None:
        """
        Run the hooks for ``ctx.entity_name`` / ``ctx.phase`` in order.

        Raises:
            HookExecutionError: the first failing hook, wrapping its error.
        """
        for hook in self.hooks_for(ctx.entity_name, ctx.phase):
            check_deadline(f"hook {hook.name}")
            try:
                if not hook.should_execute(ctx):
                    logger.debug("Hook skipped", hook=hook.name, phase=ctx.phase)
                    continue
                hook.run(ctx)
            except Exception as e:
                logger.error(
                    "Hook failed",
                    hook=hook.name,
                    entity=ctx.entity_name,
                    phase=ctx.phase,
                    error=str(e),
                )
                wrapped = wrap_hook_error(hook.name, ctx.entity_name, e)
                if wrapped is e:
                    raise
                raise wrapped from e
