"""
Policy enforcer answering ``enforce(subject, object, action)``.

A request is allowed when any of its subjects (the user id, then each
role) holds a policy whose object matches the path and whose action
pattern matches the method.

Object matching: exact, or a trailing ``/*`` that covers every sub-path.
Action matching: ``*`` matches anything, otherwise a full regex match
(``(GET|POST)``).

The policy set is cached in memory and swapped atomically on reload, so
``enforce`` is safe to call from many request threads at once.
"""

from __future__ import annotations

import re
import threading
from functools import lru_cache
from typing import Iterable, Sequence

from entity_shared.config.logging import get_logger
from entity_api.services.permissions.adapters import PolicyAdapter, Rule

logger = get_logger(__name__)


@lru_cache(maxsize=256)
def _compile_action(pattern: str) -> re.Pattern | None:
    try:
        return re.compile(pattern)
    except re.error:
        logger.warning("Invalid action pattern in policy", pattern=pattern)
        return None


def object_matches(policy_object: str, requested: str) -> bool:
    if policy_object == requested or policy_object == "*":
        return True
    if policy_object.endswith("/*"):
        prefix = policy_object[:-1]
        return requested.startswith(prefix) and len(requested) > len(prefix)
    return False


def action_matches(policy_action: str, requested: str) -> bool:
    if policy_action == "*" or policy_action == requested:
        return True
    compiled = _compile_action(policy_action)
    return compiled is not None and compiled.fullmatch(requested) is not None


class Enforcer:
    """
    Usage:
        enforcer = Enforcer(MemoryPolicyAdapter())
        enforcer.add_policies([("user", "/api/v1/items", "(GET|POST)")])
        enforcer.enforce("user-1", "/api/v1/items", "GET", roles=["user"])
    """

    def __init__(self, adapter: PolicyAdapter):
        self._adapter = adapter
        self._lock = threading.RLock()
        self._by_subject: dict[str, tuple[tuple[str, str], ...]] = {}
        self.load_policy()

    @property
    def adapter(self) -> PolicyAdapter:
        return self._adapter

    def load_policy(self) -> None:
        """Reload the cache from the adapter."""
        rules = self._adapter.load_policy()
        by_subject: dict[str, list[tuple[str, str]]] = {}
        for subject, obj, action in rules:
            by_subject.setdefault(subject, []).append((obj, action))
        with self._lock:
            self._by_subject = {k: tuple(v) for k, v in by_subject.items()}
        logger.debug("Policy loaded", rules=len(rules))

    def enforce(self, subject: str | None, obj: str, action: str, roles: Sequence[str] = ()) -> bool:
        snapshot = self._by_subject
        subjects = [s for s in (subject, *roles) if s]
        for candidate in subjects:
            for policy_object, policy_action in snapshot.get(candidate, ()):
                if object_matches(policy_object, obj) and action_matches(policy_action, action):
                    return True
        return False

    # -------------------------------------------------------------------------
    # Mutations (idempotent)
    # -------------------------------------------------------------------------

    def add_policy(self, subject: str, obj: str, action: str) -> bool:
        return self.add_policies([(subject, obj, action)]) == 1

    def add_policies(self, rules: Iterable[Rule], reload: bool = True) -> int:
        with self._lock:
            added = self._adapter.add_policies(rules)
            if reload:
                self.load_policy()
        return added

    def remove_filtered_policy(self, obj: str, reload: bool = True) -> int:
        """Remove every policy whose object is exactly ``obj``."""
        with self._lock:
            removed = self._adapter.remove_policies_for_object(obj)
            if reload:
                self.load_policy()
        return removed

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def get_policy(self) -> list[Rule]:
        snapshot = self._by_subject
        return [
            (subject, obj, action)
            for subject, entries in snapshot.items()
            for obj, action in entries
        ]

    def get_filtered_policy(self, subject: str | None = None, obj: str | None = None) -> list[Rule]:
        return [
            rule
            for rule in self.get_policy()
            if (subject is None or rule[0] == subject) and (obj is None or rule[1] == obj)
        ]

    def has_policy(self, subject: str, obj: str, action: str) -> bool:
        return (subject, obj, action) in set(self.get_policy())
