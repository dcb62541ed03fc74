"""
Policy storage adapters for the enforcer.

- MemoryPolicyAdapter: process-local list (tests, single-process dev)
- SqlPolicyAdapter: ``policy_rules`` table, one row per triple
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Iterable

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from entity_shared.config.logging import get_logger
from entity_shared.infrastructure.db import safe_commit
from entity_api.models.policy import PolicyRule

logger = get_logger(__name__)

Rule = tuple[str, str, str]


class PolicyAdapter(ABC):
    """Persistence contract for ``(subject, object, action)`` triples."""

    @abstractmethod
    def load_policy(self) -> list[Rule]:
        """Return every stored triple."""

    @abstractmethod
    def add_policies(self, rules: Iterable[Rule]) -> int:
        """Store triples not yet present. Returns how many were added."""

    @abstractmethod
    def remove_policies_for_object(self, obj: str) -> int:
        """Delete every triple whose object is ``obj``. Returns how many went."""


class MemoryPolicyAdapter(PolicyAdapter):
    def __init__(self, rules: Iterable[Rule] | None = None):
        self._rules: list[Rule] = []
        if rules:
            self.add_policies(rules)

    def load_policy(self) -> list[Rule]:
        return list(self._rules)

    def add_policies(self, rules: Iterable[Rule]) -> int:
        added = 0
        for rule in rules:
            rule = tuple(rule)
            if rule not in self._rules:
                self._rules.append(rule)
                added += 1
        return added

    def remove_policies_for_object(self, obj: str) -> int:
        before = len(self._rules)
        self._rules = [r for r in self._rules if r[1] != obj]
        return before - len(self._rules)


class SqlPolicyAdapter(PolicyAdapter):
    """
    Stores policies in ``policy_rules``.

    Each call runs in its own short session so policy writes never join a
    request's entity transaction.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def load_policy(self) -> list[Rule]:
        with self._session_factory() as db:
            rows = db.execute(
                select(PolicyRule.subject, PolicyRule.object, PolicyRule.action).order_by(PolicyRule.id)
            ).all()
        return [(r.subject, r.object, r.action) for r in rows]

    def add_policies(self, rules: Iterable[Rule]) -> int:
        wanted = list(dict.fromkeys(tuple(r) for r in rules))
        if not wanted:
            return 0

        with self._session_factory() as db:
            objects = {r[1] for r in wanted}
            existing = {
                (row.subject, row.object, row.action)
                for row in db.execute(
                    select(PolicyRule.subject, PolicyRule.object, PolicyRule.action).where(
                        PolicyRule.object.in_(objects)
                    )
                )
            }
            new_rules = [r for r in wanted if r not in existing]
            for subject, obj, action in new_rules:
                db.add(PolicyRule(subject=subject, object=obj, action=action))
            if new_rules:
                safe_commit(db)
        return len(new_rules)

    def remove_policies_for_object(self, obj: str) -> int:
        with self._session_factory() as db:
            result = db.execute(delete(PolicyRule).where(PolicyRule.object == obj))
            safe_commit(db)
        return result.rowcount or 0
