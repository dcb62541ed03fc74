"""
Tests for the policy enforcer, its storage adapters and the binder.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from entity_shared.infrastructure.deadline import deadline_scope
from entity_shared.utils.exceptions import DeadlineExceededError
from entity_api.models import Base
from entity_api.registrations.courses import course_descriptor
from entity_api.services.permissions import (
    AuthorizationBinder,
    Enforcer,
    MemoryPolicyAdapter,
    SqlPolicyAdapter,
    action_matches,
    object_matches,
)


@pytest.fixture
def sql_session_factory():
    """Dedicated store for the SQL adapter."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(bind=engine, expire_on_commit=False)
    finally:
        engine.dispose()


class TestMatching:
    @pytest.mark.parametrize(
        "policy_object,requested,expected",
        [
            ("/api/v1/items", "/api/v1/items", True),
            ("/api/v1/items", "/api/v1/items/1", False),
            ("/api/v1/items/*", "/api/v1/items/1", True),
            ("/api/v1/items/*", "/api/v1/items/1/extra", True),
            ("/api/v1/items/*", "/api/v1/items", False),
            ("/api/v1/items/*", "/api/v1/items/", False),
            ("/api/v1/items/*", "/api/v1/itemsx/1", False),
            ("*", "/anything", True),
        ],
    )
    def test_object_matches(self, policy_object, requested, expected):
        assert object_matches(policy_object, requested) is expected

    @pytest.mark.parametrize(
        "policy_action,requested,expected",
        [
            ("*", "DELETE", True),
            ("GET", "GET", True),
            ("GET", "POST", False),
            ("(GET|POST)", "POST", True),
            ("(GET|POST)", "PATCH", False),
            ("GET", "GETX", False),
            ("(GET", "GET", False),
        ],
    )
    def test_action_matches(self, policy_action, requested, expected):
        assert action_matches(policy_action, requested) is expected


class TestEnforcer:
    def test_user_and_role_subjects(self):
        enforcer = Enforcer(
            MemoryPolicyAdapter(
                [
                    ("user", "/api/v1/items", "(GET|POST)"),
                    ("user-1", "/api/v1/items/abc", "*"),
                ]
            )
        )

        assert enforcer.enforce("anyone", "/api/v1/items", "GET", roles=["user"])
        assert not enforcer.enforce("anyone", "/api/v1/items", "DELETE", roles=["user"])
        assert not enforcer.enforce("anyone", "/api/v1/items", "GET")
        assert enforcer.enforce("user-1", "/api/v1/items/abc", "DELETE")
        assert not enforcer.enforce("user-2", "/api/v1/items/abc", "DELETE", roles=["user"])

    def test_mutations_are_idempotent(self):
        enforcer = Enforcer(MemoryPolicyAdapter())

        assert enforcer.add_policy("user-1", "/api/v1/items/x", "*") is True
        assert enforcer.add_policy("user-1", "/api/v1/items/x", "*") is False
        assert enforcer.get_policy() == [("user-1", "/api/v1/items/x", "*")]

        assert enforcer.remove_filtered_policy("/api/v1/items/x") == 1
        assert enforcer.remove_filtered_policy("/api/v1/items/x") == 0
        assert enforcer.get_policy() == []

    def test_filtered_views(self):
        enforcer = Enforcer(
            MemoryPolicyAdapter(
                [
                    ("user", "/api/v1/items", "GET"),
                    ("user", "/api/v1/courses", "GET"),
                    ("admin-1", "/api/v1/items", "*"),
                ]
            )
        )

        assert len(enforcer.get_filtered_policy(subject="user")) == 2
        assert enforcer.get_filtered_policy(obj="/api/v1/items") == [
            ("user", "/api/v1/items", "GET"),
            ("admin-1", "/api/v1/items", "*"),
        ]
        assert enforcer.has_policy("admin-1", "/api/v1/items", "*")
        assert not enforcer.has_policy("admin-1", "/api/v1/items", "GET")


class TestSqlPolicyAdapter:
    def test_policies_persist_across_enforcers(self, sql_session_factory):
        first = Enforcer(SqlPolicyAdapter(sql_session_factory))
        first.add_policies(
            [
                ("user", "/api/v1/items", "GET"),
                ("user", "/api/v1/items", "GET"),
                ("user-1", "/api/v1/items/abc", "*"),
            ]
        )

        second = Enforcer(SqlPolicyAdapter(sql_session_factory))
        assert sorted(second.get_policy()) == [
            ("user", "/api/v1/items", "GET"),
            ("user-1", "/api/v1/items/abc", "*"),
        ]
        assert second.enforce("user-1", "/api/v1/items/abc", "PATCH")

    def test_remove_by_object(self, sql_session_factory):
        adapter = SqlPolicyAdapter(sql_session_factory)
        adapter.add_policies([("user-1", "/api/v1/items/abc", "*"), ("user-2", "/api/v1/items/abc", "GET")])
        adapter.add_policies([("user-1", "/api/v1/items/def", "*")])

        assert adapter.remove_policies_for_object("/api/v1/items/abc") == 2
        assert adapter.load_policy() == [("user-1", "/api/v1/items/def", "*")]

    def test_duplicates_are_skipped(self, sql_session_factory):
        adapter = SqlPolicyAdapter(sql_session_factory)
        assert adapter.add_policies([("user", "/a", "GET")]) == 1
        assert adapter.add_policies([("user", "/a", "GET"), ("user", "/b", "GET")]) == 1


class TestBinder:
    def test_seed_role_policies_is_idempotent(self):
        enforcer = Enforcer(MemoryPolicyAdapter())
        binder = AuthorizationBinder(enforcer)
        descriptor = course_descriptor()

        added = binder.seed_role_policies(descriptor)
        assert added == 2 * len(descriptor.default_roles)
        assert binder.seed_role_policies(descriptor) == 0

        assert enforcer.enforce("u", "/api/v1/courses/123", "PATCH", roles=["editor"])
        assert not enforcer.enforce("u", "/api/v1/courses/123", "PATCH", roles=["user"])
        assert enforcer.enforce("u", "/api/v1/courses", "DELETE", roles=["administrator"])

    def test_owner_lifecycle(self):
        enforcer = Enforcer(MemoryPolicyAdapter())
        binder = AuthorizationBinder(enforcer)
        descriptor = course_descriptor()

        assert binder.grant_owner(descriptor, "abc", "user-1") is True
        assert binder.grant_owner(descriptor, "abc", None) is False
        assert binder.check("user-1", [], "/api/v1/courses/abc", "DELETE")

        assert binder.revoke_resource(descriptor, "abc") == 1
        assert not binder.check("user-1", [], "/api/v1/courses/abc", "DELETE")

    def test_check_honours_deadline(self):
        binder = AuthorizationBinder(Enforcer(MemoryPolicyAdapter()))
        with deadline_scope(-1):
            with pytest.raises(DeadlineExceededError):
                binder.check("user-1", ["user"], "/api/v1/items", "GET")
