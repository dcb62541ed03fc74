"""
Authorization: policy enforcer, storage adapters and the binder that keeps
policies in step with entity registrations and lifecycles.

Usage:
    from entity_api.services.permissions import AuthorizationBinder, Enforcer, MemoryPolicyAdapter

    enforcer = Enforcer(MemoryPolicyAdapter())
    binder = AuthorizationBinder(enforcer)
    binder.check("user-1", ["user"], "/api/v1/items", "GET")
"""

from .adapters import MemoryPolicyAdapter, PolicyAdapter, SqlPolicyAdapter
from .binder import AuthorizationBinder
from .enforcer import Enforcer, action_matches, object_matches

__all__ = [
    "PolicyAdapter",
    "MemoryPolicyAdapter",
    "SqlPolicyAdapter",
    "Enforcer",
    "AuthorizationBinder",
    "object_matches",
    "action_matches",
]
