"""
Authorization binder: keeps policies in step with registrations and
resource lifecycles.

- registration: (role, <collection>, action) and (role, <collection>/*, action)
- create: (user_id, <collection>/<id>, *)
- delete: every policy whose object is <collection>/<id> is removed
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Sequence

from entity_shared.config.constants import ALL_ACTIONS
from entity_shared.config.logging import audit_authorization_event, get_logger
from entity_shared.infrastructure.deadline import check_deadline
from entity_api.services.permissions.enforcer import Enforcer

if TYPE_CHECKING:
    from entity_api.services.entity.descriptor import EntityDescriptor

logger = get_logger(__name__)


class AuthorizationBinder:
    def __init__(self, enforcer: Enforcer):
        self.enforcer = enforcer

    def seed_role_policies(self, descriptor: "EntityDescriptor") -> int:
        """Materialise the descriptor's role defaults. Idempotent."""
        path = descriptor.collection_path
        rules = []
        for role, action in descriptor.default_roles.items():
            rules.append((role, path, action))
            rules.append((role, f"{path}/*", action))
        if not rules:
            return 0
        added = self.enforcer.add_policies(rules)
        logger.debug("Role policies seeded", entity=descriptor.entity_name, added=added)
        return added

    def grant_owner(self, descriptor: "EntityDescriptor", entity_id: Any, user_id: str | None) -> bool:
        """Give the creating user every action on the new resource."""
        if not user_id:
            return False
        check_deadline("grant owner policy")
        obj = f"{descriptor.collection_path}/{entity_id}"
        added = self.enforcer.add_policy(user_id, obj, ALL_ACTIONS)
        logger.info("Owner policy granted", entity=descriptor.entity_name, object=obj)
        return added

    def revoke_resource(self, descriptor: "EntityDescriptor", entity_id: Any) -> int:
        """Remove every policy that names the resource."""
        check_deadline("revoke resource policies")
        obj = f"{descriptor.collection_path}/{entity_id}"
        removed = self.enforcer.remove_filtered_policy(obj)
        logger.info("Resource policies revoked", entity=descriptor.entity_name, object=obj, removed=removed)
        return removed

    def check(self, user_id: str | None, roles: Sequence[str], path: str, method: str) -> bool:
        """``enforce(user, path, method)`` over the user and their roles, audited."""
        check_deadline("authorization")
        allowed = self.enforcer.enforce(user_id, path, method, roles=roles)
        audit_authorization_event(user_id, path, method, allowed, roles=list(roles))
        return allowed
