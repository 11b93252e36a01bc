# =============================================================================
# CORRIDOR ACCESS SYSTEM - ACCESS CONTROL
# =============================================================================
# File: permission/access.py
# Description: Answers "can the current principal do X" for one request
# =============================================================================

from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
import logging

from core.context import Principal, RequestContext
from permission.checks import CheckKind, PermissionCheck
from permission.registry import PermissionRegistry, WILDCARD


logger = logging.getLogger(__name__)

ADMIN_ROLES = ("corridor", "admin", "manager")
SUPER_ADMIN_ROLE = "superadmin"

CheckSet = Union[Iterable[Union[str, PermissionCheck]], Mapping[str, Optional[str]]]


class AccessControl:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    ACCESS CONTROL                                        │
    │  PermissionRegistry + the principal resolved for this request          │
    └─────────────────────────────────────────────────────────────────────────┘

    Resolution order for a table check:
        1. No principal, or a principal without roles → deny
        2. Table entry "*" → allow
        3. Table entry role set → allow if any principal role is listed
           or implies a listed role (one hierarchy level)
        4. Attribute pair supplied → the table result must also pass the
           attribute equality check
        5. Table denied → custom rule for the key, if registered
    """

    def __init__(self, context: RequestContext, registry: PermissionRegistry):
        self._ctx = context
        self._registry = registry

    @property
    def principal(self) -> Optional[Principal]:
        return self._ctx.principal

    @property
    def registry(self) -> PermissionRegistry:
        return self._registry

    # =========================================================================
    # CHECKS
    # =========================================================================

    def can(
        self,
        permission: str,
        value: Optional[str] = None,
        attribute: Optional[str] = None,
        attribute_value: Optional[str] = None,
    ) -> bool:
        """
        Positional form of check().

        Args:
            permission: Permission key, or "role" to test ``value`` as a role
            value: Role name for role checks, passed through to custom rules
            attribute: department, location, role, username or own
            attribute_value: Value the principal's attribute must equal
        """
        return self.check(PermissionCheck.from_call(permission, value, attribute, attribute_value))

    def check(self, query: PermissionCheck) -> bool:
        principal = self.principal
        if principal is None or not principal.roles:
            return False

        if query.kind == CheckKind.ROLE:
            if self.has_role(query.role):
                return True
            return self._apply_rule("role", principal, query)

        if self._table_allows(query.permission, principal):
            if query.kind == CheckKind.ATTRIBUTE:
                return self._attribute_matches(principal, query.attribute, query.attribute_value)
            return True

        return self._apply_rule(query.permission, principal, query)

    def _table_allows(self, permission: str, principal: Principal) -> bool:
        allowed = self._registry.get_allowed_roles(permission)
        if allowed is None:
            return False
        if allowed == WILDCARD:
            return True
        return self._registry.roles_satisfy_any(principal.roles, allowed)

    def _attribute_matches(self, principal: Principal, attribute: str, expected: str) -> bool:
        expected = str(expected).lower()
        if attribute == "department":
            return (principal.department or "").lower() == expected
        if attribute == "location":
            return (principal.location or "").lower() == expected
        if attribute == "role":
            return self.has_role(expected)
        if attribute in ("username", "own"):
            return (principal.username or "").lower() == expected
        return False

    def _apply_rule(self, key: str, principal: Principal, query: PermissionCheck) -> bool:
        rule = self._registry.get_rule(key)
        if rule is None:
            return False
        value = query.role if query.kind == CheckKind.ROLE else query.value
        return bool(rule(principal, value, query.attribute, query.attribute_value))

    def can_any(self, checks: CheckSet) -> bool:
        """True if any check passes; accepts keys, PermissionChecks or a key → value map."""
        return any(self.check(query) for query in self._expand(checks))

    def can_all(self, checks: CheckSet) -> bool:
        return all(self.check(query) for query in self._expand(checks))

    @staticmethod
    def _expand(checks: CheckSet) -> List[PermissionCheck]:
        if isinstance(checks, Mapping):
            return [PermissionCheck.from_call(key, value) for key, value in checks.items()]
        return [
            item if isinstance(item, PermissionCheck) else PermissionCheck.from_call(item)
            for item in checks
        ]

    # =========================================================================
    # ROLES
    # =========================================================================

    def has_role(self, role: Optional[str]) -> bool:
        """Case-insensitive direct match, or one level down the hierarchy."""
        principal = self.principal
        if principal is None or not role:
            return False
        return any(self._registry.role_satisfies(own, role) for own in principal.roles)

    def is_admin(self) -> bool:
        principal = self.principal
        if principal is None:
            return False
        return self._registry.roles_satisfy_any(principal.roles, ADMIN_ROLES)

    def is_super_admin(self) -> bool:
        return self.has_role(SUPER_ADMIN_ROLE)

    def get_user_roles(self) -> List[str]:
        """Principal roles plus the roles they imply."""
        principal = self.principal
        if principal is None:
            return []
        roles: List[str] = []
        for own in principal.roles:
            for role in self._registry.effective_roles(own):
                if role not in roles:
                    roles.append(role)
        return roles

    def get_role_permissions(self, role: str) -> List[str]:
        return self._registry.role_permissions(role)

    def get_effective_permissions(self) -> List[str]:
        """Every table key the principal passes, custom rules excluded."""
        principal = self.principal
        if principal is None or not principal.roles:
            return []
        return [
            key for key in self._registry.permission_keys()
            if self._table_allows(key, principal)
        ]

    def get_debug_info(self) -> Dict[str, Any]:
        principal = self.principal
        return {
            "current_role": principal.primary_role if principal else None,
            "roles": list(principal.roles) if principal else [],
            "effective_roles": self.get_user_roles(),
            "is_admin": self.is_admin(),
            "is_super_admin": self.is_super_admin(),
            "total_permissions": len(self._registry.permission_keys()),
            "role_permissions": len(self.get_effective_permissions()),
            "custom_rules": self._registry.rule_keys(),
        }
