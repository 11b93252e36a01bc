# =============================================================================
# CORRIDOR ACCESS SYSTEM - PERMISSION REGISTRY
# =============================================================================
# File: permission/registry.py
# Description: Role hierarchy, permission table and custom rules
#              Application-scoped, pure in-memory lookups
# =============================================================================

from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Union
import logging
import threading


logger = logging.getLogger(__name__)

WILDCARD = "*"

# Rule signature: (principal, value, attribute, attribute_value) -> bool
PermissionRule = Callable[[Any, Optional[str], Optional[str], Optional[str]], bool]
AllowedRoles = Union[str, FrozenSet[str]]


DEFAULT_ROLE_HIERARCHY: Dict[str, List[str]] = {
    "superadmin": ["system"],
    "corridor": ["executive", "manager", "officer", "assistant", "admin", "user"],
    "manager": ["executive", "geospatial", "technology", "officer"],
    "executive": ["officer", "assistant"],
    "authority": ["officer"],
    "geospatial": ["user"],
    "technology": ["user"],
    "officer": [],
    "assistant": [],
    "admin": ["user"],
    "user": [],
}

DEFAULT_PERMISSIONS: Dict[str, Union[str, List[str]]] = {
    # System
    "system.admin": ["corridor", "admin"],
    "system.config": ["corridor", "manager"],
    "system.logs": ["corridor", "manager", "technology"],

    # User management
    "users.view": ["corridor", "manager", "executive"],
    "users.create": ["corridor", "manager"],
    "users.edit": ["corridor", "manager"],
    "users.delete": ["corridor"],

    # Projects
    "projects.view": WILDCARD,
    "projects.create": ["corridor", "manager", "executive", "officer"],
    "projects.edit": ["corridor", "manager", "executive", "officer"],
    "projects.delete": ["corridor", "manager"],
    "projects.approve": ["corridor", "manager", "authority"],

    # Reports
    "reports.view": WILDCARD,
    "reports.export": ["corridor", "manager", "executive", "officer"],
    "reports.admin": ["corridor", "manager"],

    # Geospatial
    "geospatial.view": WILDCARD,
    "geospatial.edit": ["corridor", "manager", "geospatial"],
    "geospatial.admin": ["corridor", "geospatial"],

    # Authority actions
    "authority.approve": ["corridor", "authority", "manager"],
    "authority.reject": ["corridor", "authority", "manager"],
}


def _normalize_roles(roles: Union[str, Iterable[str]]) -> AllowedRoles:
    if isinstance(roles, str):
        if roles == WILDCARD:
            return WILDCARD
        roles = [roles]
    return frozenset(str(role).strip().lower() for role in roles if str(role).strip())


class PermissionRegistry:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    PERMISSION REGISTRY                                   │
    │  role → implied roles (one level)  |  permission → "*" or role set      │
    └─────────────────────────────────────────────────────────────────────────┘

    Shared by every request. Readers see immutable snapshots; writers
    build a new table under a lock and swap it in.

    Role inheritance walks exactly one level: ``manager → executive`` and
    ``executive → officer`` do not let a bare ``manager`` satisfy an
    ``officer`` check unless ``officer`` is listed under ``manager`` too.
    """

    def __init__(
        self,
        hierarchy: Optional[Mapping[str, Iterable[str]]] = None,
        permissions: Optional[Mapping[str, Union[str, Iterable[str]]]] = None,
    ):
        self._lock = threading.Lock()
        self._hierarchy: Dict[str, FrozenSet[str]] = self._build_hierarchy(
            DEFAULT_ROLE_HIERARCHY if hierarchy is None else hierarchy
        )
        self._permissions: Dict[str, AllowedRoles] = {
            key: _normalize_roles(roles)
            for key, roles in (DEFAULT_PERMISSIONS if permissions is None else permissions).items()
        }
        self._rules: Dict[str, PermissionRule] = {}

    @staticmethod
    def _build_hierarchy(hierarchy: Mapping[str, Iterable[str]]) -> Dict[str, FrozenSet[str]]:
        return {
            str(role).lower(): frozenset(str(implied).lower() for implied in implied_roles)
            for role, implied_roles in hierarchy.items()
        }

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def get_allowed_roles(self, permission: str) -> Optional[AllowedRoles]:
        """``"*"``, a frozen role set, or None for an unknown key."""
        return self._permissions.get(permission)

    def get_rule(self, permission: str) -> Optional[PermissionRule]:
        return self._rules.get(permission)

    def role_satisfies(self, user_role: Optional[str], required_role: Optional[str]) -> bool:
        """
        True if ``user_role`` is ``required_role`` or lists it directly
        in the hierarchy.
        """
        if not user_role or not required_role:
            return False
        user_role = user_role.lower()
        required_role = required_role.lower()
        if user_role == required_role:
            return True
        return required_role in self._hierarchy.get(user_role, frozenset())

    def roles_satisfy_any(self, user_roles: Iterable[str], allowed: Iterable[str]) -> bool:
        allowed = list(allowed)
        return any(
            self.role_satisfies(user_role, required)
            for user_role in user_roles
            for required in allowed
        )

    def effective_roles(self, role: str) -> List[str]:
        """The role followed by the roles it implies, without duplicates."""
        role = role.lower()
        roles = [role]
        for implied in sorted(self._hierarchy.get(role, frozenset())):
            if implied not in roles:
                roles.append(implied)
        return roles

    def role_permissions(self, role: str) -> List[str]:
        """Permission keys granted to a single role, in table order."""
        granted = []
        for permission, allowed in self._permissions.items():
            if allowed == WILDCARD or self.roles_satisfy_any([role], allowed):
                granted.append(permission)
        return granted

    def permission_keys(self) -> List[str]:
        return list(self._permissions.keys())

    def rule_keys(self) -> List[str]:
        return list(self._rules.keys())

    def get_role_hierarchy(self) -> Dict[str, List[str]]:
        return {role: sorted(implied) for role, implied in self._hierarchy.items()}

    def get_permissions(self) -> Dict[str, Union[str, List[str]]]:
        return {
            key: allowed if allowed == WILDCARD else sorted(allowed)
            for key, allowed in self._permissions.items()
        }

    # =========================================================================
    # MUTATION
    # =========================================================================

    def add_permission(self, permission: str, roles: Union[str, Iterable[str]]) -> None:
        """Add or replace a permission; ``roles`` is ``"*"`` or role names."""
        with self._lock:
            table = dict(self._permissions)
            table[permission] = _normalize_roles(roles)
            self._permissions = table
        logger.info(f"Permission registered: {permission}")

    def remove_permission(self, permission: str) -> bool:
        with self._lock:
            if permission not in self._permissions:
                return False
            table = dict(self._permissions)
            del table[permission]
            self._permissions = table
        logger.info(f"Permission removed: {permission}")
        return True

    def add_rule(self, permission: str, rule: PermissionRule) -> None:
        """
        Register a fallback predicate consulted when the table denies.

        Args:
            permission: Permission key
            rule: ``rule(principal, value, attribute, attribute_value) -> bool``
        """
        if not callable(rule):
            raise TypeError("Permission rule must be callable")
        with self._lock:
            rules = dict(self._rules)
            rules[permission] = rule
            self._rules = rules

    def set_role_hierarchy(self, hierarchy: Mapping[str, Iterable[str]]) -> None:
        """Replace the whole hierarchy."""
        built = self._build_hierarchy(hierarchy)
        with self._lock:
            self._hierarchy = built
        logger.info(f"Role hierarchy replaced ({len(built)} roles)")
