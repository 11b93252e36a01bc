# =============================================================================
# CORRIDOR ACCESS SYSTEM - PERMISSION TESTS
# =============================================================================
# File: tests/test_permissions.py
# Description: Role hierarchy, permission table, attribute checks and
#              custom rules
# =============================================================================

import pytest

from core.context import Principal, RequestContext
from permission import AccessControl, PermissionCheck, PermissionRegistry, WILDCARD


def _access(registry: PermissionRegistry, **principal_fields) -> AccessControl:
    context = RequestContext()
    if principal_fields:
        principal_fields.setdefault("id", "u-1")
        principal_fields.setdefault("email", "officer@example.com")
        context.principal = Principal(**principal_fields)
    return AccessControl(context, registry)


class TestPermissionRegistry:
    """Registry lookups and mutation."""

    def test_role_satisfies_one_level(self):
        registry = PermissionRegistry(
            hierarchy={"manager": ["executive"], "executive": ["officer"]},
            permissions={},
        )

        assert registry.role_satisfies("manager", "manager") is True
        assert registry.role_satisfies("Manager", "EXECUTIVE") is True
        # Not transitive: manager → executive → officer stops after one step
        assert registry.role_satisfies("manager", "officer") is False

    def test_effective_roles(self):
        registry = PermissionRegistry()

        assert registry.effective_roles("admin") == ["admin", "user"]
        assert registry.effective_roles("officer") == ["officer"]

    def test_add_and_remove_permission(self):
        registry = PermissionRegistry(permissions={})

        registry.add_permission("permits.issue", ["Officer", "manager"])
        assert registry.get_allowed_roles("permits.issue") == frozenset({"officer", "manager"})

        registry.add_permission("permits.view", WILDCARD)
        assert registry.get_allowed_roles("permits.view") == WILDCARD

        assert registry.remove_permission("permits.issue") is True
        assert registry.remove_permission("permits.issue") is False
        assert registry.permission_keys() == ["permits.view"]

    def test_add_rule_requires_callable(self):
        registry = PermissionRegistry()

        with pytest.raises(TypeError):
            registry.add_rule("projects.edit", "not callable")

    def test_role_permissions(self):
        registry = PermissionRegistry()

        granted = registry.role_permissions("authority")

        assert "projects.approve" in granted
        assert "authority.reject" in granted
        assert "projects.view" in granted
        assert "users.delete" not in granted

    def test_set_role_hierarchy(self):
        registry = PermissionRegistry(permissions={"reports.admin": ["manager"]})
        registry.set_role_hierarchy({"director": ["manager"]})

        assert registry.get_role_hierarchy() == {"director": ["manager"]}
        assert registry.role_satisfies("director", "manager") is True

    def test_get_permissions_snapshot(self):
        registry = PermissionRegistry(permissions={"reports.view": WILDCARD, "permits.issue": ["Officer"]})

        snapshot = registry.get_permissions()
        snapshot["permits.issue"].append("intruder")

        assert snapshot["reports.view"] == WILDCARD
        assert registry.get_permissions() == {"reports.view": WILDCARD, "permits.issue": ["officer"]}


class TestAccessControl:
    """Checks for the principal of one request."""

    def test_inherited_role_satisfies_permission(self):
        registry = PermissionRegistry(
            hierarchy={"manager": ["executive", "officer"]},
            permissions={"projects.edit": ["executive"]},
        )
        access = _access(registry, roles=["manager"])

        assert access.can("projects.edit") is True

    def test_anonymous_denied(self, registry):
        access = _access(registry)

        assert access.can("projects.view") is False
        assert access.get_effective_permissions() == []

    def test_principal_without_roles_denied_even_wildcard(self, registry):
        access = _access(registry, roles=[])

        assert access.can("projects.view") is False

    def test_wildcard_allows_any_role(self, registry):
        access = _access(registry, roles=["assistant"])

        assert access.can("reports.view") is True
        assert access.can("reports.export") is False

    def test_unknown_permission_denied(self, registry):
        access = _access(registry, roles=["corridor"])

        assert access.can("does.not.exist") is False

    def test_role_check_via_can(self, registry):
        access = _access(registry, roles=["executive"])

        assert access.can("role", "executive") is True
        assert access.can("role", "officer") is True
        assert access.can("role", "manager") is False

    @pytest.mark.parametrize(
        "attribute,value,expected",
        [
            ("department", "roads", True),
            ("department", "Water", False),
            ("location", "PUNE", True),
            ("username", "asha", True),
            ("own", "someone_else", False),
            ("role", "officer", True),
            ("unsupported", "x", False),
        ],
    )
    def test_attribute_checks(self, registry, attribute, value, expected):
        access = _access(
            registry,
            roles=["officer"],
            department="Roads",
            location="Pune",
            username="asha",
        )

        assert access.can("projects.edit", None, attribute, value) is expected

    def test_attribute_check_still_needs_table_permission(self, registry):
        access = _access(registry, roles=["assistant"], department="Roads")

        assert access.can("projects.edit", None, "department", "Roads") is False

    def test_custom_rule_used_when_table_denies(self):
        registry = PermissionRegistry(permissions={"projects.edit": ["manager"]})
        calls = []

        def own_project(principal, value, attribute, attribute_value):
            calls.append((principal.id, value))
            return value == principal.id

        registry.add_rule("projects.edit", own_project)
        access = _access(registry, roles=["officer"])

        assert access.can("projects.edit", "u-1") is True
        assert access.can("projects.edit", "u-2") is False
        assert calls == [("u-1", "u-1"), ("u-1", "u-2")]

    def test_custom_rule_not_consulted_when_table_allows(self):
        registry = PermissionRegistry(permissions={"projects.edit": ["officer"]})
        registry.add_rule("projects.edit", lambda *args: pytest.fail("rule should not run"))
        access = _access(registry, roles=["officer"])

        assert access.can("projects.edit") is True

    def test_can_any_and_can_all(self, registry):
        access = _access(registry, roles=["officer"])

        assert access.can_any(["users.delete", "projects.create"]) is True
        assert access.can_all(["users.delete", "projects.create"]) is False
        assert access.can_all([PermissionCheck.for_permission("projects.view"), "reports.export"]) is True
        assert access.can_any({"role": "manager", "system.admin": None}) is False

    def test_admin_flags(self, registry):
        manager = _access(registry, roles=["manager"])
        superadmin = _access(registry, roles=["superadmin"])
        officer = _access(registry, roles=["officer"])

        assert manager.is_admin() is True
        assert manager.is_super_admin() is False
        assert superadmin.is_super_admin() is True
        assert officer.is_admin() is False

    def test_user_roles_and_effective_permissions(self, registry):
        access = _access(registry, roles=["admin"])

        assert access.get_user_roles() == ["admin", "user"]
        permissions = access.get_effective_permissions()
        assert "system.admin" in permissions
        assert "projects.view" in permissions
        assert "system.config" not in permissions

    def test_debug_info(self, registry):
        registry.add_rule("projects.edit", lambda *args: False)
        access = _access(registry, roles=["officer", "authority"])

        info = access.get_debug_info()

        assert info["current_role"] == "officer"
        assert info["roles"] == ["officer", "authority"]
        assert info["custom_rules"] == ["projects.edit"]
        assert info["total_permissions"] == len(registry.permission_keys())


class TestPermissionCheck:
    """Explicit query variants."""

    def test_from_call_variants(self):
        assert PermissionCheck.from_call("role", "manager").kind == "role"
        assert PermissionCheck.from_call("projects.edit").kind == "permission"
        assert PermissionCheck.from_call("projects.edit", None, "Department", "roads").attribute == "department"
        # A lone attribute name is ignored
        assert PermissionCheck.from_call("projects.edit", None, "department", None).kind == "permission"

    def test_invalid_combinations_rejected(self):
        with pytest.raises(ValueError):
            PermissionCheck(kind="role")
        with pytest.raises(ValueError):
            PermissionCheck(kind="attribute", permission="projects.edit", attribute="department")
