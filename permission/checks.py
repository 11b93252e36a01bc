# =============================================================================
# CORRIDOR ACCESS SYSTEM - PERMISSION CHECKS
# =============================================================================
# File: permission/checks.py
# Description: Explicit description of what an access query asks for
# =============================================================================

from typing import Optional
from enum import Enum

from pydantic import BaseModel, model_validator


class CheckKind(str, Enum):
    PERMISSION = "permission"
    ROLE = "role"
    ATTRIBUTE = "attribute"


ATTRIBUTES = frozenset({"department", "location", "role", "username", "own"})


class PermissionCheck(BaseModel):
    """
    One access query.

    - PERMISSION: table lookup for ``permission`` with optional
      ``value`` passed to custom rules
    - ROLE: ``role`` held directly or one level down the hierarchy
    - ATTRIBUTE: table lookup for ``permission`` plus equality of a
      principal attribute (department, location, role, username, own)

    Build with the classmethods rather than the constructor.
    """

    kind: CheckKind
    permission: Optional[str] = None
    value: Optional[str] = None
    role: Optional[str] = None
    attribute: Optional[str] = None
    attribute_value: Optional[str] = None

    @model_validator(mode="after")
    def check_fields(self) -> "PermissionCheck":
        if self.kind == CheckKind.ROLE and not self.role:
            raise ValueError("Role check requires a role")
        if self.kind in (CheckKind.PERMISSION, CheckKind.ATTRIBUTE) and not self.permission:
            raise ValueError("Permission check requires a permission key")
        if self.kind == CheckKind.ATTRIBUTE and not (self.attribute and self.attribute_value):
            raise ValueError("Attribute check requires attribute and attribute_value")
        return self

    @classmethod
    def for_permission(cls, permission: str, value: Optional[str] = None) -> "PermissionCheck":
        return cls(kind=CheckKind.PERMISSION, permission=permission, value=value)

    @classmethod
    def for_role(cls, role: str) -> "PermissionCheck":
        return cls(kind=CheckKind.ROLE, role=role)

    @classmethod
    def for_attribute(
        cls,
        permission: str,
        attribute: str,
        attribute_value: str,
        value: Optional[str] = None,
    ) -> "PermissionCheck":
        return cls(
            kind=CheckKind.ATTRIBUTE,
            permission=permission,
            value=value,
            attribute=attribute.lower(),
            attribute_value=attribute_value,
        )

    @classmethod
    def from_call(
        cls,
        permission: str,
        value: Optional[str] = None,
        attribute: Optional[str] = None,
        attribute_value: Optional[str] = None,
    ) -> "PermissionCheck":
        """
        Translate the positional ``can(permission, value, attribute,
        attribute_value)`` form.

        ``can("role", "manager")`` is a role check. An attribute pair is
        only honoured when both halves are present.
        """
        if permission.lower() == "role" and value:
            return cls.for_role(value)
        if attribute and attribute_value:
            return cls.for_attribute(permission, attribute, attribute_value, value)
        return cls.for_permission(permission, value)
