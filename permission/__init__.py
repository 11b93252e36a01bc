# =============================================================================
# PERMISSION MODULE INITIALIZATION
# =============================================================================
# File: permission/__init__.py
# Description: Permission module exports
# =============================================================================

from permission.registry import (
    DEFAULT_PERMISSIONS,
    DEFAULT_ROLE_HIERARCHY,
    WILDCARD,
    PermissionRegistry,
    PermissionRule,
)
from permission.checks import CheckKind, PermissionCheck
from permission.access import AccessControl

__all__ = [
    "DEFAULT_PERMISSIONS",
    "DEFAULT_ROLE_HIERARCHY",
    "WILDCARD",
    "PermissionRegistry",
    "PermissionRule",
    "CheckKind",
    "PermissionCheck",
    "AccessControl",
]
