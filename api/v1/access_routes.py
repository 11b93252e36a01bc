# =============================================================================
# CORRIDOR ACCESS SYSTEM - ACCESS ROUTES
# =============================================================================
# File: api/v1/access_routes.py
# Description: Permission introspection endpoints for the signed-in user
# =============================================================================

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from api.middleware.guards import require_admin, require_auth
from auth.dependencies import AccessDep, SessionDep
from auth.schemas import (
    EffectivePermissionsResponse,
    PermissionCheckResponse,
    RolePermissionsResponse,
)


router = APIRouter(
    prefix="/access",
    tags=["Access Control"],
    dependencies=[Depends(require_auth)],
)


@router.get(
    "/permissions",
    response_model=EffectivePermissionsResponse,
    summary="Effective permissions of the signed-in user",
)
async def effective_permissions(access: AccessDep) -> EffectivePermissionsResponse:
    principal = access.principal
    return EffectivePermissionsResponse(
        roles=list(principal.roles),
        effective_roles=access.get_user_roles(),
        permissions=access.get_effective_permissions(),
        is_admin=access.is_admin(),
        is_super_admin=access.is_super_admin(),
    )


@router.get(
    "/check/{permission}",
    response_model=PermissionCheckResponse,
    summary="Check one permission",
    description="Evaluate a permission key, optionally with a value and an attribute constraint.",
)
async def check_permission(
    permission: str,
    access: AccessDep,
    value: Optional[str] = Query(None, description="Passed to custom rules; a role name when permission is 'role'"),
    attribute: Optional[str] = Query(None, description="department, location, role, username or own"),
    attribute_value: Optional[str] = Query(None),
) -> PermissionCheckResponse:
    return PermissionCheckResponse(
        permission=permission,
        value=value,
        allowed=access.can(permission, value, attribute, attribute_value),
    )


@router.get(
    "/roles/{role}",
    response_model=RolePermissionsResponse,
    summary="Permissions granted to a role",
)
async def role_permissions(role: str, access: AccessDep) -> RolePermissionsResponse:
    return RolePermissionsResponse(
        role=role.lower(),
        implied_roles=access.registry.effective_roles(role)[1:],
        permissions=access.get_role_permissions(role),
    )


@router.get(
    "/debug",
    summary="Access and session diagnostics",
    dependencies=[Depends(require_admin)],
)
async def debug_info(access: AccessDep, session: SessionDep) -> Dict[str, Any]:
    """Administrators only. Session ids are truncated."""
    return {
        "access": access.get_debug_info(),
        "session": await session.get_debug_info(),
        "stats": (await session.get_session_stats()).model_dump(),
    }
