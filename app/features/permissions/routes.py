"""
Permission management API routes.

Provides endpoints for listing roles, replacing a user's roles, checking
permissions and reading the audit trail.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.permissions.models import AuditLog, Role
from app.features.permissions.schemas import (
    AuditLogListResponse,
    AuditLogResponse,
    PermissionCheckRequest,
    PermissionCheckResponse,
    RoleWithPermissions,
    SetUserRoles,
    UserPermissionsResponse,
    UserRolesResponse,
)
from app.features.permissions.dependencies import (
    get_user_permission_names,
    get_user_role_names,
    has_permission,
    is_super_admin,
    require_permission,
    require_super_admin,
    set_user_roles,
)
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Role Routes
# ============================================================================

@router.get("/roles", response_model=List[RoleWithPermissions])
async def list_roles(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List all roles with their permissions."""
    result = await db.execute(select(Role).order_by(Role.name))
    return result.scalars().all()


@router.put("/users/{user_id}/roles", response_model=UserRolesResponse)
async def replace_user_roles(
    user_id: str,
    assignment: SetUserRoles,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission("user", "update"))
):
    """
    Replace a user's roles.

    Granting or revoking admin, hr_manager or super_admin additionally
    requires the caller to be a super admin.
    """
    roles = await set_user_roles(db, user_id, assignment.role_names, current_user.id)
    return UserRolesResponse(user_id=user_id, roles=roles)


# ============================================================================
# Permission Check Routes
# ============================================================================

@router.post("/check", response_model=PermissionCheckResponse)
async def check_permission(
    check_request: PermissionCheckRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Check if the current user has a specific permission."""
    has_perm = await has_permission(db, current_user.id, check_request.resource, check_request.action)

    return PermissionCheckResponse(
        has_permission=has_perm,
        reason=None if has_perm else "Permission denied"
    )


@router.get("/users/{user_id}/permissions", response_model=UserPermissionsResponse)
async def get_user_permissions(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get roles and permissions of a user."""
    # Can only view own permissions unless allowed to read users
    if user_id != current_user.id and not await has_permission(db, current_user.id, "user", "read"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to view other users' permissions"
        )

    return UserPermissionsResponse(
        user_id=user_id,
        is_super_admin=await is_super_admin(db, user_id),
        roles=await get_user_role_names(db, user_id),
        permissions=await get_user_permission_names(db, user_id),
    )


# ============================================================================
# Audit Log Routes
# ============================================================================

@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    skip: int = 0,
    limit: int = 50,
    company_id: Optional[str] = None,
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    resource_type: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_super_admin)
):
    """List audit logs with optional filtering."""
    stmt = select(AuditLog)

    if company_id:
        stmt = stmt.where(AuditLog.company_id == company_id)
    if user_id:
        stmt = stmt.where(AuditLog.user_id == user_id)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if resource_type:
        stmt = stmt.where(AuditLog.resource_type == resource_type)

    # Get total count
    count_stmt = select(func.count()).select_from(stmt.subquery())
    total_result = await db.execute(count_stmt)
    total = total_result.scalar() or 0

    # Get paginated results
    stmt = stmt.order_by(AuditLog.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(stmt)
    logs = result.scalars().all()

    pages = (total + limit - 1) // limit if limit > 0 else 0
    page = (skip // limit) + 1 if limit > 0 else 1

    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(entry) for entry in logs],
        total=total,
        page=page,
        page_size=limit,
        pages=pages
    )
