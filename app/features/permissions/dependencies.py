"""
Permission checking utilities and dependencies for RBAC.

Implements:
- Super-admin detection (short-circuits every other check)
- Role/permission resolution and (resource, action) checks
- Replace-style role assignment with a high-privilege gate
- FastAPI dependencies for route protection
- Audit logging helpers
"""
from typing import Dict, Any, Optional, Iterable, List
from fastapi import Depends, HTTPException, status
from sqlalchemy import select, delete, insert, and_, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.exceptions import Forbidden, NotFound
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.permissions.models import (
    Permission,
    Role,
    AuditLog,
    role_permissions,
    user_roles,
    SUPER_ADMIN_ROLE,
    HIGH_PRIVILEGE_ROLES,
)
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Permission Checking Functions
# ============================================================================

async def is_super_admin(db: AsyncSession, user_id: str) -> bool:
    """True iff the user holds the role named exactly "super_admin"."""
    stmt = (
        select(func.count())
        .select_from(user_roles)
        .join(Role, Role.id == user_roles.c.role_id)
        .where(
            and_(
                user_roles.c.user_id == user_id,
                Role.name == SUPER_ADMIN_ROLE
            )
        )
    )
    result = await db.execute(stmt)
    return (result.scalar() or 0) > 0


async def get_user_role_names(db: AsyncSession, user_id: str) -> List[str]:
    """Names of all roles held by the user, sorted."""
    stmt = (
        select(Role.name)
        .join(user_roles, user_roles.c.role_id == Role.id)
        .where(user_roles.c.user_id == user_id)
    )
    result = await db.execute(stmt)
    return sorted(set(result.scalars().all()))


async def get_user_permissions(db: AsyncSession, user_id: str) -> List[Permission]:
    """
    Get all permissions granted to a user through their roles.

    Returns:
        List of unique Permission objects
    """
    stmt = (
        select(Permission)
        .join(role_permissions, role_permissions.c.permission_id == Permission.id)
        .join(user_roles, user_roles.c.role_id == role_permissions.c.role_id)
        .where(user_roles.c.user_id == user_id)
    )
    result = await db.execute(stmt)

    permissions_map: Dict[str, Permission] = {}
    for perm in result.scalars().all():
        permissions_map[perm.id] = perm
    return list(permissions_map.values())


async def get_user_permission_names(db: AsyncSession, user_id: str) -> List[str]:
    """Flattened, deduplicated permission names of the user's roles."""
    permissions = await get_user_permissions(db, user_id)
    return sorted({perm.name for perm in permissions})


async def get_user_permission_pairs(db: AsyncSession, user_id: str) -> frozenset[tuple[str, str]]:
    """
    The user's permissions as a set of (resource, action) pairs.

    Meant for callers that test several permissions in one decision: one
    query, then set membership.
    """
    permissions = await get_user_permissions(db, user_id)
    return frozenset(perm.pair for perm in permissions)


async def has_permission(
    db: AsyncSession,
    user_id: str,
    resource: str,
    action: str,
) -> bool:
    """
    Check if user has permission to perform an action on a resource.

    Args:
        db: Database session
        user_id: User ID
        resource: Resource type (e.g., "user", "contact", "user_sensitive")
        action: Action (e.g., "read", "update", "configure")

    Returns:
        True if user is super admin or any of their roles carries the permission
    """
    if await is_super_admin(db, user_id):
        log.debug(f"User {user_id} is super admin - granted permission {action} on {resource}")
        return True

    stmt = (
        select(func.count())
        .select_from(role_permissions)
        .join(Permission, Permission.id == role_permissions.c.permission_id)
        .join(user_roles, user_roles.c.role_id == role_permissions.c.role_id)
        .where(
            and_(
                user_roles.c.user_id == user_id,
                Permission.resource == resource,
                Permission.action == action
            )
        )
    )
    result = await db.execute(stmt)
    granted = (result.scalar() or 0) > 0

    log.debug(f"User {user_id} {'granted' if granted else 'denied'} permission {action} on {resource}")
    return granted


# ============================================================================
# Role Assignment
# ============================================================================

async def set_user_roles(
    db: AsyncSession,
    user_id: str,
    role_names: Iterable[str],
    caller_id: str,
) -> List[str]:
    """
    Replace the user's roles with the roles named in role_names.

    Names that match no role are dropped with a warning. If nothing matches,
    the user ends up with no roles at all.

    Raises:
        NotFound: the user does not exist
        Forbidden: a high-privilege role would be granted or revoked and the
            caller is not a super admin

    Returns:
        Sorted names of the roles now held by the user
    """
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    requested = list(dict.fromkeys(role_names))
    result = await db.execute(select(Role).where(Role.name.in_(requested)))
    roles = list(result.scalars().all())

    resolved = {role.name for role in roles}
    unmatched = [name for name in requested if name not in resolved]
    if unmatched:
        log.warning(f"Ignoring unknown role names for user {user_id}: {unmatched}")

    current = set(await get_user_role_names(db, user_id))
    changed_privileged = (current ^ resolved) & HIGH_PRIVILEGE_ROLES
    if changed_privileged and not await is_super_admin(db, caller_id):
        log.info(
            f"User {caller_id} denied changing high-privilege roles "
            f"{sorted(changed_privileged)} of user {user_id}"
        )
        raise Forbidden(
            f"Only a super admin may grant or revoke roles: {', '.join(sorted(changed_privileged))}"
        )

    if not resolved and current:
        log.warning(f"Role list for user {user_id} resolved to nothing; clearing all roles")

    await db.execute(delete(user_roles).where(user_roles.c.user_id == user_id))
    if roles:
        await db.execute(
            insert(user_roles),
            [{"user_id": user_id, "role_id": role.id, "assigned_by_id": caller_id} for role in roles]
        )
    await db.flush()

    await create_audit_log(
        db,
        user_id=caller_id,
        action="set_roles",
        resource_type="user",
        resource_id=user_id,
        company_id=user.company_id,
        details={
            "before": sorted(current),
            "after": sorted(resolved),
            "unmatched": unmatched,
        },
    )
    return sorted(resolved)


# ============================================================================
# FastAPI Dependencies
# ============================================================================

def require_permission(resource: str, action: str):
    """
    FastAPI dependency to require a specific permission.

    Usage:
        @router.put("/departments/{department_id}/leaders")
        async def update_leaders(
            user: User = Depends(require_permission("org_visibility", "configure"))
        ):
            # User may configure organization visibility
            pass

    Raises:
        HTTPException: 403 if user doesn't have permission
    """
    async def permission_dependency(
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user)
    ) -> User:
        if not await has_permission(db, current_user.id, resource, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {action} on {resource}"
            )

        return current_user

    return permission_dependency


async def require_super_admin(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
) -> User:
    """Require the super_admin role."""
    if not await is_super_admin(db, current_user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super admin privileges required",
        )
    return current_user


# ============================================================================
# Audit Logging
# ============================================================================

async def create_audit_log(
    db: AsyncSession,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    company_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Create an audit log entry.

    Commits the session, so flushed changes of the caller land in the same
    transaction as their audit row.

    Args:
        db: Database session
        user_id: User performing the action
        action: Action performed (e.g., "set_roles", "create", "revoke")
        resource_type: Type of resource (e.g., "user", "grant", "department")
        resource_id: ID of the resource
        company_id: Company context
        details: Additional details

    Returns:
        Created AuditLog object
    """
    audit_log = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        company_id=company_id,
        details=details,
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    log.info(
        f"Audit: user={user_id} action={action} resource={resource_type}:{resource_id} company={company_id}"
    )

    return audit_log
