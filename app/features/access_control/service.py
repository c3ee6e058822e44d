"""
Access control service: who can see which users.

Composes RBAC (permissions.dependencies), the department hierarchy
(organizations.graph) and per-user visibility settings into:

- get_accessible_user_where: a RowFilter for listing queries
- can_see_user: the same filter applied to one target row
- is_leader_for_user: leadership over the target's department chain

Every operation checks super admin first. Read operations never raise for a
missing or invisible user; they answer False or a restrictive filter.
"""
from typing import Any, Dict, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFound
from app.features.access_control.filters import RowFilter
from app.features.organizations.graph import OrgSnapshot, load_org_snapshot
from app.features.permissions.dependencies import (
    create_audit_log,
    get_user_permission_names,
    get_user_role_names,
    has_permission,
    is_super_admin,
)
from app.features.users.models import User, UserVisibility, ViewScope
from app.utils import get_logger


log = get_logger(__name__)

__all__ = [
    "get_user_visibility",
    "get_accessible_user_where",
    "can_see_user",
    "user_matches_filter",
    "is_leader_for_user",
    "set_user_visibility",
    "get_access_preview",
    "has_permission",
    "is_super_admin",
]


async def get_user_visibility(db: AsyncSession, user_id: str) -> Optional[UserVisibility]:
    """Stored visibility row of a user; None means the defaults apply."""
    result = await db.execute(select(UserVisibility).where(UserVisibility.user_id == user_id))
    return result.scalar_one_or_none()


async def get_accessible_user_where(
    db: AsyncSession,
    viewer_id: str,
    snapshot: Optional[OrgSnapshot] = None,
) -> RowFilter:
    """
    Build the row filter of users visible to viewer_id.

    - super admin: everything
    - unknown viewer: only "not hidden"
    - otherwise: not hidden AND same company (if the viewer has one),
      narrowed by the viewer's view scope
    """
    if await is_super_admin(db, viewer_id):
        return RowFilter.everything()

    viewer = await db.get(User, viewer_id)
    if viewer is None:
        log.debug(f"Viewer {viewer_id} not found; falling back to not-hidden filter")
        return RowFilter()

    visibility = await get_user_visibility(db, viewer.id)
    view_scope = visibility.view_scope if visibility else ViewScope.ALL
    base = RowFilter(company_id=viewer.company_id)

    if view_scope == ViewScope.SELF_ONLY:
        row_filter = RowFilter(company_id=base.company_id, user_id=viewer.id)

    elif view_scope == ViewScope.DEPT_ONLY:
        if snapshot is None:
            snapshot = await load_org_snapshot(db)
        scope = snapshot.department_and_descendants(viewer.department_id)
        scope |= snapshot.collect_leader_scope(viewer.id)

        if scope:
            row_filter = RowFilter(company_id=base.company_id, department_ids=frozenset(scope))
        elif viewer.department_id:
            row_filter = RowFilter(company_id=base.company_id, department_ids=frozenset({viewer.department_id}))
        else:
            row_filter = RowFilter(company_id=base.company_id, user_id=viewer.id)

    else:
        row_filter = base

    log.debug(f"Row filter for {viewer_id} ({view_scope.value}): {row_filter.describe()}")
    return row_filter


async def user_matches_filter(db: AsyncSession, user_id: str, row_filter: RowFilter) -> bool:
    """Single-row existence check of user_id under row_filter."""
    result = await db.execute(
        select(func.count())
        .select_from(User)
        .where(User.id == user_id, row_filter.where_clause())
    )
    return (result.scalar() or 0) > 0


async def can_see_user(db: AsyncSession, viewer_id: str, target_user_id: str) -> bool:
    """True if target_user_id is in the viewer's accessible user set."""
    if await is_super_admin(db, viewer_id):
        return True
    row_filter = await get_accessible_user_where(db, viewer_id)
    visible = await user_matches_filter(db, target_user_id, row_filter)
    log.debug(f"Viewer {viewer_id} {'can' if visible else 'cannot'} see user {target_user_id}")
    return visible


async def is_leader_for_user(
    db: AsyncSession,
    viewer_id: str,
    target_user_id: str,
    snapshot: Optional[OrgSnapshot] = None,
) -> bool:
    """
    True if viewer_id leads the target's department or any department
    above it. False if the target has no department or does not exist.
    """
    result = await db.execute(select(User.department_id).where(User.id == target_user_id))
    department_id = result.scalar_one_or_none()
    if not department_id:
        return False

    if snapshot is None:
        snapshot = await load_org_snapshot(db)
    return snapshot.leads(viewer_id, department_id)


async def set_user_visibility(
    db: AsyncSession,
    user_id: str,
    hidden: Optional[bool] = None,
    view_scope: Optional[ViewScope] = None,
    actor_id: Optional[str] = None,
) -> UserVisibility:
    """
    Upsert a user's visibility settings.

    Arguments left as None keep their stored value (or the default on first
    creation: hidden=False, view_scope=ALL).

    Raises:
        NotFound: the user does not exist
    """
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    visibility = await get_user_visibility(db, user_id)
    before: Dict[str, Any] | None = None
    if visibility is None:
        visibility = UserVisibility(
            user_id=user_id,
            hidden=hidden if hidden is not None else False,
            view_scope=view_scope if view_scope is not None else ViewScope.ALL,
        )
        db.add(visibility)
    else:
        before = {"hidden": visibility.hidden, "view_scope": visibility.view_scope.value}
        if hidden is not None:
            visibility.hidden = hidden
        if view_scope is not None:
            visibility.view_scope = view_scope

    await db.flush()
    await db.refresh(visibility)

    await create_audit_log(
        db,
        user_id=actor_id,
        action="set_visibility",
        resource_type="user",
        resource_id=user_id,
        company_id=user.company_id,
        details={
            "before": before,
            "after": {"hidden": visibility.hidden, "view_scope": visibility.view_scope.value},
        },
    )
    return visibility


async def get_access_preview(
    db: AsyncSession,
    user_id: str,
    resource: str = "user",
    target_user_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Roles, permissions and visible field keys of a user, for diagnostics."""
    from app.features.field_visibility.service import get_visible_field_keys

    return {
        "roles": await get_user_role_names(db, user_id),
        "permissions": await get_user_permission_names(db, user_id),
        "visible_field_keys": sorted(
            await get_visible_field_keys(db, user_id, resource, target_user_id)
        ),
    }
