"""
Temporary access grant store.

Grants are looked up by (grantee, resource, action[, field_key]) and are
active iff not revoked and start_at <= now <= end_at. A grant with
scope_department_id only covers targets whose department is that department
or one of its descendants; such a grant never matches a check made without a
target.
"""
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidRange, NotFound
from app.features.grants.models import TemporaryAccessGrant
from app.features.organizations.graph import OrgSnapshot, load_org_snapshot
from app.features.organizations.service import get_department
from app.features.permissions.dependencies import create_audit_log
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _active_clause(now: datetime):
    return and_(
        TemporaryAccessGrant.revoked_at.is_(None),
        TemporaryAccessGrant.start_at <= now,
        TemporaryAccessGrant.end_at >= now,
    )


def grant_covers_target(
    grant: TemporaryAccessGrant,
    target_user_id: Optional[str],
    target_department_id: Optional[str],
    snapshot: Optional[OrgSnapshot],
) -> bool:
    """Department-scope part of the match, for an already active grant."""
    if not grant.scope_department_id:
        return True
    if not target_user_id or not target_department_id or snapshot is None:
        return False
    return snapshot.is_descendant_or_self(target_department_id, grant.scope_department_id)


async def create_temporary_grant(
    db: AsyncSession,
    grantee_id: str,
    resource: str,
    field_key: str,
    action: str,
    start_at: datetime,
    end_at: datetime,
    created_by_id: str,
    allow_cross_boundary: bool = False,
    scope_department_id: Optional[str] = None,
) -> TemporaryAccessGrant:
    """
    Persist a new grant.

    Raises:
        InvalidRange: end_at is earlier than start_at
        NotFound: the grantee or the scope department does not exist
    """
    start_at = as_utc(start_at)
    end_at = as_utc(end_at)
    if end_at < start_at:
        raise InvalidRange()

    if await db.get(User, grantee_id) is None:
        raise NotFound("Grantee not found")
    if scope_department_id is not None:
        await get_department(db, scope_department_id)

    grant = TemporaryAccessGrant(
        grantee_id=grantee_id,
        resource=resource,
        field_key=field_key,
        action=action,
        start_at=start_at,
        end_at=end_at,
        allow_cross_boundary=allow_cross_boundary,
        scope_department_id=scope_department_id,
        created_by_id=created_by_id,
    )
    db.add(grant)
    await db.flush()
    await db.refresh(grant)

    await create_audit_log(
        db,
        user_id=created_by_id,
        action="create",
        resource_type="grant",
        resource_id=grant.id,
        details={
            "grantee_id": grantee_id,
            "resource": resource,
            "field_key": field_key,
            "action": action,
            "start_at": start_at.isoformat(),
            "end_at": end_at.isoformat(),
            "allow_cross_boundary": allow_cross_boundary,
            "scope_department_id": scope_department_id,
        },
    )
    return grant


async def revoke_temporary_grant(
    db: AsyncSession,
    grant_id: str,
    revoked_by_id: str,
) -> TemporaryAccessGrant:
    """
    Revoke a grant ahead of its end_at.

    Revoking twice keeps the first revocation stamp.

    Raises:
        NotFound: no grant with that id
    """
    grant = await db.get(TemporaryAccessGrant, grant_id)
    if grant is None:
        raise NotFound("Grant not found")

    if grant.revoked_at is not None:
        log.debug(f"Grant {grant_id} already revoked")
        return grant

    grant.revoked_at = utcnow()
    grant.revoked_by_id = revoked_by_id
    await db.flush()
    await db.refresh(grant)

    await create_audit_log(
        db,
        user_id=revoked_by_id,
        action="revoke",
        resource_type="grant",
        resource_id=grant_id,
        details={"grantee_id": grant.grantee_id, "field_key": grant.field_key},
    )
    return grant


async def list_active_grants(
    db: AsyncSession,
    grantee_id: str,
    resource: Optional[str] = None,
    action: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[TemporaryAccessGrant]:
    """Currently active grants of a grantee, optionally narrowed."""
    now = as_utc(now) if now else utcnow()
    stmt = select(TemporaryAccessGrant).where(
        TemporaryAccessGrant.grantee_id == grantee_id,
        _active_clause(now),
    )
    if resource is not None:
        stmt = stmt.where(TemporaryAccessGrant.resource == resource)
    if action is not None:
        stmt = stmt.where(TemporaryAccessGrant.action == action)
    result = await db.execute(stmt.order_by(TemporaryAccessGrant.end_at))
    return list(result.scalars().all())


async def _target_department(db: AsyncSession, target_user_id: Optional[str]) -> Optional[str]:
    if not target_user_id:
        return None
    result = await db.execute(select(User.department_id).where(User.id == target_user_id))
    return result.scalar_one_or_none()


async def granted_field_keys(
    db: AsyncSession,
    grantee_id: str,
    resource: str,
    action: str,
    target_user_id: Optional[str] = None,
    snapshot: Optional[OrgSnapshot] = None,
    now: Optional[datetime] = None,
) -> set[str]:
    """
    Field keys covered by at least one active grant for this target.

    Batch form of has_active_grant: one grant query for all fields.
    """
    grants = await list_active_grants(db, grantee_id, resource, action, now)
    if not grants:
        return set()

    target_department_id = None
    if any(g.scope_department_id for g in grants):
        target_department_id = await _target_department(db, target_user_id)
        if snapshot is None and target_department_id:
            snapshot = await load_org_snapshot(db)

    return {
        g.field_key
        for g in grants
        if grant_covers_target(g, target_user_id, target_department_id, snapshot)
    }


async def has_active_grant(
    db: AsyncSession,
    grantee_id: str,
    resource: str,
    field_key: str,
    action: str,
    target_user_id: Optional[str] = None,
    snapshot: Optional[OrgSnapshot] = None,
    now: Optional[datetime] = None,
) -> bool:
    """True if an active grant covers this field, action and target."""
    now = as_utc(now) if now else utcnow()
    result = await db.execute(
        select(TemporaryAccessGrant).where(
            TemporaryAccessGrant.grantee_id == grantee_id,
            TemporaryAccessGrant.resource == resource,
            TemporaryAccessGrant.field_key == field_key,
            TemporaryAccessGrant.action == action,
            _active_clause(now),
        )
    )
    grants = list(result.scalars().all())
    if not grants:
        return False

    if any(not g.scope_department_id for g in grants):
        return True

    target_department_id = await _target_department(db, target_user_id)
    if not target_department_id:
        log.debug(f"Scoped grants for {grantee_id} on {resource}.{field_key} need a target department")
        return False

    if snapshot is None:
        snapshot = await load_org_snapshot(db)
    return any(
        grant_covers_target(g, target_user_id, target_department_id, snapshot)
        for g in grants
    )


async def has_active_cross_boundary_grant(
    db: AsyncSession,
    grantee_id: str,
    resource: str,
    action: str = "read",
    now: Optional[datetime] = None,
) -> bool:
    """
    True if any active cross-boundary grant exists for the resource.

    Any field under the resource qualifies.
    """
    now = as_utc(now) if now else utcnow()
    result = await db.execute(
        select(TemporaryAccessGrant.id).where(
            TemporaryAccessGrant.grantee_id == grantee_id,
            TemporaryAccessGrant.resource == resource,
            TemporaryAccessGrant.action == action,
            TemporaryAccessGrant.allow_cross_boundary.is_(True),
            _active_clause(now),
        ).limit(1)
    )
    return result.first() is not None
