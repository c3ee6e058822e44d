"""
User feature routes.

Listings and lookups go through the access-control row filter; field values
are redacted with the field visibility resolver before they leave the server.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.access_control.service import (
    can_see_user,
    get_accessible_user_where,
    set_user_visibility,
)
from app.features.field_visibility.service import get_visible_field_keys, redact_field_values
from app.features.fields.models import UserFieldValue
from app.features.permissions.dependencies import require_permission
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.users.schemas import (
    UserPublic,
    UserFieldsResponse,
    UserVisibilityResponse,
    UserVisibilityUpdate,
)


router = APIRouter(tags=["users"])


@router.get("/me", response_model=UserPublic)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)]
):
    """Get current authenticated user's profile."""
    return user


@router.get("/", response_model=list[UserPublic])
async def list_users(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 50
):
    """List the users the caller is allowed to see."""
    row_filter = await get_accessible_user_where(db, user.id)
    result = await db.execute(
        select(User)
        .where(row_filter.where_clause())
        .order_by(User.name)
        .offset(skip)
        .limit(limit)
    )
    return result.scalars().all()


@router.get("/{user_id}", response_model=UserPublic)
async def get_user_by_id(
    user_id: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get one user; users outside the caller's scope look nonexistent."""
    target = await db.get(User, user_id)

    if target is None or not await can_see_user(db, user.id, user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return target


@router.get("/{user_id}/fields", response_model=UserFieldsResponse)
async def get_user_fields(
    user_id: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    resource: str = "user"
):
    """Stored field values of a user, limited to the keys the caller may read."""
    if await db.get(User, user_id) is None or not await can_see_user(db, user.id, user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    visible = await get_visible_field_keys(db, user.id, resource, user_id)
    result = await db.execute(select(UserFieldValue).where(UserFieldValue.user_id == user_id))
    values = {item.field.key: item.value for item in result.scalars().all()}

    return UserFieldsResponse(
        user_id=user_id,
        visible_field_keys=sorted(visible),
        values=redact_field_values(values, visible),
    )


@router.patch("/{user_id}/visibility", response_model=UserVisibilityResponse)
async def update_user_visibility(
    user_id: str,
    update: UserVisibilityUpdate,
    admin: Annotated[User, Depends(require_permission("org_visibility", "configure"))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Set hidden and/or view scope of a user."""
    return await set_user_visibility(
        db,
        user_id,
        hidden=update.hidden,
        view_scope=update.view_scope,
        actor_id=admin.id,
    )
