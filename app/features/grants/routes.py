"""
Temporary access grant routes.

All endpoints require org_visibility:configure.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.grants.schemas import GrantCreate, GrantResponse
from app.features.grants.service import (
    create_temporary_grant,
    list_active_grants,
    revoke_temporary_grant,
)
from app.features.permissions.dependencies import require_permission
from app.features.users.models import User


router = APIRouter()

require_configure = require_permission("org_visibility", "configure")


@router.post("/", response_model=GrantResponse, status_code=status.HTTP_201_CREATED)
async def create_grant(
    grant: GrantCreate,
    current_user: Annotated[User, Depends(require_configure)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Create a time-boxed field access exception."""
    return await create_temporary_grant(
        db,
        created_by_id=current_user.id,
        **grant.model_dump(),
    )


@router.post("/{grant_id}/revoke", response_model=GrantResponse)
async def revoke_grant(
    grant_id: str,
    current_user: Annotated[User, Depends(require_configure)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Revoke a grant before it expires."""
    return await revoke_temporary_grant(db, grant_id, current_user.id)


@router.get("/active", response_model=List[GrantResponse])
async def list_grants(
    grantee_id: str,
    current_user: Annotated[User, Depends(require_configure)],
    db: Annotated[AsyncSession, Depends(get_db)],
    resource: Optional[str] = None,
    action: Optional[str] = None
):
    """List the currently active grants of a grantee."""
    return await list_active_grants(db, grantee_id, resource, action)
