"""
Access control routes: previews, visible fields and department leaders.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.access_control.service import get_access_preview, is_leader_for_user
from app.features.field_visibility.service import get_visible_field_keys
from app.features.organizations.service import update_department_leaders
from app.features.permissions.dependencies import require_permission
from app.features.users.dependencies import get_current_user
from app.features.users.models import User


router = APIRouter()


class AccessPreviewResponse(BaseModel):
    roles: List[str]
    permissions: List[str]
    visible_field_keys: List[str]


class DepartmentLeadersUpdate(BaseModel):
    leader_user_ids: List[str] = Field(default_factory=list)


class DepartmentLeadersResponse(BaseModel):
    department_id: str
    leader_user_ids: List[str]


@router.get("/preview", response_model=AccessPreviewResponse)
async def access_preview(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    resource: str = "user",
    target_user_id: Optional[str] = None
):
    """What the caller holds and which fields they can read."""
    return await get_access_preview(db, current_user.id, resource, target_user_id)


@router.get("/visible-fields", response_model=List[str])
async def visible_fields(
    resource: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    target_user_id: Optional[str] = None
):
    """Field keys the caller may read on resource, optionally for one target."""
    return sorted(await get_visible_field_keys(db, current_user.id, resource, target_user_id))


@router.get("/leads/{target_user_id}", response_model=bool)
async def leads_user(
    target_user_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Whether the caller leads the target's department chain."""
    return await is_leader_for_user(db, current_user.id, target_user_id)


@router.put("/departments/{department_id}/leaders", response_model=DepartmentLeadersResponse)
async def put_department_leaders(
    department_id: str,
    payload: DepartmentLeadersUpdate,
    current_user: Annotated[User, Depends(require_permission("org_visibility", "configure"))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Replace the leader list of a department."""
    leaders = await update_department_leaders(db, department_id, payload.leader_user_ids, current_user.id)
    return DepartmentLeadersResponse(department_id=department_id, leader_user_ids=leaders)
