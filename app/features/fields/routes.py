"""
Field catalog routes.

Reads are open to any authenticated user; mutations require
org_visibility:configure.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.fields.registry import (
    assign_fields_to_set,
    delete_field_definition,
    get_field_definition,
    list_field_definitions,
    list_field_sets,
    upsert_field_definition,
    upsert_field_set,
)
from app.features.fields.schemas import (
    FieldDefinitionResponse,
    FieldDefinitionUpsert,
    FieldSetAssign,
    FieldSetResponse,
    FieldSetUpsert,
)
from app.features.permissions.dependencies import require_permission
from app.features.users.dependencies import get_current_user
from app.features.users.models import User


router = APIRouter()

require_configure = require_permission("org_visibility", "configure")


# ============================================================================
# Field Definition Routes
# ============================================================================

@router.get("/definitions", response_model=List[FieldDefinitionResponse])
async def list_definitions(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """List every registered field definition."""
    return await list_field_definitions(db)


@router.get("/definitions/{key}", response_model=FieldDefinitionResponse)
async def get_definition(
    key: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    definition = await get_field_definition(db, key)
    if definition is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Field definition not found")
    return definition


@router.put("/definitions/{key}", response_model=FieldDefinitionResponse)
async def put_definition(
    key: str,
    payload: FieldDefinitionUpsert,
    current_user: Annotated[User, Depends(require_configure)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Create or overwrite a field definition."""
    return await upsert_field_definition(
        db,
        key,
        payload.label,
        payload.classification,
        payload.self_editable,
        actor_id=current_user.id,
    )


@router.delete("/definitions/{key}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_definition(
    key: str,
    current_user: Annotated[User, Depends(require_configure)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Delete a field definition and every stored value of it."""
    await delete_field_definition(db, key, actor_id=current_user.id)
    return None


# ============================================================================
# Field Set Routes
# ============================================================================

@router.get("/sets", response_model=List[FieldSetResponse])
async def list_sets(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await list_field_sets(db)


@router.put("/sets/{name}", response_model=FieldSetResponse)
async def put_set(
    name: str,
    payload: FieldSetUpsert,
    current_user: Annotated[User, Depends(require_configure)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await upsert_field_set(db, name, payload.description, payload.is_system)


@router.post("/sets/{name}/fields", response_model=FieldSetResponse)
async def assign_set_fields(
    name: str,
    payload: FieldSetAssign,
    current_user: Annotated[User, Depends(require_configure)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Add fields to a set in the given order."""
    return await assign_fields_to_set(db, name, payload.field_keys)
