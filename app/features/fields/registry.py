"""
Field classification registry.

Read-mostly catalog of field definitions and field sets. Visibility depends
entirely on this data: a key that is not registered is never visible.
"""
from typing import Iterable, List, Optional
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFound
from app.features.fields.models import (
    Classification,
    FieldDefinition,
    FieldSet,
    FieldSetItem,
    UserFieldValue,
)
from app.features.permissions.dependencies import create_audit_log
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Field Definitions
# ============================================================================

async def list_field_definitions(db: AsyncSession) -> List[FieldDefinition]:
    result = await db.execute(select(FieldDefinition).order_by(FieldDefinition.key))
    return list(result.scalars().all())


async def get_field_definition(db: AsyncSession, key: str) -> Optional[FieldDefinition]:
    result = await db.execute(select(FieldDefinition).where(FieldDefinition.key == key))
    return result.scalar_one_or_none()


async def upsert_field_definition(
    db: AsyncSession,
    key: str,
    label: str,
    classification: Classification,
    self_editable: bool = False,
    actor_id: Optional[str] = None,
) -> FieldDefinition:
    """Create the definition for key, or overwrite label/classification/self_editable."""
    definition = await get_field_definition(db, key)
    created = definition is None
    if created:
        definition = FieldDefinition(key=key)
        db.add(definition)

    definition.label = label
    definition.classification = Classification(classification)
    definition.self_editable = self_editable
    await db.flush()
    await db.refresh(definition)

    await create_audit_log(
        db,
        user_id=actor_id,
        action="create" if created else "update",
        resource_type="field_definition",
        resource_id=key,
        details={
            "label": label,
            "classification": definition.classification.value,
            "self_editable": self_editable,
        },
    )
    return definition


async def delete_field_definition(
    db: AsyncSession,
    key: str,
    actor_id: Optional[str] = None,
) -> bool:
    """
    Delete a definition together with its stored values and set memberships.

    Returns:
        False if there was nothing to delete
    """
    definition = await get_field_definition(db, key)
    if definition is None:
        return False

    values = await db.execute(delete(UserFieldValue).where(UserFieldValue.field_id == definition.id))
    await db.execute(delete(FieldSetItem).where(FieldSetItem.field_id == definition.id))
    await db.delete(definition)
    await db.flush()

    log.info(f"Deleted field {key} and {values.rowcount} stored values")
    await create_audit_log(
        db,
        user_id=actor_id,
        action="delete",
        resource_type="field_definition",
        resource_id=key,
        details={"deleted_values": values.rowcount},
    )
    return True


# ============================================================================
# Field Sets
# ============================================================================

async def list_field_sets(db: AsyncSession) -> List[FieldSet]:
    result = await db.execute(select(FieldSet).order_by(FieldSet.name))
    return list(result.scalars().all())


async def get_field_set(db: AsyncSession, name: str) -> Optional[FieldSet]:
    result = await db.execute(select(FieldSet).where(FieldSet.name == name))
    return result.scalar_one_or_none()


async def upsert_field_set(
    db: AsyncSession,
    name: str,
    description: Optional[str] = None,
    is_system: bool = False,
) -> FieldSet:
    field_set = await get_field_set(db, name)
    if field_set is None:
        field_set = FieldSet(name=name)
        db.add(field_set)
    field_set.description = description
    field_set.is_system = is_system
    await db.commit()
    await db.refresh(field_set)
    return field_set


async def assign_fields_to_set(
    db: AsyncSession,
    set_name: str,
    field_keys: Iterable[str],
) -> FieldSet:
    """
    Put fields into a set, ordered by their position in field_keys (1-based).

    Unknown keys are skipped. Fields already in the set get their order
    updated.

    Raises:
        NotFound: no set with that name
    """
    field_set = await get_field_set(db, set_name)
    if field_set is None:
        raise NotFound("Field set not found")

    keys = list(field_keys)
    result = await db.execute(select(FieldDefinition).where(FieldDefinition.key.in_(keys)))
    by_key = {f.key: f for f in result.scalars().all()}

    existing = {item.field_id: item for item in field_set.items}
    for position, key in enumerate(keys, start=1):
        definition = by_key.get(key)
        if definition is None:
            log.warning(f"Field set {set_name}: skipping unknown field {key}")
            continue
        item = existing.get(definition.id)
        if item is None:
            item = FieldSetItem(field_id=definition.id, field=definition, order=position)
            field_set.items.append(item)
            existing[definition.id] = item
        else:
            item.order = position

    await db.commit()
    await db.refresh(field_set)
    return field_set
