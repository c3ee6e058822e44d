"""Tests for the field classification registry."""

import pytest
from sqlalchemy import select

from app.core.exceptions import NotFound
from app.features.fields.models import Classification, FieldSetItem, UserFieldValue
from app.features.fields.registry import (
    assign_fields_to_set,
    delete_field_definition,
    get_field_definition,
    list_field_definitions,
    list_field_sets,
    upsert_field_definition,
    upsert_field_set,
)


class TestClassification:
    def test_tiers_are_ordered(self):
        assert Classification.PUBLIC < Classification.INTERNAL < Classification.SENSITIVE
        assert Classification.SENSITIVE < Classification.HIGHLY_SENSITIVE
        assert max(Classification) == Classification.HIGHLY_SENSITIVE

    def test_rank(self):
        assert Classification.PUBLIC.rank == 0
        assert Classification.HIGHLY_SENSITIVE.rank == 3


class TestFieldDefinitions:
    async def test_upsert_creates_then_updates(self, db):
        created = await upsert_field_definition(db, "salary", "Salary", Classification.SENSITIVE)
        updated = await upsert_field_definition(db, "salary", "Base salary", "HIGHLY_SENSITIVE", True)

        assert updated.id == created.id
        assert updated.label == "Base salary"
        assert updated.classification == Classification.HIGHLY_SENSITIVE
        assert updated.self_editable is True
        assert len(await list_field_definitions(db)) == 1

    async def test_list_is_ordered_by_key(self, db, factory):
        await factory.field("position", Classification.PUBLIC)
        await factory.field("employee_no", Classification.INTERNAL)

        assert [f.key for f in await list_field_definitions(db)] == ["employee_no", "position"]

    async def test_unknown_key(self, db):
        assert await get_field_definition(db, "nope") is None

    async def test_delete_cascades_values_and_set_items(self, db, factory):
        user = await factory.user()
        salary = await factory.field("salary", Classification.SENSITIVE)
        db.add(UserFieldValue(user_id=user.id, field_id=salary.id, value="100"))
        await db.commit()
        await upsert_field_set(db, "contract")
        await assign_fields_to_set(db, "contract", ["salary"])

        assert await delete_field_definition(db, "salary")

        assert await get_field_definition(db, "salary") is None
        assert (await db.execute(select(UserFieldValue))).scalars().all() == []
        assert (await db.execute(select(FieldSetItem))).scalars().all() == []

    async def test_delete_missing(self, db):
        assert not await delete_field_definition(db, "nope")


class TestFieldSets:
    async def test_assign_orders_by_position(self, db, factory):
        await factory.field("name", Classification.PUBLIC)
        await factory.field("position", Classification.PUBLIC)
        await upsert_field_set(db, "work", "Work info", is_system=True)

        field_set = await assign_fields_to_set(db, "work", ["position", "name"])

        assert [(item.field.key, item.order) for item in field_set.items] == [("position", 1), ("name", 2)]

    async def test_unknown_keys_are_skipped(self, db, factory):
        await factory.field("name", Classification.PUBLIC)
        await upsert_field_set(db, "work")

        field_set = await assign_fields_to_set(db, "work", ["ghost", "name"])

        assert [(item.field.key, item.order) for item in field_set.items] == [("name", 2)]

    async def test_unknown_set(self, db):
        with pytest.raises(NotFound):
            await assign_fields_to_set(db, "nope", ["name"])

    async def test_upsert_set(self, db):
        await upsert_field_set(db, "bank", "Bank card")
        await upsert_field_set(db, "bank", "Bank card details", is_system=True)

        sets = await list_field_sets(db)
        assert len(sets) == 1
        assert sets[0].description == "Bank card details"
        assert sets[0].is_system is True
