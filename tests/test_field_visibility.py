"""Tests for the field visibility resolver."""

from datetime import timedelta

import pytest

from app.features.access_control.service import can_see_user
from app.features.field_visibility.service import (
    MANAGER_WHITELIST,
    TIER_RULES,
    get_visible_field_keys,
    redact_field_values,
)
from app.features.fields.models import Classification
from app.features.grants.service import create_temporary_grant, has_active_grant, revoke_temporary_grant
from app.features.organizations.service import update_department_leaders
from app.features.users.models import ViewScope


PUBLIC = {"name", "position"}
INTERNAL_WHITELISTED = {"employee_no", "join_date"}
INTERNAL_OTHER = {"contact_phone"}
SENSITIVE = {"salary"}
HIGHLY_SENSITIVE = {"id_number"}
ALL_KEYS = PUBLIC | INTERNAL_WHITELISTED | INTERNAL_OTHER | SENSITIVE | HIGHLY_SENSITIVE


@pytest.fixture
async def fields(factory):
    for key in PUBLIC:
        await factory.field(key, Classification.PUBLIC)
    for key in INTERNAL_WHITELISTED | INTERNAL_OTHER:
        await factory.field(key, Classification.INTERNAL)
    for key in SENSITIVE:
        await factory.field(key, Classification.SENSITIVE)
    for key in HIGHLY_SENSITIVE:
        await factory.field(key, Classification.HIGHLY_SENSITIVE)


@pytest.fixture
async def org(factory, fields):
    """Acme: root -> childA -> grandchildA1, root -> childB. Globex: one department."""
    acme = await factory.company("Acme")
    globex = await factory.company("Globex")
    root = await factory.department("Root", acme)
    child_a = await factory.department("A", acme, parent=root)
    grandchild = await factory.department("A1", acme, parent=child_a)
    child_b = await factory.department("B", acme, parent=root)
    globex_dept = await factory.department("G", globex)
    return {
        "acme": acme,
        "childA": child_a,
        "grandchildA1": grandchild,
        "childB": child_b,
        "viewer": await factory.user("Viewer", acme, child_b),
        "admin": await factory.user("Admin", acme),
        "target": await factory.user("Target", acme, grandchild),
        "sibling": await factory.user("Sibling", acme, child_b),
        "foreign": await factory.user("Foreign", globex, globex_dept),
    }


async def grant(db, org, now, field_key="salary", **overrides):
    values = dict(
        grantee_id=org["viewer"].id,
        resource="user",
        field_key=field_key,
        action="read",
        start_at=now - timedelta(hours=1),
        end_at=now + timedelta(hours=1),
        created_by_id=org["admin"].id,
    )
    values.update(overrides)
    return await create_temporary_grant(db, **values)


class TestTierTable:
    def test_every_tier_has_rules(self):
        assert set(TIER_RULES) == set(Classification)

    def test_sensitive_tiers_have_no_self_or_leader_rule(self):
        for tier in (Classification.SENSITIVE, Classification.HIGHLY_SENSITIVE):
            names = {rule.__name__ for rule in TIER_RULES[tier]}
            assert "self_view" not in names
            assert "leader_whitelist" not in names


class TestBaseline:
    async def test_plain_colleague_sees_public_only(self, db, org):
        keys = await get_visible_field_keys(db, org["viewer"].id, "user", org["sibling"].id)
        assert keys == PUBLIC

    async def test_self_sees_internal_but_not_sensitive(self, db, org):
        keys = await get_visible_field_keys(db, org["viewer"].id, "user", org["viewer"].id)
        assert keys == PUBLIC | INTERNAL_WHITELISTED | INTERNAL_OTHER

    async def test_without_target(self, db, org):
        keys = await get_visible_field_keys(db, org["viewer"].id, "user")
        assert keys == PUBLIC

    async def test_super_admin_sees_everything(self, db, factory, org):
        await factory.assign(org["viewer"], await factory.role("super_admin"))
        keys = await get_visible_field_keys(db, org["viewer"].id, "user", org["foreign"].id)
        assert keys == ALL_KEYS

    async def test_unregistered_key_never_visible(self, db, factory, org):
        await factory.assign(org["viewer"], await factory.role("super_admin"))
        keys = await get_visible_field_keys(db, org["viewer"].id, "user", org["target"].id)
        assert "shoe_size" not in keys


class TestPermissions:
    async def test_contact_read_opens_internal(self, db, factory, org):
        await factory.assign(org["viewer"], await factory.role("staff", ["contact:read"]))
        keys = await get_visible_field_keys(db, org["viewer"].id, "user", org["sibling"].id)
        assert keys == PUBLIC | INTERNAL_WHITELISTED | INTERNAL_OTHER

    async def test_sensitive_permission(self, db, factory, org):
        await factory.assign(org["viewer"], await factory.role("payroll", ["user_sensitive:read"]))
        keys = await get_visible_field_keys(db, org["viewer"].id, "user", org["sibling"].id)
        assert keys == PUBLIC | SENSITIVE

    async def test_highly_sensitive_permission(self, db, factory, org):
        await factory.assign(
            org["viewer"],
            await factory.role("hr_manager", ["user_sensitive:read", "user_highly_sensitive:read", "contact:read"]),
        )
        keys = await get_visible_field_keys(db, org["viewer"].id, "user", org["sibling"].id)
        assert keys == ALL_KEYS


class TestLeader:
    async def test_leader_sees_whitelisted_internal_fields(self, db, org):
        await update_department_leaders(db, org["childA"].id, [org["viewer"].id])

        keys = await get_visible_field_keys(db, org["viewer"].id, "user", org["target"].id)

        assert keys == PUBLIC | INTERNAL_WHITELISTED
        assert INTERNAL_WHITELISTED <= MANAGER_WHITELIST

    async def test_leader_does_not_see_sensitive(self, db, org):
        await update_department_leaders(db, org["childA"].id, [org["viewer"].id])

        keys = await get_visible_field_keys(db, org["viewer"].id, "user", org["target"].id)

        assert "salary" not in keys

    async def test_leadership_does_not_reach_sideways(self, db, org):
        await update_department_leaders(db, org["childA"].id, [org["viewer"].id])
        keys = await get_visible_field_keys(db, org["viewer"].id, "user", org["sibling"].id)
        assert keys == PUBLIC


class TestGrants:
    async def test_scoped_grant_covers_descendant_target(self, db, org, now):
        await grant(db, org, now, scope_department_id=org["childA"].id)

        assert await has_active_grant(db, org["viewer"].id, "user", "salary", "read", org["target"].id)
        assert "salary" in await get_visible_field_keys(db, org["viewer"].id, "user", org["target"].id)

    async def test_scoped_grant_misses_sibling_target(self, db, org, now):
        await grant(db, org, now, scope_department_id=org["childA"].id)

        assert not await has_active_grant(db, org["viewer"].id, "user", "salary", "read", org["sibling"].id)
        assert "salary" not in await get_visible_field_keys(db, org["viewer"].id, "user", org["sibling"].id)

    async def test_grant_opens_internal_field(self, db, org, now):
        await grant(db, org, now, field_key="contact_phone")
        keys = await get_visible_field_keys(db, org["viewer"].id, "user", org["sibling"].id)
        assert keys == PUBLIC | {"contact_phone"}

    async def test_grant_is_per_resource(self, db, org, now):
        await grant(db, org, now, resource="project")
        keys = await get_visible_field_keys(db, org["viewer"].id, "user", org["sibling"].id)
        assert "salary" not in keys

    async def test_revoked_grant_stops_working(self, db, org, now):
        created = await grant(db, org, now)
        await revoke_temporary_grant(db, created.id, org["admin"].id)
        keys = await get_visible_field_keys(db, org["viewer"].id, "user", org["sibling"].id)
        assert "salary" not in keys


class TestBoundaries:
    async def test_other_company_yields_nothing(self, db, factory, org):
        await factory.assign(
            org["viewer"],
            await factory.role("hr_manager", ["user_sensitive:read", "user_highly_sensitive:read"]),
        )
        assert await get_visible_field_keys(db, org["viewer"].id, "user", org["foreign"].id) == set()

    async def test_cross_boundary_grant_never_exceeds_row_visibility(self, db, org, now):
        await grant(db, org, now, allow_cross_boundary=True)

        assert not await can_see_user(db, org["viewer"].id, org["foreign"].id)
        assert await get_visible_field_keys(db, org["viewer"].id, "user", org["foreign"].id) == set()

    async def test_cross_boundary_grant_still_applies_inside_company(self, db, org, now):
        await grant(db, org, now, allow_cross_boundary=True)
        keys = await get_visible_field_keys(db, org["viewer"].id, "user", org["sibling"].id)
        assert keys == PUBLIC | SENSITIVE

    async def test_cross_boundary_grant_does_not_unhide(self, db, factory, org, now):
        await grant(db, org, now, allow_cross_boundary=True)
        hidden = await factory.user("Hidden", org["acme"], org["childB"], hidden=True)
        assert await get_visible_field_keys(db, org["viewer"].id, "user", hidden.id) == set()

    async def test_hidden_target_yields_nothing(self, db, factory, org):
        hidden = await factory.user("Hidden", org["acme"], org["childB"], hidden=True)
        assert await get_visible_field_keys(db, org["viewer"].id, "user", hidden.id) == set()

    async def test_self_only_viewer_sees_nothing_about_others(self, db, factory, org):
        viewer = await factory.user(company=org["acme"], department=org["childB"], view_scope=ViewScope.SELF_ONLY)
        assert await get_visible_field_keys(db, viewer.id, "user", org["sibling"].id) == set()
        assert "employee_no" in await get_visible_field_keys(db, viewer.id, "user", viewer.id)

    async def test_unknown_target(self, db, org):
        assert await get_visible_field_keys(db, org["viewer"].id, "user", "missing") == set()


class TestRedaction:
    def test_drops_invisible_keys(self):
        values = {"name": "Ada", "salary": "100", "employee_no": "E1"}
        assert redact_field_values(values, {"name", "employee_no"}) == {"name": "Ada", "employee_no": "E1"}

    def test_nothing_visible(self):
        assert redact_field_values({"salary": "100"}, set()) == {}
