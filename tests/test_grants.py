"""Tests for the temporary access grant store."""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import InvalidRange, NotFound
from app.features.grants import service as grants_service
from app.features.grants.service import (
    as_utc,
    create_temporary_grant,
    granted_field_keys,
    has_active_cross_boundary_grant,
    has_active_grant,
    list_active_grants,
    revoke_temporary_grant,
)


@pytest.fixture
async def org(factory):
    """root -> childA -> grandchildA1, root -> childB, one user in each leaf."""
    company = await factory.company()
    root = await factory.department("Root", company)
    child_a = await factory.department("A", company, parent=root)
    grandchild = await factory.department("A1", company, parent=child_a)
    child_b = await factory.department("B", company, parent=root)
    return {
        "company": company,
        "childA": child_a,
        "grandchildA1": grandchild,
        "childB": child_b,
        "grantee": await factory.user(company=company),
        "admin": await factory.user(company=company),
        "target": await factory.user(company=company, department=grandchild),
        "sibling": await factory.user(company=company, department=child_b),
    }


async def grant(db, org, now, **overrides):
    values = dict(
        grantee_id=org["grantee"].id,
        resource="user",
        field_key="salary",
        action="read",
        start_at=now - timedelta(hours=1),
        end_at=now + timedelta(hours=1),
        created_by_id=org["admin"].id,
    )
    values.update(overrides)
    return await create_temporary_grant(db, **values)


class TestCreate:
    async def test_rejects_inverted_window(self, db, org, now):
        with pytest.raises(InvalidRange):
            await grant(db, org, now, start_at=now, end_at=now - timedelta(seconds=1))

    async def test_zero_length_window_is_allowed(self, db, org, now):
        created = await grant(db, org, now, start_at=now, end_at=now)
        assert created.id

    async def test_unknown_grantee(self, db, org, now):
        with pytest.raises(NotFound):
            await grant(db, org, now, grantee_id="missing")

    async def test_unknown_scope_department(self, db, org, now):
        with pytest.raises(NotFound):
            await grant(db, org, now, scope_department_id="missing")
        assert await list_active_grants(db, org["grantee"].id) == []

    async def test_failed_audit_leaves_nothing_behind(self, db, org, now, monkeypatch):
        grantee_id = org["grantee"].id

        async def broken_audit(*args, **kwargs):
            raise RuntimeError("audit store down")

        monkeypatch.setattr(grants_service, "create_audit_log", broken_audit)
        with pytest.raises(RuntimeError):
            await grant(db, org, now)
        await db.rollback()

        assert await list_active_grants(db, grantee_id) == []

    def test_naive_datetimes_are_utc(self):
        naive = datetime(2024, 1, 1, 12, 0)
        assert as_utc(naive) == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_offsets_are_normalised(self):
        plus_two = timezone(timedelta(hours=2))
        assert as_utc(datetime(2024, 1, 1, 14, 0, tzinfo=plus_two)) == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestActiveWindow:
    async def test_active_inside_window(self, db, org, now):
        await grant(db, org, now)
        assert await has_active_grant(db, org["grantee"].id, "user", "salary", "read")

    async def test_not_yet_started(self, db, org, now):
        await grant(db, org, now, start_at=now + timedelta(hours=1), end_at=now + timedelta(hours=2))
        assert not await has_active_grant(db, org["grantee"].id, "user", "salary", "read")

    async def test_expired(self, db, org, now):
        await grant(db, org, now, start_at=now - timedelta(hours=2), end_at=now - timedelta(hours=1))
        assert not await has_active_grant(db, org["grantee"].id, "user", "salary", "read")

    async def test_explicit_now(self, db, org, now):
        await grant(db, org, now)
        later = now + timedelta(hours=3)
        assert not await has_active_grant(db, org["grantee"].id, "user", "salary", "read", now=later)

    async def test_must_match_field_action_and_resource(self, db, org, now):
        await grant(db, org, now)
        grantee = org["grantee"].id
        assert not await has_active_grant(db, grantee, "user", "bank_card_number", "read")
        assert not await has_active_grant(db, grantee, "user", "salary", "export")
        assert not await has_active_grant(db, grantee, "project", "salary", "read")
        assert not await has_active_grant(db, org["admin"].id, "user", "salary", "read")

    async def test_list_active(self, db, org, now):
        active = await grant(db, org, now)
        await grant(db, org, now, field_key="id_number", end_at=now - timedelta(minutes=1),
                    start_at=now - timedelta(hours=1))

        listed = await list_active_grants(db, org["grantee"].id)
        assert [g.id for g in listed] == [active.id]


class TestDepartmentScope:
    async def test_covers_descendant_target(self, db, org, now):
        await grant(db, org, now, scope_department_id=org["childA"].id)
        assert await has_active_grant(
            db, org["grantee"].id, "user", "salary", "read", target_user_id=org["target"].id
        )

    async def test_does_not_cover_sibling_department(self, db, org, now):
        await grant(db, org, now, scope_department_id=org["childA"].id)
        assert not await has_active_grant(
            db, org["grantee"].id, "user", "salary", "read", target_user_id=org["sibling"].id
        )

    async def test_scoped_grant_needs_a_target(self, db, org, now):
        await grant(db, org, now, scope_department_id=org["childA"].id)
        assert not await has_active_grant(db, org["grantee"].id, "user", "salary", "read")

    async def test_any_matching_grant_counts(self, db, org, now):
        await grant(db, org, now, scope_department_id=org["childA"].id)
        await grant(db, org, now, scope_department_id=org["childB"].id)
        assert await has_active_grant(
            db, org["grantee"].id, "user", "salary", "read", target_user_id=org["sibling"].id
        )

    async def test_granted_field_keys_respects_scope(self, db, org, now):
        await grant(db, org, now, scope_department_id=org["childA"].id)
        await grant(db, org, now, field_key="employee_no")

        grantee = org["grantee"].id
        assert await granted_field_keys(db, grantee, "user", "read", org["target"].id) == {"salary", "employee_no"}
        assert await granted_field_keys(db, grantee, "user", "read", org["sibling"].id) == {"employee_no"}


class TestRevoke:
    async def test_revoked_grant_is_inactive(self, db, org, now):
        created = await grant(db, org, now)
        revoked = await revoke_temporary_grant(db, created.id, org["admin"].id)

        assert revoked.revoked_at is not None
        assert revoked.revoked_by_id == org["admin"].id
        assert not await has_active_grant(db, org["grantee"].id, "user", "salary", "read")

    async def test_revoke_is_idempotent(self, db, org, now):
        created = await grant(db, org, now)
        first = await revoke_temporary_grant(db, created.id, org["admin"].id)
        stamp = first.revoked_at

        second = await revoke_temporary_grant(db, created.id, org["grantee"].id)

        assert second.revoked_at == stamp
        assert second.revoked_by_id == org["admin"].id

    async def test_unknown_grant(self, db, org):
        with pytest.raises(NotFound):
            await revoke_temporary_grant(db, "missing", org["admin"].id)


class TestCrossBoundary:
    async def test_requires_flag(self, db, org, now):
        await grant(db, org, now)
        assert not await has_active_cross_boundary_grant(db, org["grantee"].id, "user")

    async def test_any_field_of_resource_qualifies(self, db, org, now):
        await grant(db, org, now, field_key="employee_no", allow_cross_boundary=True)
        assert await has_active_cross_boundary_grant(db, org["grantee"].id, "user")
        assert not await has_active_cross_boundary_grant(db, org["grantee"].id, "project")

    async def test_expired_cross_boundary(self, db, org, now):
        await grant(db, org, now, allow_cross_boundary=True,
                    start_at=now - timedelta(hours=2), end_at=now - timedelta(hours=1))
        assert not await has_active_cross_boundary_grant(db, org["grantee"].id, "user")
