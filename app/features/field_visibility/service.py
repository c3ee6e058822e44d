"""
Field visibility resolver.

Answers "which field keys may this viewer read for this target". Checks run
in a fixed order and each can end the decision early:

1. company boundary: a target in another company is invisible unless the
   viewer holds an active cross-boundary grant on the resource
2. row visibility: fields never outlive the row (can_see_user), and that
   check keeps the company boundary even when a grant passed step 1
3. super admin: every registered field
4. per-field classification rules from TIER_RULES

Everything a rule needs is fetched once into a VisibilityContext before the
per-field loop, so the loop itself issues no queries.
"""
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.access_control.service import (
    get_accessible_user_where,
    user_matches_filter,
)
from app.features.fields.models import Classification, FieldDefinition
from app.features.fields.registry import list_field_definitions
from app.features.grants.service import granted_field_keys, has_active_cross_boundary_grant
from app.features.organizations.graph import load_org_snapshot
from app.features.permissions.dependencies import get_user_permission_pairs, is_super_admin
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


# INTERNAL fields a department leader sees for the people they lead
MANAGER_WHITELIST = frozenset({
    "name",
    "department",
    "position",
    "employee_no",
    "employment_status",
    "join_date",
    "contact_work_email",
})

READ = "read"


@dataclass(frozen=True)
class VisibilityContext:
    viewer_id: str
    resource: str
    target_user_id: Optional[str]
    permissions: frozenset[tuple[str, str]]
    is_leader: bool
    granted_keys: frozenset[str]

    @property
    def is_self(self) -> bool:
        return self.target_user_id is not None and self.target_user_id == self.viewer_id


Rule = Callable[[VisibilityContext, FieldDefinition], bool]


def always(ctx: VisibilityContext, field: FieldDefinition) -> bool:
    return True


def self_view(ctx: VisibilityContext, field: FieldDefinition) -> bool:
    return ctx.is_self


def holds_permission(resource: str, action: str) -> Rule:
    def rule(ctx: VisibilityContext, field: FieldDefinition) -> bool:
        return (resource, action) in ctx.permissions
    rule.__name__ = f"holds_{resource}_{action}"
    return rule


def leader_whitelist(ctx: VisibilityContext, field: FieldDefinition) -> bool:
    return ctx.is_leader and field.key in MANAGER_WHITELIST


def temporary_grant(ctx: VisibilityContext, field: FieldDefinition) -> bool:
    return field.key in ctx.granted_keys


# Evaluated left to right; the first rule that passes admits the field.
# SENSITIVE and above deliberately have no self-view or leader rule.
TIER_RULES: Mapping[Classification, tuple[Rule, ...]] = {
    Classification.PUBLIC: (always,),
    Classification.INTERNAL: (
        self_view,
        holds_permission("contact", READ),
        leader_whitelist,
        temporary_grant,
    ),
    Classification.SENSITIVE: (
        holds_permission("user_sensitive", READ),
        temporary_grant,
    ),
    Classification.HIGHLY_SENSITIVE: (
        holds_permission("user_highly_sensitive", READ),
        temporary_grant,
    ),
}


def field_is_visible(ctx: VisibilityContext, field: FieldDefinition) -> bool:
    rules = TIER_RULES.get(field.classification, ())
    return any(rule(ctx, field) for rule in rules)


async def get_visible_field_keys(
    db: AsyncSession,
    viewer_id: str,
    resource: str,
    target_user_id: Optional[str] = None,
) -> set[str]:
    """
    Field keys viewer_id may read on resource, optionally for one target.

    Never raises for a denial; an invisible or unknown target yields an empty
    set.
    """
    fields = await list_field_definitions(db)
    super_admin = await is_super_admin(db, viewer_id)
    snapshot = None

    if target_user_id and not super_admin:
        result = await db.execute(
            select(User.id, User.company_id).where(User.id.in_([viewer_id, target_user_id]))
        )
        companies = {row.id: row.company_id for row in result.all()}
        viewer_company = companies.get(viewer_id)
        target_company = companies.get(target_user_id)

        if viewer_company and target_company and viewer_company != target_company:
            if not await has_active_cross_boundary_grant(db, viewer_id, resource, READ):
                log.debug(f"{viewer_id} -> {target_user_id}: different company, no cross-boundary grant")
                return set()

        snapshot = await load_org_snapshot(db)
        # the row filter keeps its company clause, so fields never outlive the row
        row_filter = await get_accessible_user_where(db, viewer_id, snapshot)
        if not await user_matches_filter(db, target_user_id, row_filter):
            log.debug(f"{viewer_id} -> {target_user_id}: row not visible")
            return set()

    if super_admin:
        return {f.key for f in fields}

    is_leader = False
    if target_user_id and target_user_id != viewer_id:
        department_id = (
            await db.execute(select(User.department_id).where(User.id == target_user_id))
        ).scalar_one_or_none()
        is_leader = snapshot.leads(viewer_id, department_id) if snapshot is not None else False

    ctx = VisibilityContext(
        viewer_id=viewer_id,
        resource=resource,
        target_user_id=target_user_id,
        permissions=await get_user_permission_pairs(db, viewer_id),
        is_leader=is_leader,
        granted_keys=frozenset(
            await granted_field_keys(db, viewer_id, resource, READ, target_user_id, snapshot)
        ),
    )

    visible = {f.key for f in fields if field_is_visible(ctx, f)}
    log.debug(f"{viewer_id} -> {target_user_id or '-'} on {resource}: {len(visible)}/{len(fields)} fields visible")
    return visible


def redact_field_values(values: Mapping[str, object], visible_keys: set[str]) -> dict:
    """Drop every value whose key is not visible."""
    return {key: value for key, value in values.items() if key in visible_keys}
