"""
Seed script to populate default permissions, roles and the field catalog.

Run this script after database initialization to create:
- Default system permissions
- Default system roles with their permission bundles
- Default field definitions across all four classification tiers
- Default field sets

Every step is an upsert by name/key, so the script can be re-run.

Usage:
    uv run python -m scripts.seed_permissions
"""
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db, init_db
from app.features.fields.models import Classification
from app.features.fields.registry import (
    assign_fields_to_set,
    get_field_definition,
    upsert_field_definition,
    upsert_field_set,
)
from app.features.permissions.models import Permission, Role
from app.utils import get_logger


log = get_logger(__name__)


DEFAULT_PERMISSIONS = [
    # Users
    ("user:create", "user", "create", "Create users"),
    ("user:read", "user", "read", "View users"),
    ("user:update", "user", "update", "Update users"),
    ("user:delete", "user", "delete", "Delete users"),

    # Projects
    ("project:create", "project", "create", "Create projects"),
    ("project:read", "project", "read", "View projects"),
    ("project:update", "project", "update", "Update projects"),
    ("project:delete", "project", "delete", "Delete projects"),

    # Tasks
    ("task:create", "task", "create", "Create tasks"),
    ("task:read", "task", "read", "View tasks"),
    ("task:update", "task", "update", "Update tasks"),
    ("task:delete", "task", "delete", "Delete tasks"),
    ("task:assign", "task", "assign", "Assign tasks"),

    # Teams
    ("team:create", "team", "create", "Create teams"),
    ("team:read", "team", "read", "View teams"),
    ("team:update", "team", "update", "Update teams"),
    ("team:delete", "team", "delete", "Delete teams"),

    # Time logs
    ("timelog:create", "timelog", "create", "Log time"),
    ("timelog:read", "timelog", "read", "View time logs"),
    ("timelog:update", "timelog", "update", "Update time logs"),
    ("timelog:delete", "timelog", "delete", "Delete time logs"),

    # Field tiers
    ("contact:read", "contact", "read", "View internal contact details"),
    ("user_sensitive:read", "user_sensitive", "read", "View sensitive fields"),
    ("user_highly_sensitive:read", "user_highly_sensitive", "read", "View highly sensitive fields"),
    ("export:sensitive", "export", "sensitive", "Export sensitive fields"),
    ("export:highly_sensitive", "export", "highly_sensitive", "Export highly sensitive fields"),

    # Configuration
    ("org_visibility:configure", "org_visibility", "configure", "Configure org visibility and field sets"),
]


DEFAULT_ROLES = {
    "super_admin": {
        "description": "Super administrator with all permissions",
        "permissions": "ALL"
    },
    "admin": {
        "description": "Administrator with most management permissions",
        "permissions": "ALL_BUT",
        "excluded": ["user:delete"],
    },
    "manager": {
        "description": "Project manager for projects and tasks",
        "permissions": [
            "project:create", "project:read", "project:update",
            "task:create", "task:read", "task:update", "task:assign",
            "team:read", "timelog:read", "user:read",
        ]
    },
    "member": {
        "description": "Regular member with basic project access",
        "permissions": [
            "project:read", "task:read", "task:update", "team:read",
            "timelog:create", "timelog:read", "timelog:update",
        ]
    },
    "hr_manager": {
        "description": "HR manager for sensitive personnel data",
        # export:highly_sensitive is not granted by default
        "permissions": [
            "user_sensitive:read",
            "user_highly_sensitive:read",
            "contact:read",
            "export:sensitive",
        ]
    },
}


# (key, label, classification, self_editable)
DEFAULT_FIELDS = [
    ("name", "Name", Classification.PUBLIC, False),
    ("department", "Department", Classification.PUBLIC, False),
    ("position", "Position", Classification.PUBLIC, False),
    ("landline", "Landline", Classification.PUBLIC, True),
    ("contact_work_email", "Work email", Classification.PUBLIC, False),

    ("employee_no", "Employee number", Classification.INTERNAL, False),
    ("employment_status", "Employment status", Classification.INTERNAL, False),
    ("employee_type", "Employee type", Classification.INTERNAL, False),
    ("reporting_manager", "Reporting manager", Classification.INTERNAL, False),
    ("join_date", "Join date", Classification.INTERNAL, False),
    ("work_location", "Work location", Classification.INTERNAL, False),
    ("english_name", "English name", Classification.INTERNAL, True),
    ("contact_phone", "Mobile phone", Classification.INTERNAL, True),
    ("contact_personal_email", "Personal email", Classification.INTERNAL, True),

    ("birth_date", "Birth date", Classification.SENSITIVE, False),
    ("current_address", "Current address", Classification.SENSITIVE, True),
    ("vacation_balance", "Vacation balance", Classification.SENSITIVE, False),
    ("education_degree", "Education degree", Classification.SENSITIVE, False),
    ("emergency_name", "Emergency contact", Classification.SENSITIVE, True),
    ("emergency_phone", "Emergency phone", Classification.SENSITIVE, True),
    ("contract_type", "Contract type", Classification.SENSITIVE, False),
    ("contract_end_date", "Contract end date", Classification.SENSITIVE, False),

    ("salary", "Salary", Classification.HIGHLY_SENSITIVE, False),
    ("id_type", "ID type", Classification.HIGHLY_SENSITIVE, False),
    ("id_number", "ID number", Classification.HIGHLY_SENSITIVE, False),
    ("bank_account_name", "Bank account holder", Classification.HIGHLY_SENSITIVE, False),
    ("bank_branch", "Bank branch", Classification.HIGHLY_SENSITIVE, False),
    ("bank_card_number", "Bank card number", Classification.HIGHLY_SENSITIVE, False),
    ("medical_history", "Medical history", Classification.HIGHLY_SENSITIVE, False),
]


DEFAULT_FIELD_SETS = {
    "work": ("Name, department, position and work contacts",
             ["name", "department", "position", "contact_work_email", "landline"]),
    "contact": ("Internal contact details",
                ["contact_phone", "contact_personal_email"]),
    "personal": ("Personal information",
                 ["english_name", "birth_date", "current_address", "education_degree"]),
    "emergency": ("Emergency contact", ["emergency_name", "emergency_phone"]),
    "contract": ("Contract and compensation",
                 ["contract_type", "contract_end_date", "salary"]),
    "id_document": ("Identity document", ["id_type", "id_number"]),
    "bank": ("Bank card", ["bank_account_name", "bank_branch", "bank_card_number"]),
}


async def seed_permissions(db: AsyncSession) -> dict[str, Permission]:
    """
    Create default permissions.

    Returns:
        Dictionary mapping permission names to Permission objects
    """
    log.info("Creating default permissions...")
    permissions_map = {}

    for name, resource, action, description in DEFAULT_PERMISSIONS:
        result = await db.execute(select(Permission).where(Permission.name == name))
        existing = result.scalars().first()

        if existing:
            log.debug(f"Permission '{name}' already exists, skipping")
            permissions_map[name] = existing
            continue

        permission = Permission(
            name=name,
            resource=resource,
            action=action,
            description=description
        )
        db.add(permission)
        permissions_map[name] = permission
        log.info(f"Created permission: {name}")

    await db.commit()
    log.info(f"Seeded {len(permissions_map)} permissions")
    return permissions_map


def resolve_role_permissions(role_config: dict, permissions_map: dict[str, Permission]) -> list[Permission]:
    if role_config["permissions"] == "ALL":
        return list(permissions_map.values())
    if role_config["permissions"] == "ALL_BUT":
        excluded = set(role_config.get("excluded", []))
        return [p for name, p in permissions_map.items() if name not in excluded]

    resolved = []
    for perm_name in role_config["permissions"]:
        if perm_name in permissions_map:
            resolved.append(permissions_map[perm_name])
        else:
            log.warning(f"Permission '{perm_name}' not found")
    return resolved


async def seed_roles(db: AsyncSession, permissions_map: dict[str, Permission]):
    """
    Create default roles and assign permissions.

    Existing roles keep their current bundle.
    """
    log.info("Creating default roles...")

    for role_name, role_config in DEFAULT_ROLES.items():
        result = await db.execute(select(Role).where(Role.name == role_name))
        if result.scalars().first():
            log.debug(f"Role '{role_name}' already exists, skipping")
            continue

        role = Role(
            name=role_name,
            description=role_config["description"],
            is_system=True,
        )
        role.permissions = resolve_role_permissions(role_config, permissions_map)
        db.add(role)
        log.info(f"Created role '{role_name}' with {len(role.permissions)} permissions")

    await db.commit()


async def seed_fields(db: AsyncSession):
    """Create default field definitions and field sets."""
    log.info("Creating default field definitions...")
    for key, label, classification, self_editable in DEFAULT_FIELDS:
        if await get_field_definition(db, key) is not None:
            log.debug(f"Field '{key}' already exists, skipping")
            continue
        await upsert_field_definition(db, key, label, classification, self_editable)

    log.info("Creating default field sets...")
    for name, (description, keys) in DEFAULT_FIELD_SETS.items():
        await upsert_field_set(db, name, description, is_system=True)
        await assign_fields_to_set(db, name, keys)


async def main():
    """Main function to seed permissions, roles and fields."""
    log.info("Starting seeding...")

    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            permissions_map = await seed_permissions(db)
            await seed_roles(db, permissions_map)
            await seed_fields(db)

            log.info("Seeding completed successfully!")
            for role_name, role_config in DEFAULT_ROLES.items():
                log.info(f"  - {role_name}: {role_config['description']}")

        except Exception as e:
            log.error(f"Error seeding: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
