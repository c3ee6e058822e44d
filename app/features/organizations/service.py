"""
Department mutations used by access control.
"""
from typing import Iterable, List
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFound
from app.features.organizations.models import Department
from app.features.permissions.dependencies import create_audit_log
from app.utils import get_logger


log = get_logger(__name__)


async def get_department(db: AsyncSession, department_id: str) -> Department:
    """
    Get department by ID.

    Raises:
        NotFound: the department does not exist
    """
    department = await db.get(Department, department_id)
    if department is None:
        raise NotFound("Department not found")
    return department


async def update_department_leaders(
    db: AsyncSession,
    department_id: str,
    leader_user_ids: Iterable[str],
    actor_id: str | None = None,
) -> List[str]:
    """
    Replace the leaders of a department.

    Ids are not checked against the users table; a stale id just never
    matches anyone.

    Returns:
        The stored leader ids, deduplicated in input order
    """
    department = await get_department(db, department_id)

    before = list(department.leader_user_ids or [])
    leaders = list(dict.fromkeys(uid for uid in leader_user_ids if uid))
    # assign a new list so the JSON column is flagged dirty
    department.leader_user_ids = leaders
    await db.flush()

    log.info(f"Department {department_id} leaders set to {leaders}")
    await create_audit_log(
        db,
        user_id=actor_id,
        action="update_leaders",
        resource_type="department",
        resource_id=department_id,
        company_id=department.company_id,
        details={"before": before, "after": leaders},
    )
    return leaders
