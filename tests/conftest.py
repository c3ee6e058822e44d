"""Pytest configuration and fixtures for the test suite."""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import jwt
import pytest
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core import config
from app.core.database.base import Base
from app.core.database.engine import import_models
from app.features.fields.models import Classification, FieldDefinition
from app.features.organizations.models import Company, Department
from app.features.permissions.models import Permission, Role, role_permissions, user_roles
from app.features.users.models import User, UserVisibility, ViewScope


import_models()


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


class Factory:
    """Builds committed rows for tests."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    async def company(self, name: Optional[str] = None) -> Company:
        n = self._next()
        company = Company(name=name or f"Company {n}", code=f"C{n}")
        self.db.add(company)
        await self.db.commit()
        return company

    async def department(
        self,
        name: str,
        company: Optional[Company] = None,
        parent: Optional[Department] = None,
        leaders: Iterable[str] = (),
    ) -> Department:
        department = Department(
            name=name,
            company_id=company.id if company else None,
            parent_id=parent.id if parent else None,
            leader_user_ids=list(leaders),
        )
        self.db.add(department)
        await self.db.commit()
        return department

    async def user(
        self,
        name: Optional[str] = None,
        company: Optional[Company] = None,
        department: Optional[Department] = None,
        hidden: Optional[bool] = None,
        view_scope: Optional[ViewScope] = None,
        is_active: bool = True,
    ) -> User:
        n = self._next()
        user = User(
            email=f"user{n}@acme.com",
            name=name or f"User {n}",
            company_id=company.id if company else None,
            department_id=department.id if department else None,
            is_active=is_active,
        )
        if hidden is not None or view_scope is not None:
            user.visibility = UserVisibility(
                hidden=bool(hidden),
                view_scope=view_scope or ViewScope.ALL,
            )
        self.db.add(user)
        await self.db.commit()
        return user

    async def permission(self, resource: str, action: str) -> Permission:
        permission = Permission(name=f"{resource}:{action}", resource=resource, action=action)
        self.db.add(permission)
        await self.db.commit()
        return permission

    async def role(self, name: str, permissions: Iterable[str] = ()) -> Role:
        """Role carrying the given "resource:action" permissions, creating them as needed."""
        role = Role(name=name, description=f"{name} role")
        self.db.add(role)
        await self.db.commit()

        for perm_name in permissions:
            resource, action = perm_name.split(":", 1)
            permission_id = (
                await self.db.execute(select(Permission.id).where(Permission.name == perm_name))
            ).scalar_one_or_none()
            if permission_id is None:
                permission_id = (await self.permission(resource, action)).id
            await self.db.execute(
                insert(role_permissions).values(role_id=role.id, permission_id=permission_id)
            )
        await self.db.commit()
        return role

    async def assign(self, user: User, *roles: Role) -> None:
        for role in roles:
            await self.db.execute(insert(user_roles).values(user_id=user.id, role_id=role.id))
        await self.db.commit()

    async def field(
        self,
        key: str,
        classification: Classification,
        label: Optional[str] = None,
    ) -> FieldDefinition:
        definition = FieldDefinition(key=key, label=label or key.title(), classification=classification)
        self.db.add(definition)
        await self.db.commit()
        return definition


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


def make_token(user_id: str, expires_in: timedelta = timedelta(hours=1)) -> str:
    """Bearer token signed the way the identity service signs them."""
    payload = {"sub": user_id, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


@pytest.fixture
def auth_headers():
    """auth_headers(user) -> Authorization header for that user."""
    def build(user: User) -> dict:
        return {"Authorization": f"Bearer {make_token(user.id)}"}
    return build
