"""
Async engine, session factory and table bootstrap.

DATABASE_URL picks the backend: sqlite+aiosqlite for local runs and tests,
postgresql+asyncpg in deployments. Nothing below depends on which one.
"""
from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.core import config


_is_sqlite = config.SQLALCHEMY_DATABASE_URL.startswith("sqlite")

engine = create_async_engine(
    config.SQLALCHEMY_DATABASE_URL,
    # a file-backed SQLite database must not be shared across pooled connections
    poolclass=NullPool if _is_sqlite else None,
    echo=config.SQL_ECHO,
)

# Services read attributes after their audit-log commit, so nothing may expire
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    One session per request.

    Usage in FastAPI routes:
        @router.get("/definitions")
        async def list_definitions(db: AsyncSession = Depends(get_db)):
            return await list_field_definitions(db)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def import_models() -> None:
    """Import every model module so that Base.metadata knows all tables."""
    from app.features.organizations.models import Company, Department  # noqa: F401
    from app.features.users.models import User, UserVisibility  # noqa: F401
    from app.features.permissions.models import Permission, Role, AuditLog  # noqa: F401
    from app.features.fields.models import (  # noqa: F401
        FieldDefinition, FieldSet, FieldSetItem, UserFieldValue
    )
    from app.features.grants.models import TemporaryAccessGrant  # noqa: F401


async def init_db():
    """Create missing tables. Existing tables are left untouched."""
    from app.core.database.base import Base

    import_models()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
