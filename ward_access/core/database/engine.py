"""
Database engine configuration and session management.

Current: SQLite (async with aiosqlite)
Future: PostgreSQL (switch to asyncpg by changing DATABASE_URL)
"""
from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from ward_access.core import config

engine = create_async_engine(
    config.SQLALCHEMY_DATABASE_URL,
    # NullPool for SQLite to avoid connection pool issues
    poolclass=NullPool if config.SQLALCHEMY_DATABASE_URL.startswith("sqlite") else None,
    echo=False,
    future=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Anything left uncommitted by the route is committed on success and rolled
    back if the route raised.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def import_models() -> None:
    """Import every model module so it registers on Base.metadata."""
    from ward_access.features.users.models import User  # noqa: F401
    from ward_access.features.permissions.models import (  # noqa: F401
        PermissionOverride, PermissionManager, AssignmentPolicy, AuditLog
    )
    from ward_access.features.access_requests.models import AccessRequest  # noqa: F401
    from ward_access.features.personal_permissions.models import PersonalPermissionProfile  # noqa: F401
    from ward_access.features.notifications.models import Notification  # noqa: F401


async def init_db(bind=None):
    """
    Create all tables. Called on application startup.
    """
    from ward_access.core.database.base import Base

    import_models()
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
