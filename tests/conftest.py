"""
Shared pytest fixtures.

Provides:
- A fresh in-memory database per test
- User factory
- An HTTP client on the FastAPI app with the authenticated user swapped in
"""
import os

os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from typing import Annotated, Optional

import httpx
import pytest
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ward_access.core.database.engine import get_db, init_db
from ward_access.features.permissions.types import Identity
from ward_access.features.users.dependencies import get_current_user, identity_for
from ward_access.features.users.models import User
from ward_access.main import app


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ============================================================================
# User Fixtures
# ============================================================================

@pytest.fixture
def make_user(db):
    """Create and persist a user: ``await make_user("a@ward.org", "nurse")``."""
    async def _make(email: str, role: Optional[str] = None, name: str = "Staff") -> User:
        user = User(appwrite_id=f"aw-{email}", email=email.lower(), name=name, role=role)
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _make


def identity(user: User) -> Identity:
    return identity_for(user)


# ============================================================================
# API Client Fixtures
# ============================================================================

class AuthState:
    """Whom the next request is authenticated as."""
    user_id: Optional[str] = None

    def login(self, user: User) -> None:
        self.user_id = user.id


@pytest.fixture
def auth():
    return AuthState()


@pytest.fixture
async def client(session_factory, auth):
    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _get_current_user(session: Annotated[AsyncSession, Depends(get_db)]) -> User:
        assert auth.user_id is not None, "call auth.login(user) first"
        return await session.get(User, auth.user_id)

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user] = _get_current_user

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
