"""
FastAPI dependencies for authentication and identity.
"""
from typing import Annotated
from datetime import datetime
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ward_access.core import config
from ward_access.core.database.engine import get_db
from ward_access.features.permissions.types import Identity, Role
from ward_access.features.users.models import User
from ward_access.features.users.auth import bearer_subject, fetch_appwrite_profile
from ward_access.utils import get_logger


log = get_logger(__name__)
security = HTTPBearer()

ADMIN_ROLES = (Role.SUPER_ADMIN, Role.HOSPITAL_ADMIN)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> User:
    """
    Get the current authenticated user from the JWT bearer token.

    This dependency:
    1. Extracts the JWT from the Authorization header
    2. Verifies it and reads the Appwrite user id
    3. Looks up or creates the local user (bootstrap super admins get their role)
    4. Updates last_login_at
    """
    appwrite_user_id = bearer_subject(credentials.credentials)

    result = await db.execute(
        select(User).where(User.appwrite_id == appwrite_user_id)
    )
    user = result.scalar_one_or_none()

    if user is None:
        profile = await fetch_appwrite_profile(appwrite_user_id)
        user = User(
            appwrite_id=profile.appwrite_id,
            email=profile.email,
            name=profile.name,
            role=Role.SUPER_ADMIN.value if profile.email in config.BOOTSTRAP_SUPER_ADMINS else None,
            last_login_at=datetime.utcnow(),
        )
        db.add(user)
        log.info("Registered user %s (role=%s)", profile.email, user.role)
    else:
        user.last_login_at = datetime.utcnow()

    await db.commit()
    await db.refresh(user)

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return user


def identity_for(user: User) -> Identity:
    """Build the engine-facing identity for a stored user."""
    return Identity.authenticated(role=user.role, email=user.email, user_id=user.id)


async def get_current_identity(
    user: Annotated[User, Depends(get_current_user)]
) -> Identity:
    """The authenticated caller as ``{user_id, role, email}``."""
    return identity_for(user)


def require_roles(*roles: Role):
    """
    FastAPI dependency allowing only the given roles.

    Usage:
        @router.get("/{user_id}")
        async def read(user: User = Depends(require_roles(Role.DOCTOR))):
            ...
    """
    allowed = {role.value for role in roles}

    async def role_dependency(
        user: Annotated[User, Depends(get_current_user)]
    ) -> User:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to access this resource",
            )
        return user

    return role_dependency


get_current_admin_user = require_roles(*ADMIN_ROLES)


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
