"""
User feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ward_access.core.database.engine import get_db
from ward_access.features.permissions.dependencies import create_audit_log, require_feature
from ward_access.features.permissions.types import Feature, Module, Role
from ward_access.features.users.models import User
from ward_access.features.users.schemas import UserResponse, UserPublic, UserUpdate, UserRoleUpdate
from ward_access.features.users.dependencies import get_current_user, get_current_admin_user


router = APIRouter(tags=["users"])


async def _get_user_or_404(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)]
):
    """Get current authenticated user's profile."""
    return user


@router.patch("/me", response_model=UserResponse)
async def update_current_user_profile(
    update_data: UserUpdate,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update current user's profile."""
    if update_data.name is not None:
        user.name = update_data.name

    await db.commit()
    await db.refresh(user)
    return user


@router.get("/", response_model=list[UserPublic])
async def list_users(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(require_feature(Module.NURSES, Feature.VIEW))],
    role: Role | None = None,
    skip: int = 0,
    limit: int = 50
):
    """List active staff, optionally by role (requires view on the staff directory)."""
    query = select(User).where(User.is_active == True)  # noqa: E712
    if role is not None:
        query = query.where(User.role == role.value)
    result = await db.execute(query.order_by(User.name).offset(skip).limit(limit))
    return result.scalars().all()


@router.get("/{user_id}", response_model=UserPublic)
async def get_user_by_id(
    user_id: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get public user profile by ID."""
    return await _get_user_or_404(db, user_id)


# Admin-only routes
@router.patch("/{user_id}/role", response_model=UserResponse)
async def assign_role(
    user_id: str,
    role_data: UserRoleUpdate,
    request: Request,
    admin: Annotated[User, Depends(get_current_admin_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Assign a role to a user (admin only). Only super admins can grant super_admin."""
    user = await _get_user_or_404(db, user_id)

    if user.id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot modify your own role"
        )
    if Role.SUPER_ADMIN in (role_data.role, Role.parse(user.role)) and admin.role != Role.SUPER_ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only a super admin can grant or revoke super_admin"
        )

    previous = user.role
    user.role = role_data.role.value
    await db.commit()
    await db.refresh(user)

    await create_audit_log(
        db,
        user_id=admin.id,
        action="assign_role",
        resource_type="user",
        resource_id=user.id,
        details={"from": previous, "to": user.role},
        request=request,
    )
    return user


@router.delete("/{user_id}")
async def deactivate_user(
    user_id: str,
    admin: Annotated[User, Depends(get_current_admin_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Deactivate a user account (admin only). Only super admins can deactivate a super admin."""
    user = await _get_user_or_404(db, user_id)

    if user.id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate your own account"
        )
    if Role.parse(user.role) == Role.SUPER_ADMIN and admin.role != Role.SUPER_ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only a super admin can deactivate a super admin"
        )

    user.is_active = False
    await db.commit()

    return {"message": "User deactivated successfully"}
