"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field

from ward_access.features.permissions.types import Role


class UserUpdate(BaseModel):
    """Schema for updating the current user's profile."""
    name: str | None = Field(None, min_length=1, max_length=255)


class UserRoleUpdate(BaseModel):
    """Schema for assigning a role (admin only)."""
    role: Role


class UserResponse(BaseModel):
    """Schema for user responses."""
    id: str
    email: str
    name: str
    role: str | None = None
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserPublic(BaseModel):
    """Public user information (limited fields)."""
    id: str
    name: str
    role: str | None = None

    model_config = {"from_attributes": True}
