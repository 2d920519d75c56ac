"""
Personal permission routes.

Only the owner writes their own profile (``PUT /my``); there is no route
that edits someone else's profile.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ward_access.core.database.engine import get_db
from ward_access.features.permissions.dependencies import create_audit_log
from ward_access.features.permissions.types import Identity, Role
from ward_access.features.personal_permissions import service
from ward_access.features.personal_permissions.schemas import (
    CatalogModule,
    DelegationCheckResponse,
    PersonalCatalogResponse,
    PersonalPermissionsResponse,
    PersonalPermissionsUpdate,
)
from ward_access.features.users.dependencies import get_current_identity, require_roles
from ward_access.features.users.models import User


router = APIRouter(tags=["personal-permissions"])

# Roles that may inspect another user's delegation grid
_INSPECTOR_ROLES = (Role.SUPER_ADMIN, Role.HOSPITAL_ADMIN, Role.DOCTOR, Role.HEAD_NURSE)


@router.get("/catalog", response_model=PersonalCatalogResponse)
async def get_catalog(
    identity: Annotated[Identity, Depends(get_current_identity)]
):
    """What the caller's role can delegate."""
    return PersonalCatalogResponse(
        role=identity.role.value if identity.role else None,
        modules=[
            CatalogModule(module=module, actions=list(actions))
            for module, actions in service.catalog_for(identity.role).items()
        ],
    )


@router.get("/my", response_model=PersonalPermissionsResponse)
async def get_my_personal_permissions(
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return PersonalPermissionsResponse(
        owner_id=identity.user_id,
        role=identity.role.value if identity.role else None,
        permissions=await service.get_personal_permissions(db, identity.user_id),
    )


@router.put("/my", response_model=PersonalPermissionsResponse)
async def update_my_personal_permissions(
    update: PersonalPermissionsUpdate,
    request: Request,
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Replace the caller's delegation grid."""
    permissions = await service.set_personal_permissions(db, identity, update.permissions)
    await create_audit_log(
        db,
        user_id=identity.user_id,
        action="update",
        resource_type="personal_permissions",
        resource_id=identity.user_id,
        details=permissions,
        request=request,
    )
    return PersonalPermissionsResponse(
        owner_id=identity.user_id,
        role=identity.role.value if identity.role else None,
        permissions=permissions,
    )


@router.get("/check", response_model=DelegationCheckResponse)
async def check_delegation(
    owner_id: str,
    module: str,
    action: str,
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Whether the owner delegated the action, and whether the caller may use it."""
    return DelegationCheckResponse(
        owner_id=owner_id,
        module=module,
        action=action,
        delegated=await service.is_delegated(db, owner_id, module, action),
        allowed=await service.can_act_for(db, identity, owner_id, module, action),
    )


@router.get("/{user_id}", response_model=PersonalPermissionsResponse)
async def get_user_personal_permissions(
    user_id: str,
    viewer: Annotated[User, Depends(require_roles(*_INSPECTOR_ROLES))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    permissions = await service.get_personal_permissions(db, user_id)
    owner = await db.get(User, user_id)
    return PersonalPermissionsResponse(owner_id=user_id, role=owner.role, permissions=permissions)
