"""
Permission resolution and administration routes.

Provides the caller's effective permissions, feature checks, and the
manager-only surfaces for overrides, the manager registry, assignment
policies and the audit log.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ward_access.core.database.engine import get_db
from ward_access.core.errors import AccessControlError
from ward_access.features.permissions import store
from ward_access.features.permissions.dependencies import (
    create_audit_log,
    get_access_snapshot,
    require_permission_manager,
    require_super_admin,
)
from ward_access.features.permissions.matrix import MODULE_FEATURE_CATALOG
from ward_access.features.permissions.models import AuditLog
from ward_access.features.permissions.resolver import (
    AccessSnapshot,
    effective_permissions,
    is_feature_restricted,
    is_permission_manager,
    resolve,
)
from ward_access.features.permissions.schemas import (
    AssignmentPolicyCheck,
    AssignmentPolicyCheckResponse,
    AssignmentPolicySchema,
    AuditLogListResponse,
    AuditLogResponse,
    FeatureCheckResponse,
    FlagsResponse,
    ManagerCreate,
    ManagerListResponse,
    ModuleCatalogEntry,
    ModulePermissionResponse,
    MyPermissionsResponse,
    OverrideEntryResponse,
    OverrideUpdate,
)
from ward_access.features.permissions.types import Identity, Module, NormalizedEmail
from ward_access.features.users.dependencies import get_current_identity
from ward_access.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Resolution Routes
# ============================================================================

@router.get("/catalog", response_model=List[ModuleCatalogEntry])
async def get_catalog():
    """Modules and the features each one supports."""
    return [
        ModuleCatalogEntry(module=module, features=list(features))
        for module, features in MODULE_FEATURE_CATALOG.items()
    ]


@router.get("/me", response_model=MyPermissionsResponse)
async def get_my_permissions(
    identity: Annotated[Identity, Depends(get_current_identity)],
    snapshot: Annotated[AccessSnapshot, Depends(get_access_snapshot)],
):
    """Effective permissions of the caller on every module."""
    view = effective_permissions(identity, snapshot)
    return MyPermissionsResponse(
        email=identity.email,
        role=identity.role.value if identity.role else None,
        is_permission_manager=is_permission_manager(identity, snapshot),
        modules=[
            ModulePermissionResponse(
                module=module,
                flags=FlagsResponse.from_flags(entry["flags"]),
                restricted_features=entry["restricted_features"],
                usable_features=entry["usable_features"],
                has_override=entry["has_override"],
            )
            for module, entry in view.items()
        ],
    )


@router.get("/me/{module}", response_model=FlagsResponse)
async def get_my_module_permissions(
    module: str,
    identity: Annotated[Identity, Depends(get_current_identity)],
    snapshot: Annotated[AccessSnapshot, Depends(get_access_snapshot)],
):
    """Effective flags on one module. Unknown modules resolve to no access."""
    return FlagsResponse.from_flags(resolve(identity, module, snapshot))


@router.get("/check", response_model=FeatureCheckResponse)
async def check_feature(
    module: str,
    feature: str,
    identity: Annotated[Identity, Depends(get_current_identity)],
    snapshot: Annotated[AccessSnapshot, Depends(get_access_snapshot)],
):
    """Whether the caller can use a feature, and whether access may be requested."""
    flag_granted = resolve(identity, module, snapshot).allows(feature)
    restricted = is_feature_restricted(identity, module, feature, snapshot)
    return FeatureCheckResponse(
        module=module,
        feature=feature,
        allowed=flag_granted and not restricted,
        flag_granted=flag_granted,
        restricted=restricted,
        can_request_access=restricted,
    )


# ============================================================================
# Override Routes (managers only)
# ============================================================================

@router.get("/overrides", response_model=List[OverrideEntryResponse])
async def list_overrides(
    manager: Annotated[Identity, Depends(require_permission_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """All override entries."""
    entries = await store.list_overrides(db)
    return [OverrideEntryResponse.build(entry, entry.email) for entry in entries]


@router.get("/overrides/{email}", response_model=OverrideEntryResponse)
async def get_override(
    email: str,
    manager: Annotated[Identity, Depends(require_permission_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Override entry for one email (empty when none)."""
    normalized = NormalizedEmail.parse(email)
    return OverrideEntryResponse.build(await store.get_override(db, normalized), normalized)


@router.put("/overrides/{email}/{module}", response_model=OverrideEntryResponse)
async def set_override(
    email: str,
    module: str,
    override: OverrideUpdate,
    request: Request,
    manager: Annotated[Identity, Depends(require_permission_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Replace the override of one module for one email."""
    entry = await store.set_override(
        db,
        email,
        module,
        flags=override.flags(),
        restricted_features=override.restricted_features,
        updated_by_id=manager.user_id,
    )
    await create_audit_log(
        db,
        user_id=manager.user_id,
        action="set_override",
        resource_type="override",
        resource_id=entry.email,
        details={"module": Module.require(module, "module").value, **override.model_dump()},
        request=request,
    )
    return OverrideEntryResponse.build(entry, entry.email)


@router.delete("/overrides/{email}/{module}", response_model=OverrideEntryResponse)
async def clear_override(
    email: str,
    module: str,
    request: Request,
    manager: Annotated[Identity, Depends(require_permission_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Remove one module from an override so the role default applies again."""
    normalized = NormalizedEmail.parse(email)
    entry = await store.clear_override(db, normalized, module)
    await create_audit_log(
        db,
        user_id=manager.user_id,
        action="clear_override",
        resource_type="override",
        resource_id=normalized,
        details={"module": module},
        request=request,
    )
    return OverrideEntryResponse.build(entry, normalized)


# ============================================================================
# Manager Registry Routes
# ============================================================================

@router.get("/managers", response_model=ManagerListResponse)
async def list_managers(
    manager: Annotated[Identity, Depends(require_permission_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Registered permission managers (super admins are implicit)."""
    return ManagerListResponse(managers=sorted(await store.list_managers(db)))


@router.post("/managers", response_model=ManagerListResponse, status_code=status.HTTP_201_CREATED)
async def add_manager(
    data: ManagerCreate,
    request: Request,
    admin: Annotated[Identity, Depends(require_super_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Register a permission manager (super admin only)."""
    managers = await store.add_manager(db, data.email, added_by_id=admin.user_id)
    await create_audit_log(
        db,
        user_id=admin.user_id,
        action="add_manager",
        resource_type="permission_manager",
        resource_id=NormalizedEmail.parse(data.email),
        request=request,
    )
    return ManagerListResponse(managers=sorted(managers))


@router.delete("/managers/{email}", response_model=ManagerListResponse)
async def remove_manager(
    email: str,
    request: Request,
    admin: Annotated[Identity, Depends(require_super_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Unregister a permission manager (super admin only)."""
    managers = await store.remove_manager(db, email)
    await create_audit_log(
        db,
        user_id=admin.user_id,
        action="remove_manager",
        resource_type="permission_manager",
        resource_id=NormalizedEmail.parse(email),
        request=request,
    )
    return ManagerListResponse(managers=sorted(managers))


# ============================================================================
# Assignment Policy Routes
# ============================================================================

@router.get("/assignment-policies", response_model=dict[str, AssignmentPolicySchema])
async def get_assignment_policies(
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Assignment policies for floors, rooms and patients."""
    return await store.get_assignment_policies(db)


@router.put("/assignment-policies", response_model=dict[str, AssignmentPolicySchema])
async def update_assignment_policies(
    policies: dict[str, AssignmentPolicySchema],
    request: Request,
    manager: Annotated[Identity, Depends(require_permission_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Replace the policies of the given assignment types (managers only)."""
    updated = await store.set_assignment_policies(
        db, {kind: policy.model_dump() for kind, policy in policies.items()}
    )
    await create_audit_log(
        db,
        user_id=manager.user_id,
        action="update",
        resource_type="assignment_policy",
        details={kind: policy.model_dump() for kind, policy in policies.items()},
        request=request,
    )
    return updated


@router.post("/assignment-policies/check", response_model=AssignmentPolicyCheckResponse)
async def check_assignment(
    check: AssignmentPolicyCheck,
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Whether the caller's role may make this assignment."""
    try:
        await store.assert_assignment_allowed(
            db,
            check.assignment_type,
            identity.role.value if identity.role else None,
            check.assignee_role,
        )
    except AccessControlError as e:
        return AssignmentPolicyCheckResponse(allowed=False, reason=e.detail)
    return AssignmentPolicyCheckResponse(allowed=True)


# ============================================================================
# Audit Log Routes
# ============================================================================

@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    manager: Annotated[Identity, Depends(require_permission_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 50,
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    resource_type: Optional[str] = None,
):
    """List audit logs with optional filtering (managers only)."""
    stmt = select(AuditLog)

    if user_id:
        stmt = stmt.where(AuditLog.user_id == user_id)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if resource_type:
        stmt = stmt.where(AuditLog.resource_type == resource_type)

    count_stmt = select(func.count()).select_from(stmt.subquery())
    total = (await db.execute(count_stmt)).scalar() or 0

    stmt = stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(skip).limit(limit)
    result = await db.execute(stmt)
    logs = result.scalars().all()

    pages = (total + limit - 1) // limit if limit > 0 else 0
    page = (skip // limit) + 1 if limit > 0 else 1

    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(entry) for entry in logs],
        total=total,
        page=page,
        page_size=limit,
        pages=pages
    )
