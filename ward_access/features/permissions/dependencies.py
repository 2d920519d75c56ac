"""
Permission checking dependencies and audit logging helpers.

Implements:
- Snapshot loading for the resolver
- FastAPI dependencies for route protection (module features, managers)
- Audit logging
"""
from typing import Annotated, Dict, Any, Optional
from fastapi import Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ward_access.core.database.engine import get_db
from ward_access.features.permissions.models import AuditLog
from ward_access.features.permissions.resolver import (
    AccessSnapshot,
    can_use_feature,
    is_feature_restricted,
    is_permission_manager,
)
from ward_access.features.permissions.store import load_access_snapshot
from ward_access.features.permissions.types import Feature, Identity, Module, Role
from ward_access.features.users.dependencies import get_current_user, identity_for
from ward_access.features.users.models import User
from ward_access.utils import get_logger


log = get_logger(__name__)


async def get_access_snapshot(
    db: Annotated[AsyncSession, Depends(get_db)]
) -> AccessSnapshot:
    """Current overrides and manager registry, read once per request."""
    return await load_access_snapshot(db)


# ============================================================================
# FastAPI Dependencies
# ============================================================================

def require_feature(module: Module, feature: Feature):
    """
    FastAPI dependency requiring a usable module feature.

    Usage:
        @router.post("/beds")
        async def create_bed(
            user: User = Depends(require_feature(Module.BEDS, Feature.CREATE))
        ):
            ...

    Raises:
        HTTPException: 403 when the flag is missing or the feature is restricted
    """
    async def feature_dependency(
        current_user: Annotated[User, Depends(get_current_user)],
        snapshot: Annotated[AccessSnapshot, Depends(get_access_snapshot)],
    ) -> User:
        identity = identity_for(current_user)
        if can_use_feature(identity, module, feature, snapshot):
            return current_user

        restricted = is_feature_restricted(identity, module, feature, snapshot)
        log.info("Denied %s on %s for %s (restricted=%s)", feature.value, module.value, identity.email, restricted)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": f"Permission denied: {feature.value} on {module.value}",
                "restricted": restricted,
            },
        )

    return feature_dependency


async def require_permission_manager(
    current_user: Annotated[User, Depends(get_current_user)],
    snapshot: Annotated[AccessSnapshot, Depends(get_access_snapshot)],
) -> Identity:
    """Allow only permission managers (super admins are always managers)."""
    identity = identity_for(current_user)
    if not is_permission_manager(identity, snapshot):
        log.info("Rejected permission management call from %s", identity.email)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permission manager privileges required",
        )
    return identity


async def require_super_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> Identity:
    identity = identity_for(current_user)
    if identity.role != Role.SUPER_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super admin privileges required",
        )
    return identity


# ============================================================================
# Audit Logging
# ============================================================================

async def create_audit_log(
    db: AsyncSession,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> AuditLog:
    """
    Append an audit log entry and commit it.

    Args:
        db: Database session
        user_id: User performing the action
        action: Action performed (e.g., "set_override", "review")
        resource_type: Type of resource (e.g., "override", "access_request")
        resource_id: ID (or email) of the resource
        details: Additional details
        request: Incoming request, used for client IP and user agent
    """
    audit_log = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
        ip_address=request.client.host if request is not None and request.client else None,
        user_agent=request.headers.get("user-agent") if request is not None else None,
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    log.info(f"Audit: user={user_id} action={action} resource={resource_type}:{resource_id}")

    return audit_log
