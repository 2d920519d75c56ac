"""
Access request routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ward_access.core import config
from ward_access.core.database.engine import get_db
from ward_access.core.rate_limit import limiter
from ward_access.features.access_requests import service
from ward_access.features.access_requests.models import AccessRequestStatus
from ward_access.features.access_requests.schemas import (
    AccessRequestCreate,
    AccessRequestResponse,
    AccessRequestReview,
)
from ward_access.features.notifications.service import notify_access_request_created, notify_access_request_resolved
from ward_access.features.permissions.dependencies import (
    create_audit_log,
    get_access_snapshot,
    require_permission_manager,
)
from ward_access.features.permissions.resolver import AccessSnapshot, is_permission_manager
from ward_access.features.permissions.types import Identity
from ward_access.features.users.dependencies import get_current_identity


router = APIRouter(tags=["access-requests"])


@router.post("/", response_model=AccessRequestResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(config.ACCESS_REQUEST_RATE_LIMIT)
async def create_access_request(
    request: Request,
    request_data: AccessRequestCreate,
    identity: Annotated[Identity, Depends(get_current_identity)],
    snapshot: Annotated[AccessSnapshot, Depends(get_access_snapshot)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Ask a permission manager to lift a restriction on a feature."""
    access_request = await service.create_access_request(
        db,
        identity,
        snapshot,
        request_data.module,
        request_data.feature,
        request_data.reason,
    )
    await create_audit_log(
        db,
        user_id=identity.user_id,
        action="create",
        resource_type="access_request",
        resource_id=access_request.id,
        details={"module": access_request.module, "feature": access_request.feature},
        request=request,
    )
    await notify_access_request_created(db, access_request, snapshot)
    return access_request


@router.get("/my", response_model=list[AccessRequestResponse])
async def get_my_access_requests(
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db)],
    status_filter: AccessRequestStatus | None = None
):
    """All access requests created by the current user, newest first."""
    return await service.list_access_requests(db, status=status_filter, requester_id=identity.user_id)


@router.get("/", response_model=list[AccessRequestResponse])
async def list_access_requests(
    manager: Annotated[Identity, Depends(require_permission_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
    module: str | None = None,
    status_filter: AccessRequestStatus | None = AccessRequestStatus.PENDING,
    skip: int = 0,
    limit: int = 100
):
    """Review queue (managers only). Pending requests by default, newest first."""
    return await service.list_access_requests(db, module=module, status=status_filter, skip=skip, limit=limit)


@router.get("/{request_id}", response_model=AccessRequestResponse)
async def get_access_request(
    request_id: str,
    identity: Annotated[Identity, Depends(get_current_identity)],
    snapshot: Annotated[AccessSnapshot, Depends(get_access_snapshot)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """One access request, visible to its requester and to managers."""
    access_request = await service.get_access_request(db, request_id)
    if access_request.requester_id != identity.user_id and not is_permission_manager(identity, snapshot):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to view this access request"
        )
    return access_request


@router.post("/{request_id}/review", response_model=AccessRequestResponse)
async def review_access_request(
    request_id: str,
    review_data: AccessRequestReview,
    request: Request,
    identity: Annotated[Identity, Depends(get_current_identity)],
    snapshot: Annotated[AccessSnapshot, Depends(get_access_snapshot)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Approve or reject a pending request (managers only).

    Approval does not edit the requester's override; managers apply any
    change through the override routes.
    """
    access_request = await service.review_access_request(
        db,
        request_id,
        identity,
        snapshot,
        review_data.decision.value,
        review_data.comment,
    )
    await create_audit_log(
        db,
        user_id=identity.user_id,
        action=review_data.decision.value,
        resource_type="access_request",
        resource_id=access_request.id,
        details={
            "requester_email": access_request.requester_email,
            "module": access_request.module,
            "feature": access_request.feature,
        },
        request=request,
    )
    await notify_access_request_resolved(db, access_request)
    return access_request
