"""
Access request workflow operations.

States: pending -> approved | pending -> rejected. Both outcomes are
terminal. A review is a single conditional UPDATE on ``status = pending``,
so when two reviewers race exactly one of them wins and the other gets
``InvalidState``.
"""
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ward_access.core.errors import Forbidden, InvalidInput, InvalidState, NotFound
from ward_access.features.access_requests.models import AccessRequest, AccessRequestStatus
from ward_access.features.permissions.resolver import AccessSnapshot, is_feature_restricted, is_permission_manager
from ward_access.features.permissions.types import Feature, Identity, Module
from ward_access.utils import get_logger


log = get_logger(__name__)

DECISIONS = {
    "approve": AccessRequestStatus.APPROVED,
    "reject": AccessRequestStatus.REJECTED,
}


async def _fetch(db: AsyncSession, request_id: str) -> Optional[AccessRequest]:
    result = await db.execute(
        select(AccessRequest)
        .where(AccessRequest.id == request_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_access_request(db: AsyncSession, request_id: str) -> AccessRequest:
    access_request = await _fetch(db, request_id)
    if access_request is None:
        raise NotFound("Access request not found")
    return access_request


async def create_access_request(
    db: AsyncSession,
    requester: Identity,
    snapshot: AccessSnapshot,
    module,
    feature,
    reason: Optional[str] = None,
) -> AccessRequest:
    """
    Open a pending request for a restricted feature.

    Raises:
        InvalidInput: requester has no user id, unknown module/feature, or the
            feature is not restricted for this requester (nothing to request)
        InvalidState: the requester already has a pending request for it
    """
    if not requester.user_id:
        raise InvalidInput("Access requests need a stored requester")
    parsed_module = Module.require(module, "module")
    parsed_feature = Feature.require(feature, "feature")

    if not is_feature_restricted(requester, parsed_module, parsed_feature, snapshot):
        raise InvalidInput(
            f"{parsed_feature.value} on {parsed_module.value} is not restricted for you; nothing to request"
        )

    result = await db.execute(
        select(AccessRequest.id).where(
            AccessRequest.requester_id == requester.user_id,
            AccessRequest.module == parsed_module.value,
            AccessRequest.feature == parsed_feature.value,
            AccessRequest.status == AccessRequestStatus.PENDING,
        )
    )
    if result.first() is not None:
        raise InvalidState("You already have a pending request for this feature")

    now = datetime.now(timezone.utc)
    access_request = AccessRequest(
        requester_id=requester.user_id,
        requester_email=requester.email,
        module=parsed_module.value,
        feature=parsed_feature.value,
        reason=(reason or "").strip(),
        status=AccessRequestStatus.PENDING,
        review_comment="",
        created_at=now,
        updated_at=now,
    )
    db.add(access_request)
    await db.commit()
    await db.refresh(access_request)

    log.info("Access request %s opened by %s for %s:%s", access_request.id, requester.email,
             parsed_module.value, parsed_feature.value)
    return access_request


async def list_access_requests(
    db: AsyncSession,
    module=None,
    status: Optional[AccessRequestStatus] = None,
    requester_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[AccessRequest]:
    """Requests newest first, optionally filtered by module, status and requester."""
    query = select(AccessRequest)

    if module is not None:
        query = query.where(AccessRequest.module == Module.require(module, "module").value)
    if status is not None:
        query = query.where(AccessRequest.status == status)
    if requester_id is not None:
        query = query.where(AccessRequest.requester_id == requester_id)

    query = query.order_by(AccessRequest.created_at.desc(), AccessRequest.id.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def review_access_request(
    db: AsyncSession,
    request_id: str,
    reviewer: Identity,
    snapshot: AccessSnapshot,
    decision: str,
    comment: Optional[str] = None,
) -> AccessRequest:
    """
    Approve or reject a pending request.

    Status, reviewer, review time and comment are written by one UPDATE that
    only matches while the row is still pending.

    Raises:
        Forbidden: reviewer is not a permission manager
        InvalidInput: decision is not approve/reject, or reviewer has no user id
        NotFound: no such request
        InvalidState: request already reviewed
    """
    if not is_permission_manager(reviewer, snapshot):
        raise Forbidden("Only permission managers can review access requests")

    new_status = DECISIONS.get(str(decision).lower())
    if new_status is None:
        raise InvalidInput(f"Unknown decision: {decision!r}")
    if not reviewer.user_id:
        raise InvalidInput("Reviews need a stored reviewer")

    now = datetime.now(timezone.utc)
    result = await db.execute(
        update(AccessRequest)
        .where(
            AccessRequest.id == request_id,
            AccessRequest.status == AccessRequestStatus.PENDING,
        )
        .values(
            status=new_status,
            reviewed_by_id=reviewer.user_id,
            reviewed_at=now,
            review_comment=(comment or "").strip(),
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    matched = result.rowcount
    await db.commit()

    access_request = await _fetch(db, request_id)
    if access_request is None:
        raise NotFound("Access request not found")
    if matched == 0:
        log.info("Review of %s by %s refused: already %s", request_id, reviewer.email, access_request.status.value)
        raise InvalidState(f"This request has already been {access_request.status.value}")

    log.info("Access request %s %s by %s", request_id, new_status.value, reviewer.email)
    return access_request
