"""
Notification delivery and inbox operations.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional
from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from ward_access.core.errors import NotFound
from ward_access.features.access_requests.models import AccessRequest
from ward_access.features.notifications.models import Notification
from ward_access.features.permissions.resolver import AccessSnapshot
from ward_access.features.permissions.types import Role
from ward_access.features.users.models import User
from ward_access.utils import get_logger


log = get_logger(__name__)

ACCESS_REQUEST = "access_request"
ACCESS_REQUEST_RESOLVED = "access_request_resolved"


async def notify(
    db: AsyncSession,
    recipient_ids: Iterable[str],
    notification_type: str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
    priority: str = "medium",
) -> list[Notification]:
    """Create one unread notification per recipient and commit."""
    now = datetime.now(timezone.utc)
    notifications = [
        Notification(
            recipient_id=recipient_id,
            type=notification_type,
            title=title,
            message=message,
            data=data,
            priority=priority,
            is_read=False,
            created_at=now,
            updated_at=now,
        )
        for recipient_id in dict.fromkeys(recipient_ids)
    ]
    if not notifications:
        return []

    db.add_all(notifications)
    await db.commit()
    log.info("Sent %s notification to %d recipient(s)", notification_type, len(notifications))
    return notifications


async def reviewer_ids(db: AsyncSession, snapshot: AccessSnapshot) -> list[str]:
    """Active users who can review access requests."""
    conditions = [User.role == Role.SUPER_ADMIN.value]
    if snapshot.managers:
        conditions.append(User.email.in_(sorted(snapshot.managers)))
    result = await db.execute(
        select(User.id).where(User.is_active == True, or_(*conditions)).order_by(User.id)  # noqa: E712
    )
    return list(result.scalars().all())


def _request_data(access_request: AccessRequest) -> Dict[str, Any]:
    return {
        "entity_type": "access_request",
        "entity_id": access_request.id,
        "link": f"/access-requests/{access_request.id}",
    }


async def notify_access_request_created(
    db: AsyncSession, access_request: AccessRequest, snapshot: AccessSnapshot
) -> list[Notification]:
    """Tell every reviewer (except the requester) that the queue has grown."""
    recipients = [
        user_id for user_id in await reviewer_ids(db, snapshot)
        if user_id != access_request.requester_id
    ]
    return await notify(
        db,
        recipients,
        ACCESS_REQUEST,
        title="Access request",
        message=(
            f"{access_request.requester_email} requests {access_request.feature} "
            f"on {access_request.module}"
            + (f": {access_request.reason}" if access_request.reason else "")
        ),
        data=_request_data(access_request),
        priority="high",
    )


async def notify_access_request_resolved(db: AsyncSession, access_request: AccessRequest) -> list[Notification]:
    """Tell the requester how their request was decided."""
    message = (
        f"Your request for {access_request.feature} on {access_request.module} "
        f"was {access_request.status.value}"
    )
    if access_request.review_comment:
        message += f": {access_request.review_comment}"
    return await notify(
        db,
        [access_request.requester_id],
        ACCESS_REQUEST_RESOLVED,
        title="Access request resolved",
        message=message,
        data=_request_data(access_request),
    )


async def list_notifications(
    db: AsyncSession,
    recipient_id: str,
    unread_only: bool = False,
    skip: int = 0,
    limit: int = 50,
) -> list[Notification]:
    query = select(Notification).where(Notification.recipient_id == recipient_id)
    if unread_only:
        query = query.where(Notification.is_read == False)  # noqa: E712
    query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def unread_count(db: AsyncSession, recipient_id: str) -> int:
    result = await db.execute(
        select(func.count()).select_from(Notification).where(
            Notification.recipient_id == recipient_id,
            Notification.is_read == False,  # noqa: E712
        )
    )
    return result.scalar() or 0


async def mark_read(db: AsyncSession, recipient_id: str, notification_id: str) -> Notification:
    """Mark one of the recipient's notifications read. Other people's are not found."""
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.recipient_id == recipient_id,
        )
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFound("Notification not found")

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        await db.commit()
    return notification


async def mark_all_read(db: AsyncSession, recipient_id: str) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.recipient_id == recipient_id, Notification.is_read == False)  # noqa: E712
        .values(is_read=True, read_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    marked = result.rowcount
    await db.commit()
    return marked
