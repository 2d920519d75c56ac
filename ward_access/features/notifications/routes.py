"""
Notification inbox routes. Every route acts on the caller's own inbox.
"""
from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ward_access.core.database.engine import get_db
from ward_access.features.notifications import service
from ward_access.features.notifications.schemas import NotificationResponse, UnreadCountResponse
from ward_access.features.permissions.types import Identity
from ward_access.features.users.dependencies import get_current_identity


router = APIRouter(tags=["notifications"])


@router.get("/", response_model=list[NotificationResponse])
async def list_my_notifications(
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db)],
    unread_only: bool = False,
    skip: int = 0,
    limit: int = 50
):
    """The caller's notifications, newest first."""
    return await service.list_notifications(db, identity.user_id, unread_only=unread_only, skip=skip, limit=limit)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return UnreadCountResponse(unread=await service.unread_count(db, identity.user_id))


@router.patch("/read-all", response_model=UnreadCountResponse)
async def mark_all_notifications_read(
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    await service.mark_all_read(db, identity.user_id)
    return UnreadCountResponse(unread=0)


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str,
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await service.mark_read(db, identity.user_id, notification_id)
