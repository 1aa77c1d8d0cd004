"""
Notification Routes

Inbox listing, read marking and acknowledgement of alerts.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from riskwatch.database import get_db
from riskwatch.models import Notification, User
from .schemas import AcknowledgeRequest, NotificationResponse, NotificationsListResponse
from .service import get_notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


async def _get_notification(db: AsyncSession, notification_id: str) -> Notification:
    notification = await db.get(Notification, notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.get("", response_model=NotificationsListResponse)
async def list_notifications(
    recipient_email: str = Query(..., description="Inbox owner"),
    unread_only: bool = Query(False, description="Only unread notifications"),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """List a recipient's notifications, newest first."""
    query = select(Notification).where(Notification.recipient_email == recipient_email)
    if unread_only:
        query = query.where(Notification.read.is_(False))

    result = await db.execute(query.order_by(Notification.created_date.desc()).limit(limit))
    notifications = result.scalars().all()

    total_count = await db.scalar(
        select(func.count(Notification.id)).where(Notification.recipient_email == recipient_email)
    )
    unread_count = await db.scalar(
        select(func.count(Notification.id))
        .where(Notification.recipient_email == recipient_email)
        .where(Notification.read.is_(False))
    )

    return NotificationsListResponse(
        notifications=[NotificationResponse.from_model(n) for n in notifications],
        total_count=total_count or 0,
        unread_count=unread_count or 0,
    )


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Mark a notification as read."""
    notification = await _get_notification(db, notification_id)
    notification.read = True
    await db.commit()
    return NotificationResponse.from_model(notification)


@router.post("/{notification_id}/acknowledge", response_model=NotificationResponse)
async def acknowledge_notification(
    notification_id: str,
    request: AcknowledgeRequest,
    db: AsyncSession = Depends(get_db),
):
    """Acknowledge an alert, stopping its reminders and escalation."""
    notification = await _get_notification(db, notification_id)

    actor = await db.get(User, request.user_id)
    if not actor or actor.tenant_id != notification.tenant_id:
        raise HTTPException(status_code=404, detail="User not found")

    service = get_notification_service(db)
    await service.acknowledge(notification, actor)
    await db.commit()
    return NotificationResponse.from_model(notification)
