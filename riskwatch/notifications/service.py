"""
Notification Service

Creates in-app notifications and mirrors them by email.

The in-app record is authoritative: it is written first, and a failed email
is logged and counted but never rolls it back.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from riskwatch.config import settings
from riskwatch.models import (
    Notification,
    NotificationCategory,
    NotificationStatus,
    NotificationType,
    User,
)
from riskwatch.notifications.email_provider import EmailMessage, EmailProvider, get_email_provider
from riskwatch.notifications.payloads import AcknowledgementPayload, dump_payload
from riskwatch.notifications.templates import EmailContent

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    """What one notify() call produced."""
    notifications: List[Notification] = field(default_factory=list)
    emails_sent: int = 0
    emails_failed: int = 0

    @property
    def created(self) -> int:
        return len(self.notifications)


def _value(enum_or_str) -> str:
    return enum_or_str.value if hasattr(enum_or_str, "value") else enum_or_str


class NotificationService:
    """
    Service for creating notifications and sending their emails.

    Usage:
        service = NotificationService(db)
        result = await service.notify(
            recipients,
            type=NotificationType.PM_DEADLINE_RISK,
            category=NotificationCategory.ALARM,
            title="Project Deadline Risk",
            message="...",
            email=lambda user: build_deadline_risk_email(...),
        )
    """

    def __init__(self, db: AsyncSession, email_provider: Optional[EmailProvider] = None):
        self.db = db
        self.email_provider = email_provider or get_email_provider(
            resend_api_key=settings.RESEND_API_KEY,
            smtp_config=settings.smtp_config,
            console_mode=settings.EMAIL_CONSOLE_MODE,
            from_email=settings.MAIL_FROM,
        )

    # =========================================================================
    # In-app records
    # =========================================================================

    async def create(
        self,
        recipient: User,
        *,
        type: NotificationType,
        category: NotificationCategory,
        title: str,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        project_id: Optional[str] = None,
        link: Optional[str] = None,
        payload: Optional[BaseModel] = None,
        dedup_key: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Notification:
        """Insert one notification for one recipient and flush it."""
        notification = Notification(
            tenant_id=recipient.tenant_id,
            recipient_email=recipient.email,
            user_id=recipient.id,
            type=_value(type),
            category=_value(category),
            status=NotificationStatus.OPEN.value,
            entity_type=entity_type,
            entity_id=entity_id,
            project_id=project_id,
            title=title,
            message=message,
            link=link,
            payload_data=dump_payload(payload),
            read=False,
            created_date=now or datetime.utcnow(),
            dedup_key=dedup_key,
        )
        self.db.add(notification)
        await self.db.flush()
        return notification

    async def refresh(
        self,
        notification: Notification,
        *,
        title: str,
        message: str,
        link: Optional[str] = None,
        payload: Optional[BaseModel] = None,
        now: Optional[datetime] = None,
    ) -> Notification:
        """Update an open notification in place instead of creating a duplicate."""
        notification.title = title
        notification.message = message
        notification.link = link
        notification.read = False
        notification.created_date = now or datetime.utcnow()
        if payload is not None:
            notification.payload_data = dump_payload(payload)
        await self.db.flush()
        return notification

    async def resolve(self, notification: Notification) -> None:
        """Close a notification and release its open-state key."""
        notification.status = NotificationStatus.RESOLVED.value
        notification.dedup_key = None
        await self.db.flush()

    # =========================================================================
    # Email
    # =========================================================================

    async def send_email(self, to: str, content: EmailContent, notification_type: Optional[str] = None) -> bool:
        """Best-effort email; the provider reports failures instead of raising."""
        result = await self.email_provider.send(EmailMessage(to, content, notification_type))
        return result.success

    async def email_notification(
        self,
        notification: Notification,
        content: EmailContent,
        now: Optional[datetime] = None,
    ) -> bool:
        sent = await self.send_email(notification.recipient_email, content, notification.type)
        if sent:
            notification.last_email_sent = now or datetime.utcnow()
        return sent

    # =========================================================================
    # Fan-out
    # =========================================================================

    async def notify(
        self,
        recipients: Iterable[User],
        *,
        type: NotificationType,
        category: NotificationCategory,
        title: str,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        project_id: Optional[str] = None,
        link: Optional[str] = None,
        payload: Optional[BaseModel] = None,
        key: Optional[Callable[[User], Optional[str]]] = None,
        email: Optional[Callable[[User], EmailContent]] = None,
        now: Optional[datetime] = None,
    ) -> DeliveryResult:
        """
        Create one notification per recipient and, when `email` is given,
        send each recipient their email.

        `key` maps a recipient to the dedup key stored on their notification.
        """
        now = now or datetime.utcnow()
        recipients = list(recipients)
        result = DeliveryResult()

        for recipient in recipients:
            notification = await self.create(
                recipient,
                type=type,
                category=category,
                title=title,
                message=message,
                entity_type=entity_type,
                entity_id=entity_id,
                project_id=project_id,
                link=link,
                payload=payload,
                dedup_key=key(recipient) if key else None,
                now=now,
            )
            result.notifications.append(notification)

        if email is not None:
            for notification, recipient in zip(result.notifications, recipients):
                if await self.email_notification(notification, email(recipient), now=now):
                    result.emails_sent += 1
                else:
                    result.emails_failed += 1
            await self.db.flush()

        return result

    # =========================================================================
    # Acknowledgement
    # =========================================================================

    async def acknowledge(
        self,
        notification: Notification,
        actor: User,
        now: Optional[datetime] = None,
    ) -> Notification:
        """
        Mark a notification acknowledged by `actor`.

        Stops further reminders and escalations. When a non-admin acknowledges,
        tenant admins/owners are told, except the actor and the alert owner.
        """
        from riskwatch.detection.recipients import RecipientResolver

        now = now or datetime.utcnow()
        if notification.acknowledged:
            return notification

        notification.acknowledged = True
        notification.acknowledged_at = now
        notification.acknowledged_by = actor.email
        notification.read = True

        if not actor.is_admin:
            admins = await RecipientResolver(self.db).tenant_admins(notification.tenant_id)
            admins = [
                a for a in admins
                if a.id != actor.id and a.email != notification.recipient_email
            ]
            if admins:
                await self.notify(
                    admins,
                    type=NotificationType.PM_ACKNOWLEDGED_ALERT,
                    category=NotificationCategory.INFO,
                    title=f"Acknowledged: {notification.title}",
                    message=f"{actor.display_name} acknowledged: {notification.title}",
                    entity_type=notification.entity_type,
                    entity_id=notification.entity_id,
                    project_id=notification.project_id,
                    link=notification.link,
                    payload=AcknowledgementPayload(
                        source_notification_id=notification.id,
                        acknowledged_by=actor.email,
                        acknowledged_at=now,
                    ),
                    now=now,
                )

        await self.db.flush()
        logger.info(f"Notification {notification.id} acknowledged by {actor.email}")
        return notification


def get_notification_service(db: AsyncSession, email_provider: Optional[EmailProvider] = None) -> NotificationService:
    """Get notification service instance."""
    return NotificationService(db, email_provider=email_provider)
