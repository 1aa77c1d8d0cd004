"""
Escalation Sweeper

Re-scans open, unacknowledged notifications of escalation-eligible types and
moves each one through:

    OPEN -> OPEN(reminder_sent) -> OPEN(escalated_to_admin) -> acknowledged

- reminder:   after the type's reminder threshold, the same recipient gets a
              PM_ALERT_REMINDER and reminder_sent is set.
- escalation: after the type's escalation threshold, every active admin/owner
              of the tenant gets a PM_ALERT_ESCALATED and escalated_to_admin
              is set.

Both transitions are gated by their flag, so repeated sweeps never send the
same reminder or escalation twice.
"""

import logging
import math
from typing import List, Optional

from sqlalchemy import select, or_

from riskwatch.models import (
    Notification,
    NotificationCategory,
    NotificationStatus,
    NotificationType,
    Project,
    Tenant,
    User,
)
from riskwatch.notifications.payloads import EscalationPayload
from .base import RuleJob
from .rules import EscalationPolicy

logger = logging.getLogger(__name__)

REWORK_TYPES = (
    NotificationType.PM_HIGH_REWORK.value,
    NotificationType.PM_RUNAWAY_REWORK_ALARM.value,
)


def alert_label(notification: Notification) -> str:
    if notification.type in REWORK_TYPES:
        return "Rework alert"
    return notification.title


class EscalationSweeper(RuleJob):
    """Sends reminders and admin escalations for unacknowledged alerts."""

    name = "escalation-sweep"
    description = "Reminders and admin escalation for unacknowledged alerts"
    subject_label = "notification"

    @property
    def policies(self):
        return self.thresholds.escalation_policies

    async def subjects(self, tenant: Tenant) -> List[str]:
        result = await self.db.execute(
            select(Notification.id)
            .where(Notification.tenant_id == tenant.id)
            .where(Notification.type.in_(list(self.policies)))
            .where(Notification.status == NotificationStatus.OPEN.value)
            .where(Notification.acknowledged.is_(False))
            .where(or_(Notification.reminder_sent.is_(False), Notification.escalated_to_admin.is_(False)))
            .order_by(Notification.created_date)
        )
        return [row[0] for row in result.fetchall()]

    def hours_pending(self, notification: Notification) -> int:
        return math.floor((self.now - notification.created_date).total_seconds() / 3600)

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        notification = await self.db.get(Notification, subject_id)
        policy: EscalationPolicy = self.policies[notification.type]
        age = self.now - notification.created_date

        if not notification.reminder_sent and age > policy.reminder_after:
            await self.send_reminder(notification)

        if not notification.escalated_to_admin and age > policy.escalate_after:
            await self.escalate(tenant, notification)

    async def reminder_recipient(self, notification: Notification) -> Optional[User]:
        """The alert owner, by user id or else by recipient email."""
        if notification.user_id:
            user = await self.db.get(User, notification.user_id)
            if user is not None:
                return user
        users = await self.recipients.active_users_by_email(notification.tenant_id, [notification.recipient_email])
        return users[0] if users else None

    async def send_reminder(self, notification: Notification) -> None:
        self.summary.triggered += 1
        recipient = await self.reminder_recipient(notification)
        if recipient is None:
            self.skip(f"recipient of notification {notification.id} no longer exists")
            return

        delivery = await self.notifications.notify(
            [recipient],
            type=NotificationType.PM_ALERT_REMINDER,
            category=NotificationCategory.INFO,
            title=f"Reminder: {alert_label(notification)} pending acknowledgement",
            message=f"Please acknowledge the {alert_label(notification).lower()}.",
            entity_type=notification.entity_type,
            entity_id=notification.entity_id,
            project_id=notification.project_id,
            link=notification.link,
            payload=EscalationPayload(
                source_notification_id=notification.id,
                source_type=notification.type,
                hours_pending=self.hours_pending(notification),
            ),
            now=self.now,
        )
        self.summary.record_delivery(delivery)
        notification.reminder_sent = True
        self.summary.state_changes += 1
        logger.info(f"[{self.name}] reminder sent for notification {notification.id}")

    async def escalate(self, tenant: Tenant, notification: Notification) -> None:
        self.summary.triggered += 1
        admins = await self.recipients.tenant_admins(tenant.id)
        if not admins:
            self.skip(f"no admin or owner in tenant {tenant.name} to escalate notification {notification.id}")
            return

        project_name = "Unknown project"
        if notification.project_id:
            project = await self.db.get(Project, notification.project_id)
            if project is not None:
                project_name = project.name

        hours = self.hours_pending(notification)
        delivery = await self.notifications.notify(
            admins,
            type=NotificationType.PM_ALERT_ESCALATED,
            category=NotificationCategory.ALARM,
            title=f"PM did not acknowledge {alert_label(notification).lower()}",
            message=f"Project: {project_name}\nAlert pending for {hours} hours\nAction recommended.",
            entity_type=notification.entity_type,
            entity_id=notification.entity_id,
            project_id=notification.project_id,
            link=notification.link,
            payload=EscalationPayload(
                source_notification_id=notification.id,
                source_type=notification.type,
                hours_pending=hours,
            ),
            now=self.now,
        )
        self.summary.record_delivery(delivery)
        notification.escalated_to_admin = True
        self.summary.state_changes += 1
        logger.info(f"[{self.name}] notification {notification.id} escalated to {len(admins)} admin(s)")
