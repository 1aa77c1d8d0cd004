"""
Consistent Compliance Job

Rewards users who went a whole month without a violation: no lockout,
overdue, rework, velocity or utilization notification in the last 30 days.
A user is rewarded at most once every 28 days.
"""

from datetime import timedelta
from typing import List

from sqlalchemy import select

from riskwatch.models import Notification, NotificationCategory, NotificationType, Tenant, User
from riskwatch.notifications.payloads import CompliancePayload
from ..base import RuleJob

EXCLUDED_ROLES = ("admin", "owner", "client")

VIOLATION_TYPES = (
    NotificationType.TIMESHEET_LOCKOUT_ALARM,
    NotificationType.TASK_OVERDUE_ALERT,
    NotificationType.MULTIPLE_OVERDUE_ALARM,
    NotificationType.MULTIPLE_OVERDUE_ESCALATION,
    NotificationType.REWORK_ALERT,
    NotificationType.REWORK_ALARM,
    NotificationType.HIGH_REWORK_ALARM,
    NotificationType.PM_VELOCITY_DROP,
    NotificationType.IDLE_TIME_ALERT,
    NotificationType.UNDER_UTILIZATION_ALERT,
)


class ConsistentComplianceJob(RuleJob):
    """Sends a recognition notice to users with a clean month."""

    name = "consistent-compliance"
    description = "Users without violations for a month"
    subject_label = "user"

    async def subjects(self, tenant: Tenant) -> List[str]:
        result = await self.db.execute(
            select(User.id)
            .where(User.tenant_id == tenant.id)
            .where(User.status == "active")
            .where(User.role.not_in(EXCLUDED_ROLES))
            .order_by(User.email)
        )
        return [row[0] for row in result.fetchall()]

    async def had_violation(self, user: User, window: timedelta) -> bool:
        """Violations are checked even on forced runs; only the reward cooldown is bypassed."""
        result = await self.db.execute(
            select(Notification.id)
            .where(Notification.tenant_id == user.tenant_id)
            .where(Notification.recipient_email == user.email)
            .where(Notification.type.in_([t.value for t in VIOLATION_TYPES]))
            .where(Notification.created_date > self.now - window)
            .limit(1)
        )
        return result.first() is not None

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        user = await self.db.get(User, subject_id)
        reward = NotificationType.USER_CONSISTENT

        if await self.gate.within_cooldown(
            reward, timedelta(days=self.thresholds.compliance_reward_days), recipient_email=user.email,
        ):
            return

        window = self.thresholds.compliance_window_days
        if await self.had_violation(user, timedelta(days=window)):
            return

        self.summary.triggered += 1
        delivery = await self.notifications.notify(
            [user],
            type=reward,
            category=NotificationCategory.INFO,
            title="Great job!",
            message="You've maintained excellent compliance this month. Keep up the great work!",
            entity_type="user",
            entity_id=user.id,
            payload=CompliancePayload(window_days=window),
            key=lambda u: self.gate.daily_key(reward, user.id, u.email),
            now=self.now,
        )
        self.summary.record_delivery(delivery)
