"""
Availability Update Job

Asks users to refresh their availability when they have neither logged in,
updated their profile nor logged time for 30 days. At most one reminder a week.
"""

from datetime import timedelta
from typing import List

from sqlalchemy import select

from riskwatch.models import NotificationCategory, NotificationType, Tenant, Timesheet, User
from riskwatch.notifications.payloads import InactivityPayload
from ..base import RuleJob


class AvailabilityUpdateJob(RuleJob):
    """Reminds inactive users to update their availability."""

    name = "availability-update"
    description = "Users inactive for a month"
    subject_label = "user"

    async def subjects(self, tenant: Tenant) -> List[str]:
        result = await self.db.execute(
            select(User.id)
            .where(User.tenant_id == tenant.id)
            .where(User.status == "active")
            .order_by(User.email)
        )
        return [row[0] for row in result.fetchall()]

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        user = await self.db.get(User, subject_id)
        days = self.thresholds.inactivity_days
        cutoff = self.now - timedelta(days=days)

        if user.last_login is not None and user.last_login > cutoff:
            return
        if user.updated_date is not None and user.updated_date > cutoff:
            return

        result = await self.db.execute(
            select(Timesheet.id)
            .where(Timesheet.tenant_id == tenant.id)
            .where(Timesheet.user_email == user.email)
            .where(Timesheet.timesheet_date >= cutoff.date())
            .limit(1)
        )
        if result.first() is not None:
            return

        self.summary.triggered += 1
        reminder = NotificationType.USER_AVAILABILITY_UPDATE
        if await self.gate.within_cooldown(
            reminder, timedelta(days=self.thresholds.availability_reminder_days),
            entity_id=user.id, recipient_email=user.email,
        ):
            self.skip(f"availability reminder sent to {user.email} this week")
            return

        delivery = await self.notifications.notify(
            [user],
            type=reminder,
            category=NotificationCategory.INFO,
            title="Availability Update Required",
            message="Please update your availability to ensure accurate planning.",
            entity_type="user",
            entity_id=user.id,
            link="/Profile",
            payload=InactivityPayload(inactive_days=days, last_login=user.last_login),
            key=lambda u: self.gate.cooldown_key(reminder, user.id, u.email),
            now=self.now,
        )
        self.summary.record_delivery(delivery)
