"""
Context Switching Job

Counts the distinct projects each user logged time on per day over the last
week. More than five projects on at least two days raises an in-app notice,
at most once a day.
"""

from datetime import timedelta
from typing import List

from sqlalchemy import select

from riskwatch.models import NotificationCategory, NotificationType, Tenant, Timesheet, User
from riskwatch.notifications.payloads import ContextSwitchingPayload
from ..base import RuleJob
from ..metrics import projects_per_day


class ContextSwitchingJob(RuleJob):
    """Warns users who spread their days across many projects."""

    name = "context-switching"
    description = "Frequent switching between projects"
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
        since = self.today - timedelta(days=self.thresholds.context_switch_window_days)
        result = await self.db.execute(
            select(Timesheet)
            .where(Timesheet.tenant_id == tenant.id)
            .where(Timesheet.user_email == user.email)
            .where(Timesheet.timesheet_date >= since)
        )
        limit = self.thresholds.context_switch_project_limit
        busy_days = {
            day: count for day, count in projects_per_day(result.scalars().all()).items() if count > limit
        }
        if len(busy_days) < self.thresholds.context_switch_min_days:
            return

        self.summary.triggered += 1
        alert = NotificationType.CONTEXT_SWITCHING_ALERT
        if await self.gate.sent_today(alert, entity_id=user.id, recipient_email=user.email):
            self.skip(f"context switching alert already sent today to {user.email}")
            return

        delivery = await self.notifications.notify(
            [user],
            type=alert,
            category=NotificationCategory.INFO,
            title="Context Switching Alert",
            message=(
                f"Frequent context switching detected: more than {limit} projects on "
                f"{len(busy_days)} days this week. This may reduce productivity."
            ),
            entity_type="user",
            entity_id=user.id,
            link="/Timesheets",
            payload=ContextSwitchingPayload(project_counts=busy_days, project_limit=limit),
            key=lambda u: self.gate.daily_key(alert, user.id, u.email),
            now=self.now,
        )
        self.summary.record_delivery(delivery)
