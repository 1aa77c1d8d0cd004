"""
Overwork Job

Sums this week's planned task hours per member. Above the weekly limit
(11h/day x 6 days) the member is flagged as overloaded and alarmed; their
managers hear about it once, when the flag turns on. The flag is cleared
again as soon as the planned load drops back under the limit.
"""

import logging
from typing import List

from sqlalchemy import select

from riskwatch.models import NotificationCategory, NotificationType, Task, Tenant, User
from riskwatch.models.user import MEMBER_ROLES
from riskwatch.notifications.payloads import WorkloadPayload
from riskwatch.notifications.templates import build_overwork_email
from ..base import RuleJob
from ..metrics import weekly_workload_hours

logger = logging.getLogger(__name__)


class OverworkJob(RuleJob):
    """Flags members planned beyond the weekly hour limit."""

    name = "overwork"
    description = "Weekly planned workload above the limit"
    subject_label = "user"

    async def subjects(self, tenant: Tenant) -> List[str]:
        result = await self.db.execute(
            select(User)
            .where(User.tenant_id == tenant.id)
            .where(User.status == "active")
            .where(User.role.in_(MEMBER_ROLES))
            .order_by(User.email)
        )
        return [user.id for user in result.scalars().all() if user.is_member]

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        user = await self.db.get(User, subject_id)
        result = await self.db.execute(
            select(Task)
            .where(Task.tenant_id == tenant.id)
            .where(Task.assigned_to == user.email)
        )
        planned = weekly_workload_hours(result.scalars().all(), self.now)
        limit = self.thresholds.overwork_weekly_hours

        if planned <= limit:
            if user.is_overloaded:
                self.changed(user, "is_overloaded", False)
            return

        self.summary.triggered += 1
        newly_overloaded = self.changed(user, "is_overloaded", True)
        payload = WorkloadPayload(user_id=user.id, planned_hours=round(planned, 2), limit_hours=limit)
        link = "/MyTasks"

        alarm = NotificationType.OVERWORK_ALARM
        if await self.gate.sent_today(alarm, entity_id=user.id, recipient_email=user.email):
            self.skip(f"overwork alarm already sent today to {user.email}")
        else:
            delivery = await self.notifications.notify(
                [user],
                type=alarm,
                category=NotificationCategory.ALARM,
                title="Overwork Alarm",
                message=(
                    "You've been working long hours consistently. Please discuss workload "
                    "adjustment with your manager."
                ),
                entity_type="user",
                entity_id=user.id,
                link=link,
                payload=payload,
                key=lambda u: self.gate.daily_key(alarm, user.id, u.email),
                email=lambda u: build_overwork_email(planned, limit, link, u.display_name),
                now=self.now,
            )
            self.summary.record_delivery(delivery)

        if not newly_overloaded and not self.force:
            return

        managers = await self.recipients.managers_for_user(user)
        if not managers:
            managers = [m for m in await self.recipients.fallback(tenant) if m.id != user.id]
        if not managers:
            logger.warning(f"[{self.name}] no manager to tell about overloaded user {user.email}")
            return

        notice = NotificationType.PM_OVERWORK_NOTICE
        delivery = await self.notifications.notify(
            managers,
            type=notice,
            category=NotificationCategory.ALERT,
            title="Team Member Overloaded",
            message=(
                f"User {user.display_name} is planned for {planned:.0f}h this week "
                f"(> {limit:.0f}h limit). Overtime disabled to prevent burnout."
            ),
            entity_type="user",
            entity_id=user.id,
            link=f"/UserProfile?email={user.email}",
            payload=payload,
            key=lambda m: self.gate.daily_key(notice, user.id, m.email),
            now=self.now,
        )
        self.summary.record_delivery(delivery)
