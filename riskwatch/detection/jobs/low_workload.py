"""
Low Workload Job

Compares the hours planned for a member this week (open tasks due Monday to
Sunday) with their weekly capacity of working_hours_per_day x 5. Under 70%
the member and the leads of their projects keep one open alert each,
refreshed on every run and resolved once the plan fills up again.
"""

from typing import List

from sqlalchemy import select

from riskwatch.models import NotificationCategory, NotificationType, Task, Tenant, User
from riskwatch.models.user import MEMBER_ROLES
from riskwatch.notifications.payloads import WorkloadPayload
from ..base import RuleJob
from ..metrics import planned_hours_due_this_week
from ..recipients import union


class LowWorkloadJob(RuleJob):
    """Flags members with too little work planned for the week."""

    name = "low-workload"
    description = "Weekly planned workload below capacity"
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

    def weekly_capacity(self, user: User) -> float:
        daily = user.working_hours_per_day or self.thresholds.default_working_hours_per_day
        return daily * self.thresholds.low_workload_days_per_week

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        user = await self.db.get(User, subject_id)
        result = await self.db.execute(
            select(Task)
            .where(Task.tenant_id == tenant.id)
            .where(Task.assigned_to == user.email)
        )
        planned = planned_hours_due_this_week(result.scalars().all(), self.now)
        capacity = self.weekly_capacity(user)

        if planned >= capacity * self.thresholds.low_workload_pct / 100:
            await self.release_open(NotificationType.LOW_WORKLOAD_ALERT, user.id)
            return

        self.summary.triggered += 1
        alert = NotificationType.LOW_WORKLOAD_ALERT
        payload = WorkloadPayload(user_id=user.id, planned_hours=round(planned, 2), limit_hours=capacity)

        await self.keep_open(
            user,
            type=alert,
            category=NotificationCategory.ALERT,
            title="Low Workload Alert",
            message=f"Low hours detected: {planned:g} hrs / {capacity:g} hrs capacity this week.",
            entity_type="user",
            entity_id=user.id,
            link="/MyTasks",
            payload=payload,
        )

        managers: List[User] = []
        for project in await self.recipients.user_projects(user):
            managers = union(managers, await self.recipients.project_leads(project))

        for manager in managers:
            if manager.id == user.id:
                continue
            await self.keep_open(
                manager,
                type=alert,
                category=NotificationCategory.ALERT,
                title=f"Low Workload: {user.display_name}",
                message=(
                    f"{user.display_name} has only {planned:g} hrs assigned this week "
                    f"(<{self.thresholds.low_workload_pct:g}% of {capacity:g})."
                ),
                entity_type="user",
                entity_id=user.id,
                link=f"/UserProfile?email={user.email}",
                payload=payload,
            )
