"""
Team Utilization Job

Compares the time a project team logged on the project with its capacity.

- alarm: below 65% over each member's last 30 working days. Goes to PMs and
  tenant admins (falling back to the owner).
- alert: otherwise, below 75% over the last 7 working days. Goes to PMs
  (falling back to the owner).
"""

from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select, func

from riskwatch.models import NotificationCategory, NotificationType, Project, Tenant, Timesheet, User
from riskwatch.notifications.payloads import TeamUtilizationPayload
from riskwatch.notifications.templates import build_team_utilization_email
from ..base import RuleJob
from ..metrics import resolve_working_days
from ..recipients import ACTIVE_PROJECT_STATUSES, union


@dataclass
class TeamWindow:
    window_days: int
    logged_minutes: float
    capacity_minutes: float
    member_count: int

    @property
    def utilization_pct(self) -> float:
        if self.capacity_minutes <= 0:
            return 0.0
        return self.logged_minutes / self.capacity_minutes * 100


class TeamUtilizationJob(RuleJob):
    """Flags project teams logging far less than their capacity."""

    name = "team-utilization"
    description = "Project team utilization over 30 and 7 working days"
    subject_label = "project"

    async def subjects(self, tenant: Tenant) -> List[str]:
        result = await self.db.execute(
            select(Project.id)
            .where(Project.tenant_id == tenant.id)
            .where(Project.status.in_(ACTIVE_PROJECT_STATUSES))
            .order_by(Project.name)
        )
        return [row[0] for row in result.fetchall()]

    async def team_window(self, project: Project, members: List[User], count: int) -> TeamWindow:
        logged = 0.0
        capacity = 0.0
        for member in members:
            days = resolve_working_days(member.working_days, count, self.today)
            if not days:
                continue
            capacity += len(days) * (member.working_hours_per_day or 0) * 60
            result = await self.db.execute(
                select(func.coalesce(func.sum(Timesheet.total_minutes), 0))
                .where(Timesheet.project_id == project.id)
                .where(Timesheet.user_email == member.email)
                .where(Timesheet.timesheet_date.in_(days))
            )
            logged += result.scalar_one()
        return TeamWindow(count, logged, capacity, len(members))

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        project = await self.db.get(Project, subject_id)
        emails = await self.recipients.project_members(project)
        members = await self.recipients.active_users_by_email(tenant.id, emails)
        if not members:
            self.skip(f"project {project.name} has no active members")
            return

        t = self.thresholds
        month = await self.team_window(project, members, t.team_alarm_window_days)
        if month.capacity_minutes <= 0:
            self.skip(f"project {project.name} has no capacity to measure")
            return

        if month.utilization_pct < t.team_alarm_pct:
            await self.raise_alarm(tenant, project, month)
            return

        week = await self.team_window(project, members, t.team_alert_window_days)
        if week.capacity_minutes > 0 and week.utilization_pct < t.team_alert_pct:
            await self.raise_alert(tenant, project, week)

    async def raise_alarm(self, tenant: Tenant, project: Project, window: TeamWindow) -> None:
        self.summary.triggered += 1
        alarm = NotificationType.PM_CRITICAL_UNDERUTILIZATION_ALARM
        if await self.gate.sent_today(alarm, project_id=project.id):
            self.skip(f"utilization alarm already sent today for {project.name}")
            return

        recipients = union(
            await self.recipients.project_managers(project),
            await self.recipients.tenant_admins(tenant.id),
        )
        if not recipients:
            recipients = await self.recipients.fallback(tenant)
        await self._notify(project, window, alarm, NotificationCategory.ALARM, recipients,
                           "Critical Team Under-Utilization")

    async def raise_alert(self, tenant: Tenant, project: Project, window: TeamWindow) -> None:
        self.summary.triggered += 1
        alert = NotificationType.PM_LOW_TEAM_UTILIZATION
        if await self.gate.sent_today(alert, project_id=project.id):
            self.skip(f"utilization alert already sent today for {project.name}")
            return

        recipients = await self.recipients.project_managers(project)
        if not recipients:
            owner: Optional[User] = await self.recipients.tenant_owner(tenant)
            recipients = [owner] if owner else []
        await self._notify(project, window, alert, NotificationCategory.ALERT, recipients,
                           "Low Team Utilization")

    async def _notify(self, project, window: TeamWindow, type_, category, recipients, title) -> None:
        if not recipients:
            self.skip(f"no recipients for {title.lower()} on {project.name}")
            return

        pct = window.utilization_pct
        link = f"/ProjectDetail?id={project.id}&tab=team"
        delivery = await self.notifications.notify(
            recipients,
            type=type_,
            category=category,
            title=title,
            message=(
                f"Team utilization on {project.name} is {pct:.0f}% over the last "
                f"{window.window_days} working days."
            ),
            entity_type="project",
            entity_id=project.id,
            project_id=project.id,
            link=link,
            payload=TeamUtilizationPayload(
                window_days=window.window_days,
                utilization_pct=round(pct, 2),
                logged_hours=round(window.logged_minutes / 60, 2),
                capacity_hours=round(window.capacity_minutes / 60, 2),
                member_count=window.member_count,
            ),
            key=lambda user: self.gate.daily_key(type_, project.id, user.email),
            email=lambda user: build_team_utilization_email(
                project.name, pct, window.window_days, category, link, user.display_name,
            ),
            now=self.now,
        )
        self.summary.record_delivery(delivery)
