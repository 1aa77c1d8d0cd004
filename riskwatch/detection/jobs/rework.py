"""
Rework Trend Job

Per active project, compares the rework share of the last three sprints.

- runaway (alarm): >25% rework for 3 consecutive sprints. The project is put
  on hold and a two-week Tech-Debt Sprint is planned. PMs and tenant admins
  get an in-app alarm and an email.
- high (alert): >15% rework for 2 consecutive sprints. In-app only.

The alarm is checked first; a project that trips it gets no alert in the
same run.
"""

import logging
from datetime import timedelta
from typing import List

from sqlalchemy import select, func

from riskwatch.models import (
    NotificationCategory,
    NotificationType,
    Project,
    ProjectStatus,
    Sprint,
    Tenant,
    Timesheet,
)
from riskwatch.notifications.payloads import ReworkTrendPayload, SprintRework
from riskwatch.notifications.templates import build_runaway_rework_email
from ..base import RuleJob
from ..metrics import consecutive_streak, rework_ratio
from ..recipients import ACTIVE_PROJECT_STATUSES, union

logger = logging.getLogger(__name__)

TECH_DEBT_SPRINT_NAME = "Tech-Debt Sprint (Auto)"
TECH_DEBT_SPRINT_GOAL = "Auto-generated sprint to address runaway rework (> 25% for 3 sprints)."


def project_link(project_id: str) -> str:
    return f"/ProjectDetail?id={project_id}&showReworkPopup=true"


class ReworkTrendJob(RuleJob):
    """Detects sustained rework across recent sprints."""

    name = "rework-trend"
    description = "High and runaway rework streaks over the last sprints"
    subject_label = "project"

    async def subjects(self, tenant: Tenant) -> List[str]:
        result = await self.db.execute(
            select(Project.id)
            .where(Project.tenant_id == tenant.id)
            .where(Project.status.in_(ACTIVE_PROJECT_STATUSES))
            .order_by(Project.name)
        )
        return [row[0] for row in result.fetchall()]

    async def sprint_rework(self, project: Project, members: List[str]) -> List[SprintRework]:
        """Rework % of the most recent sprints, most-recent-first."""
        result = await self.db.execute(
            select(Sprint)
            .where(Sprint.project_id == project.id)
            .where(Sprint.end_date.is_not(None))
            .order_by(Sprint.end_date.desc())
            .limit(self.thresholds.rework_sprint_window)
        )
        sprints = result.scalars().all()

        points = []
        for sprint in sprints:
            start = (sprint.start_date or sprint.end_date).date()
            totals = await self.db.execute(
                select(
                    func.coalesce(func.sum(Timesheet.total_minutes), 0),
                    func.coalesce(func.sum(Timesheet.rework_minutes), 0),
                )
                .where(Timesheet.user_email.in_(members))
                .where(Timesheet.timesheet_date >= start)
                .where(Timesheet.timesheet_date <= sprint.end_date.date())
            )
            total_minutes, rework_minutes = totals.one()
            points.append(SprintRework(name=sprint.name, rework=round(rework_ratio(rework_minutes, total_minutes), 2)))
        return points

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        project = await self.db.get(Project, subject_id)
        members = await self.recipients.project_members(project)
        if not members:
            self.skip(f"project {project.name} has no team members")
            return

        recent = await self.sprint_rework(project, members)
        values = [point.rework for point in recent]
        t = self.thresholds

        if consecutive_streak(values, t.rework_runaway_pct) >= t.rework_runaway_streak:
            await self.raise_runaway(tenant, project, recent)
        elif consecutive_streak(values, t.rework_high_pct) >= t.rework_high_streak:
            await self.raise_high(tenant, project, recent)

    # =========================================================================
    # Tiers
    # =========================================================================

    async def raise_runaway(self, tenant: Tenant, project: Project, recent: List[SprintRework]) -> None:
        self.summary.triggered += 1
        alarm = NotificationType.PM_RUNAWAY_REWORK_ALARM

        if await self.gate.sent_today(alarm, project_id=project.id):
            self.skip(f"runaway rework alarm already sent today for {project.name}")
            return

        recipients = union(
            await self.recipients.project_managers(project),
            await self.recipients.tenant_admins(tenant.id),
        )
        if not recipients:
            self.skip(f"no PM or admin to notify for runaway rework on {project.name}")
            return

        self.changed(project, "status", ProjectStatus.ON_HOLD.value)
        self.db.add(
            Sprint(
                tenant_id=project.tenant_id,
                project_id=project.id,
                name=TECH_DEBT_SPRINT_NAME,
                start_date=self.now,
                end_date=self.now + timedelta(days=self.thresholds.tech_debt_sprint_days),
                status="planning",
                goal=TECH_DEBT_SPRINT_GOAL,
            )
        )
        self.summary.state_changes += 1
        logger.info(f"[{self.name}] {project.name} put on hold, tech-debt sprint planned")

        link = project_link(project.id)
        sprints = [point.model_dump() for point in recent]
        delivery = await self.notifications.notify(
            recipients,
            type=alarm,
            category=NotificationCategory.ALARM,
            title="Runaway Rework Detected",
            message="Runaway rework detected. Immediate action needed.",
            entity_type="project",
            entity_id=project.id,
            project_id=project.id,
            link=link,
            payload=ReworkTrendPayload(
                recent_sprints=recent,
                streak=self.thresholds.rework_runaway_streak,
                threshold_pct=self.thresholds.rework_runaway_pct,
            ),
            key=lambda user: self.gate.daily_key(alarm, project.id, user.email),
            email=lambda user: build_runaway_rework_email(project.name, sprints, link, user.display_name),
            now=self.now,
        )
        self.summary.record_delivery(delivery)

    async def raise_high(self, tenant: Tenant, project: Project, recent: List[SprintRework]) -> None:
        self.summary.triggered += 1
        alert = NotificationType.PM_HIGH_REWORK

        if await self.gate.sent_today(
            [alert, NotificationType.PM_RUNAWAY_REWORK_ALARM], project_id=project.id
        ):
            self.skip(f"rework notification already sent today for {project.name}")
            return

        recipients = union(
            await self.recipients.project_managers(project),
            await self.recipients.tenant_admins(tenant.id),
        )
        if not recipients:
            self.skip(f"no PM or admin to notify for high rework on {project.name}")
            return

        delivery = await self.notifications.notify(
            recipients,
            type=alert,
            category=NotificationCategory.ALERT,
            title="High Rework Trend",
            message="Rework increasing. Check quality process.",
            entity_type="project",
            entity_id=project.id,
            project_id=project.id,
            link=project_link(project.id),
            payload=ReworkTrendPayload(
                recent_sprints=recent,
                streak=self.thresholds.rework_high_streak,
                threshold_pct=self.thresholds.rework_high_pct,
            ),
            key=lambda user: self.gate.daily_key(alert, project.id, user.email),
            now=self.now,
        )
        self.summary.record_delivery(delivery)
