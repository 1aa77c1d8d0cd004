"""
Deadline Risk Job

Forecasts completion of every open project with a deadline from its remaining
story points and recent velocity. A forecast more than 21 days past the
deadline locks the project scope and alarms the project managers.
"""

import logging
from typing import List

from sqlalchemy import select

from riskwatch.models import (
    NotificationCategory,
    NotificationType,
    Project,
    ProjectStatus,
    SprintVelocity,
    Task,
    Tenant,
)
from riskwatch.notifications.payloads import DeadlineRiskPayload
from riskwatch.notifications.templates import build_deadline_risk_email
from ..base import RuleJob
from ..metrics import average, forecast_deadline, is_terminal_status

logger = logging.getLogger(__name__)


class DeadlineRiskJob(RuleJob):
    """Locks scope on projects forecast to miss their deadline."""

    name = "deadline-risk"
    description = "Velocity-based deadline forecast with scope lock"
    subject_label = "project"

    async def subjects(self, tenant: Tenant) -> List[str]:
        result = await self.db.execute(
            select(Project.id)
            .where(Project.tenant_id == tenant.id)
            .where(Project.deadline.is_not(None))
            .where(Project.status != ProjectStatus.COMPLETED.value)
            .order_by(Project.name)
        )
        return [row[0] for row in result.fetchall()]

    async def remaining_points(self, project: Project) -> float:
        result = await self.db.execute(select(Task).where(Task.project_id == project.id))
        return sum(
            task.story_points or 0
            for task in result.scalars().all()
            if not is_terminal_status(task.status)
        )

    async def average_velocity(self, project: Project):
        result = await self.db.execute(
            select(SprintVelocity.completed_points)
            .where(SprintVelocity.project_id == project.id)
            .order_by(SprintVelocity.measurement_date.desc())
            .limit(self.thresholds.velocity_sample_size)
        )
        return average(row[0] for row in result.fetchall())

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        project = await self.db.get(Project, subject_id)

        velocity = await self.average_velocity(project)
        if not velocity:
            self.skip(f"no velocity history for {project.name}")
            return

        remaining = await self.remaining_points(project)
        forecast = forecast_deadline(
            remaining,
            velocity,
            project.deadline,
            self.now,
            sprint_length_days=self.thresholds.sprint_length_days,
        )
        if forecast is None or forecast.deviation_days <= self.thresholds.deadline_deviation_days:
            return

        self.summary.triggered += 1
        alarm = NotificationType.PM_DEADLINE_RISK
        if await self.gate.sent_today(alarm, project_id=project.id):
            self.skip(f"deadline risk already raised today for {project.name}")
            return

        recipients = await self.recipients.project_managers(project)
        if not recipients:
            recipients = await self.recipients.project_admins(project)
        if not recipients:
            recipients = await self.recipients.fallback(tenant)
        if not recipients:
            self.summary.failed += 1
            self.summary.errors.append({"project": project.id, "error": "no recipients for deadline risk"})
            logger.error(f"[{self.name}] no recipients for deadline risk on {project.name}")
            return

        self.changed(project, "scope_locked", True)

        forecast_str = forecast.forecast_date.strftime("%Y-%m-%d")
        link = f"/ProjectDetail?id={project.id}"
        delivery = await self.notifications.notify(
            recipients,
            type=alarm,
            category=NotificationCategory.ALARM,
            title="Project Deadline Risk",
            message=(
                f"Deadline Risk: Forecast ({forecast_str}) exceeds deadline by "
                f"{forecast.deviation_days} days based on current velocity. Scope locked."
            ),
            entity_type="project",
            entity_id=project.id,
            project_id=project.id,
            link=link,
            payload=DeadlineRiskPayload(
                remaining_points=remaining,
                average_velocity=round(velocity, 2),
                forecast_date=forecast.forecast_date.date(),
                deadline=project.deadline.date(),
                deviation_days=forecast.deviation_days,
            ),
            key=lambda user: self.gate.daily_key(alarm, project.id, user.email),
            email=lambda user: build_deadline_risk_email(
                project.name, forecast.forecast_date, project.deadline,
                forecast.deviation_days, link, user.display_name,
            ),
            now=self.now,
        )
        self.summary.record_delivery(delivery)
