"""
Project Health Job

Scores planning and active projects from progress, task completion, deadline,
status and risk level (see metrics.project_health). Below 70 the project
managers are alerted; below 50 tenant admins are added, the alert becomes an
alarm and is emailed. Each recipient hears about a project at most once per
24 hours.
"""

import logging
from typing import List

from sqlalchemy import select

from riskwatch.models import NotificationCategory, NotificationType, Project, ProjectStatus, Task, Tenant, User
from riskwatch.notifications.payloads import ProjectHealthPayload
from riskwatch.notifications.templates import build_critical_health_email
from ..base import RuleJob
from ..metrics import project_health
from ..recipients import union

logger = logging.getLogger(__name__)

SCORED_STATUSES = (ProjectStatus.PLANNING.value, ProjectStatus.ACTIVE.value)


class ProjectHealthJob(RuleJob):
    """Warns PMs, and for critical scores admins, about unhealthy projects."""

    name = "project-health"
    description = "Project health score below threshold"
    subject_label = "project"

    async def subjects(self, tenant: Tenant) -> List[str]:
        result = await self.db.execute(
            select(Project.id)
            .where(Project.tenant_id == tenant.id)
            .where(Project.status.in_(SCORED_STATUSES))
            .order_by(Project.name)
        )
        return [row[0] for row in result.fetchall()]

    async def managers(self, project: Project) -> List[User]:
        managers = await self.recipients.project_managers(project)
        if managers or not project.owner_email:
            return managers
        return await self.recipients.active_users_by_email(project.tenant_id, [project.owner_email])

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        project = await self.db.get(Project, subject_id)
        result = await self.db.execute(select(Task).where(Task.project_id == project.id))
        health = project_health(project, result.scalars().all(), self.now)
        if health.score >= self.thresholds.health_alert_score:
            return

        self.summary.triggered += 1
        critical = health.score < self.thresholds.health_critical_score
        recipients = await self.managers(project)
        if critical:
            recipients = union(recipients, await self.recipients.tenant_admins(tenant.id, roles=("admin",)))
        if not recipients:
            self.skip(f"no PM or admin to tell about health of {project.name}")
            return

        if critical:
            alert = NotificationType.PM_CRITICAL_PROJECT_HEALTH_RISK
            category = NotificationCategory.ALARM
            title = f"ALARM: Critical Health Risk ({health.score}%) - {project.name}"
            message = f"Critical health risk detected ({health.score}%). Review root cause indicators."
        else:
            alert = NotificationType.PM_PROJECT_HEALTH_RISK
            category = NotificationCategory.ALERT
            title = f"ALERT: Declining Health Risk ({health.score}%) - {project.name}"
            message = f"Project health is declining ({health.score}%). Review root cause indicators."
        if health.indicators:
            message += "\n\nRoot cause indicators:\n- " + "\n- ".join(health.indicators)

        link = f"/ProjectDetail?id={project.id}&highlightId={project.id}"
        payload = ProjectHealthPayload(health_score=health.score, indicators=health.indicators)
        email = None
        if critical:
            email = lambda r: build_critical_health_email(
                project.name, health.score, health.indicators, link, r.display_name,
            )

        for recipient in recipients:
            if await self.gate.within_cooldown(
                alert, self.thresholds.health_cooldown,
                entity_id=project.id, recipient_email=recipient.email,
            ):
                self.skip(f"{alert.value} for {project.name} still in cooldown for {recipient.email}")
                continue

            delivery = await self.notifications.notify(
                [recipient],
                type=alert,
                category=category,
                title=title,
                message=message,
                entity_type="project",
                entity_id=project.id,
                project_id=project.id,
                link=link,
                payload=payload,
                key=lambda r: self.gate.cooldown_key(alert, project.id, r.email),
                email=email,
                now=self.now,
            )
            self.summary.record_delivery(delivery)
