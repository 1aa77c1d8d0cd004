"""
Low Velocity Job

Alerts project managers when delivery accuracy (completed vs committed
points) averages below 85% over the last two measured sprints.
"""

from typing import List

from sqlalchemy import select

from riskwatch.models import NotificationCategory, NotificationType, Project, SprintVelocity, Tenant
from riskwatch.notifications.payloads import VelocityPayload
from ..base import RuleJob
from ..metrics import average


def latest_per_sprint(records: List[SprintVelocity]) -> List[SprintVelocity]:
    """Keep the newest measurement of each sprint; input is newest-first."""
    seen = set()
    latest = []
    for record in records:
        key = record.sprint_id or record.id
        if key in seen:
            continue
        seen.add(key)
        latest.append(record)
    return latest


def accuracy_of(record: SprintVelocity) -> float:
    if record.accuracy is not None:
        return float(record.accuracy)
    if record.committed_points:
        return record.completed_points / record.committed_points * 100
    return 0.0


class LowVelocityJob(RuleJob):
    """Flags projects repeatedly delivering less than they commit."""

    name = "low-velocity"
    description = "Average sprint accuracy below target"
    subject_label = "project"

    async def subjects(self, tenant: Tenant) -> List[str]:
        result = await self.db.execute(
            select(SprintVelocity.project_id)
            .where(SprintVelocity.tenant_id == tenant.id)
            .distinct()
        )
        return sorted(row[0] for row in result.fetchall())

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        project = await self.db.get(Project, subject_id)
        if project is None:
            self.skip(f"velocity records point at missing project {subject_id}")
            return

        result = await self.db.execute(
            select(SprintVelocity)
            .where(SprintVelocity.project_id == project.id)
            .order_by(SprintVelocity.measurement_date.desc())
        )
        records = latest_per_sprint(result.scalars().all())[: self.thresholds.velocity_accuracy_window]
        if not records:
            return

        accuracies = [round(accuracy_of(r), 2) for r in records]
        mean_accuracy = average(accuracies)
        if mean_accuracy >= self.thresholds.velocity_accuracy_pct:
            return

        self.summary.triggered += 1
        latest = records[0]
        sprint_key = latest.sprint_id or latest.id
        alert = NotificationType.PM_VELOCITY_DROP

        if await self.gate.sent_today(alert, entity_id=sprint_key, project_id=project.id):
            self.skip(f"velocity drop already raised today for {project.name}")
            return

        recipients = await self.recipients.project_managers(project)
        if not recipients:
            recipients = await self.recipients.project_admins(project)
        if not recipients:
            recipients = await self.recipients.fallback(tenant)
        if not recipients:
            self.skip(f"no recipients for velocity drop on {project.name}")
            return

        sprint_name = latest.sprint_name or "latest sprint"
        delivery = await self.notifications.notify(
            recipients,
            type=alert,
            category=NotificationCategory.ALERT,
            title="Velocity Drop",
            message=(
                f"Sprint accuracy on {project.name} averaged {mean_accuracy:.0f}% over the last "
                f"{len(records)} sprint(s) ({sprint_name}). Review commitments and blockers."
            ),
            entity_type="sprint",
            entity_id=sprint_key,
            project_id=project.id,
            link=f"/ProjectDetail?id={project.id}&tab=sprints",
            payload=VelocityPayload(
                sprint_id=latest.sprint_id,
                sprint_name=latest.sprint_name,
                accuracies=accuracies,
                average_accuracy=round(mean_accuracy, 2),
            ),
            key=lambda user: self.gate.daily_key(alert, sprint_key, user.email),
            now=self.now,
        )
        self.summary.record_delivery(delivery)
