"""
Task Overdue Job

Follows single tasks past their due date:
- two days overdue: the assignee is alerted when they hold the viewer role
- five days overdue: the project owner and PMs receive an escalation

Both notifications stay open while the task is overdue and are refreshed in
place with the current day count. They are resolved once the task is
completed, cancelled or rescheduled.
"""

import logging
from typing import List

from sqlalchemy import select

from riskwatch.models import (
    Notification,
    NotificationCategory,
    NotificationType,
    OPEN_STATUSES,
    Project,
    Task,
    Tenant,
)
from riskwatch.notifications.payloads import TaskOverduePayload
from ..base import RuleJob
from ..metrics import days_overdue, is_terminal_status
from .overdue import task_link

logger = logging.getLogger(__name__)

TASK_ALERT_TYPES = (NotificationType.TASK_OVERDUE_ALERT, NotificationType.TASK_ESCALATION_ALERT)
VIEWER_ROLE = "viewer"


class TaskOverdueJob(RuleJob):
    """Alerts viewers on their overdue tasks and escalates long delays to managers."""

    name = "task-overdue"
    description = "Single tasks overdue for several days"
    subject_label = "task"

    async def subjects(self, tenant: Tenant) -> List[str]:
        result = await self.db.execute(
            select(Task)
            .where(Task.tenant_id == tenant.id)
            .where(Task.due_date.is_not(None))
            .where(Task.due_date < self.now)
            .order_by(Task.due_date, Task.id)
        )
        task_ids = [task.id for task in result.scalars().all() if not is_terminal_status(task.status)]

        # Tasks that still carry open alerts are checked so they can be released
        open_result = await self.db.execute(
            select(Notification.entity_id)
            .where(Notification.tenant_id == tenant.id)
            .where(Notification.type.in_([t.value for t in TASK_ALERT_TYPES]))
            .where(Notification.status.in_(OPEN_STATUSES))
        )
        for (entity_id,) in open_result.fetchall():
            if entity_id and entity_id not in task_ids:
                task_ids.append(entity_id)
        return task_ids

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        task = await self.db.get(Task, subject_id)
        if (
            task is None
            or task.due_date is None
            or task.due_date >= self.now
            or is_terminal_status(task.status)
        ):
            await self.release_open(TASK_ALERT_TYPES, subject_id)
            return

        days = days_overdue(task.due_date, self.now)
        if days < self.thresholds.task_overdue_alert_days:
            return

        self.summary.triggered += 1
        payload = TaskOverduePayload(
            task_id=task.id,
            assignee_email=task.assigned_to,
            days_overdue=days,
            due_date=task.due_date.date(),
        )
        await self.alert_assignee(task, days, payload)
        if days >= self.thresholds.task_overdue_escalation_days:
            await self.escalate(task, days, payload)

    async def alert_assignee(self, task: Task, days: int, payload: TaskOverduePayload) -> None:
        if not task.assigned_to:
            return
        assignees = await self.recipients.active_users_by_email(task.tenant_id, [task.assigned_to])
        if not assignees or assignees[0].custom_role != VIEWER_ROLE:
            return

        await self.keep_open(
            assignees[0],
            type=NotificationType.TASK_OVERDUE_ALERT,
            category=NotificationCategory.ALERT,
            title=f"Task Overdue ({days} Days)",
            message=(
                f"Task '{task.title}' is overdue by {days} days. Due date was "
                f"{task.due_date.strftime('%Y-%m-%d')}. Immediate action required."
            ),
            entity_type="task",
            entity_id=task.id,
            project_id=task.project_id,
            link=task_link(task),
            payload=payload,
        )

    async def escalate(self, task: Task, days: int, payload: TaskOverduePayload) -> None:
        project = await self.db.get(Project, task.project_id)
        if project is None:
            logger.warning(f"[{self.name}] task {task.id} points at a missing project")
            return

        managers = [m for m in await self.recipients.project_leads(project) if m.email != task.assigned_to]
        if not managers:
            logger.warning(f"[{self.name}] no manager on {project.name} to escalate task {task.id}")
            return

        for manager in managers:
            await self.keep_open(
                manager,
                type=NotificationType.TASK_ESCALATION_ALERT,
                category=NotificationCategory.ALERT,
                title=f"Escalation: Task Overdue ({days} Days)",
                message=(
                    f"ESCALATION: Task '{task.title}' is overdue by {days} days. "
                    "Immediate intervention required."
                ),
                entity_type="task",
                entity_id=task.id,
                project_id=project.id,
                link=f"/ProjectDetail?id={project.id}",
                payload=payload,
            )
