"""
Overdue Task Jobs

MultipleOverdueJob
    Three or more overdue tasks block a member from new work. The member keeps
    one open alarm that is refreshed in place on every run; its email is only
    repeated after a four-hour cooldown. Project managers of the most overdue
    task's project keep one open escalation per member. The block flag is
    synced with the current count on every run.

SprintHealthJob
    Alerts project managers when more than 20% of an active sprint's tasks are
    overdue.
"""

import logging
from typing import List

from sqlalchemy import select

from riskwatch.models import (
    NotificationCategory,
    NotificationType,
    Project,
    Sprint,
    Task,
    Tenant,
    User,
)
from riskwatch.models.user import MEMBER_ROLES
from riskwatch.notifications.payloads import OverdueTasksPayload, SprintHealthPayload
from riskwatch.notifications.templates import build_overdue_alarm_email, build_sprint_health_email
from ..base import RuleJob
from ..metrics import is_terminal_status

logger = logging.getLogger(__name__)


def task_link(task: Task) -> str:
    return f"/ProjectDetail?id={task.project_id}&taskId={task.id}"


class MultipleOverdueJob(RuleJob):
    """Blocks members with several overdue tasks and escalates to their PMs."""

    name = "multiple-overdue"
    description = "Members with several overdue tasks"
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

    async def overdue_tasks(self, user: User) -> List[Task]:
        result = await self.db.execute(
            select(Task)
            .where(Task.tenant_id == user.tenant_id)
            .where(Task.assigned_to == user.email)
            .where(Task.due_date.is_not(None))
            .where(Task.due_date < self.now)
            .order_by(Task.due_date.asc())
        )
        return [task for task in result.scalars().all() if not is_terminal_status(task.status)]

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        user = await self.db.get(User, subject_id)
        overdue = await self.overdue_tasks(user)
        blocked = len(overdue) >= self.thresholds.overdue_task_limit

        self.changed(user, "is_overdue_blocked", blocked)

        if not blocked:
            await self.release(user)
            return

        self.summary.triggered += 1
        most_overdue = overdue[0]
        payload = OverdueTasksPayload(
            user_id=user.id,
            overdue_count=len(overdue),
            task_ids=[t.id for t in overdue],
            most_overdue_task_id=most_overdue.id,
        )
        await self.alarm_user(user, overdue, payload)
        await self.escalate_to_managers(user, overdue, payload)

    async def release(self, user: User) -> None:
        """Close open overdue notifications once the member is no longer blocked."""
        await self.release_open(
            (NotificationType.MULTIPLE_OVERDUE_ALARM, NotificationType.MULTIPLE_OVERDUE_ESCALATION), user.id,
        )

    async def alarm_user(self, user: User, overdue: List[Task], payload: OverdueTasksPayload) -> None:
        alarm = NotificationType.MULTIPLE_OVERDUE_ALARM
        most_overdue = overdue[0]
        title = f"ALARM: {len(overdue)} Tasks Overdue!"
        message = (
            f"You have {len(overdue)} overdue tasks. The most overdue is "
            f"'{most_overdue.title}'. New work is blocked until they are completed or rescheduled."
        )
        link = task_link(most_overdue)
        email = build_overdue_alarm_email(len(overdue), [t.title for t in overdue], link, user.display_name)

        existing = await self.gate.find_open(alarm, entity_id=user.id, user_id=user.id)
        if existing is None:
            delivery = await self.notifications.notify(
                [user],
                type=alarm,
                category=NotificationCategory.ALARM,
                title=title,
                message=message,
                entity_type="user",
                entity_id=user.id,
                project_id=most_overdue.project_id,
                link=link,
                payload=payload,
                key=lambda u: self.gate.open_key(alarm, user.id, u.email),
                email=lambda u: email,
                now=self.now,
            )
            self.summary.record_delivery(delivery)
            return

        await self.notifications.refresh(
            existing, title=title, message=message, link=link, payload=payload, now=self.now,
        )
        self.summary.notifications_updated += 1
        if self.gate.email_due(existing, self.thresholds.overdue_email_cooldown):
            self.summary.record_email(
                await self.notifications.email_notification(existing, email, now=self.now)
            )

    async def escalate_to_managers(self, user: User, overdue: List[Task], payload: OverdueTasksPayload) -> None:
        most_overdue = overdue[0]
        project = await self.db.get(Project, most_overdue.project_id)
        if project is None:
            logger.warning(f"[{self.name}] task {most_overdue.id} points at a missing project")
            return

        managers = [m for m in await self.recipients.project_managers(project) if m.id != user.id]
        if not managers:
            logger.warning(f"[{self.name}] no PM on {project.name} to escalate overdue tasks of {user.email}")
            return

        escalation = NotificationType.MULTIPLE_OVERDUE_ESCALATION
        title = f"Escalation: {user.display_name} has {len(overdue)} overdue tasks"
        message = (
            f"{user.display_name} has {len(overdue)} overdue tasks and is blocked from new work. "
            f"Most overdue: '{most_overdue.title}' in {project.name}."
        )
        link = task_link(most_overdue)

        for manager in managers:
            existing = await self.gate.find_open(escalation, entity_id=user.id, recipient_email=manager.email)
            if existing is not None:
                await self.notifications.refresh(
                    existing, title=title, message=message, link=link, payload=payload, now=self.now,
                )
                self.summary.notifications_updated += 1
                continue

            delivery = await self.notifications.notify(
                [manager],
                type=escalation,
                category=NotificationCategory.ALARM,
                title=title,
                message=message,
                entity_type="user",
                entity_id=user.id,
                project_id=project.id,
                link=link,
                payload=payload,
                key=lambda m: self.gate.open_key(escalation, user.id, m.email),
                now=self.now,
            )
            self.summary.record_delivery(delivery)


class SprintHealthJob(RuleJob):
    """Flags active sprints with a large share of overdue tasks."""

    name = "sprint-health"
    description = "Active sprints with many overdue tasks"
    subject_label = "sprint"

    async def subjects(self, tenant: Tenant) -> List[str]:
        result = await self.db.execute(
            select(Sprint.id)
            .where(Sprint.tenant_id == tenant.id)
            .where(Sprint.status == "active")
            .order_by(Sprint.end_date)
        )
        return [row[0] for row in result.fetchall()]

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        sprint = await self.db.get(Sprint, subject_id)
        result = await self.db.execute(select(Task).where(Task.sprint_id == sprint.id))
        tasks = result.scalars().all()
        if not tasks:
            return

        overdue = [
            t for t in tasks
            if t.due_date is not None and t.due_date < self.now
            and not is_terminal_status(t.status)
        ]
        overdue_pct = len(overdue) / len(tasks) * 100
        if overdue_pct <= self.thresholds.sprint_overdue_pct:
            return

        self.summary.triggered += 1
        project = await self.db.get(Project, sprint.project_id)
        recipients = await self.recipients.project_managers(project)
        if not recipients:
            owner = await self.recipients.tenant_owner(tenant)
            recipients = [owner] if owner else []
        if not recipients:
            self.skip(f"no recipients for sprint health of {sprint.name}")
            return

        alert = NotificationType.PM_MULTIPLE_OVERDUE_TASKS
        link = f"/ProjectDetail?id={project.id}&sprintId={sprint.id}"
        payload = SprintHealthPayload(
            sprint_id=sprint.id,
            sprint_name=sprint.name,
            overdue_count=len(overdue),
            total_tasks=len(tasks),
            overdue_pct=round(overdue_pct, 2),
        )
        for recipient in recipients:
            if await self.gate.within_cooldown(
                alert, self.thresholds.sprint_health_cooldown,
                entity_id=sprint.id, recipient_email=recipient.email,
            ):
                self.skip(f"sprint health alert for {sprint.name} still in cooldown for {recipient.email}")
                continue

            delivery = await self.notifications.notify(
                [recipient],
                type=alert,
                category=NotificationCategory.ALERT,
                title="Multiple Overdue Tasks in Sprint",
                message=(
                    f"{len(overdue)} of {len(tasks)} tasks in {sprint.name} ({project.name}) "
                    f"are overdue ({overdue_pct:.0f}%)."
                ),
                entity_type="sprint",
                entity_id=sprint.id,
                project_id=project.id,
                link=link,
                payload=payload,
                key=lambda r: self.gate.cooldown_key(alert, sprint.id, r.email),
                email=lambda r: build_sprint_health_email(
                    project.name, sprint.name, len(overdue), len(tasks), link, r.display_name,
                ),
                now=self.now,
            )
            self.summary.record_delivery(delivery)
