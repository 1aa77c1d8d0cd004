"""
Personal Utilization Jobs

All three compare a user's logged minutes with their availability
(working_hours_per_day on their configured working days).

- IdleTimeJob: more than 25% idle on the last working day. Informational, with
  up to three backlog tasks the user could pick up.
- UnderUtilizationJob: under 60% over the last 30 working days.
- LowLoggedHoursJob: below availability on each of the last 3 working days.
"""

from datetime import date
from typing import Dict, List

from sqlalchemy import select, func, or_

from riskwatch.models import NotificationCategory, NotificationType, Task, Tenant, Timesheet, User
from riskwatch.notifications.payloads import IdleTimePayload, PersonalUtilizationPayload, SuggestedTask
from riskwatch.notifications.templates import build_low_logged_hours_email, build_under_utilization_email
from ..base import RuleJob
from ..metrics import idle_pct, resolve_working_days, utilization_pct

SUGGESTABLE_STATUSES = ("todo", "backlog")


class PersonalUtilizationJob(RuleJob):
    """Shared subject selection and timesheet lookups."""

    subject_label = "user"

    async def subjects(self, tenant: Tenant) -> List[str]:
        result = await self.db.execute(
            select(User.id)
            .where(User.tenant_id == tenant.id)
            .where(User.status == "active")
            .order_by(User.email)
        )
        return [row[0] for row in result.fetchall()]

    async def logged_by_day(self, user: User, days: List[date]) -> Dict[date, int]:
        if not days:
            return {}
        result = await self.db.execute(
            select(Timesheet.timesheet_date, func.sum(Timesheet.total_minutes))
            .where(Timesheet.tenant_id == user.tenant_id)
            .where(Timesheet.user_email == user.email)
            .where(Timesheet.timesheet_date.in_(days))
            .group_by(Timesheet.timesheet_date)
        )
        return {day: minutes or 0 for day, minutes in result.fetchall()}

    @staticmethod
    def daily_minutes(user: User) -> float:
        return (user.working_hours_per_day or 0) * 60


class IdleTimeJob(PersonalUtilizationJob):
    """Suggests work to users who were largely idle on their last working day."""

    name = "idle-time"
    description = "Idle time on the previous working day"

    async def suggested_tasks(self, user: User) -> List[SuggestedTask]:
        projects = await self.recipients.user_projects(user)
        project_ids = [p.id for p in projects]
        if not project_ids:
            return []

        result = await self.db.execute(
            select(Task)
            .where(Task.project_id.in_(project_ids))
            .where(func.lower(Task.status).in_(SUGGESTABLE_STATUSES))
            .where(or_(Task.assigned_to == user.email, Task.assigned_to.is_(None)))
            .order_by(Task.due_date.is_(None), Task.due_date, Task.created_date)
            .limit(self.thresholds.suggested_task_limit)
        )
        return [
            SuggestedTask(id=task.id, title=task.title, project_id=task.project_id)
            for task in result.scalars().all()
        ]

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        user = await self.db.get(User, subject_id)
        days = resolve_working_days(user.working_days, 1, self.today)
        available = self.daily_minutes(user)
        if not days or available <= 0:
            return

        day = days[0]
        logged = (await self.logged_by_day(user, days)).get(day, 0)
        idle = idle_pct(logged, available)
        if idle <= self.thresholds.idle_pct:
            return

        self.summary.triggered += 1
        alert = NotificationType.IDLE_TIME_ALERT
        if await self.gate.sent_today(alert, entity_id=user.id, recipient_email=user.email):
            self.skip(f"idle time alert already sent today to {user.email}")
            return

        suggestions = await self.suggested_tasks(user)
        message = (
            f"You logged {logged / 60:.1f}h of {available / 60:.1f}h available on "
            f"{day.strftime('%A')} ({idle:.0f}% idle)."
        )
        if suggestions:
            message += " Suggested tasks: " + ", ".join(s.title for s in suggestions) + "."

        delivery = await self.notifications.notify(
            [user],
            type=alert,
            category=NotificationCategory.INFO,
            title="Significant Idle Time Detected",
            message=message,
            entity_type="user",
            entity_id=user.id,
            link="/MyTasks",
            payload=IdleTimePayload(
                day=day,
                idle_pct=round(idle, 2),
                logged_hours=round(logged / 60, 2),
                available_hours=round(available / 60, 2),
                suggested_tasks=suggestions,
            ),
            key=lambda u: self.gate.daily_key(alert, user.id, u.email),
            now=self.now,
        )
        self.summary.record_delivery(delivery)


class UnderUtilizationJob(PersonalUtilizationJob):
    """Alerts users logging well under their availability for a month."""

    name = "under-utilization"
    description = "Individual utilization over the last 30 working days"

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        user = await self.db.get(User, subject_id)
        window = self.thresholds.under_utilization_window_days
        days = resolve_working_days(user.working_days, window, self.today)
        daily = self.daily_minutes(user)
        if not days or daily <= 0:
            return

        logged = sum((await self.logged_by_day(user, days)).values())
        pct = utilization_pct(logged, len(days), daily)
        if pct >= self.thresholds.under_utilization_pct:
            return

        self.summary.triggered += 1
        alert = NotificationType.UNDER_UTILIZATION_ALERT
        if await self.gate.sent_today(alert, entity_id=user.id, recipient_email=user.email):
            self.skip(f"under-utilization alert already sent today to {user.email}")
            return

        link = "/Timesheets"
        delivery = await self.notifications.notify(
            [user],
            type=alert,
            category=NotificationCategory.ALERT,
            title="Under-Utilization Alert",
            message=(
                f"You logged {pct:.0f}% of your available time over the last "
                f"{len(days)} working days."
            ),
            entity_type="user",
            entity_id=user.id,
            link=link,
            payload=PersonalUtilizationPayload(
                window_days=len(days),
                utilization_pct=round(pct, 2),
                logged_hours=round(logged / 60, 2),
                available_hours=round(len(days) * daily / 60, 2),
            ),
            key=lambda u: self.gate.daily_key(alert, user.id, u.email),
            email=lambda u: build_under_utilization_email(pct, len(days), link, u.display_name),
            now=self.now,
        )
        self.summary.record_delivery(delivery)


class LowLoggedHoursJob(PersonalUtilizationJob):
    """Alerts users who logged under their availability several days running."""

    name = "low-logged-hours"
    description = "Logged hours below availability on the last working days"

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        user = await self.db.get(User, subject_id)
        count = self.thresholds.low_logged_hours_days
        days = resolve_working_days(user.working_days, count, self.today)
        daily = self.daily_minutes(user)
        if len(days) < count or daily <= 0:
            return

        logged = await self.logged_by_day(user, days)
        if any(logged.get(day, 0) >= daily for day in days):
            return

        self.summary.triggered += 1
        alert = NotificationType.LOW_LOGGED_HOURS
        if await self.gate.sent_today(alert, entity_id=user.id, recipient_email=user.email):
            self.skip(f"low logged hours alert already sent today to {user.email}")
            return

        total = sum(logged.values())
        link = "/Timesheets"
        delivery = await self.notifications.notify(
            [user],
            type=alert,
            category=NotificationCategory.ALERT,
            title="Low Logged Hours",
            message=(
                f"You logged less than {daily / 60:g}h on each of your last {count} working days "
                f"({total / 60:.1f}h in total)."
            ),
            entity_type="user",
            entity_id=user.id,
            link=link,
            payload=PersonalUtilizationPayload(
                window_days=count,
                utilization_pct=round(utilization_pct(total, count, daily), 2),
                logged_hours=round(total / 60, 2),
                available_hours=round(count * daily / 60, 2),
                days=sorted(days),
            ),
            key=lambda u: self.gate.daily_key(alert, user.id, u.email),
            email=lambda u: build_low_logged_hours_email(sorted(days), daily / 60, link, u.display_name),
            now=self.now,
        )
        self.summary.record_delivery(delivery)
