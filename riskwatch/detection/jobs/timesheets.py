"""
Timesheet Compliance Jobs

MissingTimesheetsJob
    Counts days in the last week (Sundays excluded) without a submitted or
    approved timesheet. More than three locks the member's timesheets, alarms
    the member and tells their managers. The lock is only lifted by an
    administrator, never by this job.

PendingTimesheetsJob
    Reminds owners of timesheets stuck in approval for over a week and sends
    project managers a summary of what waits for them.
"""

import logging
from datetime import timedelta
from typing import Dict, List

from sqlalchemy import select

from riskwatch.models import (
    COMPLETED_TIMESHEET_STATUSES,
    PENDING_TIMESHEET_STATUSES,
    NotificationCategory,
    NotificationType,
    Project,
    Tenant,
    Timesheet,
    TimesheetStatus,
    User,
)
from riskwatch.models.user import MEMBER_ROLES
from riskwatch.notifications.payloads import PendingTimesheetPayload, TimesheetCompliancePayload
from riskwatch.notifications.templates import build_lockout_notice_email, build_timesheet_lockout_email
from ..base import RuleJob
from ..metrics import compliance_window
from ..recipients import union

logger = logging.getLogger(__name__)

MANAGER_ROLES = ("admin", "owner", "manager")


class MissingTimesheetsJob(RuleJob):
    """Locks timesheets of members who repeatedly skip submissions."""

    name = "missing-timesheets"
    description = "Missing timesheet submissions with lockout"
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

    async def missing_days(self, user: User) -> list:
        window = compliance_window(self.today, self.thresholds.timesheet_window_days)
        result = await self.db.execute(
            select(Timesheet.timesheet_date)
            .where(Timesheet.user_email == user.email)
            .where(Timesheet.tenant_id == user.tenant_id)
            .where(Timesheet.timesheet_date.in_(window))
            .where(Timesheet.status.in_(COMPLETED_TIMESHEET_STATUSES))
        )
        submitted = {row[0] for row in result.fetchall()}
        return sorted(day for day in window if day not in submitted)

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        user = await self.db.get(User, subject_id)
        missing = await self.missing_days(user)
        if len(missing) <= self.thresholds.timesheet_missing_limit:
            return

        self.summary.triggered += 1
        # The lock applies whether or not anyone can be notified
        self.changed(user, "is_timesheet_locked", True)

        payload = TimesheetCompliancePayload(user_id=user.id, missing_count=len(missing), missing_dates=missing)
        link = "/Timesheets"

        alarm = NotificationType.TIMESHEET_LOCKOUT_ALARM
        if await self.gate.find_open(alarm, entity_id=user.id, user_id=user.id):
            self.skip(f"open timesheet lockout alarm already exists for {user.email}")
        else:
            delivery = await self.notifications.notify(
                [user],
                type=alarm,
                category=NotificationCategory.ALARM,
                title="Timesheets Locked: Repeated Non-Compliance",
                message=(
                    f"You missed {len(missing)} timesheet submissions in the last week. "
                    "Timesheet entry is locked until an administrator reviews it."
                ),
                entity_type="user",
                entity_id=user.id,
                link=link,
                payload=payload,
                key=lambda u: self.gate.open_key(alarm, user.id, u.email),
                email=lambda u: build_timesheet_lockout_email(missing, link, u.display_name),
                now=self.now,
            )
            self.summary.record_delivery(delivery)

        managers = union(
            await self.recipients.managers_for_user(user),
            await self.recipients.tenant_admins(tenant.id, MANAGER_ROLES),
        )
        managers = [m for m in managers if m.id != user.id]
        if not managers:
            logger.warning(f"[{self.name}] no manager to tell about locked user {user.email}")
            return

        notice = NotificationType.TEAM_MEMBER_LOCKOUT_NOTICE
        for manager in managers:
            if await self.gate.sent_today(notice, entity_id=user.id, recipient_email=manager.email):
                continue
            delivery = await self.notifications.notify(
                [manager],
                type=notice,
                category=NotificationCategory.ALERT,
                title=f"Timesheet Lockout: {user.display_name}",
                message=(
                    f"{user.display_name} missed {len(missing)} timesheet submissions in the "
                    "last week and has been locked out of timesheet entry."
                ),
                entity_type="user",
                entity_id=user.id,
                link=f"/Timesheets?user={user.email}",
                payload=payload,
                key=lambda m: self.gate.daily_key(notice, user.id, m.email),
                email=lambda m: build_lockout_notice_email(
                    user.display_name, len(missing), f"/Timesheets?user={user.email}", m.display_name,
                ),
                now=self.now,
            )
            self.summary.record_delivery(delivery)


class PendingTimesheetsJob(RuleJob):
    """Chases timesheets stuck waiting for approval."""

    name = "pending-timesheets"
    description = "Timesheets pending approval for more than a week"
    subject_label = "user"

    async def subjects(self, tenant: Tenant) -> List[str]:
        result = await self.db.execute(
            select(User)
            .where(User.tenant_id == tenant.id)
            .where(User.status == "active")
            .order_by(User.email)
        )
        return [user.id for user in result.scalars().all()]

    async def stale_pending(self, tenant_id: str, **filters) -> List[Timesheet]:
        cutoff = self.now - timedelta(days=self.thresholds.pending_timesheet_days)
        query = (
            select(Timesheet)
            .where(Timesheet.tenant_id == tenant_id)
            .where(Timesheet.status.in_(filters.get("statuses", PENDING_TIMESHEET_STATUSES)))
            .where(Timesheet.created_date <= cutoff)
            .order_by(Timesheet.timesheet_date)
        )
        if "user_email" in filters:
            query = query.where(Timesheet.user_email == filters["user_email"])
        if "project_ids" in filters:
            query = query.where(Timesheet.project_id.in_(filters["project_ids"]))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        user = await self.db.get(User, subject_id)
        await self.remind_owner(user)
        await self.summarize_for_manager(tenant, user)

    async def remind_owner(self, user: User) -> None:
        pending = await self.stale_pending(user.tenant_id, user_email=user.email)
        if not pending:
            return

        self.summary.triggered += 1
        alert = NotificationType.PENDING_TIMESHEET_ALERT
        if await self.gate.sent_today(alert, entity_id=user.id, recipient_email=user.email):
            self.skip(f"pending timesheet reminder already sent today to {user.email}")
            return

        delivery = await self.notifications.notify(
            [user],
            type=alert,
            category=NotificationCategory.ALERT,
            title="Timesheets Awaiting Approval",
            message=(
                f"{len(pending)} of your timesheets have been waiting for approval for more "
                f"than {self.thresholds.pending_timesheet_days} days."
            ),
            entity_type="user",
            entity_id=user.id,
            link="/Timesheets",
            payload=PendingTimesheetPayload(
                timesheet_ids=[t.id for t in pending],
                oldest_date=pending[0].timesheet_date,
            ),
            key=lambda u: self.gate.daily_key(alert, user.id, u.email),
            now=self.now,
        )
        self.summary.record_delivery(delivery)

    async def summarize_for_manager(self, tenant: Tenant, user: User) -> None:
        result = await self.db.execute(select(Project).where(Project.tenant_id == tenant.id))
        managed: Dict[str, Project] = {}
        for project in result.scalars().all():
            if user in await self.recipients.project_managers(project):
                managed[project.id] = project
        if not managed:
            return

        pending = await self.stale_pending(
            tenant.id,
            statuses=(TimesheetStatus.PENDING_PM.value,),
            project_ids=list(managed),
        )
        if not pending:
            return

        self.summary.triggered += 1
        summary = NotificationType.PENDING_PM_SUMMARY
        if await self.gate.sent_today(summary, entity_id=user.id, recipient_email=user.email):
            self.skip(f"pending approval summary already sent today to {user.email}")
            return

        people = sorted({t.user_email for t in pending})
        delivery = await self.notifications.notify(
            [user],
            type=summary,
            category=NotificationCategory.INFO,
            title="Timesheets Waiting for Your Approval",
            message=(
                f"{len(pending)} timesheets from {len(people)} team member(s) have been waiting "
                f"for your approval for more than {self.thresholds.pending_timesheet_days} days."
            ),
            entity_type="user",
            entity_id=user.id,
            link="/TimesheetApprovals",
            payload=PendingTimesheetPayload(
                timesheet_ids=[t.id for t in pending],
                oldest_date=pending[0].timesheet_date,
            ),
            key=lambda u: self.gate.daily_key(summary, user.id, u.email),
            now=self.now,
        )
        self.summary.record_delivery(delivery)
