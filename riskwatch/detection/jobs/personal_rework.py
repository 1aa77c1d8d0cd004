"""
Personal Rework Job

Rework share of each member's logged time over the last seven days:

    > 25%   high_rework_alarm  open alarm, assignments frozen, email
    > 15%   rework_alarm       open alarm unless a rework alarm is already open, email
    > 0%    rework_alert       once per lookback window, email

Open alarms are resolved once the share drops back to 15% or below.
"""

from datetime import timedelta
from typing import List

from sqlalchemy import select, func

from riskwatch.models import NotificationCategory, NotificationType, Tenant, Timesheet, User
from riskwatch.models.user import MEMBER_ROLES
from riskwatch.notifications.payloads import PersonalReworkPayload
from riskwatch.notifications.templates import build_personal_rework_email
from ..base import RuleJob
from ..metrics import rework_ratio

REWORK_ALARM_TYPES = (NotificationType.REWORK_ALARM, NotificationType.HIGH_REWORK_ALARM)
REWORK_LINK = "/Timesheets?tab=rework-info"


class PersonalReworkJob(RuleJob):
    """Alerts members whose own logged time is increasingly rework."""

    name = "personal-rework"
    description = "Share of rework in a member's logged time"
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

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        user = await self.db.get(User, subject_id)
        window = self.thresholds.personal_rework_window_days
        result = await self.db.execute(
            select(func.sum(Timesheet.total_minutes), func.sum(Timesheet.rework_minutes))
            .where(Timesheet.tenant_id == tenant.id)
            .where(Timesheet.user_email == user.email)
            .where(Timesheet.timesheet_date >= self.today - timedelta(days=window))
        )
        total, rework = result.one()
        total, rework = total or 0, rework or 0
        ratio = rework_ratio(rework, total)

        if ratio <= self.thresholds.personal_rework_alarm_pct:
            await self.release_open(REWORK_ALARM_TYPES, user.id, recipient_email=user.email)
        if not total or not rework:
            return

        self.summary.triggered += 1
        payload = PersonalReworkPayload(
            window_days=window,
            rework_pct=round(ratio, 2),
            rework_hours=round(rework / 60, 2),
            total_hours=round(total / 60, 2),
        )

        if ratio > self.thresholds.personal_rework_high_pct:
            await self.release_open(NotificationType.REWORK_ALARM, user.id, recipient_email=user.email)
            await self.keep_open(
                user,
                type=NotificationType.HIGH_REWORK_ALARM,
                category=NotificationCategory.ALARM,
                title="Critical Rework Detected",
                message=(
                    f"Your rework time is at {ratio:.1f}%, exceeding the "
                    f"{self.thresholds.personal_rework_high_pct:g}% threshold. Task assignments are "
                    "frozen. Peer review required."
                ),
                entity_type="user",
                entity_id=user.id,
                link=REWORK_LINK,
                payload=payload,
                email=lambda u: build_personal_rework_email(
                    ratio, window, NotificationCategory.ALARM, REWORK_LINK, u.display_name, critical=True,
                ),
            )
        elif ratio > self.thresholds.personal_rework_alarm_pct:
            high = await self.gate.find_open(
                NotificationType.HIGH_REWORK_ALARM, entity_id=user.id, recipient_email=user.email,
            )
            if high is not None:
                self.skip(f"high rework alarm still open for {user.email}")
                return
            await self.keep_open(
                user,
                type=NotificationType.REWORK_ALARM,
                category=NotificationCategory.ALARM,
                title="High Rework Detected",
                message=(
                    f"Your rework time is at {ratio:.1f}%, exceeding the "
                    f"{self.thresholds.personal_rework_alarm_pct:g}% threshold. Peer review is recommended."
                ),
                entity_type="user",
                entity_id=user.id,
                link=REWORK_LINK,
                payload=payload,
                email=lambda u: build_personal_rework_email(
                    ratio, window, NotificationCategory.ALARM, REWORK_LINK, u.display_name,
                ),
            )
        else:
            await self.rework_logged(user, ratio, payload)

    async def rework_logged(self, user: User, ratio: float, payload: PersonalReworkPayload) -> None:
        alert = NotificationType.REWORK_ALERT
        window = self.thresholds.personal_rework_window_days
        if await self.gate.within_cooldown(
            alert, timedelta(days=window), entity_id=user.id, recipient_email=user.email,
        ):
            self.skip(f"rework alert already sent to {user.email} in the last {window} days")
            return

        delivery = await self.notifications.notify(
            [user],
            type=alert,
            category=NotificationCategory.ALERT,
            title="Rework Logged",
            message=(
                f"You have logged rework time recently ({ratio:.1f}% of total). Please ensure "
                "quality and clarity of requirements."
            ),
            entity_type="user",
            entity_id=user.id,
            link=REWORK_LINK,
            payload=payload,
            key=lambda u: self.gate.cooldown_key(alert, user.id, u.email),
            email=lambda u: build_personal_rework_email(
                ratio, window, NotificationCategory.ALERT, REWORK_LINK, u.display_name,
            ),
            now=self.now,
        )
        self.summary.record_delivery(delivery)
