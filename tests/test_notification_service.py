"""Tests for the notification service: fan-out, email failures, acknowledgement."""

from datetime import timedelta

import pytest

from riskwatch.models import NotificationCategory, NotificationStatus, NotificationType
from riskwatch.notifications.email_provider import EmailMessage, EmailProvider
from riskwatch.notifications.service import NotificationService

from conftest import NOW

CONTENT = ("Subject", "<p>Body</p>", "Body")


class ExplodingEmailProvider(EmailProvider):
    async def deliver(self, message: EmailMessage) -> str:
        raise ConnectionError("smtp relay down")


# =============================================================================
# Fan-out
# =============================================================================

class TestNotify:

    @pytest.mark.asyncio
    async def test_one_record_per_recipient(self, db, acme, notifier, mailer, notifications):
        result = await notifier.notify(
            [acme.pm, acme.admin],
            type=NotificationType.PM_DEADLINE_RISK,
            category=NotificationCategory.ALARM,
            title="Project Deadline Risk",
            message="Forecast exceeds deadline.",
            project_id=acme.alpha.id,
            key=lambda u: f"PM_DEADLINE_RISK:{acme.alpha.id}:{u.email}:2026-10-14",
            email=lambda u: CONTENT,
            now=NOW,
        )
        await db.commit()

        assert result.created == 2
        assert result.emails_sent == 2
        records = await notifications(NotificationType.PM_DEADLINE_RISK)
        assert [n.recipient_email for n in records] == ["admin@acme.io", "pm@acme.io"]
        assert all(n.last_email_sent == NOW for n in records)
        assert records[1].dedup_key == f"PM_DEADLINE_RISK:{acme.alpha.id}:pm@acme.io:2026-10-14"

    @pytest.mark.asyncio
    async def test_failed_email_keeps_the_record(self, db, acme, notifier, mailer, notifications):
        mailer.fail_for.add("pm@acme.io")

        result = await notifier.notify(
            [acme.pm],
            type=NotificationType.PM_DEADLINE_RISK,
            category=NotificationCategory.ALARM,
            title="Project Deadline Risk",
            message="Forecast exceeds deadline.",
            email=lambda u: CONTENT,
            now=NOW,
        )
        await db.commit()

        assert result.emails_failed == 1
        [record] = await notifications(NotificationType.PM_DEADLINE_RISK)
        assert record.last_email_sent is None

    @pytest.mark.asyncio
    async def test_raising_provider_is_contained(self, db):
        service = NotificationService(db, email_provider=ExplodingEmailProvider())

        assert await service.send_email("pm@acme.io", CONTENT) is False


# =============================================================================
# Acknowledgement
# =============================================================================

class TestAcknowledge:

    @pytest.mark.asyncio
    async def test_pm_acknowledgement_tells_admins(self, db, build, acme, notifier, notifications):
        alert = build.notification(acme.pm, NotificationType.PM_HIGH_REWORK, NOW - timedelta(hours=3),
                                   project_id=acme.alpha.id, dedup_key="PM_HIGH_REWORK:x:pm@acme.io:2026-10-14")
        await db.commit()

        await notifier.acknowledge(alert, acme.pm, now=NOW)
        await db.commit()

        assert alert.acknowledged is True
        assert alert.acknowledged_by == "pm@acme.io"
        assert alert.acknowledged_at == NOW
        assert alert.read is True
        assert alert.status == NotificationStatus.OPEN.value
        assert alert.dedup_key == "PM_HIGH_REWORK:x:pm@acme.io:2026-10-14"

        notices = await notifications(NotificationType.PM_ACKNOWLEDGED_ALERT)
        assert [n.recipient_email for n in notices] == ["admin@acme.io", "owner@acme.io"]
        assert notices[0].title == "Acknowledged: High Rework Trend"
        assert notices[0].message == "Pm acknowledged: High Rework Trend"
        assert notices[0].payload.source_notification_id == alert.id

    @pytest.mark.asyncio
    async def test_title_follows_the_acknowledged_alert(self, db, build, acme, notifier, notifications):
        alert = build.notification(acme.pm, NotificationType.PM_DEADLINE_RISK, NOW - timedelta(hours=3),
                                   category="alarm", title="Project Deadline Risk")
        await db.commit()

        await notifier.acknowledge(alert, acme.pm, now=NOW)
        await db.commit()

        notices = await notifications(NotificationType.PM_ACKNOWLEDGED_ALERT)
        assert {n.title for n in notices} == {"Acknowledged: Project Deadline Risk"}

    @pytest.mark.asyncio
    async def test_admin_acknowledgement_is_silent(self, db, build, acme, notifier, notifications):
        alert = build.notification(acme.pm, NotificationType.PM_HIGH_REWORK, NOW - timedelta(hours=3))
        await db.commit()

        await notifier.acknowledge(alert, acme.admin, now=NOW)
        await db.commit()

        assert alert.acknowledged_by == "admin@acme.io"
        assert await notifications(NotificationType.PM_ACKNOWLEDGED_ALERT) == []

    @pytest.mark.asyncio
    async def test_second_acknowledgement_is_a_no_op(self, db, build, acme, notifier, notifications):
        alert = build.notification(acme.pm, NotificationType.PM_HIGH_REWORK, NOW - timedelta(hours=3))
        await db.commit()

        await notifier.acknowledge(alert, acme.pm, now=NOW)
        await notifier.acknowledge(alert, acme.dev, now=NOW + timedelta(hours=1))
        await db.commit()

        assert alert.acknowledged_by == "pm@acme.io"
        assert alert.acknowledged_at == NOW
        assert len(await notifications(NotificationType.PM_ACKNOWLEDGED_ALERT)) == 2

    @pytest.mark.asyncio
    async def test_resolve_releases_the_open_key(self, db, build, acme, notifier):
        alarm = build.notification(acme.dev, NotificationType.MULTIPLE_OVERDUE_ALARM, NOW,
                                   dedup_key="MULTIPLE_OVERDUE_ALARM:u:dev@acme.io:open")
        await db.commit()

        await notifier.resolve(alarm)
        await db.commit()

        assert alarm.status == NotificationStatus.RESOLVED.value
        assert alarm.dedup_key is None
