"""Tests for the dedup / cooldown gate."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from riskwatch.detection.dedup import DedupGate, start_of_day
from riskwatch.models import NotificationStatus, NotificationType

from conftest import NOW


class TestStartOfDay:

    def test_truncates_to_midnight(self):
        assert start_of_day(datetime(2026, 10, 14, 23, 59, 59)) == datetime(2026, 10, 14)


class TestSentToday:
    """Daily dedup checks."""

    @pytest.mark.asyncio
    async def test_notification_from_this_morning_counts(self, db, build, acme):
        build.notification(acme.pm, NotificationType.PM_HIGH_REWORK, NOW - timedelta(hours=2),
                           entity_id=acme.alpha.id, project_id=acme.alpha.id)
        await db.commit()

        gate = DedupGate(db, now=NOW)
        assert await gate.sent_today(NotificationType.PM_HIGH_REWORK, project_id=acme.alpha.id)
        assert await gate.sent_today(
            [NotificationType.PM_HIGH_REWORK, NotificationType.PM_RUNAWAY_REWORK_ALARM],
            entity_id=acme.alpha.id,
        )

    @pytest.mark.asyncio
    async def test_yesterday_does_not_count(self, db, build, acme):
        build.notification(acme.pm, NotificationType.PM_HIGH_REWORK, NOW - timedelta(hours=11),
                           project_id=acme.alpha.id)
        await db.commit()

        gate = DedupGate(db, now=NOW)
        assert not await gate.sent_today(NotificationType.PM_HIGH_REWORK, project_id=acme.alpha.id)

    @pytest.mark.asyncio
    async def test_filters_by_recipient_and_type(self, db, build, acme):
        build.notification(acme.pm, NotificationType.OVERWORK_ALARM, NOW, entity_id=acme.dev.id)
        await db.commit()

        gate = DedupGate(db, now=NOW)
        assert not await gate.sent_today(NotificationType.OVERWORK_ALARM, entity_id=acme.dev.id,
                                         recipient_email=acme.dev.email)
        assert not await gate.sent_today(NotificationType.IDLE_TIME_ALERT, entity_id=acme.dev.id)

    @pytest.mark.asyncio
    async def test_force_bypasses(self, db, build, acme):
        build.notification(acme.pm, NotificationType.PM_HIGH_REWORK, NOW, project_id=acme.alpha.id)
        await db.commit()

        gate = DedupGate(db, now=NOW, force=True)
        assert not await gate.sent_today(NotificationType.PM_HIGH_REWORK, project_id=acme.alpha.id)


class TestFindOpen:
    """Open-state dedup checks."""

    @pytest.mark.asyncio
    async def test_finds_open_and_appealed(self, db, build, acme):
        appealed = build.notification(acme.dev, NotificationType.MULTIPLE_OVERDUE_ALARM, NOW - timedelta(days=3),
                                      entity_id=acme.dev.id, status=NotificationStatus.APPEALED.value)
        await db.commit()

        gate = DedupGate(db, now=NOW)
        found = await gate.find_open(NotificationType.MULTIPLE_OVERDUE_ALARM, entity_id=acme.dev.id)
        assert found is not None
        assert found.id == appealed.id

    @pytest.mark.asyncio
    async def test_ignores_resolved(self, db, build, acme):
        build.notification(acme.dev, NotificationType.MULTIPLE_OVERDUE_ALARM, NOW,
                           entity_id=acme.dev.id, status=NotificationStatus.RESOLVED.value)
        await db.commit()

        gate = DedupGate(db, now=NOW)
        assert await gate.find_open(NotificationType.MULTIPLE_OVERDUE_ALARM, entity_id=acme.dev.id) is None

    @pytest.mark.asyncio
    async def test_force_never_finds(self, db, build, acme):
        build.notification(acme.dev, NotificationType.TIMESHEET_LOCKOUT_ALARM, NOW, entity_id=acme.dev.id)
        await db.commit()

        gate = DedupGate(db, now=NOW, force=True)
        assert await gate.find_open(NotificationType.TIMESHEET_LOCKOUT_ALARM, entity_id=acme.dev.id) is None


class TestCooldown:
    """Cooldown checks."""

    @pytest.mark.asyncio
    async def test_within_cooldown(self, db, build, acme):
        build.notification(acme.pm, NotificationType.PM_MULTIPLE_OVERDUE_TASKS, NOW - timedelta(hours=23),
                           entity_id="sprint_1")
        await db.commit()

        gate = DedupGate(db, now=NOW)
        assert await gate.within_cooldown(NotificationType.PM_MULTIPLE_OVERDUE_TASKS, timedelta(hours=24),
                                          entity_id="sprint_1", recipient_email=acme.pm.email)
        assert not await gate.within_cooldown(NotificationType.PM_MULTIPLE_OVERDUE_TASKS, timedelta(hours=12),
                                              entity_id="sprint_1", recipient_email=acme.pm.email)

    @pytest.mark.asyncio
    async def test_email_due(self, db, build, acme):
        notification = build.notification(acme.dev, NotificationType.MULTIPLE_OVERDUE_ALARM, NOW)
        gate = DedupGate(db, now=NOW)

        assert gate.email_due(notification, timedelta(hours=4))

        notification.last_email_sent = NOW - timedelta(hours=1)
        assert not gate.email_due(notification, timedelta(hours=4))

        notification.last_email_sent = NOW - timedelta(hours=5)
        assert gate.email_due(notification, timedelta(hours=4))

        notification.last_email_sent = NOW
        assert DedupGate(db, now=NOW, force=True).email_due(notification, timedelta(hours=4))


class TestKeys:
    """Idempotency keys written to Notification.dedup_key."""

    def test_daily_key(self, db):
        gate = DedupGate(db, now=NOW)
        assert gate.daily_key(NotificationType.PM_DEADLINE_RISK, "proj_1", "PM@Acme.io") == \
            "PM_DEADLINE_RISK:proj_1:pm@acme.io:2026-10-14"

    def test_open_key(self, db):
        gate = DedupGate(db, now=NOW)
        assert gate.open_key(NotificationType.MULTIPLE_OVERDUE_ALARM, "user_1", "dev@acme.io") == \
            "multiple_overdue_alarm:user_1:dev@acme.io:open"

    def test_cooldown_key(self, db):
        gate = DedupGate(db, now=NOW)
        assert gate.cooldown_key("PM_MULTIPLE_OVERDUE_TASKS", "sprint_1", "pm@acme.io") == \
            "PM_MULTIPLE_OVERDUE_TASKS:sprint_1:pm@acme.io:2026-10-14T10:00"

    def test_forced_runs_write_no_key(self, db):
        gate = DedupGate(db, now=NOW, force=True)
        assert gate.daily_key(NotificationType.PM_DEADLINE_RISK, "proj_1", "pm@acme.io") is None
        assert gate.open_key(NotificationType.MULTIPLE_OVERDUE_ALARM, "user_1", "dev@acme.io") is None


class TestOpenKeyIndex:
    """The dedup_key index only binds OPEN and APPEALED rows."""

    KEY = "timesheet_lockout_alarm:user_1:dev@acme.io:open"

    @pytest.mark.asyncio
    async def test_two_open_rows_collide(self, db, build, acme):
        build.notification(acme.dev, NotificationType.TIMESHEET_LOCKOUT_ALARM, NOW - timedelta(days=1),
                           dedup_key=self.KEY)
        await db.commit()

        build.notification(acme.dev, NotificationType.TIMESHEET_LOCKOUT_ALARM, NOW, dedup_key=self.KEY)
        with pytest.raises(IntegrityError):
            await db.commit()
        await db.rollback()

    @pytest.mark.asyncio
    async def test_resolved_row_keeping_its_key_does_not_collide(self, db, build, acme, notifications):
        build.notification(acme.dev, NotificationType.TIMESHEET_LOCKOUT_ALARM, NOW - timedelta(days=9),
                           status=NotificationStatus.RESOLVED.value, dedup_key=self.KEY)
        build.notification(acme.dev, NotificationType.TIMESHEET_LOCKOUT_ALARM, NOW - timedelta(days=2),
                           status=NotificationStatus.RESOLVED.value, dedup_key=self.KEY)
        await db.commit()

        build.notification(acme.dev, NotificationType.TIMESHEET_LOCKOUT_ALARM, NOW, dedup_key=self.KEY)
        await db.commit()

        records = await notifications(NotificationType.TIMESHEET_LOCKOUT_ALARM)
        assert [n.status for n in records] == ["RESOLVED", "RESOLVED", "OPEN"]
