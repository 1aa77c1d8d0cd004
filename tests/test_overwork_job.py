"""Tests for the overwork job."""

from datetime import datetime, timedelta

import pytest

from riskwatch.detection.jobs import OverworkJob
from riskwatch.detection.rules import RuleThresholds
from riskwatch.models import NotificationCategory, NotificationType

from conftest import NOW

FRIDAY = datetime(2026, 10, 16, 17, 0)


@pytest.fixture
def overloaded(db, build, acme):
    """80 planned hours for the developer this week."""

    async def seed():
        tasks = [
            build.task(acme.alpha, "Migration", assigned_to="dev@acme.io", due_date=FRIDAY, estimated_hours=40),
            build.task(acme.alpha, "Reporting", assigned_to="dev@acme.io", due_date=FRIDAY, estimated_hours=40),
        ]
        await db.commit()
        return tasks

    return seed


class TestOverwork:

    @pytest.mark.asyncio
    async def test_overloaded_member_is_flagged_and_alarmed(self, db, acme, notifier, mailer, notifications, overloaded):
        await overloaded()

        summary = await OverworkJob(db, notifier=notifier, now=NOW).run()

        await db.refresh(acme.dev)
        assert acme.dev.is_overloaded is True

        alarms = await notifications(NotificationType.OVERWORK_ALARM)
        assert [n.recipient_email for n in alarms] == ["dev@acme.io"]
        assert alarms[0].category == NotificationCategory.ALARM.value
        assert alarms[0].payload.planned_hours == 80
        assert alarms[0].payload.limit_hours == 66

        notices = await notifications(NotificationType.PM_OVERWORK_NOTICE)
        assert [n.recipient_email for n in notices] == ["pm@acme.io"]
        assert "80h this week" in notices[0].message

        assert mailer.recipients == ["dev@acme.io"]
        assert summary.state_changes == 1
        assert summary.notifications_created == 2

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, db, acme, notifier, notifications, overloaded):
        await overloaded()
        await OverworkJob(db, notifier=notifier, now=NOW).run()

        summary = await OverworkJob(db, notifier=notifier, now=NOW + timedelta(hours=8)).run()

        assert len(await notifications(NotificationType.OVERWORK_ALARM)) == 1
        assert len(await notifications(NotificationType.PM_OVERWORK_NOTICE)) == 1
        assert summary.state_changes == 0
        assert summary.notifications_created == 0

    @pytest.mark.asyncio
    async def test_force_bypasses_dedup(self, db, acme, notifier, notifications, overloaded):
        await overloaded()
        await OverworkJob(db, notifier=notifier, now=NOW).run()

        summary = await OverworkJob(db, notifier=notifier, now=NOW, force=True).run()

        assert summary.forced is True
        assert len(await notifications(NotificationType.OVERWORK_ALARM)) == 2
        assert len(await notifications(NotificationType.PM_OVERWORK_NOTICE)) == 2

    @pytest.mark.asyncio
    async def test_flag_clears_when_load_drops(self, db, acme, notifier, overloaded):
        tasks = await overloaded()
        await OverworkJob(db, notifier=notifier, now=NOW).run()

        for task in tasks:
            task.status = "done"
        await db.commit()
        summary = await OverworkJob(db, notifier=notifier, now=NOW + timedelta(hours=8)).run()

        await db.refresh(acme.dev)
        assert acme.dev.is_overloaded is False
        assert summary.state_changes == 1

    @pytest.mark.asyncio
    async def test_custom_threshold(self, db, build, acme, notifier, notifications):
        build.task(acme.alpha, "Spike", assigned_to="dev@acme.io", due_date=FRIDAY, estimated_hours=12)
        await db.commit()

        thresholds = RuleThresholds(overwork_daily_hours=11, overwork_days_per_week=1)
        await OverworkJob(db, notifier=notifier, now=NOW, thresholds=thresholds).run()

        assert len(await notifications(NotificationType.OVERWORK_ALARM)) == 1
