"""Tests for the low workload job."""

from datetime import timedelta

import pytest

from riskwatch.detection.jobs import LowWorkloadJob
from riskwatch.models import NotificationStatus, NotificationType

from conftest import NOW

THURSDAY = NOW + timedelta(days=1)
NEXT_TUESDAY = NOW + timedelta(days=6)


class TestLowWorkload:
    """Under 70% of working_hours_per_day x 5 planned this week."""

    @pytest.mark.asyncio
    async def test_member_and_pm_are_alerted(self, db, build, acme, notifier, mailer, notifications):
        build.task(acme.alpha, "Fix login", assigned_to="dev@acme.io", due_date=THURSDAY, estimated_hours=10)
        await db.commit()

        summary = await LowWorkloadJob(db, notifier=notifier, now=NOW).run()

        alerts = await notifications(NotificationType.LOW_WORKLOAD_ALERT)
        assert [n.recipient_email for n in alerts] == ["dev@acme.io", "pm@acme.io"]
        assert alerts[0].message == "Low hours detected: 10 hrs / 40 hrs capacity this week."
        assert alerts[1].title == "Low Workload: Dev"
        assert all(n.entity_id == acme.dev.id for n in alerts)
        assert alerts[0].payload.planned_hours == 10
        assert alerts[0].payload.limit_hours == 40
        assert mailer.sent == []
        assert summary.checked == 1  # only members are checked

    @pytest.mark.asyncio
    async def test_enough_planned_work(self, db, build, acme, notifier, notifications):
        build.task(acme.alpha, "Fix login", assigned_to="dev@acme.io", due_date=THURSDAY, estimated_hours=30)
        await db.commit()

        summary = await LowWorkloadJob(db, notifier=notifier, now=NOW).run()

        assert summary.triggered == 0
        assert await notifications(NotificationType.LOW_WORKLOAD_ALERT) == []

    @pytest.mark.asyncio
    async def test_next_week_does_not_count(self, db, build, acme, notifier, notifications):
        build.task(acme.alpha, "Big refactor", assigned_to="dev@acme.io", due_date=NEXT_TUESDAY, estimated_hours=40)
        await db.commit()

        await LowWorkloadJob(db, notifier=notifier, now=NOW).run()

        [alert] = await notifications(NotificationType.LOW_WORKLOAD_ALERT, recipient_email="dev@acme.io")
        assert alert.payload.planned_hours == 0

    @pytest.mark.asyncio
    async def test_rerun_refreshes(self, db, acme, notifier, notifications):
        await LowWorkloadJob(db, notifier=notifier, now=NOW).run()
        summary = await LowWorkloadJob(db, notifier=notifier, now=NOW + timedelta(hours=8)).run()

        assert len(await notifications(NotificationType.LOW_WORKLOAD_ALERT)) == 2
        assert summary.notifications_created == 0
        assert summary.notifications_updated == 2

    @pytest.mark.asyncio
    async def test_filled_plan_resolves_alerts(self, db, build, acme, notifier, notifications):
        await LowWorkloadJob(db, notifier=notifier, now=NOW).run()

        build.task(acme.alpha, "Big refactor", assigned_to="dev@acme.io", due_date=THURSDAY, estimated_hours=32)
        await db.commit()
        await LowWorkloadJob(db, notifier=notifier, now=NOW + timedelta(hours=8)).run()

        alerts = await notifications(NotificationType.LOW_WORKLOAD_ALERT)
        assert [n.status for n in alerts] == [NotificationStatus.RESOLVED.value] * 2
