"""Tests for the consistent compliance reward."""

from datetime import timedelta

import pytest

from riskwatch.detection.jobs import ConsistentComplianceJob
from riskwatch.models import NotificationCategory, NotificationType

from conftest import NOW


class TestConsistentCompliance:

    @pytest.mark.asyncio
    async def test_clean_month_is_rewarded(self, db, acme, notifier, mailer, notifications):
        summary = await ConsistentComplianceJob(db, notifier=notifier, now=NOW).run()

        rewards = await notifications(NotificationType.USER_CONSISTENT)
        assert [n.recipient_email for n in rewards] == ["dev@acme.io", "pm@acme.io"]
        assert rewards[0].title == "Great job!"
        assert rewards[0].category == NotificationCategory.INFO.value
        assert mailer.sent == []
        assert summary.checked == 2  # admins and owners are not rewarded

    @pytest.mark.asyncio
    async def test_recent_violation_blocks_reward(self, db, build, acme, notifier, notifications):
        build.notification(acme.dev, NotificationType.IDLE_TIME_ALERT, NOW - timedelta(days=10))
        await db.commit()

        await ConsistentComplianceJob(db, notifier=notifier, now=NOW).run()

        rewards = await notifications(NotificationType.USER_CONSISTENT)
        assert [n.recipient_email for n in rewards] == ["pm@acme.io"]

    @pytest.mark.asyncio
    async def test_old_violation_is_forgiven(self, db, build, acme, notifier, notifications):
        build.notification(acme.dev, NotificationType.TIMESHEET_LOCKOUT_ALARM, NOW - timedelta(days=40))
        await db.commit()

        await ConsistentComplianceJob(db, notifier=notifier, now=NOW).run()

        assert len(await notifications(NotificationType.USER_CONSISTENT, recipient_email="dev@acme.io")) == 1

    @pytest.mark.asyncio
    async def test_rewarded_at_most_every_28_days(self, db, acme, notifier, notifications):
        await ConsistentComplianceJob(db, notifier=notifier, now=NOW).run()
        await ConsistentComplianceJob(db, notifier=notifier, now=NOW + timedelta(days=10)).run()
        assert len(await notifications(NotificationType.USER_CONSISTENT)) == 2

        await ConsistentComplianceJob(db, notifier=notifier, now=NOW + timedelta(days=29)).run()
        assert len(await notifications(NotificationType.USER_CONSISTENT)) == 4

    @pytest.mark.asyncio
    async def test_forced_run_still_checks_violations(self, db, build, acme, notifier, notifications):
        build.notification(acme.dev, NotificationType.REWORK_ALARM, NOW - timedelta(days=2))
        await db.commit()

        await ConsistentComplianceJob(db, notifier=notifier, force=True, now=NOW).run()

        rewards = await notifications(NotificationType.USER_CONSISTENT)
        assert [n.recipient_email for n in rewards] == ["pm@acme.io"]
