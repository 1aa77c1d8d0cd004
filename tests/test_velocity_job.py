"""Tests for the low velocity job."""

from datetime import timedelta

import pytest

from riskwatch.detection.jobs import LowVelocityJob
from riskwatch.models import NotificationType

from conftest import NOW


class TestLowVelocity:
    """Average accuracy of the last two sprints below 85% alerts the PM."""

    @pytest.mark.asyncio
    async def test_drop_alerts_pm(self, db, build, acme, notifier, mailer, notifications):
        build.velocity(acme.alpha, NOW - timedelta(weeks=4), sprint_name="Sprint 2", accuracy=80)
        build.velocity(acme.alpha, NOW - timedelta(weeks=2), sprint_name="Sprint 3", accuracy=70)
        build.velocity(acme.alpha, NOW - timedelta(weeks=6), sprint_name="Sprint 1", accuracy=20)
        await db.commit()

        summary = await LowVelocityJob(db, notifier=notifier, now=NOW).run()

        [alert] = await notifications(NotificationType.PM_VELOCITY_DROP)
        assert alert.recipient_email == "pm@acme.io"
        assert alert.payload.accuracies == [70.0, 80.0]
        assert alert.payload.average_accuracy == 75.0
        assert "averaged 75% over the last 2 sprint(s) (Sprint 3)" in alert.message
        assert mailer.sent == []
        assert summary.triggered == 1

    @pytest.mark.asyncio
    async def test_on_target(self, db, build, acme, notifier, notifications):
        build.velocity(acme.alpha, NOW - timedelta(weeks=4), accuracy=90)
        build.velocity(acme.alpha, NOW - timedelta(weeks=2), accuracy=95)
        await db.commit()

        summary = await LowVelocityJob(db, notifier=notifier, now=NOW).run()

        assert summary.checked == 1
        assert await notifications(NotificationType.PM_VELOCITY_DROP) == []

    @pytest.mark.asyncio
    async def test_accuracy_from_points(self, db, build, acme, notifier, notifications):
        build.velocity(acme.alpha, NOW - timedelta(weeks=4), committed_points=20, completed_points=16)
        build.velocity(acme.alpha, NOW - timedelta(weeks=2), committed_points=20, completed_points=12)
        await db.commit()

        await LowVelocityJob(db, notifier=notifier, now=NOW).run()

        [alert] = await notifications(NotificationType.PM_VELOCITY_DROP)
        assert alert.payload.accuracies == [60.0, 80.0]

    @pytest.mark.asyncio
    async def test_single_sprint_is_enough(self, db, build, acme, notifier, notifications):
        build.velocity(acme.alpha, NOW - timedelta(weeks=2), accuracy=50)
        await db.commit()

        await LowVelocityJob(db, notifier=notifier, now=NOW).run()

        [alert] = await notifications(NotificationType.PM_VELOCITY_DROP)
        assert alert.payload.average_accuracy == 50.0

    @pytest.mark.asyncio
    async def test_once_per_day(self, db, build, acme, notifier, notifications):
        build.velocity(acme.alpha, NOW - timedelta(weeks=2), accuracy=50)
        await db.commit()

        await LowVelocityJob(db, notifier=notifier, now=NOW).run()
        summary = await LowVelocityJob(db, notifier=notifier, now=NOW + timedelta(hours=8)).run()

        assert len(await notifications(NotificationType.PM_VELOCITY_DROP)) == 1
        assert summary.skipped == 1
