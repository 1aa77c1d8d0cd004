"""Tests for the deadline risk job."""

from datetime import timedelta

import pytest

from riskwatch.detection.jobs import DeadlineRiskJob
from riskwatch.models import NotificationCategory, NotificationType

from conftest import NOW


@pytest.fixture
def with_backlog(db, build, acme):
    """Alpha with 100 open story points and a velocity of 10 points per sprint."""

    async def seed(deadline_in_days=100):
        acme.alpha.deadline = NOW + timedelta(days=deadline_in_days)
        for i in range(4):
            build.task(acme.alpha, f"Story {i}", story_points=25)
        build.task(acme.alpha, "Shipped story", story_points=50, status="done")
        for weeks_ago in (2, 4, 6):
            build.velocity(acme.alpha, NOW - timedelta(weeks=weeks_ago), committed_points=12, completed_points=10)
        await db.commit()

    return seed


class TestDeadlineRisk:
    """A forecast more than 21 days late locks scope."""

    @pytest.mark.asyncio
    async def test_late_forecast_locks_scope(self, db, acme, notifier, mailer, notifications, with_backlog):
        await with_backlog(deadline_in_days=100)

        summary = await DeadlineRiskJob(db, notifier=notifier, now=NOW).run()

        await db.refresh(acme.alpha)
        assert acme.alpha.scope_locked is True

        alarms = await notifications(NotificationType.PM_DEADLINE_RISK)
        assert [n.recipient_email for n in alarms] == ["pm@acme.io"]
        assert alarms[0].category == NotificationCategory.ALARM.value
        assert alarms[0].message == (
            "Deadline Risk: Forecast (2027-03-03) exceeds deadline by 40 days based on current "
            "velocity. Scope locked."
        )
        payload = alarms[0].payload
        assert payload.remaining_points == 100
        assert payload.deviation_days == 40
        assert mailer.recipients == ["pm@acme.io"]
        assert summary.state_changes == 1

    @pytest.mark.asyncio
    async def test_within_tolerance(self, db, acme, notifier, notifications, with_backlog):
        await with_backlog(deadline_in_days=130)

        summary = await DeadlineRiskJob(db, notifier=notifier, now=NOW).run()

        await db.refresh(acme.alpha)
        assert acme.alpha.scope_locked is False
        assert summary.triggered == 0
        assert await notifications(NotificationType.PM_DEADLINE_RISK) == []

    @pytest.mark.asyncio
    async def test_once_per_day(self, db, acme, notifier, notifications, with_backlog):
        await with_backlog()

        await DeadlineRiskJob(db, notifier=notifier, now=NOW).run()
        summary = await DeadlineRiskJob(db, notifier=notifier, now=NOW + timedelta(hours=8)).run()

        assert len(await notifications(NotificationType.PM_DEADLINE_RISK)) == 1
        assert summary.skipped == 1
        assert summary.state_changes == 0

    @pytest.mark.asyncio
    async def test_without_velocity_is_skipped(self, db, acme, notifier):
        summary = await DeadlineRiskJob(db, notifier=notifier, now=NOW).run()

        assert summary.checked == 1
        assert summary.skipped == 1
        assert summary.triggered == 0


class TestDeadlineRecipients:

    @pytest.mark.asyncio
    async def test_falls_back_to_owner(self, db, acme, notifier, notifications, with_backlog):
        acme.alpha.team_members = [{"email": "dev@acme.io", "role": "team_member"}]
        await with_backlog()

        await DeadlineRiskJob(db, notifier=notifier, now=NOW).run()

        alarms = await notifications(NotificationType.PM_DEADLINE_RISK)
        assert [n.recipient_email for n in alarms] == ["owner@acme.io"]

    @pytest.mark.asyncio
    async def test_nobody_to_tell_fails_without_locking(self, db, build, notifier):
        tenant = build.tenant("Orphan", owner_email=None)
        project = build.project(tenant, "Lonely", deadline=NOW + timedelta(days=10))
        build.task(project, "Story", story_points=100)
        build.velocity(project, NOW - timedelta(weeks=2), committed_points=10, completed_points=10)
        await db.commit()

        summary = await DeadlineRiskJob(db, notifier=notifier, now=NOW).run()

        await db.refresh(project)
        assert project.scope_locked is False
        assert summary.failed == 1
        assert summary.errors[0]["project"] == project.id
