"""Tests for the context switching job."""

from datetime import date, timedelta

import pytest

from riskwatch.detection.jobs import ContextSwitchingJob
from riskwatch.models import NotificationCategory, NotificationType

from conftest import NOW

MONDAY = date(2026, 10, 12)
TUESDAY = date(2026, 10, 13)


def log_across_projects(build, acme, day, project_count):
    for i in range(project_count):
        project = build.project(acme.tenant, f"Client {day.isoformat()} {i}")
        build.timesheet(acme.tenant, "dev@acme.io", day, 60, project=project)


class TestContextSwitching:
    """More than five projects a day, on at least two days of the last week."""

    @pytest.mark.asyncio
    async def test_alert(self, db, build, acme, notifier, mailer, notifications):
        log_across_projects(build, acme, MONDAY, 6)
        log_across_projects(build, acme, TUESDAY, 7)
        await db.commit()

        summary = await ContextSwitchingJob(db, notifier=notifier, now=NOW).run()

        [alert] = await notifications(NotificationType.CONTEXT_SWITCHING_ALERT)
        assert alert.recipient_email == "dev@acme.io"
        assert alert.category == NotificationCategory.INFO.value
        assert alert.payload.project_counts == {MONDAY: 6, TUESDAY: 7}
        assert mailer.sent == []
        assert summary.triggered == 1

    @pytest.mark.asyncio
    async def test_one_busy_day_is_fine(self, db, build, acme, notifier, notifications):
        log_across_projects(build, acme, MONDAY, 8)
        log_across_projects(build, acme, TUESDAY, 2)
        await db.commit()

        await ContextSwitchingJob(db, notifier=notifier, now=NOW).run()

        assert await notifications(NotificationType.CONTEXT_SWITCHING_ALERT) == []

    @pytest.mark.asyncio
    async def test_five_projects_is_the_limit(self, db, build, acme, notifier, notifications):
        log_across_projects(build, acme, MONDAY, 5)
        log_across_projects(build, acme, TUESDAY, 5)
        await db.commit()

        await ContextSwitchingJob(db, notifier=notifier, now=NOW).run()

        assert await notifications(NotificationType.CONTEXT_SWITCHING_ALERT) == []

    @pytest.mark.asyncio
    async def test_once_per_day(self, db, build, acme, notifier, notifications):
        log_across_projects(build, acme, MONDAY, 6)
        log_across_projects(build, acme, TUESDAY, 6)
        await db.commit()

        await ContextSwitchingJob(db, notifier=notifier, now=NOW).run()
        summary = await ContextSwitchingJob(db, notifier=notifier, now=NOW + timedelta(hours=8)).run()

        assert len(await notifications(NotificationType.CONTEXT_SWITCHING_ALERT)) == 1
        assert summary.skipped == 1
