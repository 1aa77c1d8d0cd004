"""
Job Scheduler

Runs rule jobs and the escalation sweeper on their schedules:
- rule jobs: every 8 hours
- escalation sweep: every hour
- subscription lifecycle: daily at 6am

Uses APScheduler for job scheduling. Every run gets its own session and is
recorded as a JobRun row.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Type

from sqlalchemy.ext.asyncio import AsyncSession

from riskwatch.database import async_session_maker
from riskwatch.models import JobRun
from .base import JobSummary, RuleJob
from .escalation import EscalationSweeper
from .jobs import (
    AvailabilityUpdateJob,
    ConsistentComplianceJob,
    ContextSwitchingJob,
    DeadlineRiskJob,
    IdleTimeJob,
    LowLoggedHoursJob,
    LowVelocityJob,
    LowWorkloadJob,
    MissingTimesheetsJob,
    MultipleOverdueJob,
    OverworkJob,
    PendingTimesheetsJob,
    PersonalReworkJob,
    ProjectHealthJob,
    ReworkTrendJob,
    SprintHealthJob,
    SubscriptionLifecycleJob,
    TaskOverdueJob,
    TeamUtilizationJob,
    UnderUtilizationJob,
)
from .rules import RuleThresholds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledJob:
    """A job class and the APScheduler trigger it runs on."""
    job_class: Type[RuleJob]
    trigger: str
    trigger_args: Dict[str, int] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.job_class.name

    @property
    def description(self) -> str:
        return self.job_class.description


EVERY_8_HOURS = {"hours": 8}

JOB_REGISTRY: Dict[str, ScheduledJob] = {
    entry.name: entry
    for entry in (
        ScheduledJob(ReworkTrendJob, "interval", EVERY_8_HOURS),
        ScheduledJob(DeadlineRiskJob, "interval", EVERY_8_HOURS),
        ScheduledJob(LowVelocityJob, "interval", EVERY_8_HOURS),
        ScheduledJob(TeamUtilizationJob, "interval", EVERY_8_HOURS),
        ScheduledJob(OverworkJob, "interval", EVERY_8_HOURS),
        ScheduledJob(MissingTimesheetsJob, "interval", EVERY_8_HOURS),
        ScheduledJob(MultipleOverdueJob, "interval", EVERY_8_HOURS),
        ScheduledJob(IdleTimeJob, "interval", EVERY_8_HOURS),
        ScheduledJob(UnderUtilizationJob, "interval", EVERY_8_HOURS),
        ScheduledJob(LowLoggedHoursJob, "interval", EVERY_8_HOURS),
        ScheduledJob(PendingTimesheetsJob, "interval", EVERY_8_HOURS),
        ScheduledJob(SprintHealthJob, "interval", EVERY_8_HOURS),
        ScheduledJob(TaskOverdueJob, "interval", EVERY_8_HOURS),
        ScheduledJob(LowWorkloadJob, "interval", EVERY_8_HOURS),
        ScheduledJob(ContextSwitchingJob, "interval", EVERY_8_HOURS),
        ScheduledJob(PersonalReworkJob, "interval", EVERY_8_HOURS),
        ScheduledJob(ProjectHealthJob, "interval", EVERY_8_HOURS),
        ScheduledJob(AvailabilityUpdateJob, "interval", EVERY_8_HOURS),
        ScheduledJob(ConsistentComplianceJob, "interval", EVERY_8_HOURS),
        ScheduledJob(SubscriptionLifecycleJob, "cron", {"hour": 6, "minute": 0}),
        ScheduledJob(EscalationSweeper, "interval", {"hours": 1}),
    )
}


class UnknownJobError(KeyError):
    """Raised when a job name is not in the registry."""


def get_job(name: str) -> ScheduledJob:
    try:
        return JOB_REGISTRY[name]
    except KeyError:
        raise UnknownJobError(name) from None


async def execute_job(
    db: AsyncSession,
    name: str,
    force: bool = False,
    thresholds: Optional[RuleThresholds] = None,
    **job_kwargs,
) -> JobSummary:
    """Run one registered job on an existing session and record the run."""
    entry = get_job(name)
    job = entry.job_class(db, thresholds=thresholds, force=force, **job_kwargs)
    summary = await job.run()

    db.add(
        JobRun(
            job_name=name,
            forced=force,
            started_at=summary.started_at,
            completed_at=summary.completed_at,
            summary=summary.to_dict(),
        )
    )
    await db.commit()
    return summary


async def run_job(
    name: str,
    force: bool = False,
    thresholds: Optional[RuleThresholds] = None,
    session_maker=None,
    **job_kwargs,
) -> JobSummary:
    """
    Run one registered job in its own session.

    Errors inside the job's per-entity loop are contained by the job; anything
    raised here (e.g. the database is unreachable) is fatal for the run.
    """
    get_job(name)
    session_maker = session_maker or async_session_maker

    async with session_maker() as db:
        return await execute_job(db, name, force=force, thresholds=thresholds, **job_kwargs)


async def run_all(force: bool = False, thresholds: Optional[RuleThresholds] = None, session_maker=None) -> List[JobSummary]:
    """Run every registered job once, sequentially."""
    summaries = []
    for name in JOB_REGISTRY:
        summaries.append(await run_job(name, force=force, thresholds=thresholds, session_maker=session_maker))
    return summaries


class JobScheduler:
    """
    Tracks scheduled runs.

    Used with APScheduler via setup_apscheduler(); a failing run is logged and
    the next trigger tries again.
    """

    def __init__(self):
        self._last_runs: Dict[str, datetime] = {}
        self._last_summaries: Dict[str, dict] = {}

    async def run(self, name: str) -> Optional[dict]:
        self._last_runs[name] = datetime.utcnow()
        try:
            summary = await run_job(name)
        except Exception as e:
            logger.error(f"Scheduled run of {name} failed: {e}")
            self._last_summaries[name] = {"job": name, "errors": [{"error": str(e)}]}
            return None

        self._last_summaries[name] = summary.to_dict()
        return self._last_summaries[name]

    def get_status(self) -> dict:
        return {
            name: {
                "last_run": self._last_runs[name].isoformat() if name in self._last_runs else None,
                "last_summary": self._last_summaries.get(name),
            }
            for name in JOB_REGISTRY
        }


# Singleton instance for use across the application
job_scheduler = JobScheduler()


def setup_apscheduler(scheduler) -> None:
    """
    Configure APScheduler with every registered job.

    Usage:
        from apscheduler.schedulers.asyncio import AsyncIOScheduler
        scheduler = AsyncIOScheduler()
        setup_apscheduler(scheduler)
        scheduler.start()
    """
    for entry in JOB_REGISTRY.values():
        scheduler.add_job(
            job_scheduler.run,
            entry.trigger,
            args=[entry.name],
            id=entry.name,
            name=entry.description,
            replace_existing=True,
            **entry.trigger_args,
        )

    logger.info(f"Scheduled {len(JOB_REGISTRY)} jobs")
