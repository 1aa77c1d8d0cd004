# Detection Module
# Periodic rule jobs that turn project-health signals into notifications
#
# Components:
# - base.py: RuleJob pipeline and JobSummary
# - jobs/: one RuleJob per business rule
# - escalation.py: reminder / admin escalation sweep
# - scheduler.py: job registry, runner and APScheduler integration
# - rules.py: thresholds and escalation policies

from .base import JobSummary, RuleJob
from .rules import RuleThresholds, EscalationPolicy, DEFAULT_THRESHOLDS, get_thresholds
from .escalation import EscalationSweeper
from .scheduler import (
    JOB_REGISTRY,
    UnknownJobError,
    job_scheduler,
    execute_job,
    run_all,
    run_job,
    setup_apscheduler,
)

__all__ = [
    "JobSummary",
    "RuleJob",
    "RuleThresholds",
    "EscalationPolicy",
    "DEFAULT_THRESHOLDS",
    "get_thresholds",
    "EscalationSweeper",
    "JOB_REGISTRY",
    "UnknownJobError",
    "job_scheduler",
    "execute_job",
    "run_all",
    "run_job",
    "setup_apscheduler",
]
