"""
Rule Thresholds

Product-defined constants for every rule job and the escalation sweeper,
grouped into one immutable config object that is passed into each job.
"""

from datetime import timedelta
from typing import Dict

from pydantic import BaseModel, ConfigDict

from riskwatch.models import NotificationType


class EscalationPolicy(BaseModel):
    """Elapsed-time thresholds for one escalation-eligible notification type."""
    model_config = ConfigDict(frozen=True)

    reminder_after_hours: float
    escalate_after_hours: float

    @property
    def reminder_after(self) -> timedelta:
        return timedelta(hours=self.reminder_after_hours)

    @property
    def escalate_after(self) -> timedelta:
        return timedelta(hours=self.escalate_after_hours)


DEFAULT_ESCALATION_POLICIES = {
    NotificationType.PM_HIGH_REWORK.value: EscalationPolicy(reminder_after_hours=8, escalate_after_hours=24),
    NotificationType.PM_RUNAWAY_REWORK_ALARM.value: EscalationPolicy(reminder_after_hours=2, escalate_after_hours=12),
    NotificationType.PM_DEADLINE_RISK.value: EscalationPolicy(reminder_after_hours=2, escalate_after_hours=12),
}


class RuleThresholds(BaseModel):
    """
    Thresholds used by the rule jobs.

    Defaults are the production values. Tests and local setups build their own
    instance (e.g. a lower overwork limit) instead of branching on APP_ENV.
    """
    model_config = ConfigDict(frozen=True)

    # Rework trend
    rework_sprint_window: int = 3
    rework_high_pct: float = 15.0
    rework_high_streak: int = 2
    rework_runaway_pct: float = 25.0
    rework_runaway_streak: int = 3
    tech_debt_sprint_days: int = 14

    # Deadline risk
    velocity_sample_size: int = 3
    sprint_length_days: int = 14
    deadline_deviation_days: int = 21

    # Low velocity
    velocity_accuracy_window: int = 2
    velocity_accuracy_pct: float = 85.0

    # Team utilization
    team_alarm_window_days: int = 30
    team_alarm_pct: float = 65.0
    team_alert_window_days: int = 7
    team_alert_pct: float = 75.0

    # Overwork
    overwork_daily_hours: float = 11.0
    overwork_days_per_week: int = 6

    # Missing timesheets
    timesheet_window_days: int = 7
    timesheet_missing_limit: int = 3

    # Multiple overdue tasks
    overdue_task_limit: int = 3
    overdue_email_cooldown_hours: float = 4.0

    # Individual utilization
    idle_pct: float = 25.0
    under_utilization_window_days: int = 30
    under_utilization_pct: float = 60.0
    low_logged_hours_days: int = 3
    suggested_task_limit: int = 3

    # Subscription lifecycle
    trial_warning_days: int = 3

    # Pending timesheets
    pending_timesheet_days: int = 7

    # Sprint health
    sprint_overdue_pct: float = 20.0
    sprint_health_cooldown_hours: float = 24.0

    # Single overdue task
    task_overdue_alert_days: int = 2
    task_overdue_escalation_days: int = 5

    # Low workload
    low_workload_pct: float = 70.0
    low_workload_days_per_week: int = 5
    default_working_hours_per_day: float = 8.0

    # Context switching
    context_switch_window_days: int = 7
    context_switch_project_limit: int = 5
    context_switch_min_days: int = 2

    # Personal rework
    personal_rework_window_days: int = 7
    personal_rework_alarm_pct: float = 15.0
    personal_rework_high_pct: float = 25.0

    # Availability update
    inactivity_days: int = 30
    availability_reminder_days: int = 7

    # Project health
    health_alert_score: int = 70
    health_critical_score: int = 50
    health_cooldown_hours: float = 24.0

    # Consistent compliance
    compliance_window_days: int = 30
    compliance_reward_days: int = 28

    escalation_policies: Dict[str, EscalationPolicy] = DEFAULT_ESCALATION_POLICIES

    @property
    def overwork_weekly_hours(self) -> float:
        return self.overwork_daily_hours * self.overwork_days_per_week

    @property
    def overdue_email_cooldown(self) -> timedelta:
        return timedelta(hours=self.overdue_email_cooldown_hours)

    @property
    def sprint_health_cooldown(self) -> timedelta:
        return timedelta(hours=self.sprint_health_cooldown_hours)

    @property
    def health_cooldown(self) -> timedelta:
        return timedelta(hours=self.health_cooldown_hours)


DEFAULT_THRESHOLDS = RuleThresholds()


def get_thresholds() -> RuleThresholds:
    return DEFAULT_THRESHOLDS
