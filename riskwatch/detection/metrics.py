"""
Metric Calculators

Pure functions turning raw timesheet, task and velocity records into the
numbers the rule jobs classify. No I/O happens here.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from dateutil.relativedelta import relativedelta, MO


DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
DAY_ABBREVIATIONS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

# Six-day week used when a user has no working days configured
DEFAULT_WORKING_DAYS = DAY_NAMES[:6]

TERMINAL_TASK_STATUSES = ("completed", "done", "closed", "resolved", "verified", "cancelled")
ACTIVE_WORK_STATUSES = ("in_progress", "review")
COMPLETED_TASK_STATUSES = ("completed", "done")


# =============================================================================
# Ratios
# =============================================================================

def rework_ratio(rework_minutes: float, total_minutes: float) -> float:
    """Rework share of logged time in percent; 0 when nothing was logged."""
    if not total_minutes:
        return 0.0
    return (rework_minutes or 0) / total_minutes * 100


def utilization_pct(logged_minutes: float, working_day_count: int, daily_minutes: float) -> float:
    """Logged time against capacity in percent; 0 when there is no capacity."""
    capacity = working_day_count * daily_minutes
    if capacity <= 0:
        return 0.0
    return (logged_minutes or 0) / capacity * 100


def idle_pct(logged_minutes: float, available_minutes: float) -> float:
    """Share of available time not logged, in percent."""
    if available_minutes <= 0:
        return 0.0
    return (available_minutes - (logged_minutes or 0)) / available_minutes * 100


def average(values: Iterable[Optional[float]]) -> Optional[float]:
    numbers = [v for v in values if v is not None]
    if not numbers:
        return None
    return sum(numbers) / len(numbers)


# =============================================================================
# Streaks
# =============================================================================

def consecutive_streak(
    values_recent_first: Sequence[float],
    threshold: float,
    above: bool = True,
) -> int:
    """
    Longest run of periods breaching a threshold.

    Values are ordered most-recent-first (as queried); the scan runs oldest to
    newest. With above=True a period qualifies when value > threshold, with
    above=False when value < threshold.
    """
    longest = 0
    current = 0
    for value in reversed(list(values_recent_first)):
        breached = value > threshold if above else value < threshold
        if breached:
            current += 1
            longest = max(longest, current)
        else:
            current = 0
    return longest


# =============================================================================
# Working days
# =============================================================================

def _normalize_day_names(working_days: Optional[Iterable[str]]) -> set:
    names = {str(d).strip().lower() for d in (working_days or []) if d}
    return names or set(DEFAULT_WORKING_DAYS)


def is_working_day(day: date, working_days: Optional[Iterable[str]] = None) -> bool:
    names = _normalize_day_names(working_days)
    weekday = day.weekday()
    return DAY_NAMES[weekday] in names or DAY_ABBREVIATIONS[weekday] in names


def resolve_working_days(
    working_days: Optional[Iterable[str]],
    count: int,
    today: date,
    lookback_cap: Optional[int] = None,
) -> List[date]:
    """
    Walk backward from yesterday collecting the user's last `count` working days.

    Stops after `lookback_cap` calendar days (30 for short windows, 60 for long
    ones) so a user whose configured days never match cannot loop forever.
    Returned most-recent-first.
    """
    names = _normalize_day_names(working_days)
    if lookback_cap is None:
        lookback_cap = 30 if count <= 7 else 60

    days: List[date] = []
    check = today - timedelta(days=1)
    iterations = 0
    while len(days) < count and iterations < lookback_cap:
        weekday = check.weekday()
        if DAY_NAMES[weekday] in names or DAY_ABBREVIATIONS[weekday] in names:
            days.append(check)
        check -= timedelta(days=1)
        iterations += 1
    return days


def compliance_window(today: date, days: int = 7) -> List[date]:
    """The `days` calendar days before today, Sundays excluded."""
    window = []
    for offset in range(1, days + 1):
        day = today - timedelta(days=offset)
        if day.weekday() != 6:
            window.append(day)
    return window


# =============================================================================
# Forecasting
# =============================================================================

@dataclass
class DeadlineForecast:
    """Projected completion against a deadline."""
    days_needed: int
    forecast_date: datetime
    deviation_days: int


def forecast_deadline(
    remaining_points: float,
    average_velocity: Optional[float],
    deadline: datetime,
    today: datetime,
    sprint_length_days: int = 14,
) -> Optional[DeadlineForecast]:
    """
    Forecast completion from remaining points and average sprint velocity.

    Returns None when no velocity is available; there is nothing to forecast.
    """
    if not average_velocity or average_velocity <= 0:
        return None

    days_needed = math.ceil((remaining_points / average_velocity) * sprint_length_days)
    forecast_date = today + timedelta(days=days_needed)
    deviation_days = math.ceil((forecast_date - deadline).total_seconds() / 86400)
    return DeadlineForecast(
        days_needed=days_needed,
        forecast_date=forecast_date,
        deviation_days=deviation_days,
    )


# =============================================================================
# Workload
# =============================================================================

def is_terminal_status(status: Optional[str]) -> bool:
    return (status or "").lower() in TERMINAL_TASK_STATUSES


def task_hours(task) -> float:
    """Planned hours of a task; story points count two hours each when unestimated."""
    if task.estimated_hours:
        return float(task.estimated_hours)
    if task.story_points:
        return float(task.story_points) * 2
    return 0.0


def week_bounds(now: datetime):
    """Monday 00:00 of the current week and Monday 00:00 of the next."""
    start = (now + relativedelta(weekday=MO(-1))).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=7)


def counts_toward_week(task, now: datetime) -> bool:
    """Whether a task belongs to this week's planned workload."""
    if is_terminal_status(task.status):
        return False

    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_start, week_end = week_bounds(now)
    due = task.due_date

    if due is not None and due < today_start:
        return False

    in_progress = (task.status or "").lower() in ACTIVE_WORK_STATUSES
    due_this_week = due is not None and week_start <= due < week_end
    carried_over = due is not None and due < week_start
    return carried_over or due_this_week or in_progress


def weekly_workload_hours(tasks: Iterable, now: datetime) -> float:
    """Sum of planned hours over the tasks that make up this week's workload."""
    return sum(task_hours(task) for task in tasks if counts_toward_week(task, now))


def days_overdue(due: datetime, now: datetime) -> int:
    """Whole days since a due date, rounded half up."""
    return math.floor((now - due).total_seconds() / 86400 + 0.5)


def planned_hours_due_this_week(tasks: Iterable, now: datetime) -> float:
    """Planned hours of open tasks due between Monday and Sunday of the current week."""
    week_start, week_end = week_bounds(now)
    return sum(
        task_hours(task)
        for task in tasks
        if not is_terminal_status(task.status)
        and task.due_date is not None
        and week_start <= task.due_date < week_end
    )


# =============================================================================
# Context switching
# =============================================================================

def projects_per_day(entries: Iterable) -> Dict[date, int]:
    """Distinct projects logged per day; entries without a project are ignored."""
    projects: Dict[date, set] = {}
    for entry in entries:
        day_projects = projects.setdefault(entry.timesheet_date, set())
        if entry.project_id:
            day_projects.add(entry.project_id)
    return {day: len(ids) for day, ids in sorted(projects.items())}


# =============================================================================
# Project health
# =============================================================================

@dataclass
class HealthScore:
    """0-100 project health with the indicators that pulled it down."""
    score: int
    indicators: List[str]


RISK_LEVEL_PENALTIES = (
    ("critical", 20, "Critical risk level detected"),
    ("high", 15, "High risk level flagged"),
    ("medium", 5, "Medium risk level flagged"),
)


def project_health(project, tasks: Sequence, now: datetime) -> HealthScore:
    """
    Score a project starting from a base of 70.

    Progress adds up to 30 points and the task completion rate up to 20. An
    overdue deadline costs 20, one less than a week away 10. On-hold projects
    lose 15 and completed projects score 100 before the risk level penalty.
    """
    score = 70.0
    indicators: List[str] = []

    progress = project.progress or 0
    score += progress * 0.3
    if progress < 40:
        indicators.append(f"Low project progress: {progress:g}%")

    if tasks:
        completed = sum(1 for t in tasks if (t.status or "").lower() in COMPLETED_TASK_STATUSES)
        completion_rate = completed / len(tasks)
        score += completion_rate * 20
        if completion_rate < 0.5:
            indicators.append(f"Low task completion: {round(completion_rate * 100)}%")

    if project.deadline is not None:
        days_left = math.ceil((project.deadline - now).total_seconds() / 86400)
        if days_left < 0:
            score -= 20
            indicators.append(f"Project is overdue by {abs(days_left)} days")
        elif days_left < 7:
            score -= 10
            indicators.append(f"Deadline is approaching ({days_left} days left)")

    if project.status == "on_hold":
        score -= 15
        indicators.append("Project is currently on hold")
    if project.status == "completed":
        score = 100

    for level, penalty, indicator in RISK_LEVEL_PENALTIES:
        if project.risk_level == level:
            score -= penalty
            indicators.append(indicator)

    return HealthScore(score=max(0, min(100, math.floor(score + 0.5))), indicators=indicators)
