"""
Notification Payloads

Typed metadata attached to notifications. Each rule writes one payload model,
tagged by `kind`, so consumers can parse Notification.metadata without
guessing at its shape.
"""

from datetime import date, datetime
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError


class SprintRework(BaseModel):
    name: str
    rework: float


class ReworkTrendPayload(BaseModel):
    kind: Literal["rework_trend"] = "rework_trend"
    recent_sprints: List[SprintRework]
    streak: int
    threshold_pct: float


class DeadlineRiskPayload(BaseModel):
    kind: Literal["deadline_risk"] = "deadline_risk"
    remaining_points: float
    average_velocity: float
    forecast_date: date
    deadline: date
    deviation_days: int


class VelocityPayload(BaseModel):
    kind: Literal["velocity"] = "velocity"
    sprint_id: Optional[str] = None
    sprint_name: Optional[str] = None
    accuracies: List[float]
    average_accuracy: float


class TeamUtilizationPayload(BaseModel):
    kind: Literal["team_utilization"] = "team_utilization"
    window_days: int
    utilization_pct: float
    logged_hours: float
    capacity_hours: float
    member_count: int


class WorkloadPayload(BaseModel):
    kind: Literal["workload"] = "workload"
    user_id: str
    planned_hours: float
    limit_hours: float


class TimesheetCompliancePayload(BaseModel):
    kind: Literal["timesheet_compliance"] = "timesheet_compliance"
    user_id: str
    missing_count: int
    missing_dates: List[date]


class OverdueTasksPayload(BaseModel):
    kind: Literal["overdue_tasks"] = "overdue_tasks"
    user_id: str
    overdue_count: int
    task_ids: List[str]
    most_overdue_task_id: str


class SuggestedTask(BaseModel):
    id: str
    title: str
    project_id: str


class IdleTimePayload(BaseModel):
    kind: Literal["idle_time"] = "idle_time"
    day: date
    idle_pct: float
    logged_hours: float
    available_hours: float
    suggested_tasks: List[SuggestedTask] = Field(default_factory=list)


class PersonalUtilizationPayload(BaseModel):
    kind: Literal["personal_utilization"] = "personal_utilization"
    window_days: int
    utilization_pct: float
    logged_hours: float
    available_hours: float
    days: List[date] = Field(default_factory=list)


class PendingTimesheetPayload(BaseModel):
    kind: Literal["pending_timesheets"] = "pending_timesheets"
    timesheet_ids: List[str]
    oldest_date: Optional[date] = None


class SprintHealthPayload(BaseModel):
    kind: Literal["sprint_health"] = "sprint_health"
    sprint_id: str
    sprint_name: str
    overdue_count: int
    total_tasks: int
    overdue_pct: float


class TaskOverduePayload(BaseModel):
    kind: Literal["task_overdue"] = "task_overdue"
    task_id: str
    assignee_email: Optional[str] = None
    days_overdue: int
    due_date: date


class ContextSwitchingPayload(BaseModel):
    kind: Literal["context_switching"] = "context_switching"
    project_counts: Dict[date, int]
    project_limit: int


class PersonalReworkPayload(BaseModel):
    kind: Literal["personal_rework"] = "personal_rework"
    window_days: int
    rework_pct: float
    rework_hours: float
    total_hours: float


class InactivityPayload(BaseModel):
    kind: Literal["inactivity"] = "inactivity"
    inactive_days: int
    last_login: Optional[datetime] = None


class ProjectHealthPayload(BaseModel):
    kind: Literal["project_health"] = "project_health"
    health_score: int
    indicators: List[str] = Field(default_factory=list)


class CompliancePayload(BaseModel):
    kind: Literal["compliance"] = "compliance"
    window_days: int


class EscalationPayload(BaseModel):
    kind: Literal["escalation"] = "escalation"
    source_notification_id: str
    source_type: str
    hours_pending: int


class AcknowledgementPayload(BaseModel):
    kind: Literal["acknowledgement"] = "acknowledgement"
    source_notification_id: str
    acknowledged_by: str
    acknowledged_at: datetime


NotificationPayload = Annotated[
    Union[
        ReworkTrendPayload,
        DeadlineRiskPayload,
        VelocityPayload,
        TeamUtilizationPayload,
        WorkloadPayload,
        TimesheetCompliancePayload,
        OverdueTasksPayload,
        IdleTimePayload,
        PersonalUtilizationPayload,
        PendingTimesheetPayload,
        SprintHealthPayload,
        TaskOverduePayload,
        ContextSwitchingPayload,
        PersonalReworkPayload,
        InactivityPayload,
        ProjectHealthPayload,
        CompliancePayload,
        EscalationPayload,
        AcknowledgementPayload,
    ],
    Field(discriminator="kind"),
]

_payload_adapter = TypeAdapter(NotificationPayload)


def dump_payload(payload: Optional[BaseModel]) -> Optional[dict]:
    if payload is None:
        return None
    return payload.model_dump(mode="json")


def parse_payload(data: Optional[dict]):
    """Parse stored metadata back into its payload model; None if absent or unknown."""
    if not data:
        return None
    try:
        return _payload_adapter.validate_python(data)
    except ValidationError:
        return None
