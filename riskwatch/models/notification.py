"""Notification model - the alert record shown in-app and mirrored by email."""
from datetime import datetime
from enum import Enum

from sqlalchemy import Column, String, DateTime, Boolean, Text, JSON, ForeignKey, Index, text

from riskwatch.database import Base
from riskwatch.models.base import generate_id


class NotificationType(str, Enum):
    """Alert types emitted by rule jobs and the escalation sweeper."""
    # Rework
    PM_HIGH_REWORK = "PM_HIGH_REWORK"
    PM_RUNAWAY_REWORK_ALARM = "PM_RUNAWAY_REWORK_ALARM"

    # Delivery
    PM_DEADLINE_RISK = "PM_DEADLINE_RISK"
    PM_VELOCITY_DROP = "PM_VELOCITY_DROP"
    PM_MULTIPLE_OVERDUE_TASKS = "PM_MULTIPLE_OVERDUE_TASKS"
    PM_PROJECT_HEALTH_RISK = "PM_PROJECT_HEALTH_RISK"
    PM_CRITICAL_PROJECT_HEALTH_RISK = "PM_CRITICAL_PROJECT_HEALTH_RISK"

    # Team utilization
    PM_LOW_TEAM_UTILIZATION = "PM_LOW_TEAM_UTILIZATION"
    PM_CRITICAL_UNDERUTILIZATION_ALARM = "PM_CRITICAL_UNDERUTILIZATION_ALARM"

    # Individual workload
    OVERWORK_ALARM = "overwork_alarm"
    PM_OVERWORK_NOTICE = "PM_OVERWORK_NOTICE"
    IDLE_TIME_ALERT = "idle_time_alert"
    UNDER_UTILIZATION_ALERT = "under_utilization_alert"
    LOW_LOGGED_HOURS = "low_logged_hours"
    LOW_WORKLOAD_ALERT = "low_workload_alert"
    CONTEXT_SWITCHING_ALERT = "context_switching_alert"
    USER_AVAILABILITY_UPDATE = "user_availability_update"

    # Personal rework
    REWORK_ALERT = "rework_alert"
    REWORK_ALARM = "rework_alarm"
    HIGH_REWORK_ALARM = "high_rework_alarm"

    # Timesheets
    TIMESHEET_LOCKOUT_ALARM = "timesheet_lockout_alarm"
    TEAM_MEMBER_LOCKOUT_NOTICE = "team_member_lockout_notice"
    PENDING_TIMESHEET_ALERT = "pending_timesheet_alert"
    PENDING_PM_SUMMARY = "pending_pm_summary"

    # Overdue tasks
    MULTIPLE_OVERDUE_ALARM = "multiple_overdue_alarm"
    TASK_OVERDUE_ALERT = "task_overdue_alert"
    TASK_ESCALATION_ALERT = "task_escalation_alert"
    MULTIPLE_OVERDUE_ESCALATION = "multiple_overdue_escalation"

    # Recognition
    USER_CONSISTENT = "USER_CONSISTENT"

    # Escalation lifecycle
    PM_ALERT_REMINDER = "PM_ALERT_REMINDER"
    PM_ALERT_ESCALATED = "PM_ALERT_ESCALATED"
    PM_ACKNOWLEDGED_ALERT = "PM_ACKNOWLEDGED_ALERT"


class NotificationCategory(str, Enum):
    """Severity category shown by the notification UI."""
    INFO = "info"
    ALERT = "alert"      # Needs attention
    ALARM = "alarm"      # Comes with an automatic state change


class NotificationStatus(str, Enum):
    OPEN = "OPEN"
    APPEALED = "APPEALED"
    RESOLVED = "RESOLVED"


OPEN_STATUSES = (NotificationStatus.OPEN.value, NotificationStatus.APPEALED.value)
OPEN_DEDUP_KEY_WHERE = "status IN ('OPEN', 'APPEALED')"


class Notification(Base):
    """
    Notification - one alert delivered to one recipient.

    Rule jobs create one row per recipient. The escalation sweeper reads
    created_date / acknowledged and flips reminder_sent / escalated_to_admin.

    dedup_key is the idempotency key of the creating rule
    (type:entity:recipient:day or type:entity:recipient:open). It is unique
    among OPEN and APPEALED rows only, so two writers racing on the same
    condition cannot both insert, while a row closed outside riskwatch (status
    set to RESOLVED with its key left in place) never blocks a new alarm.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_type_entity", "type", "entity_id"),
        Index("ix_notifications_sweep", "type", "status", "acknowledged"),
        Index(
            "uq_notifications_open_dedup_key",
            "dedup_key",
            unique=True,
            postgresql_where=text(OPEN_DEDUP_KEY_WHERE),
            sqlite_where=text(OPEN_DEDUP_KEY_WHERE),
        ),
    )

    id = Column(String, primary_key=True, default=lambda: generate_id("notif"))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)

    # Recipient
    recipient_email = Column(String, nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)

    # Classification
    type = Column(String, nullable=False)
    category = Column(String, nullable=False, default=NotificationCategory.ALERT.value)
    status = Column(String, nullable=False, default=NotificationStatus.OPEN.value)

    # Subject of the alert
    entity_type = Column(String, nullable=True)
    entity_id = Column(String, nullable=True)
    project_id = Column(String, nullable=True, index=True)

    # Content
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String, nullable=True)
    payload_data = Column("metadata", JSON, nullable=True)

    read = Column(Boolean, nullable=False, default=False)
    created_date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    # Escalation lifecycle
    acknowledged = Column(Boolean, nullable=False, default=False)
    acknowledged_at = Column(DateTime, nullable=True)
    acknowledged_by = Column(String, nullable=True)
    reminder_sent = Column(Boolean, nullable=False, default=False)
    escalated_to_admin = Column(Boolean, nullable=False, default=False)
    last_email_sent = Column(DateTime, nullable=True)

    dedup_key = Column(String, nullable=True)

    @property
    def payload(self):
        """Typed view of the metadata column."""
        from riskwatch.notifications.payloads import parse_payload

        return parse_payload(self.payload_data)

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def __repr__(self) -> str:
        return f"<Notification {self.id} {self.type} -> {self.recipient_email}>"
