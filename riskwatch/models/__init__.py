"""
Declared schema registry.

Every entity is imported here once, so importing riskwatch.models is enough
to have the full schema on Base.metadata.
"""
from riskwatch.models.base import generate_id
from riskwatch.models.tenant import Tenant, TenantStatus
from riskwatch.models.user import User, ADMIN_ROLES, MEMBER_ROLES
from riskwatch.models.project import Project, ProjectStatus, ProjectUserRole
from riskwatch.models.sprint import Sprint, SprintVelocity
from riskwatch.models.task import Task
from riskwatch.models.timesheet import (
    Timesheet,
    TimesheetStatus,
    COMPLETED_TIMESHEET_STATUSES,
    PENDING_TIMESHEET_STATUSES,
)
from riskwatch.models.notification import (
    Notification,
    NotificationType,
    NotificationCategory,
    NotificationStatus,
    OPEN_STATUSES,
)
from riskwatch.models.job_run import JobRun

ALL_MODELS = (
    Tenant,
    User,
    Project,
    ProjectUserRole,
    Sprint,
    SprintVelocity,
    Task,
    Timesheet,
    Notification,
    JobRun,
)

__all__ = [
    "generate_id",
    "Tenant",
    "TenantStatus",
    "User",
    "ADMIN_ROLES",
    "MEMBER_ROLES",
    "Project",
    "ProjectStatus",
    "ProjectUserRole",
    "Sprint",
    "SprintVelocity",
    "Task",
    "Timesheet",
    "TimesheetStatus",
    "COMPLETED_TIMESHEET_STATUSES",
    "PENDING_TIMESHEET_STATUSES",
    "Notification",
    "NotificationType",
    "NotificationCategory",
    "NotificationStatus",
    "OPEN_STATUSES",
    "JobRun",
    "ALL_MODELS",
]
