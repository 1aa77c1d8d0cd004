"""Rule job implementations."""
from .rework import ReworkTrendJob
from .deadline import DeadlineRiskJob
from .velocity import LowVelocityJob
from .team_utilization import TeamUtilizationJob
from .project_health import ProjectHealthJob
from .overwork import OverworkJob
from .low_workload import LowWorkloadJob
from .timesheets import MissingTimesheetsJob, PendingTimesheetsJob
from .overdue import MultipleOverdueJob, SprintHealthJob
from .task_overdue import TaskOverdueJob
from .personal_utilization import IdleTimeJob, UnderUtilizationJob, LowLoggedHoursJob
from .personal_rework import PersonalReworkJob
from .context_switching import ContextSwitchingJob
from .availability import AvailabilityUpdateJob
from .compliance import ConsistentComplianceJob
from .subscription import SubscriptionLifecycleJob

__all__ = [
    "ReworkTrendJob",
    "DeadlineRiskJob",
    "LowVelocityJob",
    "TeamUtilizationJob",
    "ProjectHealthJob",
    "OverworkJob",
    "LowWorkloadJob",
    "MissingTimesheetsJob",
    "PendingTimesheetsJob",
    "MultipleOverdueJob",
    "SprintHealthJob",
    "TaskOverdueJob",
    "IdleTimeJob",
    "UnderUtilizationJob",
    "LowLoggedHoursJob",
    "PersonalReworkJob",
    "ContextSwitchingJob",
    "AvailabilityUpdateJob",
    "ConsistentComplianceJob",
    "SubscriptionLifecycleJob",
]
