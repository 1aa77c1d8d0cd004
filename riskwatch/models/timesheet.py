"""Timesheet model."""
from datetime import datetime
from enum import Enum

from sqlalchemy import Column, String, Date, DateTime, Integer, ForeignKey

from riskwatch.database import Base
from riskwatch.models.base import generate_id


class TimesheetStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    PENDING_PM = "pending_pm"
    PENDING_ADMIN = "pending_admin"
    REJECTED = "rejected"


COMPLETED_TIMESHEET_STATUSES = (TimesheetStatus.SUBMITTED.value, TimesheetStatus.APPROVED.value)
PENDING_TIMESHEET_STATUSES = (TimesheetStatus.PENDING_PM.value, TimesheetStatus.PENDING_ADMIN.value)


class Timesheet(Base):
    """
    Logged time for one user on one day.

    A user may have several rows for the same day (one per project);
    aggregations sum them.
    """

    __tablename__ = "timesheets"

    id = Column(String, primary_key=True, default=lambda: generate_id("ts"))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    project_id = Column(String, ForeignKey("projects.id"), nullable=True, index=True)
    user_email = Column(String, nullable=False, index=True)
    timesheet_date = Column(Date, nullable=False, index=True)

    total_minutes = Column(Integer, nullable=False, default=0)
    rework_minutes = Column(Integer, nullable=False, default=0)

    status = Column(String, nullable=False, default=TimesheetStatus.DRAFT.value)

    created_date = Column(DateTime, nullable=False, default=datetime.utcnow)
