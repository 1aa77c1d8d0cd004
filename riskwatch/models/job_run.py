"""Job run log model."""
from datetime import datetime

from sqlalchemy import Column, String, DateTime, Boolean, JSON

from riskwatch.database import Base
from riskwatch.models.base import generate_id


class JobRun(Base):
    """One execution of a rule job or the escalation sweeper."""

    __tablename__ = "job_runs"

    id = Column(String, primary_key=True, default=lambda: generate_id("run"))
    job_name = Column(String, nullable=False, index=True)
    forced = Column(Boolean, nullable=False, default=False)
    started_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)
    summary = Column(JSON, nullable=False, default=dict)
