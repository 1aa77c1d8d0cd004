"""Task model."""
from datetime import datetime

from sqlalchemy import Column, String, DateTime, Float, ForeignKey

from riskwatch.database import Base
from riskwatch.models.base import generate_id


class Task(Base):
    """Task - a unit of work assigned to one user."""

    __tablename__ = "tasks"

    id = Column(String, primary_key=True, default=lambda: generate_id("task"))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    sprint_id = Column(String, ForeignKey("sprints.id"), nullable=True, index=True)
    title = Column(String, nullable=False)
    assigned_to = Column(String, nullable=True, index=True)  # assignee email
    status = Column(String, nullable=False, default="todo")
    priority = Column(String, nullable=True)
    due_date = Column(DateTime, nullable=True)

    estimated_hours = Column(Float, nullable=True)
    story_points = Column(Float, nullable=True)

    created_date = Column(DateTime, nullable=False, default=datetime.utcnow)
