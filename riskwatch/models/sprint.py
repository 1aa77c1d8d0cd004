"""Sprint and velocity models."""
from datetime import datetime

from sqlalchemy import Column, String, DateTime, Float, Text, ForeignKey

from riskwatch.database import Base
from riskwatch.models.base import generate_id


class Sprint(Base):
    """Sprint - a time-boxed iteration of a project."""

    __tablename__ = "sprints"

    id = Column(String, primary_key=True, default=lambda: generate_id("sprint"))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    status = Column(String, nullable=False, default="planning")  # planning | active | completed
    goal = Column(Text, nullable=True)

    created_date = Column(DateTime, nullable=False, default=datetime.utcnow)


class SprintVelocity(Base):
    """Velocity measurement taken for a sprint."""

    __tablename__ = "sprint_velocities"

    id = Column(String, primary_key=True, default=lambda: generate_id("vel"))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    sprint_id = Column(String, ForeignKey("sprints.id"), nullable=True, index=True)
    sprint_name = Column(String, nullable=True)
    measurement_date = Column(DateTime, nullable=False, default=datetime.utcnow)

    committed_points = Column(Float, nullable=False, default=0)
    completed_points = Column(Float, nullable=False, default=0)
    accuracy = Column(Float, nullable=True)  # completed / committed * 100
