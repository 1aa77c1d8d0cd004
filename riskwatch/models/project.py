"""Project and project role models."""
from datetime import datetime
from enum import Enum

from sqlalchemy import Column, String, DateTime, Boolean, Float, JSON, ForeignKey

from riskwatch.database import Base
from riskwatch.models.base import generate_id


class ProjectStatus(str, Enum):
    """Lifecycle of a project."""
    PLANNING = "planning"
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"


class Project(Base):
    """Project - a body of work with a team, sprints and tasks."""

    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=lambda: generate_id("proj"))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    status = Column(String, nullable=False, default=ProjectStatus.PLANNING.value)
    deadline = Column(DateTime, nullable=True)
    owner_email = Column(String, nullable=True)

    # [{"email": "a@x.io", "role": "project_manager"}, ...]
    team_members = Column(JSON, nullable=False, default=list)

    scope_locked = Column(Boolean, nullable=False, default=False)
    risk_level = Column(String, nullable=True)  # low | medium | high | critical
    progress = Column(Float, nullable=False, default=0.0)  # percent complete, 0-100

    created_date = Column(DateTime, nullable=False, default=datetime.utcnow)

    def member_emails(self, roles=None) -> list:
        """Team member emails, optionally restricted to the given roles."""
        emails = []
        for member in self.team_members or []:
            email = member.get("email")
            if not email:
                continue
            if roles is not None and member.get("role") not in roles:
                continue
            if email not in emails:
                emails.append(email)
        return emails


class ProjectUserRole(Base):
    """Role assignment of a user on a project."""

    __tablename__ = "project_user_roles"

    id = Column(String, primary_key=True, default=lambda: generate_id("pur"))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String, nullable=False)  # project_manager | team_member | admin | viewer
    custom_role = Column(String, nullable=True)
