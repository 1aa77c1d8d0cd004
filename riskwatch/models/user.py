"""User model."""
from datetime import datetime

from sqlalchemy import Column, String, DateTime, Boolean, Float, JSON, ForeignKey, UniqueConstraint

from riskwatch.database import Base
from riskwatch.models.base import generate_id


ADMIN_ROLES = ("admin", "owner")
MEMBER_ROLES = ("member", "employee", "user")
# custom_role values that exclude a user from individual compliance checks
NON_MEMBER_CUSTOM_ROLES = ("project_manager", "owner", "client", "admin")


class User(Base):
    """User model - a person working inside a tenant."""

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
    )

    id = Column(String, primary_key=True, default=lambda: generate_id("user"))
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False, index=True)
    email = Column(String, nullable=False, index=True)
    full_name = Column(String, nullable=True)

    role = Column(String, nullable=False, default="member")  # admin | owner | member | manager
    custom_role = Column(String, nullable=True)  # e.g. project_manager, viewer, client
    status = Column(String, nullable=False, default="active")

    # Availability
    working_hours_per_day = Column(Float, nullable=False, default=8.0)
    working_days = Column(JSON, nullable=True)  # ["Monday", "tue", ...]; None means Mon-Sat

    # Lock flags driven by rule jobs
    is_overdue_blocked = Column(Boolean, nullable=False, default=False)
    is_overloaded = Column(Boolean, nullable=False, default=False)
    is_timesheet_locked = Column(Boolean, nullable=False, default=False)

    created_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_date = Column(DateTime, nullable=True)  # last profile or availability change
    last_login = Column(DateTime, nullable=True)

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_member(self) -> bool:
        return self.role in MEMBER_ROLES and (self.custom_role or "") not in NON_MEMBER_CUSTOM_ROLES
