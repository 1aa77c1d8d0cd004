"""Shared test fixtures and configuration for Riskwatch tests."""
from datetime import date, datetime, timedelta
from types import SimpleNamespace
from typing import List, Optional

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from riskwatch.database import Base
from riskwatch.models import (
    Notification,
    NotificationCategory,
    NotificationStatus,
    Project,
    ProjectUserRole,
    Sprint,
    SprintVelocity,
    Task,
    Tenant,
    Timesheet,
    User,
    generate_id,
)
from riskwatch.notifications.email_provider import EmailDeliveryError, EmailMessage, EmailProvider
from riskwatch.notifications.service import NotificationService

# Wednesday
NOW = datetime(2026, 10, 14, 10, 0)
TODAY = NOW.date()
WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]


# =============================================================================
# Email
# =============================================================================

class RecordingEmailProvider(EmailProvider):
    """Keeps sent messages in memory; addresses in `fail_for` are rejected."""

    def __init__(self):
        self.sent: List[EmailMessage] = []
        self.fail_for = set()

    name = "recording"

    async def deliver(self, message: EmailMessage) -> str:
        if message.to in self.fail_for:
            raise EmailDeliveryError("mailbox unavailable")
        self.sent.append(message)
        return f"msg-{len(self.sent)}"

    @property
    def recipients(self) -> List[str]:
        return [m.to for m in self.sent]


# =============================================================================
# Database
# =============================================================================

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def mailer():
    return RecordingEmailProvider()


@pytest.fixture
def notifier(db, mailer):
    return NotificationService(db, email_provider=mailer)


# =============================================================================
# Builders
# =============================================================================

class Builder:
    """Adds entities to the session with explicit ids."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _add(self, entity):
        self.db.add(entity)
        return entity

    def tenant(self, name: str = "Acme", owner_email: Optional[str] = "owner@acme.io", **kwargs) -> Tenant:
        kwargs.setdefault("status", "active")
        kwargs.setdefault("features_enabled", {})
        kwargs.setdefault("created_date", NOW - timedelta(days=365))
        return self._add(Tenant(id=generate_id("tenant"), name=name, owner_email=owner_email, **kwargs))

    def user(self, tenant: Tenant, email: str, role: str = "member", **kwargs) -> User:
        kwargs.setdefault("full_name", email.split("@")[0].title())
        return self._add(User(id=generate_id("user"), tenant_id=tenant.id, email=email, role=role, **kwargs))

    def project(self, tenant: Tenant, name: str = "Alpha", team=(), **kwargs) -> Project:
        kwargs.setdefault("status", "active")
        members = [{"email": email, "role": role} for email, role in team]
        return self._add(
            Project(id=generate_id("proj"), tenant_id=tenant.id, name=name, team_members=members, **kwargs)
        )

    def project_role(self, project: Project, user: User, role: str, custom_role: Optional[str] = None):
        return self._add(
            ProjectUserRole(
                id=generate_id("pur"),
                tenant_id=project.tenant_id,
                project_id=project.id,
                user_id=user.id,
                role=role,
                custom_role=custom_role,
            )
        )

    def sprint(self, project: Project, name: str, start: date, end: date, **kwargs) -> Sprint:
        return self._add(
            Sprint(
                id=generate_id("sprint"),
                tenant_id=project.tenant_id,
                project_id=project.id,
                name=name,
                start_date=datetime.combine(start, datetime.min.time()),
                end_date=datetime.combine(end, datetime.min.time()),
                **kwargs,
            )
        )

    def timesheet(self, tenant: Tenant, email: str, day: date, minutes: int,
                  rework: int = 0, project: Optional[Project] = None, **kwargs) -> Timesheet:
        kwargs.setdefault("status", "submitted")
        return self._add(
            Timesheet(
                id=generate_id("ts"),
                tenant_id=tenant.id,
                project_id=project.id if project else None,
                user_email=email,
                timesheet_date=day,
                total_minutes=minutes,
                rework_minutes=rework,
                **kwargs,
            )
        )

    def task(self, project: Project, title: str, **kwargs) -> Task:
        kwargs.setdefault("status", "todo")
        kwargs.setdefault("created_date", NOW - timedelta(days=30))
        return self._add(
            Task(id=generate_id("task"), tenant_id=project.tenant_id, project_id=project.id, title=title, **kwargs)
        )

    def velocity(self, project: Project, measured: datetime, **kwargs) -> SprintVelocity:
        return self._add(
            SprintVelocity(
                id=generate_id("vel"),
                tenant_id=project.tenant_id,
                project_id=project.id,
                measurement_date=measured,
                **kwargs,
            )
        )

    def notification(self, recipient: User, type_, created: datetime, **kwargs) -> Notification:
        kwargs.setdefault("category", NotificationCategory.ALERT.value)
        kwargs.setdefault("status", NotificationStatus.OPEN.value)
        kwargs.setdefault("title", "High Rework Trend")
        kwargs.setdefault("message", "Rework increasing. Check quality process.")
        kwargs.setdefault("read", False)
        kwargs.setdefault("acknowledged", False)
        kwargs.setdefault("reminder_sent", False)
        kwargs.setdefault("escalated_to_admin", False)
        return self._add(
            Notification(
                id=generate_id("notif"),
                tenant_id=recipient.tenant_id,
                recipient_email=recipient.email,
                user_id=recipient.id,
                type=type_.value if hasattr(type_, "value") else type_,
                created_date=created,
                **kwargs,
            )
        )


@pytest.fixture
def build(db):
    return Builder(db)


@pytest_asyncio.fixture
async def acme(db, build):
    """
    A tenant with an owner, an admin, a project manager and one developer
    working on the active project "Alpha".
    """
    tenant = build.tenant()
    owner = build.user(tenant, "owner@acme.io", role="owner")
    admin = build.user(tenant, "admin@acme.io", role="admin")
    pm = build.user(tenant, "pm@acme.io", role="member", custom_role="project_manager")
    dev = build.user(tenant, "dev@acme.io", role="member", working_days=WEEKDAYS)
    alpha = build.project(
        tenant,
        "Alpha",
        team=[("pm@acme.io", "project_manager"), ("dev@acme.io", "team_member")],
        deadline=NOW + timedelta(days=100),
    )
    await db.commit()
    return SimpleNamespace(tenant=tenant, owner=owner, admin=admin, pm=pm, dev=dev, alpha=alpha)


@pytest.fixture
def notifications(db):
    """Query helper: notifications of a type, optionally for one recipient."""

    async def fetch(type_, recipient_email: Optional[str] = None) -> List[Notification]:
        query = select(Notification).where(Notification.type == getattr(type_, "value", type_))
        if recipient_email is not None:
            query = query.where(Notification.recipient_email == recipient_email)
        result = await db.execute(query.order_by(Notification.recipient_email, Notification.created_date))
        return list(result.scalars().all())

    return fetch
