"""
Rule Job Base

Every rule job follows the same pipeline:

    for each tenant -> for each project/user -> compute metric -> classify tier
    -> dedup gate -> resolve recipients -> notify (+ email) -> mutate state

Subjects are processed one at a time and committed individually. A failure on
one subject is rolled back, logged and counted; the batch carries on.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from riskwatch.models import NotificationCategory, NotificationType, Tenant, User
from riskwatch.notifications.service import DeliveryResult, NotificationService
from riskwatch.notifications.templates import EmailContent
from .dedup import DedupGate, TypeArg
from .recipients import RecipientResolver
from .rules import RuleThresholds, get_thresholds

logger = logging.getLogger(__name__)


@dataclass
class JobSummary:
    """Outcome counters for one job run."""
    job: str
    forced: bool = False
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    tenants: int = 0
    checked: int = 0
    triggered: int = 0
    notifications_created: int = 0
    notifications_updated: int = 0
    emails_sent: int = 0
    emails_failed: int = 0
    state_changes: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[dict] = field(default_factory=list)

    # Counters describing writes; a rolled-back subject must not leave them raised
    WRITE_COUNTERS = ("notifications_created", "notifications_updated", "emails_sent", "state_changes")

    def snapshot(self) -> dict:
        return {name: getattr(self, name) for name in self.WRITE_COUNTERS}

    def restore(self, snapshot: dict) -> None:
        for name, value in snapshot.items():
            setattr(self, name, value)

    def record_delivery(self, delivery: DeliveryResult) -> None:
        self.notifications_created += delivery.created
        self.emails_sent += delivery.emails_sent
        self.emails_failed += delivery.emails_failed

    def record_email(self, sent: bool) -> None:
        if sent:
            self.emails_sent += 1
        else:
            self.emails_failed += 1

    def to_dict(self) -> dict:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat() if self.started_at else None
        data["completed_at"] = self.completed_at.isoformat() if self.completed_at else None
        return data


class RuleJob(ABC):
    """
    Base class for rule jobs.

    Subclasses set `name` and implement subjects() and evaluate().
    """

    name: str = ""
    description: str = ""
    subject_label: str = "subject"

    def __init__(
        self,
        db: AsyncSession,
        *,
        thresholds: Optional[RuleThresholds] = None,
        notifier: Optional[NotificationService] = None,
        force: bool = False,
        now: Optional[datetime] = None,
    ):
        self.db = db
        self.thresholds = thresholds or get_thresholds()
        self.notifications = notifier or NotificationService(db)
        self.force = force
        self.now = now or datetime.utcnow()
        self.today = self.now.date()
        self.gate = DedupGate(db, now=self.now, force=force)
        self.recipients = RecipientResolver(db)
        self.summary = JobSummary(job=self.name, forced=force)

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def tenant_ids(self) -> List[str]:
        result = await self.db.execute(select(Tenant.id).order_by(Tenant.created_date, Tenant.id))
        return [row[0] for row in result.fetchall()]

    @abstractmethod
    async def subjects(self, tenant: Tenant) -> List[str]:
        """Ids of the projects/users this job checks inside a tenant."""

    @abstractmethod
    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        """Check one subject and act on it."""

    async def run(self) -> JobSummary:
        """
        Run the job over every tenant.

        Errors on a single subject are contained; errors listing tenants or
        subjects (e.g. storage unreachable) propagate to the caller.
        """
        self.summary.started_at = self.now
        if self.force:
            logger.warning(f"[{self.name}] running with --force: dedup and cooldowns bypassed")
        logger.info(f"[{self.name}] starting run")

        for tenant_id in await self.tenant_ids():
            tenant = await self.db.get(Tenant, tenant_id)
            if tenant is None:
                continue
            self.summary.tenants += 1

            for subject_id in await self.subjects(tenant):
                await self._process(tenant_id, subject_id)

        self.summary.completed_at = datetime.utcnow()
        logger.info(
            f"[{self.name}] run completed: {self.summary.checked} checked, "
            f"{self.summary.triggered} triggered, "
            f"{self.summary.notifications_created} notifications, "
            f"{self.summary.emails_sent} emails, {self.summary.failed} failed"
        )
        return self.summary

    async def _process(self, tenant_id: str, subject_id: str) -> None:
        self.summary.checked += 1
        before = self.summary.snapshot()
        try:
            tenant = await self.db.get(Tenant, tenant_id)
            await self.evaluate(tenant, subject_id)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            self.summary.restore(before)
            self.summary.skipped += 1
            logger.warning(
                f"[{self.name}] {self.subject_label} {subject_id}: duplicate notification "
                f"rejected by storage, another run got there first ({e.orig})"
            )
        except Exception as e:
            await self.db.rollback()
            self.summary.restore(before)
            self.summary.failed += 1
            self.summary.errors.append({self.subject_label: subject_id, "error": str(e)})
            logger.error(f"[{self.name}] failed for {self.subject_label} {subject_id}: {e}")

    # =========================================================================
    # Helpers
    # =========================================================================

    def changed(self, entity, attribute: str, value) -> bool:
        """Set an attribute only if it differs; returns whether it was written."""
        if getattr(entity, attribute) == value:
            return False
        setattr(entity, attribute, value)
        self.summary.state_changes += 1
        logger.info(f"[{self.name}] {type(entity).__name__} {entity.id}: {attribute} -> {value}")
        return True

    def skip(self, reason: str) -> None:
        self.summary.skipped += 1
        logger.info(f"[{self.name}] skipped: {reason}")

    async def keep_open(
        self,
        recipient: User,
        *,
        type: NotificationType,
        category: NotificationCategory,
        title: str,
        message: str,
        entity_type: str,
        entity_id: str,
        project_id: Optional[str] = None,
        link: Optional[str] = None,
        payload: Optional[BaseModel] = None,
        email: Optional[Callable[[User], EmailContent]] = None,
    ) -> bool:
        """
        Raise an open-state notification, or refresh the one already open.

        Returns True when a new notification was created. A refresh never
        repeats the email.
        """
        existing = await self.gate.find_open(type, entity_id=entity_id, recipient_email=recipient.email)
        if existing is not None:
            await self.notifications.refresh(
                existing, title=title, message=message, link=link, payload=payload, now=self.now,
            )
            self.summary.notifications_updated += 1
            return False

        delivery = await self.notifications.notify(
            [recipient],
            type=type,
            category=category,
            title=title,
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
            project_id=project_id,
            link=link,
            payload=payload,
            key=lambda r: self.gate.open_key(type, entity_id, r.email),
            email=email,
            now=self.now,
        )
        self.summary.record_delivery(delivery)
        return True

    async def release_open(self, types: TypeArg, entity_id: str, recipient_email: Optional[str] = None) -> int:
        """Resolve every open notification of these types for the subject."""
        released = 0
        while True:
            existing = await self.gate.find_open(types, entity_id=entity_id, recipient_email=recipient_email)
            if existing is None:
                return released
            await self.notifications.resolve(existing)
            self.summary.notifications_updated += 1
            released += 1
