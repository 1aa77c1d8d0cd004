"""
Deduplication / Cooldown Gate

Decides whether a rule may create a notification:
- daily:      nothing of the same type/subject since local start of day
- open-state: nothing of the same type/subject still OPEN or APPEALED
- cooldown:   in-app record is refreshed, the email only re-sent after a delay

The gate also produces the idempotency key written to Notification.dedup_key.
Storage enforces it with a unique index over OPEN and APPEALED rows, so a
resolved alert never blocks the next one. A forced run (--force) bypasses
every check and writes no key.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from riskwatch.models import Notification, NotificationType, OPEN_STATUSES


TypeArg = Union[str, NotificationType, Iterable[Union[str, NotificationType]]]


def _type_values(types: TypeArg) -> list:
    if isinstance(types, (str, NotificationType)):
        types = [types]
    return [t.value if isinstance(t, NotificationType) else t for t in types]


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


class DedupGate:
    """Dedup and cooldown checks bound to one run's clock."""

    def __init__(self, db: AsyncSession, now: Optional[datetime] = None, force: bool = False):
        self.db = db
        self.now = now or datetime.utcnow()
        self.force = force

    # =========================================================================
    # Checks
    # =========================================================================

    async def sent_today(
        self,
        types: TypeArg,
        entity_id: Optional[str] = None,
        project_id: Optional[str] = None,
        recipient_email: Optional[str] = None,
    ) -> bool:
        """True when a notification of these types was created today for the subject."""
        if self.force:
            return False

        query = (
            select(Notification.id)
            .where(Notification.type.in_(_type_values(types)))
            .where(Notification.created_date >= start_of_day(self.now))
        )
        if entity_id is not None:
            query = query.where(Notification.entity_id == entity_id)
        if project_id is not None:
            query = query.where(Notification.project_id == project_id)
        if recipient_email is not None:
            query = query.where(Notification.recipient_email == recipient_email)

        result = await self.db.execute(query.limit(1))
        return result.first() is not None

    async def find_open(
        self,
        types: TypeArg,
        entity_id: Optional[str] = None,
        user_id: Optional[str] = None,
        recipient_email: Optional[str] = None,
    ) -> Optional[Notification]:
        """The most recent OPEN/APPEALED notification for the subject, if any."""
        if self.force:
            return None

        query = (
            select(Notification)
            .where(Notification.type.in_(_type_values(types)))
            .where(Notification.status.in_(OPEN_STATUSES))
        )
        if entity_id is not None:
            query = query.where(Notification.entity_id == entity_id)
        if user_id is not None:
            query = query.where(Notification.user_id == user_id)
        if recipient_email is not None:
            query = query.where(Notification.recipient_email == recipient_email)

        result = await self.db.execute(query.order_by(Notification.created_date.desc()).limit(1))
        return result.scalars().first()

    async def within_cooldown(
        self,
        types: TypeArg,
        cooldown: timedelta,
        entity_id: Optional[str] = None,
        recipient_email: Optional[str] = None,
    ) -> bool:
        """True when a notification for the subject was created less than `cooldown` ago."""
        if self.force:
            return False

        query = (
            select(Notification.id)
            .where(Notification.type.in_(_type_values(types)))
            .where(Notification.created_date > self.now - cooldown)
        )
        if entity_id is not None:
            query = query.where(Notification.entity_id == entity_id)
        if recipient_email is not None:
            query = query.where(Notification.recipient_email == recipient_email)

        result = await self.db.execute(query.limit(1))
        return result.first() is not None

    def email_due(self, notification: Notification, cooldown: timedelta) -> bool:
        """Whether the email for an existing notification may be sent again."""
        if self.force or notification.last_email_sent is None:
            return True
        return self.now - notification.last_email_sent > cooldown

    # =========================================================================
    # Idempotency keys
    # =========================================================================

    def daily_key(self, type_: Union[str, NotificationType], entity_id: Optional[str], recipient_email: str) -> Optional[str]:
        if self.force:
            return None
        type_value = _type_values(type_)[0]
        return f"{type_value}:{entity_id}:{recipient_email.lower()}:{self.now.date().isoformat()}"

    def open_key(self, type_: Union[str, NotificationType], entity_id: Optional[str], recipient_email: str) -> Optional[str]:
        if self.force:
            return None
        type_value = _type_values(type_)[0]
        return f"{type_value}:{entity_id}:{recipient_email.lower()}:open"

    def cooldown_key(
        self,
        type_: Union[str, NotificationType],
        entity_id: Optional[str],
        recipient_email: str,
    ) -> Optional[str]:
        """Key for cooldown-gated rules; unique per recipient and creation minute."""
        if self.force:
            return None
        type_value = _type_values(type_)[0]
        return f"{type_value}:{entity_id}:{recipient_email.lower()}:{self.now.strftime('%Y-%m-%dT%H:%M')}"
