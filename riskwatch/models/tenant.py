"""Tenant model."""
from datetime import datetime
from enum import Enum

from sqlalchemy import Column, String, DateTime, JSON

from riskwatch.database import Base
from riskwatch.models.base import generate_id


class TenantStatus(str, Enum):
    """Subscription state of a tenant."""
    TRIAL = "trial"
    ACTIVE = "active"
    PAST_DUE = "past_due"


class Tenant(Base):
    """Tenant - a customer workspace owning projects and users."""

    __tablename__ = "tenants"

    id = Column(String, primary_key=True, default=lambda: generate_id("tenant"))
    name = Column(String, nullable=False)
    status = Column(String, nullable=False, default=TenantStatus.TRIAL.value)
    subscription_status = Column(String, nullable=True)
    subscription_plan = Column(String, nullable=True)

    trial_ends_at = Column(DateTime, nullable=True)
    subscription_ends_at = Column(DateTime, nullable=True)

    owner_email = Column(String, nullable=True)

    # Feature toggles and one-shot markers, e.g. {"trial_warning_sent": true}
    features_enabled = Column(JSON, nullable=False, default=dict)

    created_date = Column(DateTime, nullable=False, default=datetime.utcnow)

    def feature(self, key: str, default=None):
        return (self.features_enabled or {}).get(key, default)

    def set_feature(self, key: str, value) -> None:
        # Reassign so the JSON column is flagged dirty
        self.features_enabled = {**(self.features_enabled or {}), key: value}
