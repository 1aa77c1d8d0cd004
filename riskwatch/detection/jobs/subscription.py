"""
Subscription Lifecycle Job

- trial ending within 3 days: warn the owner once (features_enabled flag)
- trial expired: tenant becomes past_due, owner is emailed
- paid subscription expired: tenant becomes past_due, owner is emailed
"""

import logging
from datetime import timedelta
from typing import List

from riskwatch.models import Tenant, TenantStatus
from riskwatch.notifications.templates import build_subscription_expired_email, build_trial_ending_email
from ..base import RuleJob

logger = logging.getLogger(__name__)

TRIAL_WARNING_FLAG = "trial_warning_sent"


class SubscriptionLifecycleJob(RuleJob):
    """Moves tenants through trial and subscription expiry."""

    name = "subscription-lifecycle"
    description = "Trial warnings and subscription expiry"
    subject_label = "tenant"

    async def subjects(self, tenant: Tenant) -> List[str]:
        return [tenant.id]

    async def evaluate(self, tenant: Tenant, subject_id: str) -> None:
        if tenant.status == TenantStatus.TRIAL.value and tenant.trial_ends_at:
            if tenant.trial_ends_at < self.now:
                await self.expire(tenant, was_trial=True)
            elif tenant.trial_ends_at <= self.now + timedelta(days=self.thresholds.trial_warning_days):
                await self.warn_trial_ending(tenant)
        elif tenant.status == TenantStatus.ACTIVE.value and tenant.subscription_ends_at:
            if tenant.subscription_ends_at < self.now:
                await self.expire(tenant, was_trial=False)

    async def _email_owner(self, tenant: Tenant, content, email_type: str) -> bool:
        if not tenant.owner_email:
            logger.warning(f"[{self.name}] tenant {tenant.name} has no owner email")
            return False
        owner = await self.recipients.tenant_owner(tenant)
        sent = await self.notifications.send_email(
            tenant.owner_email, content(owner.display_name if owner else None), email_type,
        )
        self.summary.record_email(sent)
        return sent

    async def warn_trial_ending(self, tenant: Tenant) -> None:
        if tenant.feature(TRIAL_WARNING_FLAG) and not self.force:
            return

        self.summary.triggered += 1
        sent = await self._email_owner(
            tenant, lambda name: build_trial_ending_email(tenant.name, tenant.trial_ends_at, name),
            "trial_ending",
        )
        if sent:
            tenant.set_feature(TRIAL_WARNING_FLAG, True)
            self.summary.state_changes += 1
        else:
            self.skip(f"trial warning for {tenant.name} not delivered, will retry next run")

    async def expire(self, tenant: Tenant, was_trial: bool) -> None:
        self.summary.triggered += 1
        self.changed(tenant, "status", TenantStatus.PAST_DUE.value)
        self.changed(tenant, "subscription_status", TenantStatus.PAST_DUE.value)
        logger.info(f"[{self.name}] tenant {tenant.name} moved to past_due")
        await self._email_owner(
            tenant, lambda name: build_subscription_expired_email(tenant.name, was_trial, name),
            "trial_expired" if was_trial else "subscription_expired",
        )
