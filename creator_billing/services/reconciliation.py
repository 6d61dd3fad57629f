"""
On-demand reconciliation against the provider ("check subscription").

Re-derives the caller's subscription straight from Stripe and corrects the
local rows: an active or trialing subscription is upserted and its
entitlements refreshed, no active subscription deactivates entitlements.
"""

import logging
from datetime import datetime
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from creator_billing.exceptions import AuthenticationError
from creator_billing.models.entitlement import Feature
from creator_billing.services import entitlement_store, subscription_store
from creator_billing.services.audit import AuditEvent, audit_service
from creator_billing.services.auth_provider import AuthenticatedUser
from creator_billing.services.change_feed import ChangeFeed, change_feed
from creator_billing.services.stripe_service import StripeService, stripe_service
from creator_billing.services.subscription_state import ACTIVE_STATUSES, plan_for_price
from creator_billing.services.webhook_events import ProviderSubscription

logger = logging.getLogger(__name__)

_ACTIVE_VALUES = {s.value for s in ACTIVE_STATUSES}


def log_step(step: str, details: Optional[dict] = None) -> None:
    suffix = f" - {details}" if details else ""
    logger.info(f"[CHECK-SUBSCRIPTION] {step}{suffix}")


class SubscriptionCheckResponse(BaseModel):
    subscribed: bool
    subscription_tier: Optional[str] = None
    subscription_end: Optional[datetime] = None
    status: Optional[str] = None
    cancel_at_period_end: bool = False


UNSUBSCRIBED = SubscriptionCheckResponse(subscribed=False)


class ReconciliationService:
    def __init__(self, stripe_client: StripeService = stripe_service, feed: ChangeFeed = change_feed):
        self.stripe = stripe_client
        self.feed = feed

    async def check_subscription(self, db: AsyncSession, user: AuthenticatedUser) -> SubscriptionCheckResponse:
        if not user.email:
            raise AuthenticationError("User not authenticated or email not available")
        log_step("User authenticated", {"userId": user.id})

        customer = await self.stripe.find_customer_by_email(user.email)
        if customer is None:
            log_step("No customer found, returning unsubscribed state")
            return UNSUBSCRIBED

        customer_id = customer.get("id")
        log_step("Found Stripe customer", {"customerId": customer_id})

        subscriptions = await self.stripe.list_subscriptions(customer_id)
        active = next((s for s in subscriptions if s.get("status") in _ACTIVE_VALUES), None)

        if active is None:
            log_step("No active subscription found")
            await entitlement_store.deactivate_all(db, user.id, feed=self.feed)
            await audit_service.log(
                db=db,
                event=AuditEvent.SUBSCRIPTION_RECONCILED,
                source="check-subscription",
                status="inactive",
                user_id=user.id,
            )
            return UNSUBSCRIBED

        snapshot = ProviderSubscription.from_stripe(active)
        log_step("Active subscription found", {
            "subscriptionId": snapshot.id,
            "status": snapshot.status,
            "endDate": snapshot.current_period_end,
            "priceId": snapshot.price_id,
        })

        await subscription_store.upsert_subscription(
            db,
            user_id=user.id,
            snapshot=snapshot,
            plan=plan_for_price(snapshot.price_id),
            feed=self.feed,
        )
        await entitlement_store.activate_all(db, user.id, snapshot.current_period_end, feed=self.feed)
        log_step("Entitlements activated for user")

        await audit_service.log(
            db=db,
            event=AuditEvent.SUBSCRIPTION_RECONCILED,
            source="check-subscription",
            status=snapshot.status or "unknown",
            user_id=user.id,
            request_id=snapshot.id,
        )

        return SubscriptionCheckResponse(
            subscribed=True,
            subscription_tier=Feature.CREATOR_PRO.value,
            subscription_end=snapshot.current_period_end,
            status=snapshot.status,
            cancel_at_period_end=snapshot.cancel_at_period_end,
        )


reconciliation_service = ReconciliationService()
