"""
Stripe webhook ingestion.

Verifies the signature, parses the event into the ``WebhookEvent`` union
and applies the matching transition from ``TRANSITIONS``. Every write is a
keyed upsert/update, so redelivery of the same event converges on the
same rows. Event ids are remembered only after their transition succeeded.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from creator_billing.database import dialect_insert
from creator_billing.exceptions import SignatureVerificationError, TransitionError
from creator_billing.models.processed_event import ProcessedEvent
from creator_billing.services import entitlement_store, profiles, subscription_store
from creator_billing.services.audit import AuditEvent, audit_service
from creator_billing.services.change_feed import ChangeFeed, change_feed
from creator_billing.services.stripe_service import StripeService, stripe_service
from creator_billing.services.subscription_state import TRANSITIONS, WebhookEventType, plan_for_price
from creator_billing.services.webhook_events import (
    CheckoutCompleted,
    InvoicePaymentFailed,
    InvoicePaymentSucceeded,
    ProviderSubscription,
    SubscriptionDeleted,
    SubscriptionUpdated,
    UnhandledEvent,
    WebhookEvent,
    parse_event,
)

logger = logging.getLogger(__name__)


class WebhookService:
    """
    Usage:
        result = await webhook_service.process(db, await request.body(), sig_header)
    """

    def __init__(self, stripe_client: StripeService = stripe_service, feed: ChangeFeed = change_feed):
        self.stripe = stripe_client
        self.feed = feed
        self._handlers = {
            CheckoutCompleted: self._on_checkout_completed,
            SubscriptionUpdated: self._on_subscription_updated,
            SubscriptionDeleted: self._on_subscription_deleted,
            InvoicePaymentFailed: self._on_payment_failed,
            InvoicePaymentSucceeded: self._on_payment_succeeded,
            UnhandledEvent: self._on_unhandled,
        }

    async def process(self, db: AsyncSession, payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
        try:
            raw = self.stripe.verify_webhook(payload, sig_header)
        except SignatureVerificationError as e:
            logger.warning(f"[WEBHOOK] rejected: {e.message}")
            await audit_service.log_standalone(
                AuditEvent.WEBHOOK_SIGNATURE_REJECTED,
                source="stripe",
                status="rejected",
                details=e.message,
            )
            raise

        event = parse_event(raw)
        event_id = raw.get("id")
        event_type = raw.get("type")
        logger.info(f"[WEBHOOK] Processing event type: {event_type} (ID: {event_id})")

        if event_id and await self._already_processed(db, event_id):
            logger.info(f"[WEBHOOK] Skipping event {event_id}: already processed")
            return {"received": True}

        try:
            await self.apply(db, event)
            if event_id:
                await self._mark_processed(db, event_id, event_type)
        except Exception as e:
            await db.rollback()
            logger.error(f"[WEBHOOK] Error processing event {event_type} ({event_id}): {e}", exc_info=True)
            await audit_service.log_standalone(
                AuditEvent.WEBHOOK_FAILED,
                source="stripe",
                status="error",
                request_id=event_id,
                details=f"{event_type}: {type(e).__name__}: {str(e)[:500]}",
            )
            raise TransitionError(
                f"Error processing event {event_type}",
                event_id=event_id,
                event_type=event_type,
            ) from e

        await audit_service.log_standalone(
            AuditEvent.WEBHOOK_PROCESSED,
            source="stripe",
            status="success",
            user_id=getattr(event, "user_id", None),
            request_id=event_id,
            details=event_type,
        )
        return {"received": True}

    async def apply(self, db: AsyncSession, event: WebhookEvent) -> None:
        """Apply one parsed event. Safe to call again with the same event."""
        handler = self._handlers[type(event)]
        await handler(db, event)

    # -------------------------
    # Transitions
    # -------------------------
    async def _run_transition(
        self,
        db: AsyncSession,
        event_type: WebhookEventType,
        subscription_id: str,
        snapshot: Optional[ProviderSubscription] = None,
        user_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Apply ``TRANSITIONS[event_type]`` to one provider subscription.

        Returns the owning user id, or None when no local row matched.
        """
        transition = TRANSITIONS[event_type]

        if transition.refetch_subscription:
            snapshot = ProviderSubscription.from_stripe(await self.stripe.retrieve_subscription(subscription_id))
            subscription_id = snapshot.id or subscription_id

        if transition.upsert:
            row = await subscription_store.upsert_subscription(
                db,
                user_id=user_id,
                snapshot=snapshot,
                plan=plan_for_price(snapshot.price_id),
                status=transition.status,
                feed=self.feed,
            )
            owner = row.user_id if row is not None else user_id
        else:
            values: Dict[str, Any] = {}
            if transition.copy_terms and snapshot is not None:
                fields = subscription_store.snapshot_fields(snapshot)
                values["plan"] = plan_for_price(snapshot.price_id).value
                values["stripe_price_id"] = fields["stripe_price_id"]
                values["trial_end"] = fields["trial_end"]
                values["cancel_at_period_end"] = fields["cancel_at_period_end"]
            if transition.refresh_period and snapshot is not None:
                values["current_period_start"] = snapshot.current_period_start
                values["current_period_end"] = snapshot.current_period_end
            status = transition.status or (snapshot.status if snapshot is not None else None)
            if status:
                values["status"] = status
            if not values:
                return None
            owner = await subscription_store.update_by_provider_id(db, subscription_id, values, feed=self.feed)

        if owner is None:
            return None
        until = snapshot.current_period_end if snapshot is not None else None
        if transition.activate_entitlements:
            await entitlement_store.activate_all(db, owner, until, feed=self.feed)
        if transition.promote_role:
            await profiles.promote_to_creator(db, owner)
        return owner

    async def _on_checkout_completed(self, db: AsyncSession, event: CheckoutCompleted) -> None:
        if not event.user_id:
            logger.error(f"[WEBHOOK] No user_id in checkout session metadata (event {event.event_id})")
            return
        if not event.subscription_id:
            logger.info(f"[WEBHOOK] checkout {event.event_id} has no subscription, nothing to apply")
            return

        await self._run_transition(db, event.type, event.subscription_id, user_id=event.user_id)
        logger.info(f"[WEBHOOK] user={event.user_id} subscribed sub={event.subscription_id}")

    async def _on_subscription_updated(self, db: AsyncSession, event: SubscriptionUpdated) -> None:
        sub = event.subscription
        if not sub.id:
            return
        await self._run_transition(db, event.type, sub.id, snapshot=sub)

    async def _on_subscription_deleted(self, db: AsyncSession, event: SubscriptionDeleted) -> None:
        if event.subscription_id:
            await self._run_transition(db, event.type, event.subscription_id)

    async def _on_payment_failed(self, db: AsyncSession, event: InvoicePaymentFailed) -> None:
        if event.subscription_id:
            await self._run_transition(db, event.type, event.subscription_id)

    async def _on_payment_succeeded(self, db: AsyncSession, event: InvoicePaymentSucceeded) -> None:
        # the first invoice is covered by checkout completion
        if not event.subscription_id or not event.is_renewal:
            return
        await self._run_transition(db, event.type, event.subscription_id)

    async def _on_unhandled(self, db: AsyncSession, event: UnhandledEvent) -> None:
        logger.info(f"[WEBHOOK] Unhandled event type: {event.event_type}")

    # -------------------------
    # Event log
    # -------------------------
    async def _already_processed(self, db: AsyncSession, event_id: str) -> bool:
        return await db.get(ProcessedEvent, event_id) is not None

    async def _mark_processed(self, db: AsyncSession, event_id: str, event_type: Optional[str]) -> None:
        insert = dialect_insert(db)
        await db.execute(
            insert(ProcessedEvent)
            .values(id=event_id, event_type=event_type or "unknown")
            .on_conflict_do_nothing(index_elements=[ProcessedEvent.id])
        )
        await db.commit()


webhook_service = WebhookService()
