from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from creator_billing.database import dialect_insert
from creator_billing.models.subscription import Plan, Subscription, SubscriptionStatus
from creator_billing.services.change_feed import ChangeFeed, INSERT, UPDATE, change_feed
from creator_billing.services.subscription_state import coerce_status
from creator_billing.services.webhook_events import ProviderSubscription

logger = logging.getLogger(__name__)

TABLE = "subscriptions"


def utcnow():
    return datetime.now(timezone.utc)


def snapshot_fields(snapshot: ProviderSubscription) -> Dict[str, Any]:
    return {
        "stripe_customer_id": snapshot.customer_id,
        "stripe_price_id": snapshot.price_id,
        "current_period_start": snapshot.current_period_start,
        "current_period_end": snapshot.current_period_end,
        "trial_end": snapshot.trial_end,
        "cancel_at_period_end": snapshot.cancel_at_period_end,
    }


async def get_by_user(db: AsyncSession, user_id: str) -> Optional[Subscription]:
    result = await db.execute(
        select(Subscription)
        .where(Subscription.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_by_provider_id(db: AsyncSession, stripe_subscription_id: str) -> Optional[Subscription]:
    result = await db.execute(
        select(Subscription)
        .where(Subscription.stripe_subscription_id == stripe_subscription_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def upsert_subscription(
    db: AsyncSession,
    *,
    user_id: str,
    snapshot: ProviderSubscription,
    plan: Plan,
    status: Optional[str] = None,
    feed: ChangeFeed = change_feed,
) -> Subscription:
    """
    Insert or overwrite the user's subscription row, keyed on the provider
    subscription id.

    A user owns at most one row. If that row still points at an older
    provider subscription it is rewritten in place to follow the new one.
    """
    coerced = coerce_status(status or snapshot.status) or SubscriptionStatus.INCOMPLETE
    values = {
        "user_id": user_id,
        "stripe_subscription_id": snapshot.id,
        "plan": plan.value,
        "status": coerced.value,
        "updated_at": utcnow(),
        **snapshot_fields(snapshot),
    }

    existing = await get_by_user(db, user_id)
    if existing is not None and existing.stripe_subscription_id != snapshot.id:
        logger.info(
            f"[SUBSCRIPTION] user={user_id} moves from {existing.stripe_subscription_id} to {snapshot.id}"
        )
        await db.execute(
            update(Subscription).where(Subscription.user_id == user_id).values(**values)
        )
    else:
        insert = dialect_insert(db)
        stmt = insert(Subscription).values(**values)
        # user_id is immutable once the row exists
        stmt = stmt.on_conflict_do_update(
            index_elements=[Subscription.stripe_subscription_id],
            set_={k: stmt.excluded[k] for k in values if k not in ("user_id", "stripe_subscription_id")},
        )
        await db.execute(stmt)

    await db.commit()
    await feed.publish(TABLE, INSERT if existing is None else UPDATE, user_id)

    row = await get_by_provider_id(db, snapshot.id)
    return row


async def update_by_provider_id(
    db: AsyncSession,
    stripe_subscription_id: str,
    values: Dict[str, Any],
    feed: ChangeFeed = change_feed,
) -> Optional[str]:
    """Update the row for a provider subscription. Returns its owner, or None if no row matched."""
    if "status" in values:
        values = {**values, "status": coerce_status(values["status"]).value}

    result = await db.execute(
        update(Subscription)
        .where(Subscription.stripe_subscription_id == stripe_subscription_id)
        .values(**values, updated_at=utcnow())
        .returning(Subscription.user_id)
    )
    user_id = result.scalar_one_or_none()
    await db.commit()

    if user_id is None:
        logger.warning(f"[SUBSCRIPTION] no row for provider subscription {stripe_subscription_id}")
        return None

    await feed.publish(TABLE, UPDATE, user_id)
    return user_id
