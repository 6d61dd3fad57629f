"""
Subscription state machine.

Pure functions and tables only: what each provider event does to a
subscription row, how provider statuses map onto the local status enum,
and how a status maps onto the ``is_active`` / ``is_suspended`` flags the
route guards consume. Nothing in here touches I/O.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from creator_billing.config import get_settings
from creator_billing.models.subscription import Plan, SubscriptionStatus

ACTIVE_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING})
SUSPENDED_STATUSES = frozenset({SubscriptionStatus.PAST_DUE, SubscriptionStatus.CANCELED})

# provider statuses with no local counterpart
_PROVIDER_STATUS_ALIASES = {
    "unpaid": SubscriptionStatus.PAST_DUE,
    "paused": SubscriptionStatus.PAST_DUE,
    "incomplete_expired": SubscriptionStatus.CANCELED,
}


class WebhookEventType(str, enum.Enum):
    CHECKOUT_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"


@dataclass(frozen=True)
class Transition:
    """
    Effect of one event type on the subscription row.

    ``status`` is the status written, or ``None`` when it is copied from
    the provider's subscription object.

    - ``refetch_subscription``: read the subscription from the provider
      instead of trusting the event payload
    - ``upsert``: write the whole row keyed on the provider id (creating
      it); otherwise only an existing row is updated
    - ``refresh_period``: write current_period_start/end
    - ``copy_terms``: write plan, price, trial end and cancel_at_period_end
    - ``activate_entitlements`` / ``promote_role``: grant the creator tier
    """

    status: Optional[SubscriptionStatus]
    refetch_subscription: bool = False
    upsert: bool = False
    refresh_period: bool = False
    copy_terms: bool = False
    activate_entitlements: bool = False
    promote_role: bool = False


TRANSITIONS: Dict[WebhookEventType, Transition] = {
    WebhookEventType.CHECKOUT_COMPLETED: Transition(
        status=None,
        refetch_subscription=True,
        upsert=True,
        refresh_period=True,
        copy_terms=True,
        activate_entitlements=True,
        promote_role=True,
    ),
    # entitlements are left to expire at current_period_end
    WebhookEventType.SUBSCRIPTION_UPDATED: Transition(status=None, refresh_period=True, copy_terms=True),
    WebhookEventType.SUBSCRIPTION_DELETED: Transition(status=SubscriptionStatus.CANCELED),
    WebhookEventType.INVOICE_PAYMENT_FAILED: Transition(status=SubscriptionStatus.PAST_DUE),
    WebhookEventType.INVOICE_PAYMENT_SUCCEEDED: Transition(
        status=SubscriptionStatus.ACTIVE,
        refetch_subscription=True,
        refresh_period=True,
    ),
}


@dataclass(frozen=True)
class StatusFlags:
    is_active: bool
    is_suspended: bool


def coerce_status(value: Optional[str]) -> Optional[SubscriptionStatus]:
    if value is None:
        return None
    if isinstance(value, SubscriptionStatus):
        return value
    if value in _PROVIDER_STATUS_ALIASES:
        return _PROVIDER_STATUS_ALIASES[value]
    try:
        return SubscriptionStatus(value)
    except ValueError:
        return SubscriptionStatus.INCOMPLETE


def derive_flags(status: Optional[str]) -> StatusFlags:
    """
    ``None`` is the never-subscribed state: neither active nor suspended.
    The two flags are mutually exclusive for every status.
    """
    coerced = coerce_status(status)
    return StatusFlags(
        is_active=coerced in ACTIVE_STATUSES,
        is_suspended=coerced in SUSPENDED_STATUSES,
    )


def plan_for_price(price_id: Optional[str]) -> Plan:
    """Static price lookup; anything but the annual price is billed monthly."""
    annual = get_settings().stripe_annual_price_id
    return Plan.ANNUAL if price_id and price_id == annual else Plan.MONTHLY


def from_unix(ts: Optional[int]) -> Optional[datetime]:
    if ts is None:
        return None
    return datetime.fromtimestamp(int(ts), tz=timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands timestamps back naive
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt
