"""
Typed view of the provider's webhook events.

``parse_event`` turns a decoded event payload into one member of the
``WebhookEvent`` union. Event types we do not handle become
``UnhandledEvent`` and are acknowledged without side effects.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Union

from creator_billing.services.subscription_state import WebhookEventType, from_unix


def _get(obj: Any, *path: Any) -> Any:
    cur = obj
    for key in path:
        if cur is None:
            return None
        if isinstance(key, int):
            try:
                cur = cur[key]
            except (IndexError, KeyError, TypeError):
                return None
        else:
            cur = cur.get(key) if hasattr(cur, "get") else None
    return cur


def _id_of(value: Any) -> Optional[str]:
    # expanded objects carry their id, plain references are the id
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return _get(value, "id")


@dataclass(frozen=True)
class ProviderSubscription:
    """The fields of a provider subscription the state machine reads."""

    id: str
    customer_id: Optional[str]
    status: Optional[str]
    price_id: Optional[str]
    current_period_start: Optional[datetime]
    current_period_end: Optional[datetime]
    trial_end: Optional[datetime]
    cancel_at_period_end: bool

    @classmethod
    def from_stripe(cls, obj: Any) -> "ProviderSubscription":
        item = _get(obj, "items", "data", 0)
        # newer API versions moved the billing period onto the item
        period_start = _get(obj, "current_period_start") or _get(item, "current_period_start")
        period_end = _get(obj, "current_period_end") or _get(item, "current_period_end")
        return cls(
            id=_get(obj, "id"),
            customer_id=_id_of(_get(obj, "customer")),
            status=_get(obj, "status"),
            price_id=_get(item, "price", "id"),
            current_period_start=from_unix(period_start),
            current_period_end=from_unix(period_end),
            trial_end=from_unix(_get(obj, "trial_end")),
            cancel_at_period_end=bool(_get(obj, "cancel_at_period_end")),
        )


@dataclass(frozen=True)
class CheckoutCompleted:
    event_id: Optional[str]
    user_id: Optional[str]
    subscription_id: Optional[str]
    customer_id: Optional[str]
    type = WebhookEventType.CHECKOUT_COMPLETED


@dataclass(frozen=True)
class SubscriptionUpdated:
    event_id: Optional[str]
    subscription: ProviderSubscription
    type = WebhookEventType.SUBSCRIPTION_UPDATED


@dataclass(frozen=True)
class SubscriptionDeleted:
    event_id: Optional[str]
    subscription_id: Optional[str]
    type = WebhookEventType.SUBSCRIPTION_DELETED


@dataclass(frozen=True)
class InvoicePaymentFailed:
    event_id: Optional[str]
    subscription_id: Optional[str]
    type = WebhookEventType.INVOICE_PAYMENT_FAILED


@dataclass(frozen=True)
class InvoicePaymentSucceeded:
    event_id: Optional[str]
    subscription_id: Optional[str]
    billing_reason: Optional[str]
    type = WebhookEventType.INVOICE_PAYMENT_SUCCEEDED

    @property
    def is_renewal(self) -> bool:
        return self.billing_reason != "subscription_create"


@dataclass(frozen=True)
class UnhandledEvent:
    event_id: Optional[str]
    event_type: Optional[str]


WebhookEvent = Union[
    CheckoutCompleted,
    SubscriptionUpdated,
    SubscriptionDeleted,
    InvoicePaymentFailed,
    InvoicePaymentSucceeded,
    UnhandledEvent,
]


def _invoice_subscription_id(invoice: Any) -> Optional[str]:
    return _id_of(_get(invoice, "subscription")) or _id_of(
        _get(invoice, "parent", "subscription_details", "subscription")
    )


def _checkout_completed(event_id, obj) -> CheckoutCompleted:
    user_id = _get(obj, "metadata", "user_id") or _get(obj, "client_reference_id")
    return CheckoutCompleted(
        event_id=event_id,
        user_id=user_id,
        subscription_id=_id_of(_get(obj, "subscription")),
        customer_id=_id_of(_get(obj, "customer")),
    )


def _subscription_updated(event_id, obj) -> SubscriptionUpdated:
    return SubscriptionUpdated(event_id=event_id, subscription=ProviderSubscription.from_stripe(obj))


def _subscription_deleted(event_id, obj) -> SubscriptionDeleted:
    return SubscriptionDeleted(event_id=event_id, subscription_id=_get(obj, "id"))


def _payment_failed(event_id, obj) -> InvoicePaymentFailed:
    return InvoicePaymentFailed(event_id=event_id, subscription_id=_invoice_subscription_id(obj))


def _payment_succeeded(event_id, obj) -> InvoicePaymentSucceeded:
    return InvoicePaymentSucceeded(
        event_id=event_id,
        subscription_id=_invoice_subscription_id(obj),
        billing_reason=_get(obj, "billing_reason"),
    )


_PARSERS: Dict[WebhookEventType, Callable[[Optional[str], Any], WebhookEvent]] = {
    WebhookEventType.CHECKOUT_COMPLETED: _checkout_completed,
    WebhookEventType.SUBSCRIPTION_UPDATED: _subscription_updated,
    WebhookEventType.SUBSCRIPTION_DELETED: _subscription_deleted,
    WebhookEventType.INVOICE_PAYMENT_FAILED: _payment_failed,
    WebhookEventType.INVOICE_PAYMENT_SUCCEEDED: _payment_succeeded,
}


def parse_event(payload: Dict[str, Any]) -> WebhookEvent:
    event_id = payload.get("id")
    raw_type = payload.get("type")
    obj = _get(payload, "data", "object") or {}

    try:
        event_type = WebhookEventType(raw_type)
    except ValueError:
        return UnhandledEvent(event_id=event_id, event_type=raw_type)

    return _PARSERS[event_type](event_id, obj)
