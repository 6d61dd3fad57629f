from creator_billing.services.stripe_service import StripeService
from creator_billing.services.audit import AuditService
from creator_billing.services.change_feed import ChangeFeed
from creator_billing.services.checkout import CheckoutService
from creator_billing.services.webhook import WebhookService
from creator_billing.services.reconciliation import ReconciliationService
from creator_billing.services.subscription_status import SubscriptionStatusReader

__all__ = [
    "StripeService",
    "AuditService",
    "ChangeFeed",
    "CheckoutService",
    "WebhookService",
    "ReconciliationService",
    "SubscriptionStatusReader",
]
