from creator_billing.models.profile import Profile, Role
from creator_billing.models.subscription import Subscription, SubscriptionStatus, Plan
from creator_billing.models.entitlement import Entitlement, Feature, FEATURES
from creator_billing.models.audit_log import AuditLog
from creator_billing.models.processed_event import ProcessedEvent

__all__ = [
    "Profile",
    "Role",
    "Subscription",
    "SubscriptionStatus",
    "Plan",
    "Entitlement",
    "Feature",
    "FEATURES",
    "AuditLog",
    "ProcessedEvent",
]
