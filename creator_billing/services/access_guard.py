import enum
from typing import Optional

from creator_billing.models.profile import Role
from creator_billing.services.subscription_status import StatusSnapshot


class AccessDecision(str, enum.Enum):
    SIGN_IN = "sign_in"
    FEED = "feed"
    REACTIVATE = "reactivate"
    ONBOARDING = "onboarding"
    ALLOW = "allow"


REDIRECTS = {
    AccessDecision.SIGN_IN: "/auth/signin",
    AccessDecision.FEED: "/me/feed",
    AccessDecision.REACTIVATE: "/reactivate",
    AccessDecision.ONBOARDING: "/onboarding",
    AccessDecision.ALLOW: None,
}

CREATOR_ROLES = frozenset({Role.creator, Role.admin})


def decide_creator_access(
    user_id: Optional[str],
    role: Optional[Role],
    snapshot: Optional[StatusSnapshot],
) -> AccessDecision:
    """
    Guard for creator dashboard routes.

    The role check comes before the subscription checks: subscription state
    only means something for creators.
    """
    if not user_id:
        return AccessDecision.SIGN_IN
    if role not in CREATOR_ROLES:
        return AccessDecision.FEED

    snapshot = snapshot or StatusSnapshot(loading=False)
    if snapshot.is_suspended:
        return AccessDecision.REACTIVATE
    if not snapshot.is_active:
        return AccessDecision.ONBOARDING
    return AccessDecision.ALLOW


def redirect_for(decision: AccessDecision) -> Optional[str]:
    return REDIRECTS[decision]
