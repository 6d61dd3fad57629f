import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta, timezone

from jose import jwt

from creator_billing.models.profile import Profile, Role

JWT_SECRET = "test-jwt-secret"
WEBHOOK_SECRET = "whsec_test_secret"

PERIOD_START = datetime(2026, 10, 1, tzinfo=timezone.utc)
PERIOD_END = PERIOD_START + timedelta(days=30)
TRIAL_END = PERIOD_START + timedelta(days=14)


def make_token(user_id="u1", email="u1@example.com", secret=JWT_SECRET, expires_in=3600):
    payload = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "exp": int(time.time()) + expires_in,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_header(user_id="u1", email="u1@example.com"):
    return {"Authorization": f"Bearer {make_token(user_id, email)}"}


def sign(body: str, secret=WEBHOOK_SECRET, timestamp=None) -> str:
    ts = timestamp or int(time.time())
    signature = hmac.new(secret.encode("utf-8"), f"{ts}.{body}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={ts},v1={signature}"


def signed_event(event: dict, secret=WEBHOOK_SECRET):
    """Body and headers for a webhook POST, signed the way Stripe signs them."""
    body = json.dumps(event)
    return body, {"stripe-signature": sign(body, secret), "content-type": "application/json"}


def event(event_type, obj, event_id="evt_1"):
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }


def stripe_subscription(
    sub_id="s1",
    status="trialing",
    price_id="price_monthly",
    customer="cus_1",
    start=PERIOD_START,
    end=PERIOD_END,
    trial_end=TRIAL_END,
    cancel_at_period_end=False,
):
    return {
        "id": sub_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "items": {"data": [{"price": {"id": price_id}}]},
        "current_period_start": int(start.timestamp()),
        "current_period_end": int(end.timestamp()),
        "trial_end": int(trial_end.timestamp()) if trial_end else None,
        "cancel_at_period_end": cancel_at_period_end,
    }


def checkout_completed(user_id="u1", sub_id="s1", event_id="evt_checkout"):
    return event(
        "checkout.session.completed",
        {
            "id": "cs_test_1",
            "object": "checkout.session",
            "customer": "cus_1",
            "subscription": sub_id,
            "metadata": {"user_id": user_id} if user_id else {},
        },
        event_id=event_id,
    )


def invoice_event(event_type, sub_id="s1", billing_reason="subscription_cycle", event_id="evt_invoice"):
    return event(
        event_type,
        {"id": "in_1", "object": "invoice", "subscription": sub_id, "billing_reason": billing_reason},
        event_id=event_id,
    )


async def add_profile(db, user_id="u1", role=Role.follower, email=None):
    profile = Profile(id=user_id, email=email or f"{user_id}@example.com", role=role)
    db.add(profile)
    await db.commit()
    return profile
