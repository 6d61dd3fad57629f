import json
import logging
from typing import Any, List, Optional

import stripe
from starlette.concurrency import run_in_threadpool

from creator_billing.config import get_settings
from creator_billing.exceptions import ProviderError, SignatureVerificationError

logger = logging.getLogger(__name__)


class StripeService:
    def __init__(self, secret_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret

    @property
    def secret_key(self) -> str:
        return self._secret_key or get_settings().stripe_secret_key

    @property
    def webhook_secret(self) -> str:
        return self._webhook_secret or get_settings().stripe_webhook_secret

    def get_stripe_client(self):
        if not self.secret_key:
            raise ProviderError("STRIPE_SECRET_KEY is not set")
        stripe.api_key = self.secret_key
        return stripe

    async def _call(self, fn, *args, **kwargs) -> Any:
        try:
            return await run_in_threadpool(fn, *args, **kwargs)
        except stripe.StripeError as e:
            message = getattr(e, "user_message", None) or str(e)
            logger.warning(f"[STRIPE] request failed: {message}")
            raise ProviderError(message, provider_code=getattr(e, "code", None)) from e

    async def create_checkout_session(
        self,
        *,
        price_id: str,
        user_id: str,
        success_url: str,
        cancel_url: str,
        trial_period_days: int,
        customer_email: Optional[str] = None,
    ) -> Any:
        client = self.get_stripe_client()
        params = {
            "payment_method_types": ["card"],
            "line_items": [{"price": price_id, "quantity": 1}],
            "mode": "subscription",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "client_reference_id": user_id,
            # the webhook attributes the subscription to a user through this
            "metadata": {"user_id": user_id},
            "subscription_data": {
                "trial_period_days": trial_period_days,
                "metadata": {"user_id": user_id},
            },
        }
        if customer_email:
            params["customer_email"] = customer_email
        return await self._call(client.checkout.Session.create, **params)

    async def retrieve_subscription(self, subscription_id: str) -> Any:
        client = self.get_stripe_client()
        return await self._call(client.Subscription.retrieve, subscription_id)

    async def find_customer_by_email(self, email: str) -> Optional[Any]:
        client = self.get_stripe_client()
        customers = await self._call(client.Customer.list, email=email, limit=1)
        data = customers.get("data") or []
        return data[0] if data else None

    async def list_subscriptions(self, customer_id: str, limit: int = 10) -> List[Any]:
        client = self.get_stripe_client()
        subs = await self._call(client.Subscription.list, customer=customer_id, status="all", limit=limit)
        return list(subs.get("data") or [])

    def verify_webhook(self, payload: bytes, sig_header: Optional[str]) -> dict:
        """
        Check the signature header against the raw body, then decode it.

        Nothing is parsed before the signature has been verified.
        """
        if not sig_header:
            raise SignatureVerificationError("Missing stripe-signature header")
        if not self.webhook_secret:
            logger.error("[WEBHOOK] STRIPE_WEBHOOK_SECRET not configured")
            raise SignatureVerificationError("Webhook secret not configured")

        try:
            body = payload.decode("utf-8") if isinstance(payload, (bytes, bytearray)) else payload
        except UnicodeDecodeError as e:
            raise SignatureVerificationError(f"Invalid payload: {e}") from e

        try:
            stripe.WebhookSignature.verify_header(
                body,
                sig_header,
                self.webhook_secret,
                get_settings().stripe_webhook_tolerance,
            )
        except stripe.SignatureVerificationError as e:
            raise SignatureVerificationError(f"Webhook signature error: {e}") from e

        try:
            return json.loads(body)
        except ValueError as e:
            raise SignatureVerificationError(f"Invalid payload: {e}") from e


stripe_service = StripeService()
