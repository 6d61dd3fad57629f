import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from creator_billing.config import get_settings
from creator_billing.exceptions import ProviderError, ValidationError
from creator_billing.services.audit import AuditEvent, audit_service
from creator_billing.services.auth_provider import verify_access_token
from creator_billing.services.stripe_service import StripeService, stripe_service

logger = logging.getLogger(__name__)


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    price_id: Optional[str] = Field(default=None, alias="priceId")
    return_url: Optional[str] = Field(default=None, alias="returnUrl")
    cancel_url: Optional[str] = Field(default=None, alias="cancelUrl")
    user_id: Optional[str] = Field(default=None, alias="userId")


class CheckoutResponse(BaseModel):
    url: str


class CheckoutService:
    def __init__(self, stripe_client: StripeService = stripe_service):
        self.stripe = stripe_client

    async def create_checkout(
        self,
        db: AsyncSession,
        body: CheckoutRequest,
        token: Optional[str],
        origin: Optional[str] = None,
    ) -> CheckoutResponse:
        """
        Resolve the caller and ask the provider for a hosted checkout page.

        The user id travels in the session metadata; the webhook needs it to
        attribute the resulting subscription. No retries.
        """
        settings = get_settings()

        price_id = (body.price_id or "").strip()
        if not price_id:
            raise ValidationError("Missing priceId")

        user_id = body.user_id
        email = None
        if not user_id:
            user = verify_access_token(token)
            user_id, email = user.id, user.email

        base = (origin or settings.app_url).rstrip("/")
        success_url = body.return_url or f"{base}/onboarding/processing?session_id={{CHECKOUT_SESSION_ID}}"
        cancel_url = body.cancel_url or f"{base}/onboarding/checkout"

        try:
            session = await self.stripe.create_checkout_session(
                price_id=price_id,
                user_id=user_id,
                success_url=success_url,
                cancel_url=cancel_url,
                trial_period_days=settings.trial_period_days,
                customer_email=email,
            )
        except ProviderError as e:
            logger.error(f"[CHECKOUT] provider rejected checkout for user={user_id}: {e.message}")
            await audit_service.log(
                db=db,
                event=AuditEvent.CHECKOUT_FAILED,
                source="checkout",
                status="error",
                user_id=user_id,
                details=e.message,
            )
            raise

        logger.info(f"[CHECKOUT] session {session.get('id')} created for user={user_id} price={price_id}")
        await audit_service.log(
            db=db,
            event=AuditEvent.CHECKOUT_SESSION_CREATED,
            source="checkout",
            status="success",
            user_id=user_id,
            request_id=session.get("id"),
        )
        return CheckoutResponse(url=session.get("url"))


checkout_service = CheckoutService()
