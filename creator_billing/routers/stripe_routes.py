# Stripe webhook endpoint.
# The raw body is handed to the webhook service untouched: the signature is
# computed over the exact bytes Stripe sent.

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from creator_billing.database import get_db
from creator_billing.services.webhook import webhook_service

router = APIRouter(tags=["stripe"])


@router.post("/stripe/webhook")
@router.post("/stripe-webhook", include_in_schema=False)
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    return await webhook_service.process(db, payload, sig_header)
