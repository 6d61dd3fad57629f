from fastapi import APIRouter, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from creator_billing.database import get_db
from creator_billing.routers.auth import _extract_token, security
from creator_billing.services.checkout import CheckoutRequest, CheckoutResponse, checkout_service

router = APIRouter(tags=["checkout"])


@router.post("/checkout", response_model=CheckoutResponse)
@router.post("/create-checkout", response_model=CheckoutResponse, include_in_schema=False)
async def create_checkout(
    body: CheckoutRequest,
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
):
    # the token is only validated when the body carries no userId
    return await checkout_service.create_checkout(
        db,
        body,
        token=_extract_token(request, credentials),
        origin=request.headers.get("origin"),
    )
