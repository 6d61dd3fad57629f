from dataclasses import asdict
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from creator_billing.database import get_db
from creator_billing.models.entitlement import Feature
from creator_billing.routers.auth import get_current_user
from creator_billing.services import entitlement_store
from creator_billing.services.auth_provider import AuthenticatedUser
from creator_billing.services.limits import LimitKind, check_limit, limits_for

router = APIRouter(prefix="/entitlements", tags=["entitlements"])


class EntitlementResponse(BaseModel):
    feature: str
    expires_at: Optional[datetime] = None


class EntitlementsResponse(BaseModel):
    user_id: str
    features: List[EntitlementResponse]
    has_creator_pro: bool
    limits: Dict[str, Optional[int]]


class LimitCheckRequest(BaseModel):
    kind: LimitKind
    current: int


class LimitCheckResponse(BaseModel):
    kind: LimitKind
    allowed: bool
    current: int
    max: Optional[int] = None
    remaining: Optional[int] = None
    percentage: float


@router.get("", response_model=EntitlementsResponse)
async def list_entitlements(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    active = await entitlement_store.list_active(db, current_user.id)
    has_pro = any(e.feature == Feature.CREATOR_PRO.value for e in active)
    return EntitlementsResponse(
        user_id=current_user.id,
        features=[EntitlementResponse(feature=e.feature, expires_at=e.expires_at) for e in active],
        has_creator_pro=has_pro,
        limits={k.value: v for k, v in limits_for(has_pro).items()},
    )


@router.post("/limits/check", response_model=LimitCheckResponse)
async def check_limits(
    body: LimitCheckRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    has_pro = await entitlement_store.has_feature(db, current_user.id, Feature.CREATOR_PRO)
    result = check_limit(body.kind, body.current, has_pro)
    return LimitCheckResponse(kind=body.kind, **asdict(result))
