from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel
from typing import Optional
from creator_billing.database import get_db
from creator_billing.routers.auth import get_current_user, get_optional_user
from creator_billing.services.access_guard import AccessDecision, decide_creator_access, redirect_for
from creator_billing.services.auth_provider import AuthenticatedUser
from creator_billing.services.profiles import get_role
from creator_billing.services.subscription_status import read_status

router = APIRouter(prefix="/access", tags=["access"])


class AccessStatusResponse(BaseModel):
    user_id: str
    role: Optional[str] = None
    subscription_status: Optional[str] = None
    subscription_plan: Optional[str] = None
    is_active: bool = False
    is_suspended: bool = False


class CreatorAccessResponse(BaseModel):
    decision: AccessDecision
    redirect: Optional[str] = None


@router.get("/status", response_model=AccessStatusResponse)
async def get_access_status(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    role = await get_role(db, current_user.id)
    snapshot = await read_status(db, current_user.id)

    return AccessStatusResponse(
        user_id=current_user.id,
        role=role.value if role else None,
        subscription_status=snapshot.status.value if snapshot.status else None,
        subscription_plan=snapshot.plan.value if snapshot.plan else None,
        is_active=snapshot.is_active,
        is_suspended=snapshot.is_suspended,
    )


@router.get("/creator", response_model=CreatorAccessResponse)
async def get_creator_access(
    current_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    if current_user is None:
        decision = decide_creator_access(None, None, None)
    else:
        role = await get_role(db, current_user.id)
        snapshot = await read_status(db, current_user.id)
        decision = decide_creator_access(current_user.id, role, snapshot)

    return CreatorAccessResponse(decision=decision, redirect=redirect_for(decision))
