from typing import Optional
import re

from fastapi import APIRouter, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from creator_billing.database import get_db
from creator_billing.services.auth_provider import AuthenticatedUser, verify_access_token
from creator_billing.services.profiles import get_role

router = APIRouter(prefix="/auth", tags=["auth"])

# auto_error=False so token extraction below can be lenient
security = HTTPBearer(auto_error=False)

# --------- helpers ---------

_WHITESPACE_RE = re.compile(r"\s+")


def _clean_token(token: str) -> str:
    """
    Normalise a raw credential:
    - drop surrounding quotes and all whitespace
    - drop a 'Bearer' prefix, also when doubled up ('Bearer Bearer ...')
    """
    if not token:
        return ""

    t = token.strip().strip('"').strip("'")
    t = _WHITESPACE_RE.sub("", t)

    if t.lower().startswith("bearer"):
        t = t[6:]
        if t.startswith(":"):
            t = t[1:]
        t = t.lstrip()

    if t.lower().startswith("bearer"):
        t = t[6:].lstrip()

    t = t.lstrip(".")
    return t


def _extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials] = None) -> str:
    """
    Take the token from, in order:
    1) HTTPBearer credentials
    2) the raw Authorization header
    3) the ?token= query parameter (websockets cannot set headers)
    """
    token = ""

    if credentials and credentials.credentials:
        token = credentials.credentials

    if not token:
        token = request.headers.get("Authorization", "")

    if not token:
        token = request.query_params.get("token", "")

    return _clean_token(token)


# --------- dependencies ---------

async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthenticatedUser:
    return verify_access_token(_extract_token(request, credentials))


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[AuthenticatedUser]:
    token = _extract_token(request, credentials)
    if not token:
        return None
    return verify_access_token(token)


# --------- routes ---------

class UserResponse(BaseModel):
    id: str
    email: Optional[str] = None
    role: Optional[str] = None


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    role = await get_role(db, current_user.id)
    return UserResponse(
        id=current_user.id,
        email=current_user.email,
        role=role.value if role is not None else None,
    )
