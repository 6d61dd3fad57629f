from typing import Optional

from jose import jwt
from jose.exceptions import JWTError
from pydantic import BaseModel

from creator_billing.config import get_settings
from creator_billing.exceptions import AuthenticationError


class AuthenticatedUser(BaseModel):
    id: str
    email: Optional[str] = None


def verify_access_token(token: Optional[str]) -> AuthenticatedUser:
    """
    Validate an access token issued by the hosted auth provider.

    Tokens are HS256 JWTs signed with the provider's secret; ``sub`` is
    the user id.
    """
    if not token:
        raise AuthenticationError("No authorization header provided")

    # three dot-separated segments or it is not a JWT at all
    if token.count(".") != 2:
        raise AuthenticationError("Token is not a JWT (expected 3 segments)")

    settings = get_settings()
    if not settings.jwt_secret:
        raise AuthenticationError("Authentication is not configured")

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            options={"verify_aud": bool(settings.jwt_audience)},
        )
    except JWTError as e:
        raise AuthenticationError(f"Authentication error: {e}") from e

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    return AuthenticatedUser(id=str(user_id), email=payload.get("email"))
