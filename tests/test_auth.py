import pytest

from creator_billing.exceptions import AuthenticationError
from creator_billing.models import Role
from creator_billing.routers.auth import _clean_token
from creator_billing.services.auth_provider import verify_access_token
from tests.factories import add_profile, auth_header, make_token


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("abc.def.ghi", "abc.def.ghi"),
        ("Bearer abc.def.ghi", "abc.def.ghi"),
        ("bearer abc.def.ghi", "abc.def.ghi"),
        ("Bearer Bearer abc.def.ghi", "abc.def.ghi"),
        ('"Bearer abc.def.ghi"', "abc.def.ghi"),
        ("  abc.def\n.ghi ", "abc.def.ghi"),
        ("", ""),
    ],
)
def test_clean_token(raw, expected):
    assert _clean_token(raw) == expected


class TestVerifyAccessToken:
    def test_valid_token(self):
        user = verify_access_token(make_token("u1", "u1@example.com"))
        assert user.id == "u1"
        assert user.email == "u1@example.com"

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt", "a.b"])
    def test_malformed(self, token):
        with pytest.raises(AuthenticationError):
            verify_access_token(token)

    def test_wrong_secret(self):
        with pytest.raises(AuthenticationError):
            verify_access_token(make_token(secret="another-secret"))

    def test_expired(self):
        with pytest.raises(AuthenticationError):
            verify_access_token(make_token(expires_in=-10))


@pytest.mark.asyncio
async def test_me(client, db):
    await add_profile(db, "u1", role=Role.creator)

    response = await client.get("/auth/me", headers=auth_header("u1"))

    assert response.status_code == 200
    assert response.json() == {"id": "u1", "email": "u1@example.com", "role": "creator"}


@pytest.mark.asyncio
async def test_me_without_profile(client):
    response = await client.get("/auth/me", headers=auth_header("u9", "u9@example.com"))
    assert response.json() == {"id": "u9", "email": "u9@example.com", "role": None}


@pytest.mark.asyncio
async def test_me_token_in_query(client):
    response = await client.get("/auth/me", params={"token": make_token("u1")})
    assert response.status_code == 200
    assert response.json()["id"] == "u1"


@pytest.mark.asyncio
async def test_me_unauthenticated(client):
    response = await client.get("/auth/me")
    assert response.status_code == 401
    assert response.json() == {"error": "No authorization header provided"}
