import pytest

from creator_billing.models import Feature
from creator_billing.services import entitlement_store
from creator_billing.services.limits import FREE_LIMITS, LimitKind, check_limit
from tests.factories import auth_header


class TestCheckLimit:
    def test_free_tier_under_limit(self):
        result = check_limit(LimitKind.PRODUCTS, 5, has_creator_pro=False)
        assert result.allowed is True
        assert result.max == 15
        assert result.remaining == 10
        assert result.percentage == pytest.approx(33.333, rel=1e-3)

    def test_free_tier_at_limit(self):
        result = check_limit(LimitKind.COLLECTIONS, 3, has_creator_pro=False)
        assert result.allowed is False
        assert result.remaining == 0
        assert result.percentage == 100

    def test_over_limit_never_goes_negative(self):
        assert check_limit(LimitKind.POSTS_PER_DAY, 12, has_creator_pro=False).remaining == 0

    def test_pro_is_unlimited_for_products(self):
        result = check_limit(LimitKind.PRODUCTS, 500, has_creator_pro=True)
        assert result.allowed is True
        assert result.max is None
        assert result.remaining is None
        assert result.percentage == 0

    def test_pro_posts_per_day_is_capped(self):
        result = check_limit("postsPerDay", 50, has_creator_pro=True)
        assert result.allowed is False
        assert result.max == 50


@pytest.mark.asyncio
async def test_entitlements_endpoint_free(client):
    response = await client.get("/entitlements", headers=auth_header("u1"))

    assert response.status_code == 200
    body = response.json()
    assert body["features"] == []
    assert body["has_creator_pro"] is False
    assert body["limits"] == {k.value: v for k, v in FREE_LIMITS.items()}


@pytest.mark.asyncio
async def test_entitlements_endpoint_pro(client, db, feed):
    await entitlement_store.activate_all(db, "u1", None, feed=feed)

    response = await client.get("/entitlements", headers=auth_header("u1"))

    body = response.json()
    assert body["has_creator_pro"] is True
    assert {f["feature"] for f in body["features"]} >= {Feature.CREATOR_PRO.value}
    assert body["limits"] == {"products": None, "collections": None, "postsPerDay": 50}


@pytest.mark.asyncio
async def test_limit_check_endpoint(client):
    response = await client.post(
        "/entitlements/limits/check",
        json={"kind": "collections", "current": 2},
        headers=auth_header("u1"),
    )

    assert response.status_code == 200
    assert response.json() == {
        "kind": "collections",
        "allowed": True,
        "current": 2,
        "max": 3,
        "remaining": 1,
        "percentage": pytest.approx(66.666, rel=1e-3),
    }


@pytest.mark.asyncio
async def test_limit_check_rejects_unknown_kind(client):
    response = await client.post(
        "/entitlements/limits/check",
        json={"kind": "storage", "current": 2},
        headers=auth_header("u1"),
    )
    assert response.status_code == 400
    assert "error" in response.json()
