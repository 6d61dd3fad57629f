import pytest


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["db"] == "ok"
    assert body["billing"] == {"stripe_key": "configured", "webhook_secret": "configured", "prices": "configured"}


@pytest.mark.asyncio
async def test_version(client):
    response = await client.get("/version")
    assert response.json()["version"] == "1.0.0"
    assert response.json()["app_name"] == "Creator Billing"


@pytest.mark.asyncio
async def test_root(client):
    response = await client.get("/")
    assert response.json()["message"] == "Creator Billing API"
