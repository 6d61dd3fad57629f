import os

# 1. Environment for Settings, before anything from the package is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ.pop("JWT_AUDIENCE", None)
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["STRIPE_MONTHLY_PRICE_ID"] = "price_monthly"
os.environ["STRIPE_ANNUAL_PRICE_ID"] = "price_annual"
os.environ["STATUS_REFRESH_SECONDS"] = "0"
os.environ["APP_URL"] = "https://app.example.com"

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import creator_billing.models  # noqa: E402,F401
from creator_billing import database  # noqa: E402
from creator_billing.database import Base, get_db  # noqa: E402
from creator_billing.main import app  # noqa: E402
from creator_billing.services.change_feed import ChangeFeed  # noqa: E402


@pytest.fixture
async def engine():
    # one shared connection so every session sees the same in-memory database
    eng = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine, monkeypatch):
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    # standalone audit writes and the status reader open their own sessions
    monkeypatch.setattr(database, "async_session_maker", maker)
    return maker


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides = {}


@pytest.fixture
def feed():
    return ChangeFeed()
