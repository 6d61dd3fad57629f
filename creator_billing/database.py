from __future__ import annotations

from typing import Any, Dict
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from creator_billing.config import get_settings

DATABASE_URL = get_settings().database_url

# dialects whose insert() supports ON CONFLICT
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def convert_database_url(url: str) -> str:
    """Point plain postgres URLs at asyncpg; asyncpg rejects ``sslmode`` in the query."""
    parsed = urlparse(url)
    if parsed.scheme not in ("postgres", "postgresql"):
        return url
    query_params = parse_qs(parsed.query)
    query_params.pop('sslmode', None)
    new_parsed = parsed._replace(
        scheme="postgresql+asyncpg",
        query=urlencode(query_params, doseq=True),
    )
    return urlunparse(new_parsed)


def engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        return {"echo": False}
    return {
        "echo": False,
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "connect_args": {"ssl": True} if "neon" in url else {},
    }


database_url = convert_database_url(DATABASE_URL)

engine = create_async_engine(database_url, **engine_options(database_url))

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db():
    import creator_billing.models  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def dialect_insert(db: AsyncSession):
    """Return the ``insert`` construct that supports ON CONFLICT for the bound dialect."""
    name = db.get_bind().dialect.name
    try:
        return _UPSERT_INSERTS[name]
    except KeyError:
        raise RuntimeError(f"Upserts are not supported on dialect {name!r}") from None
