"""
Entitlement rows: a derived cache of what a subscription unlocks.

Rows are upserted when a subscription becomes active and flagged inactive
(never deleted) when reconciliation finds no active subscription. Expiry
is checked when a row is read; nothing sweeps expired rows.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from creator_billing.database import dialect_insert
from creator_billing.models.entitlement import Entitlement, Feature, FEATURES
from creator_billing.services.change_feed import ChangeFeed, UPDATE, change_feed
from creator_billing.services.subscription_state import as_utc

logger = logging.getLogger(__name__)

TABLE = "entitlements"


def utcnow():
    return datetime.now(timezone.utc)


def is_entitlement_active(active: bool, expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if not active:
        return False
    if expires_at is None:
        return True
    now = now or utcnow()
    return as_utc(expires_at) >= as_utc(now)


async def activate_all(
    db: AsyncSession,
    user_id: str,
    expires_at: Optional[datetime],
    feed: ChangeFeed = change_feed,
) -> None:
    """
    Upsert every feature row to active until ``expires_at``.

    Each feature is written in its own transaction so all of them are
    attempted; the first failure is re-raised once the loop is done.
    """
    insert = dialect_insert(db)
    first_error: Optional[SQLAlchemyError] = None

    for feature in FEATURES:
        stmt = insert(Entitlement).values(
            user_id=user_id,
            feature=feature.value,
            active=True,
            expires_at=expires_at,
            updated_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Entitlement.user_id, Entitlement.feature],
            set_={
                "active": True,
                "expires_at": stmt.excluded.expires_at,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        try:
            await db.execute(stmt)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"[ENTITLEMENTS] upsert failed user={user_id} feature={feature.value}: {e}")
            if first_error is None:
                first_error = e

    await feed.publish(TABLE, UPDATE, user_id)

    if first_error is not None:
        raise first_error

    logger.info(f"[ENTITLEMENTS] activated {len(FEATURES)} features for user={user_id}")


async def deactivate_all(db: AsyncSession, user_id: str, feed: ChangeFeed = change_feed) -> int:
    result = await db.execute(
        update(Entitlement)
        .where(Entitlement.user_id == user_id)
        .values(active=False, updated_at=utcnow())
    )
    await db.commit()
    await feed.publish(TABLE, UPDATE, user_id)
    return result.rowcount or 0


async def list_for_user(db: AsyncSession, user_id: str) -> List[Entitlement]:
    result = await db.execute(
        select(Entitlement)
        .where(Entitlement.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_active(db: AsyncSession, user_id: str, now: Optional[datetime] = None) -> List[Entitlement]:
    rows = await list_for_user(db, user_id)
    return [e for e in rows if is_entitlement_active(e.active, e.expires_at, now)]


async def has_feature(
    db: AsyncSession,
    user_id: str,
    feature: Feature,
    now: Optional[datetime] = None,
) -> bool:
    feature_value = feature.value if isinstance(feature, Feature) else str(feature)
    return any(e.feature == feature_value for e in await list_active(db, user_id, now))
