import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from creator_billing.models.profile import Profile, Role, utcnow

logger = logging.getLogger(__name__)


async def get_role(db: AsyncSession, user_id: str) -> Optional[Role]:
    result = await db.execute(select(Profile.role).where(Profile.id == user_id))
    return result.scalar_one_or_none()


async def promote_to_creator(db: AsyncSession, user_id: str) -> bool:
    """Set the profile role to creator. Writing the same value twice is a no-op."""
    result = await db.execute(
        update(Profile)
        .where(Profile.id == user_id)
        .values(role=Role.creator, updated_at=utcnow())
    )
    await db.commit()
    if not result.rowcount:
        logger.warning(f"[PROFILE] no profile for user={user_id}, role not promoted")
        return False
    return True
