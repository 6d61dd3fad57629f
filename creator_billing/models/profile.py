from __future__ import annotations
from enum import Enum
from sqlalchemy import Enum as SAEnum
from datetime import datetime, timezone

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from creator_billing.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class Role(str, Enum):
    admin = "admin"
    creator = "creator"
    follower = "follower"


class Profile(Base):
    __tablename__ = "profiles"

    # same id as the auth provider's user
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), index=True, nullable=True)

    role: Mapped[Role] = mapped_column(SAEnum(Role, name="app_role"), default=Role.follower, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
