from sqlalchemy import Column, String, DateTime, Boolean, UniqueConstraint
from sqlalchemy.sql import func
from creator_billing.database import Base
import enum
import uuid


class Feature(str, enum.Enum):
    CREATOR_PRO = "creator_pro"
    UNLIMITED_PRODUCTS = "unlimited_products"
    UNLIMITED_COLLECTIONS = "unlimited_collections"
    ANALYTICS = "analytics"
    VERIFIED_BADGE = "verified_badge"


# everything a Creator Pro subscription unlocks
FEATURES = tuple(Feature)


class Entitlement(Base):
    __tablename__ = "entitlements"
    __table_args__ = (UniqueConstraint("user_id", "feature", name="uq_entitlements_user_feature"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    feature = Column(String(50), nullable=False)
    active = Column(Boolean, nullable=False, default=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
