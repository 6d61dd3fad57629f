from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from creator_billing.database import Base


class ProcessedEvent(Base):
    """Provider event ids whose transition has been applied successfully."""

    __tablename__ = "processed_events"

    id = Column(String(255), primary_key=True)
    event_type = Column(String(100), nullable=False)
    processed_at = Column(DateTime(timezone=True), server_default=func.now())
