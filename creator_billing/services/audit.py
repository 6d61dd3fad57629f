import enum
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from creator_billing import database
from creator_billing.models.audit_log import AuditLog

logger = logging.getLogger(__name__)

DETAILS_MAX = 1000


class AuditEvent(str, enum.Enum):
    CHECKOUT_SESSION_CREATED = "checkout_session_created"
    CHECKOUT_FAILED = "checkout_failed"
    WEBHOOK_SIGNATURE_REJECTED = "webhook_signature_rejected"
    WEBHOOK_PROCESSED = "webhook_processed"
    WEBHOOK_FAILED = "webhook_failed"
    SUBSCRIPTION_RECONCILED = "subscription_reconciled"


def _entry(
    event: AuditEvent,
    source: str,
    status: str,
    user_id: Optional[str],
    request_id: Optional[str],
    details: Optional[str],
) -> AuditLog:
    return AuditLog(
        user_id=user_id,
        event_type=AuditEvent(event).value,
        source=source,
        status=status,
        request_id=request_id,
        details=details[:DETAILS_MAX] if details else None,
    )


class AuditService:
    @staticmethod
    async def log(
        db: AsyncSession,
        event: AuditEvent,
        source: str,
        status: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[str] = None,
    ) -> AuditLog:
        """Record on the caller's session and commit it."""
        entry = _entry(event, source, status, user_id, request_id, details)
        db.add(entry)
        await db.commit()
        return entry

    @staticmethod
    async def log_standalone(
        event: AuditEvent,
        source: str,
        status: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """
        Record on a session of its own, for paths whose request transaction
        was rolled back or never started. Failures are logged, not raised:
        the audit trail must not change the response of the caller.
        """
        try:
            async with database.async_session_maker() as session:
                entry = _entry(event, source, status, user_id, request_id, details)
                session.add(entry)
                await session.commit()
                return entry
        except SQLAlchemyError as e:
            logger.error(f"[AUDIT] could not record {AuditEvent(event).value}: {e}")
            return None


audit_service = AuditService()
