from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from creator_billing.database import get_db
from creator_billing.config import get_settings
from creator_billing.services.change_feed import change_feed

router = APIRouter(tags=["core"])

VERSION = "1.0.0"


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError:
        db_status = "error"

    settings = get_settings()
    # secrets are only reported as present or missing
    billing = {
        "stripe_key": "configured" if settings.stripe_secret_key else "missing",
        "webhook_secret": "configured" if settings.stripe_webhook_secret else "missing",
        "prices": "configured" if settings.stripe_monthly_price_id and settings.stripe_annual_price_id else "missing",
    }

    return {
        "status": "ok" if db_status == "ok" else "degraded",
        "db": db_status,
        "billing": billing,
        "status_streams": change_feed.channel_count,
    }


@router.get("/version")
async def version():
    settings = get_settings()
    return {
        "version": VERSION,
        "environment": settings.environment,
        "app_name": "Creator Billing"
    }
