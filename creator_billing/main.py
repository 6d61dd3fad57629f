from contextlib import asynccontextmanager
import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from creator_billing.config import get_settings
from creator_billing.database import init_db
from creator_billing.exceptions import BillingError
from creator_billing.routers import (
    access_router,
    auth_router,
    checkout_router,
    entitlements_router,
    health_router,
    stripe_router,
    subscription_router,
)
from creator_billing.routers.health import VERSION

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield


app = FastAPI(
    title="Creator Billing",
    version=VERSION,
    lifespan=lifespan,
    swagger_ui_parameters={"persistAuthorization": True},
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
    return JSONResponse(status_code=400, content={"error": message})


app.include_router(health_router)
app.include_router(auth_router)
app.include_router(checkout_router)
app.include_router(stripe_router)
app.include_router(subscription_router)
app.include_router(entitlements_router)
app.include_router(access_router)


@app.get("/")
async def root():
    return {
        "message": "Creator Billing API",
        "version": VERSION,
        "environment": settings.environment
    }


if __name__ == "__main__":
    port = int(os.getenv("PORT", "5000"))
    uvicorn.run(
        "creator_billing.main:app",
        host="0.0.0.0",
        port=port,
        reload=not settings.is_production
    )
