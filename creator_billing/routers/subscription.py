import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from creator_billing.config import get_settings
from creator_billing.database import get_db
from creator_billing.exceptions import AuthenticationError
from creator_billing.routers.auth import _clean_token, get_current_user
from creator_billing.services.auth_provider import AuthenticatedUser, verify_access_token
from creator_billing.services.change_feed import change_feed
from creator_billing.services.reconciliation import SubscriptionCheckResponse, reconciliation_service
from creator_billing.services.subscription_status import (
    StatusSnapshot,
    SubscriptionStatusReader,
    read_status,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscription", tags=["subscription"])


@router.get("/status", response_model=StatusSnapshot)
async def get_status(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await read_status(db, current_user.id)


@router.post("/check", response_model=SubscriptionCheckResponse)
async def check_subscription(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await reconciliation_service.check_subscription(db, current_user)


@router.websocket("/status/stream")
async def stream_status(websocket: WebSocket):
    """
    Push the caller's status snapshot on connect and after every change.
    Sending "refresh" forces a re-read.
    """
    token = _clean_token(websocket.query_params.get("token", "") or websocket.headers.get("authorization", ""))
    try:
        user = verify_access_token(token)
    except AuthenticationError as e:
        logger.info(f"[STATUS] stream rejected: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()

    queue: asyncio.Queue = asyncio.Queue()
    reader = SubscriptionStatusReader(
        feed=change_feed,
        refresh_interval=get_settings().status_refresh_seconds or None,
    )
    reader.subscribe(queue.put)

    async def pump():
        while True:
            snapshot = await queue.get()
            await websocket.send_json(snapshot.model_dump(mode="json"))

    async with reader:
        await reader.start(user.id)
        sender = asyncio.create_task(pump())
        try:
            while True:
                message = await websocket.receive_text()
                if message.strip().lower() == "refresh":
                    await reader.refresh()
        except WebSocketDisconnect:
            logger.debug(f"[STATUS] stream closed for user={user.id}")
        finally:
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning(f"[STATUS] stream send failed for user={user.id}: {e}")
