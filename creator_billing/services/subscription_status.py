"""
Subscription Status Reader.

An observable store holding the current user's subscription snapshot. It
re-reads the full row (never patches) whenever:

- ``start``/``set_user`` is called,
- the change feed reports a change to that user's subscription row,
- the optional refresh timer fires.

Listeners registered with ``subscribe`` get every new snapshot. ``stop``
closes the feed channel and the timer; ``set_user`` and the async context
manager exit both go through it.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional, Union

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from creator_billing import database
from creator_billing.models.subscription import Plan, Subscription, SubscriptionStatus
from creator_billing.services import subscription_store
from creator_billing.services.change_feed import Change, Channel, ChangeFeed, change_feed
from creator_billing.services.subscription_state import as_utc, coerce_status, derive_flags

logger = logging.getLogger(__name__)

Listener = Callable[["StatusSnapshot"], Union[None, Awaitable[None]]]


class StatusSnapshot(BaseModel):
    status: Optional[SubscriptionStatus] = None
    plan: Optional[Plan] = None
    trial_end: Optional[datetime] = None
    period_end: Optional[datetime] = None
    is_active: bool = False
    is_suspended: bool = False
    loading: bool = True
    error: Optional[str] = None

    @classmethod
    def from_row(cls, row: Optional[Subscription]) -> "StatusSnapshot":
        if row is None:
            return cls(loading=False)
        status = coerce_status(row.status)
        flags = derive_flags(status)
        return cls(
            status=status,
            plan=Plan(row.plan) if row.plan else None,
            trial_end=as_utc(row.trial_end),
            period_end=as_utc(row.current_period_end),
            is_active=flags.is_active,
            is_suspended=flags.is_suspended,
            loading=False,
        )


async def read_status(db: AsyncSession, user_id: str) -> StatusSnapshot:
    return StatusSnapshot.from_row(await subscription_store.get_by_user(db, user_id))


class SubscriptionStatusReader:
    def __init__(
        self,
        session_factory: Optional[Callable[[], Any]] = None,
        feed: ChangeFeed = change_feed,
        refresh_interval: Optional[float] = None,
    ):
        self._session_factory = session_factory
        self._feed = feed
        self._refresh_interval = refresh_interval
        self._user_id: Optional[str] = None
        self._channel: Optional[Channel] = None
        self._timer: Optional[asyncio.Task] = None
        self._listeners: List[Listener] = []
        self._state = StatusSnapshot()
        # bumped on every read; only the newest read may publish its result
        self._reads = 0

    @property
    def state(self) -> StatusSnapshot:
        return self._state

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(self, user_id: Optional[str]) -> StatusSnapshot:
        await self.stop()
        self._user_id = user_id

        if not user_id:
            await self._set_state(StatusSnapshot(loading=False))
            return self._state

        # subscribe before the first read so no change can fall between them
        self._channel = self._feed.channel(subscription_store.TABLE, user_id, self._on_change)
        await self.refresh()
        if self._refresh_interval:
            self._timer = asyncio.create_task(self._refresh_loop())
        return self._state

    async def set_user(self, user_id: Optional[str]) -> StatusSnapshot:
        if user_id == self._user_id and (self._channel is not None or not user_id):
            return self._state
        return await self.start(user_id)

    async def stop(self) -> None:
        self._feed.remove_channel(self._channel)
        self._channel = None
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("[STATUS] refresh timer ended with an error")

    async def refresh(self) -> StatusSnapshot:
        user_id = self._user_id
        if not user_id:
            return self._state

        self._reads += 1
        ticket = self._reads

        factory = self._session_factory or database.async_session_maker
        try:
            async with factory() as db:
                snapshot = await read_status(db, user_id)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"[STATUS] read failed for user={user_id}: {e}")
            snapshot = self._error_state(e)

        # user switched, or a newer read started, while we were reading
        if user_id != self._user_id or ticket != self._reads:
            return self._state

        await self._set_state(snapshot)
        return snapshot

    async def _on_change(self, change: Change) -> None:
        logger.debug(f"[STATUS] {change.event} on {change.table} for user={change.user_id}")
        await self.refresh()

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self._refresh_interval)
            try:
                await self.refresh()
            except Exception as e:
                logger.exception(f"[STATUS] scheduled refresh failed for user={self._user_id}")
                await self._set_state(self._error_state(e))

    def _error_state(self, error: Exception) -> StatusSnapshot:
        return self._state.model_copy(update={"loading": False, "error": str(error) or type(error).__name__})

    async def _set_state(self, snapshot: StatusSnapshot) -> None:
        self._state = snapshot
        for listener in list(self._listeners):
            result = listener(snapshot)
            if inspect.isawaitable(result):
                await result

    async def __aenter__(self) -> "SubscriptionStatusReader":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
