"""
In-process change feed.

Store helpers publish ``(table, event, user_id)`` after each committed
mutation; readers open a channel filtered to one table and one user and
get called back on every matching change. Notifications are delivered
sequentially in publish order.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"

ChangeCallback = Callable[["Change"], Awaitable[None]]


@dataclass(frozen=True)
class Change:
    table: str
    event: str
    user_id: str


@dataclass
class Channel:
    table: str
    user_id: str
    callback: ChangeCallback
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def matches(self, change: Change) -> bool:
        return self.table == change.table and self.user_id == change.user_id


class ChangeFeed:
    def __init__(self):
        self._channels: Dict[str, Channel] = {}

    def channel(self, table: str, user_id: str, callback: ChangeCallback) -> Channel:
        ch = Channel(table=table, user_id=user_id, callback=callback)
        self._channels[ch.id] = ch
        logger.debug(f"[FEED] channel opened table={table} user={user_id} id={ch.id}")
        return ch

    def remove_channel(self, channel: Optional[Channel]) -> None:
        if channel is None:
            return
        if self._channels.pop(channel.id, None) is not None:
            logger.debug(f"[FEED] channel removed id={channel.id}")

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    async def publish(self, table: str, event: str, user_id: Optional[str]) -> None:
        if not user_id:
            return
        change = Change(table=table, event=event, user_id=user_id)
        for ch in [c for c in self._channels.values() if c.matches(change)]:
            try:
                await ch.callback(change)
            except Exception:
                # a broken subscriber must not fail the writer that published
                logger.exception(f"[FEED] subscriber {ch.id} failed on {table}/{event}")


change_feed = ChangeFeed()
