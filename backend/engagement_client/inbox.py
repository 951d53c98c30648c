"""
Notification inbox for the signed-in user.

The live stream only says "something happened"; the inbox always re-reads
the enriched list from the API so actor names and article titles come
from one place. unread_count is derived from the fetched page and then
adjusted locally as the user opens items.
"""
import asyncio
import logging
from collections import deque
from typing import Any, Callable, Optional

from .api import CALL_ERRORS

logger = logging.getLogger(__name__)


class NotificationInbox:
    def __init__(
        self,
        api,
        user_id: int,
        notify: Callable[[str, str], None],
        *,
        page_size: int = 20,
        seen_window: int = 200,
    ):
        self.api = api
        self.user_id = user_id
        self.notify = notify
        self.page_size = page_size
        self.items: list[dict[str, Any]] = []
        self.unread_count = 0
        self.last_event_id: Optional[int] = None
        # Matches the server backfill limit, so a resume replay always falls inside it
        self._seen_ids: deque[int] = deque(maxlen=seen_window)

    async def refresh(self) -> bool:
        """Re-fetch the list. On failure the previous list stays in place."""
        try:
            data = await self.api.list_notifications(limit=self.page_size)
        except CALL_ERRORS:
            logger.warning(f"Notification fetch failed for user {self.user_id}", exc_info=True)
            return False
        self.items = data.get("items", [])
        self.unread_count = sum(1 for item in self.items if not item.get("read"))
        return True

    async def handle_event(self, raw: dict[str, Any]) -> bool:
        """
        React to a raw row from the stream. Rows not addressed to this
        user, and ids already handled (stream resume replays), are ignored.
        """
        notification_id = raw.get("id")
        if raw.get("target_id") != self.user_id:
            return False
        if notification_id in self._seen_ids:
            return False
        self._seen_ids.append(notification_id)
        if notification_id and (self.last_event_id is None or notification_id > self.last_event_id):
            self.last_event_id = notification_id

        await self.refresh()

        if raw.get("type") == "follow":
            actor = self._actor_name(notification_id)
            self.notify("info", f"{actor} started following you")
        return True

    async def open(self, notification_id: int) -> None:
        item = self._find(notification_id)
        if item is not None and item.get("read"):
            return
        try:
            await self.api.mark_read(notification_id)
        except CALL_ERRORS:
            logger.warning(f"Mark read failed for notification {notification_id}", exc_info=True)
            return
        if item is not None:
            item["read"] = True
        self.unread_count = max(0, self.unread_count - 1)

    async def mark_all_read(self) -> None:
        try:
            await self.api.mark_all_read()
        except CALL_ERRORS:
            logger.warning(f"Mark all read failed for user {self.user_id}", exc_info=True)
            return
        for item in self.items:
            item["read"] = True
        self.unread_count = 0

    async def listen(self, *, reconnect_delay: float = 3.0, max_reconnects: Optional[int] = None) -> None:
        """
        Consume the live stream, reconnecting from the last seen id after
        a dropped connection. Runs until cancelled or until
        max_reconnects is exhausted.
        """
        attempts = 0
        while True:
            try:
                async for raw in self.api.stream_notifications(last_event_id=self.last_event_id):
                    await self.handle_event(raw)
            except CALL_ERRORS:
                logger.warning(f"Notification stream dropped for user {self.user_id}", exc_info=True)
            attempts += 1
            if max_reconnects is not None and attempts > max_reconnects:
                return
            await asyncio.sleep(reconnect_delay)

    def _find(self, notification_id: int) -> Optional[dict[str, Any]]:
        for item in self.items:
            if item.get("id") == notification_id:
                return item
        return None

    def _actor_name(self, notification_id: int) -> str:
        item = self._find(notification_id)
        if item is None:
            return "Someone"
        actor = item.get("actor") or {}
        return actor.get("displayName") or actor.get("username") or "Someone"
