from __future__ import annotations

import asyncio
import json
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, DefaultDict

logger = logging.getLogger(__name__)


def format_sse(*, data: Any, event: str = "notification", event_id: int | None = None) -> str:
    """
    Format a Server-Sent Event message.
    """

    payload = json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str)
    lines: list[str] = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    if event:
        lines.append(f"event: {event}")
    # Compact JSON keeps the payload on a single data line.
    lines.append(f"data: {payload}")
    return "\n".join(lines) + "\n\n"


@dataclass(frozen=True, eq=False)
class Subscriber:
    user_id: int
    queue: "asyncio.Queue[dict[str, Any]]"
    loop: asyncio.AbstractEventLoop


def _offer(queue: "asyncio.Queue[dict[str, Any]]", message: dict[str, Any]) -> None:
    # Backpressure: a slow client loses its oldest message, the inbox
    # re-fetches on the next event anyway.
    if queue.full():
        try:
            queue.get_nowait()
        except asyncio.QueueEmpty:
            pass
    try:
        queue.put_nowait(message)
    except asyncio.QueueFull:
        pass


class NotificationBroker:
    """
    In-process pub/sub between the notification write path and open streams.

    Notes:
    - publish() runs wherever the write committed (a sync request thread);
      subscribers live on the ASGI event loop. Messages cross over with
      call_soon_threadsafe, so the broker itself only needs a thread lock.
    - Single-process only. Several workers need Redis/NATS pub/sub instead;
      clients recover missed rows through Last-Event-ID backfill.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subs: DefaultDict[int, set[Subscriber]] = defaultdict(set)

    def subscribe(self, user_id: int, *, max_queue_size: int = 200) -> Subscriber:
        """Register a stream for user_id. Must be called from the stream's event loop."""
        sub = Subscriber(
            user_id=user_id,
            queue=asyncio.Queue(maxsize=max_queue_size),
            loop=asyncio.get_running_loop(),
        )
        with self._lock:
            self._subs[user_id].add(sub)
        return sub

    def unsubscribe(self, sub: Subscriber) -> None:
        with self._lock:
            subs = self._subs.get(sub.user_id)
            if not subs:
                return
            subs.discard(sub)
            if not subs:
                self._subs.pop(sub.user_id, None)

    def publish(self, user_id: int, message: dict[str, Any]) -> int:
        """
        Hand message to every open stream of user_id. Returns how many
        streams it was queued for.
        """
        with self._lock:
            subs = list(self._subs.get(user_id, ()))

        delivered = 0
        for sub in subs:
            try:
                sub.loop.call_soon_threadsafe(_offer, sub.queue, message)
            except RuntimeError:
                # Loop already closed; the stream is gone.
                logger.debug(f"Dropping dead subscriber for user {user_id}")
                self.unsubscribe(sub)
                continue
            delivered += 1
        return delivered

    def has_subscribers(self, user_id: int) -> bool:
        with self._lock:
            return bool(self._subs.get(user_id))


broker = NotificationBroker()
