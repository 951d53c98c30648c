"""
Page-view tracking, one increment per mounted page.

    idle --mount()--> pending --(debounce elapsed, call ok)--> done
                        |      --(call failed)--------------> failed
                        '--unmount() before debounce--> idle

The debounce absorbs mount/unmount churn (double-invoked effects, fast
navigation): only a mount that survives the window issues a call. done
and failed are terminal for the instance; there is no retry. A reload
creates a new tracker and is a new view.

Each tracker also sends a random idempotency key with its call, so a
retried request for the same mount is not counted twice server-side.
"""
import asyncio
import enum
import logging
import uuid
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.5

Incrementer = Callable[..., Awaitable[dict[str, Any]]]


class ViewState(enum.Enum):
    IDLE = "idle"
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


class ViewTracker:
    def __init__(
        self,
        article_id: int,
        increment: Incrementer,
        *,
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self.article_id = article_id
        self.debounce = debounce
        self.state = ViewState.IDLE
        self.views: Optional[int] = None
        self.idempotency_key = uuid.uuid4().hex
        self._increment = increment
        self._task: Optional[asyncio.Task] = None
        self._dispatched = False

    def mount(self) -> bool:
        """
        Schedule the increment. Returns False (no-op) unless idle.
        Must be called from a running event loop.
        """
        if self.state is not ViewState.IDLE:
            return False
        self.state = ViewState.PENDING
        self._dispatched = False
        self._task = asyncio.get_running_loop().create_task(self._run())
        return True

    def unmount(self) -> bool:
        """
        Cancel a pending increment whose debounce has not elapsed.
        Returns True if a call was prevented. Once dispatched, the call
        runs to completion.
        """
        if self.state is not ViewState.PENDING or self._dispatched or self._task is None:
            return False
        self._task.cancel()
        self._task = None
        self.state = ViewState.IDLE
        return True

    async def wait(self) -> ViewState:
        """Wait for the scheduled increment (if any) to settle."""
        task = self._task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        return self.state

    async def _run(self) -> None:
        await asyncio.sleep(self.debounce)
        self._dispatched = True
        try:
            result = await self._increment(self.article_id, idempotency_key=self.idempotency_key)
        except Exception:
            # Best effort: a lost view is not worth a retry or a UI error
            logger.warning(f"View increment failed for article {self.article_id}", exc_info=True)
            self.state = ViewState.FAILED
        else:
            self.views = result.get("views")
            self.state = ViewState.DONE
            if result.get("incrementAmount") not in (None, 0, 1):
                logger.warning(
                    f"Unexpected increment amount for article {self.article_id}: {result.get('incrementAmount')}"
                )
        finally:
            self._task = None
