"""
Follow and like buttons with optimistic updates.

Both buttons share one protocol: flip locally, call the server toggle,
then confirm against the authoritative answer or roll back. Transport
errors never escape click(); they become an error toast.
"""
import logging
import time
from typing import Callable, Optional

from .api import CALL_ERRORS
from .errors import SelfFollowError
from .optimistic import OptimisticToggle, ToggleInFlight

logger = logging.getLogger(__name__)

# notify(level, message) where level is "success" or "error"
Notifier = Callable[[str, str], None]


class FollowStatusCache:
    """
    Follow status keyed by (follower, target), valid for `ttl` seconds.

    Only authoritative values go in: a status check on mount, or the
    result of a confirmed toggle. Optimistic guesses never do.
    """

    def __init__(self, ttl: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[tuple[int, int], tuple[bool, float]] = {}

    def get(self, follower_id: int, target_id: int) -> Optional[bool]:
        entry = self._entries.get((follower_id, target_id))
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at >= self.ttl:
            del self._entries[(follower_id, target_id)]
            return None
        return value

    def set(self, follower_id: int, target_id: int, is_following: bool) -> None:
        self._entries[(follower_id, target_id)] = (is_following, self._clock())

    def invalidate(self, follower_id: int, target_id: int) -> None:
        self._entries.pop((follower_id, target_id), None)

    def clear(self) -> None:
        self._entries.clear()

    async def prime(self, api, follower_id: int, target_ids: list[int]) -> int:
        """
        Fill the cache for every target not already fresh, with one batch
        call. Returns how many entries were fetched. A failed call leaves
        the cache as it was; buttons fall back to their own status check.
        """
        missing = [
            target_id for target_id in dict.fromkeys(target_ids)
            if target_id != follower_id and self.get(follower_id, target_id) is None
        ]
        if not missing:
            return 0
        try:
            statuses = await api.batch_check_follow(missing)
        except CALL_ERRORS:
            logger.warning(f"Batch follow status failed for {follower_id}", exc_info=True)
            return 0
        for target_id, is_following in statuses.items():
            self.set(follower_id, target_id, is_following)
        return len(statuses)


class FollowButton:
    def __init__(
        self,
        api,
        viewer_id: int,
        target_id: int,
        notify: Notifier,
        *,
        cache: Optional[FollowStatusCache] = None,
    ):
        self.api = api
        self.viewer_id = viewer_id
        self.target_id = target_id
        self.notify = notify
        self.cache = cache
        self.toggle = OptimisticToggle(False)

    @property
    def visible(self) -> bool:
        return self.viewer_id != self.target_id

    @property
    def is_following(self) -> bool:
        return self.toggle.value

    @property
    def loading(self) -> bool:
        return self.toggle.pending

    async def load(self) -> bool:
        """Fetch the initial status, from the cache when fresh."""
        if not self.visible:
            return False
        if self.cache is not None:
            cached = self.cache.get(self.viewer_id, self.target_id)
            if cached is not None:
                self.toggle.reset(cached)
                return cached
        try:
            is_following = await self.api.check_follow(self.target_id)
        except CALL_ERRORS:
            logger.warning(f"Follow status check failed for {self.viewer_id} -> {self.target_id}", exc_info=True)
            return self.toggle.value
        self.toggle.reset(is_following)
        if self.cache is not None:
            self.cache.set(self.viewer_id, self.target_id, is_following)
        return is_following

    async def click(self) -> bool:
        """
        Toggle the follow. Returns the final displayed state.

        Raises SelfFollowError for the viewer's own profile without
        touching the network.
        """
        if not self.visible:
            raise SelfFollowError(self.viewer_id)
        try:
            self.toggle.begin()
        except ToggleInFlight:
            return self.toggle.value

        try:
            result = await self.api.toggle_follow(self.target_id)
        except CALL_ERRORS:
            logger.warning(f"Follow toggle failed for {self.viewer_id} -> {self.target_id}", exc_info=True)
            self.toggle.fail()
            self.notify("error", "Could not update follow status. Please try again.")
            return self.toggle.value

        server_value = bool(result.get("isFollowing"))
        confirmed = self.toggle.confirm(server_value)
        if self.cache is not None:
            self.cache.set(self.viewer_id, self.target_id, server_value)
        if confirmed:
            self.notify("success", "Following" if server_value else "Unfollowed")
        else:
            logger.warning(
                f"Follow state for {self.viewer_id} -> {self.target_id} disagreed with server, "
                f"reverted to {server_value}"
            )
            self.notify("error", "Follow status changed elsewhere. Please try again.")
        return self.toggle.value


class LikeButton:
    def __init__(self, api, article_id: int, notify: Notifier):
        self.api = api
        self.article_id = article_id
        self.notify = notify
        self.toggle = OptimisticToggle(False)
        self.likes_count: Optional[int] = None

    @property
    def is_liked(self) -> bool:
        return self.toggle.value

    @property
    def loading(self) -> bool:
        return self.toggle.pending

    async def load(self) -> None:
        try:
            is_liked = await self.api.check_like(self.article_id)
            stats = await self.api.get_article_stats(self.article_id)
        except CALL_ERRORS:
            logger.warning(f"Like status load failed for article {self.article_id}", exc_info=True)
            return
        self.toggle.reset(is_liked)
        self.likes_count = stats.get("likesCount")

    async def click(self) -> bool:
        try:
            guess = self.toggle.begin()
        except ToggleInFlight:
            return self.toggle.value
        if self.likes_count is not None:
            self.likes_count = max(0, self.likes_count + (1 if guess else -1))

        try:
            result = await self.api.toggle_like(self.article_id)
        except CALL_ERRORS:
            logger.warning(f"Like toggle failed for article {self.article_id}", exc_info=True)
            self.toggle.fail()
            if self.likes_count is not None:
                self.likes_count = max(0, self.likes_count + (-1 if guess else 1))
            self.notify("error", "Could not update like. Please try again.")
            return self.toggle.value

        self.toggle.confirm(bool(result.get("isLiked")))
        # The stats endpoint reconciles likes_count, so its answer replaces our arithmetic
        try:
            stats = await self.api.get_article_stats(self.article_id)
        except CALL_ERRORS:
            logger.warning(f"Stats refresh failed for article {self.article_id}", exc_info=True)
        else:
            self.likes_count = stats.get("likesCount")
        return self.toggle.value
