"""
Async client for the engagement API: optimistic follow/like buttons,
debounced view tracking and the notification inbox.
"""
from .api import CALL_ERRORS, EngagementAPI
from .buttons import FollowButton, FollowStatusCache, LikeButton
from .errors import EngagementAPIError, SelfFollowError
from .inbox import NotificationInbox
from .optimistic import OptimisticToggle, ToggleState
from .tracking import ViewState, ViewTracker

__all__ = [
    "CALL_ERRORS",
    "EngagementAPI",
    "EngagementAPIError",
    "FollowButton",
    "FollowStatusCache",
    "LikeButton",
    "NotificationInbox",
    "OptimisticToggle",
    "SelfFollowError",
    "ToggleState",
    "ViewState",
    "ViewTracker",
]
