"""
Notification Fan-out
====================

WRITE PATH:
-----------
Every follow/like/comment that actually creates a row calls
create_notification() inside its own transaction. The notification is
part of the action: if the like rolls back, so does its notification.

After the row is written we prune the recipient's inbox (retention) and
register an on_commit hook that publishes the raw row to the broker.
Publishing after commit keeps the stream consistent with the list
endpoint: a client that re-fetches on the event will see the row.

RETENTION:
----------
No background sweeper. Each new notification for a recipient trims that
recipient's history to the newest N rows (settings.ENGAGEMENT
NOTIFICATION_RETENTION, default 20). A recipient who never receives new
notifications keeps their bounded history forever, which is fine.

READ STATE:
-----------
read starts False. Single-row and bulk "mark all" updates, both scoped to
the recipient so one user can never flip another user's rows.
"""

import logging
from functools import partial
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Q

from .models import Notification
from .queries import get_enriched_notifications
from .sse import broker

logger = logging.getLogger(__name__)


def retention_ceiling() -> int:
    return settings.ENGAGEMENT['NOTIFICATION_RETENTION']


def serialize_raw(notification: Notification) -> dict:
    """
    The payload pushed to open streams.

    Deliberately bare: ids only. Display fields (actor name, article title)
    are fetched by the client through the list endpoint.
    """
    return {
        'id': notification.id,
        'type': notification.type,
        'actor_id': notification.actor_id,
        'target_id': notification.target_id,
        'article_id': notification.article_id,
        'read': notification.read,
        'created_at': notification.created_at.isoformat(),
    }


def _publish(notification: Notification) -> None:
    queued = broker.publish(notification.target_id, serialize_raw(notification))
    logger.debug(f"Notification {notification.id} queued for {queued} stream(s)")


def create_notification(
    type: str,
    actor_id: int,
    target_id: int,
    article_id: Optional[int] = None
) -> Optional[Notification]:
    """
    Append one notification for target_id.

    Must be called inside the triggering action's transaction.
    Acting on your own content notifies nobody and returns None.
    """
    if actor_id == target_id:
        return None

    notification = Notification.objects.create(
        type=type,
        actor_id=actor_id,
        target_id=target_id,
        article_id=article_id
    )
    prune_notifications(target_id)
    transaction.on_commit(partial(_publish, notification))
    return notification


def prune_notifications(target_id: int, ceiling: Optional[int] = None) -> int:
    """
    Keep only the newest `ceiling` notifications for target_id.

    Finds the ceiling-th most recent row and deletes every row older than
    it. Ties on created_at are broken by id so exactly `ceiling` remain.
    Returns the number of rows deleted.
    """
    if ceiling is None:
        ceiling = retention_ceiling()
    if ceiling < 1:
        raise ValueError("Retention ceiling must be at least 1")

    inbox = Notification.objects.filter(target_id=target_id)
    if inbox.count() <= ceiling:
        return 0

    cutoff_at, cutoff_id = (
        inbox
        .order_by('-created_at', '-id')
        .values_list('created_at', 'id')[ceiling - 1]
    )
    deleted, _ = inbox.filter(
        Q(created_at__lt=cutoff_at) |
        Q(created_at=cutoff_at, id__lt=cutoff_id)
    ).delete()

    if deleted:
        logger.info(f"Pruned {deleted} notification(s) for user {target_id}")
    return deleted


def mark_read(target_id: int, notification_id: int) -> bool:
    """Mark one of the recipient's notifications read. False if it isn't theirs."""
    updated = Notification.objects.filter(
        id=notification_id,
        target_id=target_id
    ).update(read=True)
    return updated > 0


def mark_all_read(target_id: int) -> int:
    """Single UPDATE over every unread row of the recipient."""
    return Notification.objects.filter(target_id=target_id, read=False).update(read=True)


def unread_count(target_id: int) -> int:
    return Notification.objects.filter(target_id=target_id, read=False).count()


def list_notifications(target_id: int, limit: Optional[int] = None) -> list[dict]:
    """Enriched inbox page, newest first."""
    if limit is None:
        limit = settings.ENGAGEMENT['NOTIFICATION_PAGE_SIZE']
    return get_enriched_notifications(target_id, limit=limit)
