"""
Like & Comment Services
=======================

This module handles engagement writes with:
1. Atomic database operations
2. Race condition prevention
3. Notification fan-out in the same transaction

CONCURRENCY STRATEGY:
---------------------
Problem: Two requests liking the same article for the same user at once
Naive: Check if exists → Create if not → RACE CONDITION!

We rely on the unique constraint (user, article):
    - Try to insert
    - DB rejects the duplicate
    - Catch IntegrityError, report "already liked" as a success

Toggle is expressed as "try delete, else insert". Both steps are single
statements, so a toggle either fully applies or fully fails; there is no
window where we read state and act on a stale copy of it.

COUNTERS:
---------
Nothing here writes Article.likes_count. The stats read path reconciles
it from the Like table (see counters.sync_likes_count).
"""

import logging
from typing import Literal, Optional

from django.db import transaction, IntegrityError
from django.contrib.auth.models import User

from .exceptions import ArticleNotFound, EngagementError
from .models import Article, Comment, Like, Notification
from .notifications import create_notification

logger = logging.getLogger(__name__)


class LikeResult:
    """Result of a like operation with type safety."""
    def __init__(
        self,
        success: bool,
        action: Literal['created', 'removed', 'already_exists', 'already_removed'],
        is_liked: bool
    ):
        self.success = success
        self.action = action
        self.is_liked = is_liked


def _get_article(article_id: int) -> Article:
    try:
        return Article.objects.only('id', 'author_id').get(id=article_id)
    except Article.DoesNotExist:
        raise ArticleNotFound(article_id)


def like_article(user: User, article_id: int) -> LikeResult:
    """
    Like an article atomically.

    OPERATION:
    1. Get article (verify exists, need author for the notification)
    2. Try to create Like (unique constraint prevents duplicates)
    3. If success: notify the author
    4. If IntegrityError: Like already exists, no-op success

    ATOMICITY:
    Like and notification are in one transaction - both or neither.
    """
    article = _get_article(article_id)

    try:
        with transaction.atomic():
            Like.objects.create(user=user, article_id=article_id)
            create_notification(
                Notification.Type.LIKE,
                actor_id=user.id,
                target_id=article.author_id,
                article_id=article_id
            )
    except IntegrityError:
        # Duplicate like (double click, two tabs). Not an error.
        return LikeResult(success=True, action='already_exists', is_liked=True)

    return LikeResult(success=True, action='created', is_liked=True)


def unlike_article(user: User, article_id: int) -> LikeResult:
    """
    Remove a like. Deleting a like that does not exist is a no-op success.

    Notifications for the original like are left alone; they age out
    through retention.
    """
    deleted_count, _ = Like.objects.filter(user=user, article_id=article_id).delete()
    if deleted_count:
        return LikeResult(success=True, action='removed', is_liked=False)
    return LikeResult(success=True, action='already_removed', is_liked=False)


def toggle_like(user: User, article_id: int) -> LikeResult:
    """
    Toggle like on an article.

    Delete first; only if nothing was deleted do we insert. The server's
    answer (is_liked) is authoritative and is what the client reconciles
    its optimistic state to.
    """
    _get_article(article_id)

    deleted_count, _ = Like.objects.filter(user=user, article_id=article_id).delete()
    if deleted_count:
        return LikeResult(success=True, action='removed', is_liked=False)
    return like_article(user, article_id)


def check_like(user_id: int, article_id: int) -> bool:
    return Like.objects.filter(user_id=user_id, article_id=article_id).exists()


def add_comment(
    user: User,
    article_id: int,
    content: str,
    parent_id: Optional[int] = None
) -> Comment:
    """
    Create a comment and notify the article author.

    Validates that:
    1. Content is not empty
    2. Parent comment (if provided) belongs to the same article
    """
    content = (content or '').strip()
    if not content:
        raise EngagementError("Comment cannot be empty.")

    article = _get_article(article_id)

    if parent_id is not None:
        parent_article_id = (
            Comment.objects
            .filter(id=parent_id)
            .values_list('article_id', flat=True)
            .first()
        )
        if parent_article_id != article_id:
            raise EngagementError("Parent comment must belong to the same article.")

    with transaction.atomic():
        comment = Comment.objects.create(
            article_id=article_id,
            author=user,
            parent_id=parent_id,
            content=content
        )
        create_notification(
            Notification.Type.COMMENT,
            actor_id=user.id,
            target_id=article.author_id,
            article_id=article_id
        )
    return comment


def delete_comment(user: User, comment_id: int) -> bool:
    """
    Soft delete a comment owned by user.

    Returns False if the comment does not exist, is not theirs, or is
    already deleted. comments_count reflects the change immediately since
    it is always counted live.
    """
    updated = Comment.objects.filter(
        id=comment_id,
        author=user,
        is_deleted=False
    ).update(is_deleted=True)
    if updated:
        logger.info(f"Comment {comment_id} soft-deleted by user {user.id}")
    return updated > 0
