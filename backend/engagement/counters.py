"""
Article Counters: views, likes_count, comments_count
=====================================================

Three counters, three strategies:

views
    Written with a single UPDATE ... SET views = views + 1 (F() expression).
    The database applies the increment atomically, so N concurrent page
    loads add exactly N. We never compute "current + 1" in Python.

likes_count
    Denormalized on Article for cheap list rendering. The like/unlike path
    does NOT touch it. Instead, every stats read recomputes
    COUNT(*) FROM like WHERE article_id = X and overwrites the field.
    Any drift (a write path that forgot the counter, a manual delete in the
    admin) is healed the next time somebody looks at the article.

comments_count
    Never stored. Always COUNT(*) of non-deleted comments at read time,
    so there is nothing to drift.

Trade-off: two extra COUNT queries per stats read, both served by the
(article, ...) indexes. Cheap compared to a page render and removes the
need for cross-surface transactional counter maintenance.
"""

import logging
from typing import Optional, TypedDict

from django.db import transaction, IntegrityError, DatabaseError
from django.db.models import F, Sum, Count, Q

from .exceptions import ArticleNotFound, EngagementError
from .models import Article, Like, Comment, ViewReceipt

logger = logging.getLogger(__name__)

IDEMPOTENCY_KEY_MAX_LENGTH = ViewReceipt._meta.get_field('key').max_length


class ViewIncrement:
    """Result of a view increment."""
    def __init__(
        self,
        previous_views: int,
        views: int,
        replayed: bool = False
    ):
        self.previous_views = previous_views
        self.views = views
        self.replayed = replayed

    @property
    def increment_amount(self) -> int:
        # A replayed key counted nothing this time around
        if self.replayed:
            return 0
        return self.views - self.previous_views


class ArticleStats(TypedDict):
    views: int
    likes_count: int
    comments_count: int


def increment_views(article_id: int, idempotency_key: Optional[str] = None) -> ViewIncrement:
    """
    Add exactly one view to an article.

    OPERATION:
    1. (optional) Claim the idempotency key; a replay returns the first result
    2. Lock the (published) article row and read the current value
    3. UPDATE views = views + 1
    4. Read back the new total

    ATOMICITY:
    Everything runs in one transaction. If the article does not exist or is
    unpublished the transaction rolls back and nothing (not even the
    receipt) is committed.

    The row lock in step 2 is only there so previous_views is exact; the
    increment itself would be race-free without it.
    """
    if idempotency_key and len(idempotency_key) > IDEMPOTENCY_KEY_MAX_LENGTH:
        raise EngagementError(
            f"Idempotency key longer than {IDEMPOTENCY_KEY_MAX_LENGTH} characters"
        )

    with transaction.atomic():
        receipt = None
        if idempotency_key:
            try:
                # Savepoint: a duplicate key must not poison the outer transaction
                with transaction.atomic():
                    receipt = ViewReceipt.objects.create(
                        key=idempotency_key,
                        article_id=article_id,
                        views_after=0
                    )
            except IntegrityError:
                existing = ViewReceipt.objects.select_for_update().get(key=idempotency_key)
                if existing.article_id != article_id:
                    raise EngagementError("Idempotency key was issued for a different article")
                logger.info(f"View increment replayed for article {article_id} (key={idempotency_key})")
                return ViewIncrement(
                    previous_views=existing.views_after,
                    views=existing.views_after,
                    replayed=True
                )

        try:
            previous_views = (
                Article.objects
                .select_for_update()
                .values_list('views', flat=True)
                .get(id=article_id, published=True)
            )
        except Article.DoesNotExist:
            raise ArticleNotFound(article_id)

        Article.objects.filter(id=article_id).update(views=F('views') + 1)
        views = Article.objects.values_list('views', flat=True).get(id=article_id)

        if receipt is not None:
            receipt.views_after = views
            receipt.save(update_fields=['views_after'])

    result = ViewIncrement(previous_views=previous_views, views=views)
    if result.increment_amount != 1:
        logger.warning(
            f"Unexpected increment amount for article {article_id}: "
            f"{previous_views} -> {views} (+{result.increment_amount})"
        )
    else:
        logger.info(f"Article {article_id} views {previous_views} -> {views}")
    return result


def sync_likes_count(article_id: int) -> int:
    """
    Recompute likes_count from the Like table and overwrite the field.

    Returns the fresh count. The UPDATE only touches the row when the stored
    value disagrees, which doubles as drift detection for the log.
    """
    fresh = Like.objects.filter(article_id=article_id).count()
    drifted = (
        Article.objects
        .filter(id=article_id)
        .exclude(likes_count=fresh)
        .update(likes_count=fresh)
    )
    if drifted:
        logger.warning(f"likes_count drift corrected for article {article_id}: now {fresh}")
    return fresh


def comment_count(article_id: int) -> int:
    """Live count of visible comments. Never cached, never stored."""
    return Comment.objects.filter(article_id=article_id, is_deleted=False).count()


def get_article_stats(article_id: int) -> ArticleStats:
    """
    Stats read path: reconcile likes_count, count comments live.

    If reconciliation fails we log and serve the last stored likes_count;
    a slightly stale number beats an error on the article page.
    """
    stored = Article.objects.filter(id=article_id).values('views', 'likes_count').first()
    if stored is None:
        raise ArticleNotFound(article_id)

    try:
        likes_count = sync_likes_count(article_id)
    except DatabaseError:
        logger.exception(f"Failed to reconcile likes_count for article {article_id}")
        likes_count = stored['likes_count']

    return {
        'views': stored['views'],
        'likes_count': likes_count,
        'comments_count': comment_count(article_id),
    }


def get_user_stats(user_id: int) -> dict:
    """
    Author dashboard totals.

    Likes and comments are counted from their source tables rather than
    summed from the denormalized field, for the same reason as above.
    """
    articles = Article.objects.filter(author_id=user_id)
    totals = articles.aggregate(
        total_articles=Count('id'),
        published_articles=Count('id', filter=Q(published=True)),
        total_views=Sum('views', filter=Q(published=True)),
    )
    total_likes = Like.objects.filter(
        article__author_id=user_id,
        article__published=True
    ).count()
    total_comments = Comment.objects.filter(
        article__author_id=user_id,
        article__published=True,
        is_deleted=False
    ).count()

    return {
        'total_articles': totals['total_articles'] or 0,
        'published_articles': totals['published_articles'] or 0,
        'draft_articles': (totals['total_articles'] or 0) - (totals['published_articles'] or 0),
        'total_views': totals['total_views'] or 0,
        'total_likes': total_likes,
        'total_comments': total_comments,
    }
