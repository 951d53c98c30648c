"""
Data Models for the Inkwell engagement layer
=============================================

Design Philosophy:
------------------
1. Join tables are the source of truth for engagement
   - Like, Follow and Comment rows are what actually happened
   - Article.likes_count is a denormalized copy that is allowed to drift
     and is reconciled on the stats read path (see counters.py)
   - Comment counts are never stored; they are counted live

2. Uniqueness lives in the database
   - (user, article) on Like and (follower, following) on Follow
   - Two racing requests cannot both insert; the loser gets IntegrityError
     and the service layer turns that into a no-op success

3. Article.views is only ever written with an F() expression
   - UPDATE ... SET views = views + 1 is atomic in the database
   - No Python-side read-modify-write, so concurrent page loads never
     lose an increment

4. Notification is a bounded inbox, not an audit log
   - One row per event, pruned per recipient on arrival of new rows

Indexes Strategy:
-----------------
- like.article: counting likes during reconciliation
- follow.following + created_at: follower lists, newest first
- notification.target + created_at: inbox page and retention cutoff
- notification.target + read: mark-all-read
"""

from django.db import models
from django.db.models import F, Q
from django.contrib.auth.models import User
from django.utils import timezone


class Article(models.Model):
    """
    A published piece of writing. Only the engagement fields matter here;
    editing, categories and cover images live elsewhere.
    """
    author = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='articles',
        db_index=True
    )
    title = models.CharField(max_length=300)
    slug = models.SlugField(max_length=320, unique=True)
    published = models.BooleanField(default=True, db_index=True)

    # Monotonic page-view counter. Written only by counters.increment_views.
    views = models.PositiveBigIntegerField(default=0)

    # Denormalized copy of Like.objects.filter(article=self).count().
    # Rewritten by counters.sync_likes_count on every stats read.
    likes_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title[:50]} by {self.author.username}"


class Like(models.Model):
    """
    One row per (user, article). Source of truth for likes_count.
    """
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='likes'
    )
    article = models.ForeignKey(
        Article,
        on_delete=models.CASCADE,
        related_name='likes'
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'article'],
                name='unique_like_per_user_per_article'
            )
        ]
        indexes = [
            models.Index(fields=['article', '-created_at'], name='like_article_created_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} liked {self.article_id}"


class Comment(models.Model):
    """
    Threaded comment (adjacency list via parent).

    Deletion is soft: the row stays so replies keep their parent, but it
    no longer counts towards comments_count and its content is hidden.
    """
    article = models.ForeignKey(
        Article,
        on_delete=models.CASCADE,
        related_name='comments',
        db_index=True
    )
    author = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='replies'
    )
    content = models.TextField()
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['article', 'created_at'], name='comment_article_created_idx'),
            models.Index(fields=['article', 'is_deleted'], name='comment_article_deleted_idx'),
        ]

    def __str__(self):
        return f"Comment by {self.author.username} on {self.article_id}"


class Follow(models.Model):
    """
    Directed edge follower -> following.

    The check constraint backs up the service-level self-follow rejection.
    """
    follower = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='following_edges'
    )
    following = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='follower_edges'
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['follower', 'following'],
                name='unique_follow_edge'
            ),
            models.CheckConstraint(
                condition=~Q(follower=F('following')),
                name='no_self_follow'
            ),
        ]
        indexes = [
            models.Index(fields=['following', '-created_at'], name='follow_following_created_idx'),
            models.Index(fields=['follower', '-created_at'], name='follow_follower_created_idx'),
        ]

    def __str__(self):
        return f"{self.follower.username} follows {self.following.username}"


class Notification(models.Model):
    """
    A single follow/like/comment event addressed to one recipient.

    No aggregation: three likes produce three rows.
    """

    class Type(models.TextChoices):
        FOLLOW = 'follow', 'Follow'
        LIKE = 'like', 'Like'
        COMMENT = 'comment', 'Comment'

    type = models.CharField(max_length=10, choices=Type.choices)

    # Who caused it
    actor = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='notifications_sent'
    )
    # Who receives it
    target = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    article = models.ForeignKey(
        Article,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='+'
    )
    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['target', '-created_at'], name='notif_target_created_idx'),
            models.Index(fields=['target', 'read'], name='notif_target_read_idx'),
        ]

    def __str__(self):
        return f"{self.type} {self.actor_id} -> {self.target_id}"


class ViewReceipt(models.Model):
    """
    Idempotency record for a page-load view increment.

    The client sends one random key per mount; a replay of the same key
    returns the first result instead of counting again.
    """
    key = models.CharField(max_length=128, unique=True)
    article = models.ForeignKey(
        Article,
        on_delete=models.CASCADE,
        related_name='+'
    )
    views_after = models.PositiveBigIntegerField()
    created_at = models.DateTimeField(default=timezone.now)

    def __str__(self):
        return f"{self.key} -> {self.article_id}"
