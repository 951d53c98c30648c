"""
Read-side Query Helpers
=======================

Optimized query functions that avoid N+1 problems for the lists the
engagement UI renders: comment threads, liker lists and the enriched
notification inbox.

OUR APPROACH:
-------------
1. Fetch everything for one screen in ONE query
2. Use select_related for the joined display fields (LEFT JOIN)
3. Shape the result in Python
"""

from typing import Optional

from django.contrib.auth.models import User

from .models import Comment, Like, Notification


def display_name(user: User) -> str:
    return user.get_full_name() or user.username


def get_comments_for_article(article_id: int) -> list[Comment]:
    """
    Fetch ALL comments for an article in a SINGLE query, oldest first.

    Soft-deleted rows are included so their replies keep a parent; the
    tree builder blanks their content.
    """
    return list(
        Comment.objects
        .filter(article_id=article_id)
        .select_related('author')
        .order_by('created_at', 'id')
    )


def build_comment_tree(flat_comments: list[Comment]) -> list[dict]:
    """
    Build nested tree structure from flat list.

    Algorithm: O(n) two passes with a hash map.

    A deleted comment with no visible descendants is dropped entirely;
    one with replies stays as a placeholder (content None).
    """
    nodes = {}
    for comment in flat_comments:
        nodes[comment.id] = {
            'id': comment.id,
            'author': None if comment.is_deleted else {
                'id': comment.author_id,
                'username': comment.author.username,
                'display_name': display_name(comment.author),
            },
            'content': None if comment.is_deleted else comment.content,
            'is_deleted': comment.is_deleted,
            'created_at': comment.created_at,
            'replies': [],
        }

    root_nodes = []
    for comment in flat_comments:
        node = nodes[comment.id]
        parent_node = nodes.get(comment.parent_id) if comment.parent_id else None
        if parent_node is not None:
            parent_node['replies'].append(node)
        else:
            # Top-level, or orphaned by a hard delete
            root_nodes.append(node)

    return _drop_empty_deleted(root_nodes)


def _drop_empty_deleted(nodes: list[dict]) -> list[dict]:
    kept = []
    for node in nodes:
        node['replies'] = _drop_empty_deleted(node['replies'])
        if node['is_deleted'] and not node['replies']:
            continue
        kept.append(node)
    return kept


def get_article_likers(article_id: int, limit: int = 10) -> list[dict]:
    """Most recent likers of an article with their display names."""
    likes = (
        Like.objects
        .filter(article_id=article_id)
        .select_related('user')
        .order_by('-created_at', '-id')[:limit]
    )
    return [
        {
            'user_id': like.user_id,
            'username': like.user.username,
            'display_name': display_name(like.user),
            'liked_at': like.created_at,
        }
        for like in likes
    ]


def get_enriched_notifications(target_id: int, limit: int = 20) -> list[dict]:
    """
    The recipient's inbox, newest first, with actor profile and article
    title/slug joined in. Query: 1.
    """
    rows = (
        Notification.objects
        .filter(target_id=target_id)
        .select_related('actor', 'article')
        .order_by('-created_at', '-id')[:limit]
    )
    return [_enrich(notification) for notification in rows]


def _enrich(notification: Notification) -> dict:
    article: Optional[dict] = None
    if notification.article_id is not None:
        article = {
            'id': notification.article_id,
            'title': notification.article.title,
            'slug': notification.article.slug,
        }
    return {
        'id': notification.id,
        'type': notification.type,
        'actor': {
            'id': notification.actor_id,
            'username': notification.actor.username,
            'display_name': display_name(notification.actor),
        },
        'target_id': notification.target_id,
        'article': article,
        'read': notification.read,
        'created_at': notification.created_at,
    }


def get_notifications_after(target_id: int, after_id: int, limit: int = 200) -> list[Notification]:
    """Backfill for a resuming stream: rows newer than the last seen id."""
    return list(
        Notification.objects
        .filter(target_id=target_id, id__gt=after_id)
        .order_by('id')[:limit]
    )
