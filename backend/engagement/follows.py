"""
Follow Graph
============

Directed edges follower -> following with two database guarantees:
- unique (follower, following): a pair is followed at most once
- check follower != following: nobody follows themselves

toggle_follow is a single delete-or-insert. Either it applied or it did
not; the returned is_following is the edge state after the call and is
what the client reconciles its optimistic flag to. Last write wins.
"""

import logging
from typing import Iterable, TypedDict

from django.contrib.auth.models import User
from django.db import transaction, IntegrityError
from django.db.models import Count, Q

from .exceptions import SelfFollowError, UserNotFound
from .models import Follow, Notification
from .notifications import create_notification
from .queries import display_name

logger = logging.getLogger(__name__)


class FollowResult:
    def __init__(self, success: bool, is_following: bool):
        self.success = success
        self.is_following = is_following


class FollowCounts(TypedDict):
    followers_count: int
    following_count: int


def check_follow(follower_id: int, target_id: int) -> bool:
    return Follow.objects.filter(follower_id=follower_id, following_id=target_id).exists()


def batch_check_follow(follower_id: int, target_ids: Iterable[int]) -> dict:
    """Follow status for many targets in one query."""
    target_ids = list(target_ids)
    followed = set(
        Follow.objects
        .filter(follower_id=follower_id, following_id__in=target_ids)
        .values_list('following_id', flat=True)
    )
    return {target_id: target_id in followed for target_id in target_ids}


def toggle_follow(follower_id: int, target_id: int) -> FollowResult:
    """
    Follow target if not followed yet, otherwise unfollow.

    Self-follow is rejected before touching the database. A concurrent
    duplicate insert (IntegrityError on the unique edge) means the other
    request already created the edge: we report is_following=True.
    """
    if follower_id == target_id:
        raise SelfFollowError(follower_id)
    if not User.objects.filter(id=target_id, is_active=True).exists():
        raise UserNotFound(target_id)

    deleted_count, _ = Follow.objects.filter(
        follower_id=follower_id,
        following_id=target_id
    ).delete()
    if deleted_count:
        logger.info(f"User {follower_id} unfollowed {target_id}")
        return FollowResult(success=True, is_following=False)

    try:
        with transaction.atomic():
            Follow.objects.create(follower_id=follower_id, following_id=target_id)
            create_notification(
                Notification.Type.FOLLOW,
                actor_id=follower_id,
                target_id=target_id
            )
    except IntegrityError:
        return FollowResult(success=True, is_following=True)

    logger.info(f"User {follower_id} followed {target_id}")
    return FollowResult(success=True, is_following=True)


def get_follow_counts(user_id: int) -> FollowCounts:
    return {
        'followers_count': Follow.objects.filter(following_id=user_id).count(),
        'following_count': Follow.objects.filter(follower_id=user_id).count(),
    }


def _edge_entry(user: User, followed_at) -> dict:
    return {
        'id': user.id,
        'username': user.username,
        'display_name': display_name(user),
        'followed_at': followed_at,
    }


def list_followers(user_id: int, limit: int = 20) -> list[dict]:
    """Users following user_id, newest edge first."""
    edges = (
        Follow.objects
        .filter(following_id=user_id)
        .select_related('follower')
        .order_by('-created_at', '-id')[:limit]
    )
    return [_edge_entry(edge.follower, edge.created_at) for edge in edges]


def list_following(user_id: int, limit: int = 20) -> list[dict]:
    """Users user_id follows, newest edge first."""
    edges = (
        Follow.objects
        .filter(follower_id=user_id)
        .select_related('following')
        .order_by('-created_at', '-id')[:limit]
    )
    return [_edge_entry(edge.following, edge.created_at) for edge in edges]


def recommend(user_id: int, limit: int = 3) -> list[dict]:
    """
    Who to follow.

    Candidates: active users other than the caller that the caller does
    not already follow.
    Ranking: follower count, then published article count, then newest
    account. Single query with two annotations.
    """
    already_following = Follow.objects.filter(follower_id=user_id).values('following_id')

    candidates = (
        User.objects
        .filter(is_active=True)
        .exclude(id=user_id)
        .exclude(id__in=already_following)
        .annotate(
            followers_count=Count('follower_edges', distinct=True),
            articles_count=Count('articles', filter=Q(articles__published=True), distinct=True),
        )
        .order_by('-followers_count', '-articles_count', '-date_joined', '-id')[:limit]
    )

    return [
        {
            'id': user.id,
            'username': user.username,
            'display_name': display_name(user),
            'followers_count': user.followers_count,
            'articles_count': user.articles_count,
        }
        for user in candidates
    ]
