"""
DRF Views
=========

API endpoints for the engagement layer.

AUTHENTICATION NOTE:
--------------------
Identity is resolved from X-User-Id by HeaderUserAuthentication.
Reads that only need "who is asking" use AllowAny and check
request.user.is_authenticated; mutations use IsAuthenticated.

ERROR NOTE:
-----------
Services raise ArticleNotFound / UserNotFound / SelfFollowError (all
ValueError subclasses). The project exception handler turns them into
404 / 400, so the views below do not wrap service calls in try/except.
"""

import asyncio
import logging

from asgiref.sync import sync_to_async
from django.conf import settings
from django.contrib.auth.models import User
from django.http import JsonResponse, StreamingHttpResponse
from django.shortcuts import get_object_or_404
from rest_framework import status, permissions
from rest_framework.response import Response
from rest_framework.views import APIView

from . import counters, follows, notifications, services
from .authentication import resolve_header_user
from .models import Article
from .queries import (
    build_comment_tree,
    get_article_likers,
    get_comments_for_article,
    get_notifications_after,
)
from .serializers import (
    ArticleStatsSerializer,
    CommentCreateSerializer,
    CommentTreeSerializer,
    FollowEdgeSerializer,
    FollowStatusQuerySerializer,
    IdempotencyKeySerializer,
    LikerSerializer,
    LimitQuerySerializer,
    NotificationSerializer,
    RecommendationSerializer,
    UserStatsSerializer,
)
from .sse import broker, format_sse

logger = logging.getLogger(__name__)


def _limit(request, default: int) -> int:
    query = LimitQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)
    return query.validated_data.get('limit', default)


class ArticleStatsView(APIView):
    """
    GET /api/articles/<id>/stats/

    Reconciles likes_count from the Like table, then returns
    { views, likesCount, commentsCount }.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, article_id):
        stats = counters.get_article_stats(article_id)
        return Response(ArticleStatsSerializer(stats).data)


class IncrementViewsView(APIView):
    """
    POST /api/articles/<id>/increment-views/

    Headers:
        Idempotency-Key: optional, one per page load (at most 128 chars, 400 otherwise)

    Returns:
    {
        "success": true,
        "views": 11,
        "incrementAmount": 1   // 0 for a replayed key; anything else is a bug
    }
    """
    permission_classes = [permissions.AllowAny]

    def post(self, request, article_id):
        header = IdempotencyKeySerializer(data={'key': request.headers.get('Idempotency-Key', '')})
        header.is_valid(raise_exception=True)
        key = header.validated_data.get('key') or None
        result = counters.increment_views(article_id, idempotency_key=key)
        return Response({
            'success': True,
            'views': result.views,
            'incrementAmount': result.increment_amount,
        })


class ArticleLikeView(APIView):
    """
    GET  /api/articles/<id>/like/  → { isLiked }
    POST /api/articles/<id>/like/  → toggle, { success, isLiked, action }
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, article_id):
        return Response({'isLiked': services.check_like(request.user.id, article_id)})

    def post(self, request, article_id):
        result = services.toggle_like(request.user, article_id)
        return Response({
            'success': result.success,
            'isLiked': result.is_liked,
            'action': result.action,
        })


class ArticleLikersView(APIView):
    """
    GET /api/articles/<id>/likes/?limit=10
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, article_id):
        get_object_or_404(Article, id=article_id)
        likers = get_article_likers(article_id, limit=_limit(request, 10))
        return Response({'items': LikerSerializer(likers, many=True).data})


class ArticleCommentsView(APIView):
    """
    GET  /api/articles/<id>/comments/  → nested thread + live count
    POST /api/articles/<id>/comments/  → create, notifies the author

    Body:
    {
        "content": "Comment text",
        "parent": 123  // optional, for replies
    }
    """

    def get_permissions(self):
        if self.request.method == 'POST':
            return [permissions.IsAuthenticated()]
        return [permissions.AllowAny()]

    def get(self, request, article_id):
        get_object_or_404(Article, id=article_id)
        tree = build_comment_tree(get_comments_for_article(article_id))
        return Response({
            'comments': CommentTreeSerializer(tree, many=True).data,
            'commentsCount': counters.comment_count(article_id),
        })

    def post(self, request, article_id):
        serializer = CommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        comment = services.add_comment(
            request.user,
            article_id,
            serializer.validated_data['content'],
            parent_id=serializer.validated_data.get('parent'),
        )
        return Response(
            {
                'id': comment.id,
                'content': comment.content,
                'parent': comment.parent_id,
                'createdAt': comment.created_at,
            },
            status=status.HTTP_201_CREATED
        )


class CommentDetailView(APIView):
    """
    DELETE /api/comments/<id>/  → soft delete, own comments only
    """
    permission_classes = [permissions.IsAuthenticated]

    def delete(self, request, comment_id):
        if not services.delete_comment(request.user, comment_id):
            return Response(
                {'error': 'Comment not found'},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response(status=status.HTTP_204_NO_CONTENT)


class FollowView(APIView):
    """
    GET  /api/users/<id>/follow/  → { isFollowing }
    POST /api/users/<id>/follow/  → toggle, { success, isFollowing }

    Self-follow → 400 (the UI never offers it; this is the backstop).
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, user_id):
        return Response({'isFollowing': follows.check_follow(request.user.id, user_id)})

    def post(self, request, user_id):
        result = follows.toggle_follow(request.user.id, user_id)
        return Response({
            'success': result.success,
            'isFollowing': result.is_following,
        })


class FollowStatusBatchView(APIView):
    """
    GET /api/users/follow-status/?ids=2,3,4

    Follow status of the caller towards many users in one query, for
    lists that render a follow button per row.

    Returns:
    {
        "statuses": {"2": true, "3": false, "4": false}
    }
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        query = FollowStatusQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        statuses = follows.batch_check_follow(request.user.id, query.validated_data['ids'])
        return Response({'statuses': {str(target_id): value for target_id, value in statuses.items()}})


class FollowCountsView(APIView):

    """
    GET /api/users/<id>/follow-counts/
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, user_id):
        get_object_or_404(User, id=user_id)
        counts = follows.get_follow_counts(user_id)
        return Response({
            'followersCount': counts['followers_count'],
            'followingCount': counts['following_count'],
        })


class FollowersListView(APIView):
    """
    GET /api/users/<id>/followers/?limit=20
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, user_id):
        get_object_or_404(User, id=user_id)
        edges = follows.list_followers(user_id, limit=_limit(request, 20))
        return Response({'items': FollowEdgeSerializer(edges, many=True).data})


class FollowingListView(APIView):
    """
    GET /api/users/<id>/following/?limit=20
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, user_id):
        get_object_or_404(User, id=user_id)
        edges = follows.list_following(user_id, limit=_limit(request, 20))
        return Response({'items': FollowEdgeSerializer(edges, many=True).data})


class UserStatsView(APIView):
    """
    GET /api/users/<id>/stats/

    Author dashboard totals over published articles.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, user_id):
        get_object_or_404(User, id=user_id)
        return Response(UserStatsSerializer(counters.get_user_stats(user_id)).data)


class RecommendationsView(APIView):
    """
    GET /api/recommendations/?limit=3

    Users the caller does not follow yet, most followed first.
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        users = follows.recommend(request.user.id, limit=_limit(request, 3))
        return Response({'items': RecommendationSerializer(users, many=True).data})


class NotificationsView(APIView):
    """
    GET /api/notifications/?limit=20

    Returns:
    {
        "items": [enriched notification...],
        "unreadCount": 3
    }
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        default = settings.ENGAGEMENT['NOTIFICATION_PAGE_SIZE']
        items = notifications.list_notifications(request.user.id, limit=_limit(request, default))
        return Response({
            'items': NotificationSerializer(items, many=True).data,
            'unreadCount': notifications.unread_count(request.user.id),
        })


class NotificationReadView(APIView):
    """
    POST /api/notifications/<id>/read/
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, notification_id):
        if not notifications.mark_read(request.user.id, notification_id):
            return Response(
                {'error': 'Notification not found'},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response({'success': True})


class NotificationReadAllView(APIView):
    """
    POST /api/notifications/read-all/  → { success, updated }
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        updated = notifications.mark_all_read(request.user.id)
        return Response({'success': True, 'updated': updated})


def _last_event_id(request) -> int:
    raw = request.headers.get('Last-Event-ID')
    try:
        value = int(raw) if raw else 0
    except (TypeError, ValueError):
        return 0
    return max(value, 0)


async def notification_stream(request):
    """
    GET /api/notifications/stream/

    Server-Sent Events stream of the caller's new notifications.
    Supports resume via Last-Event-ID header (notification id): rows
    created while the client was away are replayed before live events,
    so delivery is at-least-once across reconnects.

    Plain async Django view; DRF's APIView is sync-only.
    """
    if request.method != 'GET':
        return JsonResponse({'error': 'Method not allowed.'}, status=405)

    user = await sync_to_async(resolve_header_user)(request)
    if user is None:
        return JsonResponse({'error': 'Missing or invalid X-User-Id header.'}, status=401)

    config = settings.ENGAGEMENT
    last_event_id = _last_event_id(request)

    # Subscribe before the backfill query so nothing slips between them.
    sub = broker.subscribe(user.id, max_queue_size=config['STREAM_QUEUE_SIZE'])

    async def stream():
        try:
            yield "retry: 3000\n\n"

            if last_event_id > 0:
                rows = await sync_to_async(get_notifications_after)(
                    user.id, last_event_id, config['STREAM_BACKFILL_LIMIT']
                )
                for row in rows:
                    yield format_sse(data=notifications.serialize_raw(row), event_id=row.id)

            while True:
                try:
                    msg = await asyncio.wait_for(
                        sub.queue.get(),
                        timeout=config['STREAM_KEEPALIVE_SECONDS']
                    )
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield format_sse(data=msg, event_id=msg.get('id'))
        finally:
            broker.unsubscribe(sub)
            logger.debug(f"Notification stream closed for user {user.id}")

    resp = StreamingHttpResponse(stream(), content_type="text/event-stream")
    resp["Cache-Control"] = "no-cache"
    resp["X-Accel-Buffering"] = "no"
    return resp
