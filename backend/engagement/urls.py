"""
Engagement App URL Configuration
"""
from django.urls import path
from .views import (
    ArticleStatsView,
    IncrementViewsView,
    ArticleLikeView,
    ArticleLikersView,
    ArticleCommentsView,
    CommentDetailView,
    FollowView,
    FollowStatusBatchView,
    FollowCountsView,
    FollowersListView,
    FollowingListView,
    UserStatsView,
    RecommendationsView,
    NotificationsView,
    NotificationReadView,
    NotificationReadAllView,
    notification_stream,
)

urlpatterns = [
    # Articles
    path('articles/<int:article_id>/stats/', ArticleStatsView.as_view(), name='article-stats'),
    path('articles/<int:article_id>/increment-views/', IncrementViewsView.as_view(), name='article-increment-views'),
    path('articles/<int:article_id>/like/', ArticleLikeView.as_view(), name='article-like'),
    path('articles/<int:article_id>/likes/', ArticleLikersView.as_view(), name='article-likers'),
    path('articles/<int:article_id>/comments/', ArticleCommentsView.as_view(), name='article-comments'),

    # Comments
    path('comments/<int:comment_id>/', CommentDetailView.as_view(), name='comment-detail'),

    # Follow graph
    path('users/follow-status/', FollowStatusBatchView.as_view(), name='user-follow-status'),
    path('users/<int:user_id>/follow/', FollowView.as_view(), name='user-follow'),
    path('users/<int:user_id>/follow-counts/', FollowCountsView.as_view(), name='user-follow-counts'),
    path('users/<int:user_id>/followers/', FollowersListView.as_view(), name='user-followers'),
    path('users/<int:user_id>/following/', FollowingListView.as_view(), name='user-following'),
    path('users/<int:user_id>/stats/', UserStatsView.as_view(), name='user-stats'),
    path('recommendations/', RecommendationsView.as_view(), name='recommendations'),

    # Notifications
    path('notifications/', NotificationsView.as_view(), name='notifications'),
    path('notifications/read-all/', NotificationReadAllView.as_view(), name='notifications-read-all'),
    path('notifications/stream/', notification_stream, name='notifications-stream'),
    path('notifications/<int:notification_id>/read/', NotificationReadView.as_view(), name='notification-read'),
]
