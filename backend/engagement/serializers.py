"""
DRF Serializers
===============

Serializers handle:
1. Validation of incoming data (comment bodies, list limits)
2. Shaping service results into the camelCase JSON the site's UI reads

Most outputs are plain dicts built by the query helpers, so these are
Serializer (not ModelSerializer) classes with source= mappings.
"""

from rest_framework import serializers


class ArticleStatsSerializer(serializers.Serializer):
    views = serializers.IntegerField()
    likesCount = serializers.IntegerField(source='likes_count')
    commentsCount = serializers.IntegerField(source='comments_count')


class UserStatsSerializer(serializers.Serializer):
    totalArticles = serializers.IntegerField(source='total_articles')
    publishedArticles = serializers.IntegerField(source='published_articles')
    draftArticles = serializers.IntegerField(source='draft_articles')
    totalViews = serializers.IntegerField(source='total_views')
    totalLikes = serializers.IntegerField(source='total_likes')
    totalComments = serializers.IntegerField(source='total_comments')


class LimitQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=100, required=False)


class IdempotencyKeySerializer(serializers.Serializer):
    """Idempotency-Key header; must fit ViewReceipt.key."""
    key = serializers.CharField(max_length=128, required=False, allow_blank=True, trim_whitespace=True)


class FollowStatusQuerySerializer(serializers.Serializer):
    """?ids=1,2,3 for the batch follow-status check."""
    ids = serializers.CharField()

    def validate_ids(self, value):
        try:
            ids = [int(part) for part in value.split(',') if part.strip()]
        except ValueError:
            raise serializers.ValidationError("ids must be a comma-separated list of integers.")
        if not ids:
            raise serializers.ValidationError("At least one id is required.")
        if len(ids) > 100:
            raise serializers.ValidationError("At most 100 ids per request.")
        return list(dict.fromkeys(ids))



class UserSummarySerializer(serializers.Serializer):
    """Minimal user representation for embedding in other objects."""
    id = serializers.IntegerField()
    username = serializers.CharField()
    displayName = serializers.CharField(source='display_name')


class FollowEdgeSerializer(UserSummarySerializer):
    followedAt = serializers.DateTimeField(source='followed_at')


class RecommendationSerializer(UserSummarySerializer):
    followersCount = serializers.IntegerField(source='followers_count')
    articlesCount = serializers.IntegerField(source='articles_count')


class LikerSerializer(serializers.Serializer):
    userId = serializers.IntegerField(source='user_id')
    username = serializers.CharField()
    displayName = serializers.CharField(source='display_name')
    likedAt = serializers.DateTimeField(source='liked_at')


class CommentCreateSerializer(serializers.Serializer):
    """
    Validates a new comment body. Article comes from the URL; parent
    ownership is checked in services.add_comment.
    """
    content = serializers.CharField(max_length=5000, trim_whitespace=True)
    parent = serializers.IntegerField(min_value=1, required=False, allow_null=True)

    def validate_content(self, value):
        if not value.strip():
            raise serializers.ValidationError("Comment cannot be empty.")
        return value


class CommentTreeSerializer(serializers.Serializer):
    """
    Serializer for the nested comment tree built by
    queries.build_comment_tree(). Replies recurse.
    """
    id = serializers.IntegerField()
    author = UserSummarySerializer(allow_null=True)
    content = serializers.CharField(allow_null=True)
    isDeleted = serializers.BooleanField(source='is_deleted')
    createdAt = serializers.DateTimeField(source='created_at')
    replies = serializers.SerializerMethodField()

    def get_replies(self, obj):
        return CommentTreeSerializer(obj['replies'], many=True).data


class NotificationArticleSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    title = serializers.CharField()
    slug = serializers.CharField()


class NotificationSerializer(serializers.Serializer):
    """Enriched inbox row (see queries.get_enriched_notifications)."""
    id = serializers.IntegerField()
    type = serializers.CharField()
    actor = UserSummarySerializer()
    targetId = serializers.IntegerField(source='target_id')
    article = NotificationArticleSerializer(allow_null=True)
    read = serializers.BooleanField()
    createdAt = serializers.DateTimeField(source='created_at')
