"""
Django Admin Configuration for Engagement Models
"""
from django.contrib import admin
from .models import Article, Like, Comment, Follow, Notification, ViewReceipt


@admin.register(Article)
class ArticleAdmin(admin.ModelAdmin):
    list_display = ['title', 'author', 'published', 'views', 'likes_count', 'created_at']
    list_filter = ['published', 'created_at']
    search_fields = ['title', 'slug', 'author__username']
    # Counters are owned by the engagement layer, never edited by hand
    readonly_fields = ['views', 'likes_count', 'created_at']


@admin.register(Like)
class LikeAdmin(admin.ModelAdmin):
    list_display = ['user', 'article', 'created_at']
    list_filter = ['created_at']
    search_fields = ['user__username', 'article__title']


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ['id', 'article', 'author', 'parent', 'is_deleted', 'created_at']
    list_filter = ['is_deleted', 'created_at']
    search_fields = ['content', 'author__username']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(Follow)
class FollowAdmin(admin.ModelAdmin):
    list_display = ['follower', 'following', 'created_at']
    search_fields = ['follower__username', 'following__username']


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['target', 'type', 'actor', 'article', 'read', 'created_at']
    list_filter = ['type', 'read', 'created_at']
    search_fields = ['target__username', 'actor__username']
    readonly_fields = ['type', 'actor', 'target', 'article', 'created_at']

    def has_add_permission(self, request):
        # Notifications are only created by the engagement write path
        return False


@admin.register(ViewReceipt)
class ViewReceiptAdmin(admin.ModelAdmin):
    list_display = ['key', 'article', 'views_after', 'created_at']
    search_fields = ['key']
    readonly_fields = ['key', 'article', 'views_after', 'created_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
