"""
Inkwell URL Configuration
"""
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse


def api_root(request):
    """Root endpoint with API information."""
    return JsonResponse({
        'message': 'Inkwell Engagement API',
        'version': '1.0',
        'endpoints': {
            'article_stats': '/api/articles/<id>/stats/',
            'increment_views': '/api/articles/<id>/increment-views/',
            'like': '/api/articles/<id>/like/',
            'comments': '/api/articles/<id>/comments/',
            'follow': '/api/users/<id>/follow/',
            'recommendations': '/api/recommendations/',
            'notifications': '/api/notifications/',
            'notification_stream': '/api/notifications/stream/',
        },
        'admin': '/admin/',
    })


urlpatterns = [
    path('', api_root, name='api-root'),
    path('admin/', admin.site.urls),
    path('api/', include('engagement.urls')),
]
