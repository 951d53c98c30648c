"""
Domain exceptions and the DRF exception handler.

Services raise ValueError subclasses for rejected operations; the handler
below maps them to HTTP status codes so views stay thin.
"""
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from django.db import IntegrityError
import logging

logger = logging.getLogger(__name__)


class EngagementError(ValueError):
    """Base class for rejected engagement operations."""


class ArticleNotFound(EngagementError):
    def __init__(self, article_id):
        super().__init__(f"Article {article_id} does not exist")
        self.article_id = article_id


class UserNotFound(EngagementError):
    def __init__(self, user_id):
        super().__init__(f"User {user_id} does not exist")
        self.user_id = user_id


class SelfFollowError(EngagementError):
    def __init__(self, user_id):
        super().__init__("Users cannot follow themselves")
        self.user_id = user_id


def custom_exception_handler(exc, context):
    """
    Custom exception handler that:
    1. Logs all exceptions
    2. Converts domain and Django exceptions to DRF responses
    3. Provides consistent error format
    """

    response = exception_handler(exc, context)

    if response is not None:
        if not isinstance(response.data, dict) or 'error' not in response.data:
            response.data = {
                'error': str(exc),
                'details': response.data
            }
        return response

    if isinstance(exc, (ArticleNotFound, UserNotFound)):
        return Response(
            {'error': str(exc)},
            status=status.HTTP_404_NOT_FOUND
        )

    if isinstance(exc, IntegrityError):
        logger.warning(f"IntegrityError: {exc}")
        return Response(
            {'error': 'Data integrity error. This may be a duplicate entry.'},
            status=status.HTTP_409_CONFLICT
        )

    if isinstance(exc, ValueError):
        return Response(
            {'error': str(exc)},
            status=status.HTTP_400_BAD_REQUEST
        )

    logger.exception(f"Unhandled exception: {exc}")

    return Response(
        {'error': 'An unexpected error occurred.'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
