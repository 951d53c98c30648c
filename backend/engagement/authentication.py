"""
Identity from the upstream provider.

Session handling lives in the external identity provider; by the time a
request reaches us it carries the authenticated user's id in X-User-Id.
"""
from typing import Optional

from django.contrib.auth.models import User
from rest_framework import authentication, exceptions


def get_header_user_id(request) -> Optional[int]:
    """
    Read the caller's id from the X-User-Id header.
    Works for both DRF requests and plain Django (async) requests.
    """
    raw = request.headers.get("X-User-Id")
    if raw is None:
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def resolve_header_user(request) -> Optional[User]:
    user_id = get_header_user_id(request)
    if user_id is None:
        return None
    return User.objects.filter(id=user_id, is_active=True).first()


class HeaderUserAuthentication(authentication.BaseAuthentication):
    """
    DRF authentication backed by X-User-Id.

    Missing header → anonymous. Header naming an unknown or inactive user
    → 401 rather than silently acting as anonymous.
    """

    def authenticate(self, request):
        if get_header_user_id(request) is None:
            if request.headers.get("X-User-Id") is not None:
                raise exceptions.AuthenticationFailed("Invalid X-User-Id header.")
            return None

        user = resolve_header_user(request)
        if user is None:
            raise exceptions.AuthenticationFailed("Unknown user.")
        return (user, None)

    def authenticate_header(self, request):
        return "X-User-Id"
