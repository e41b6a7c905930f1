from __future__ import annotations

import jwt
from django.conf import settings
from django.contrib.auth import get_user_model
from ninja.security import HttpBearer

from .jwt_utils import decode_token

User = get_user_model()


class JWTAuth(HttpBearer):
    """Access token from the HttpOnly cookie, or an `Authorization: Bearer` header."""

    def __call__(self, request):
        cookie_name = getattr(settings, "AUTH_COOKIE_ACCESS_NAME", "access_token")
        token = (request.COOKIES.get(cookie_name) or "").strip()
        if token:
            return self.authenticate(request, token)
        return super().__call__(request)

    def authenticate(self, request, token: str):
        try:
            payload = decode_token(token)
        except jwt.InvalidTokenError:
            return None

        if payload.get("type") != "access":
            return None

        user_id = payload.get("sub")
        if not user_id:
            return None

        try:
            return User.objects.get(id=int(user_id), is_active=True)
        except (User.DoesNotExist, ValueError):
            return None


class StaffJWTAuth(JWTAuth):
    def authenticate(self, request, token: str):
        user = super().authenticate(request, token)
        if user is None or not user.is_staff:
            return None
        return user


def user_from_request_if_present(request):
    """Resolve the user for endpoints that also serve guests (cart, chat, newsletter)."""
    user = getattr(request, "user", None)
    if user is not None and getattr(user, "is_authenticated", False):
        return user

    cookie_name = getattr(settings, "AUTH_COOKIE_ACCESS_NAME", "access_token")
    token = (request.COOKIES.get(cookie_name) or "").strip()
    if not token:
        header = request.headers.get("Authorization", "")
        if header.lower().startswith("bearer "):
            token = header[7:].strip()
    if not token:
        return None
    return JWTAuth().authenticate(request, token)
