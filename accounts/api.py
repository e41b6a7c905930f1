from __future__ import annotations

import logging

import jwt
from django.conf import settings
from django.contrib.auth import authenticate, get_user_model
from django.db import IntegrityError, transaction
from django.http import JsonResponse
from ninja import Router
from ninja.errors import HttpError

from .auth import JWTAuth
from .jwt_utils import decode_token, issue_access_token, issue_refresh_token
from .models import normalize_phone
from .schemas import LoginIn, MeOut, MeUpdateIn, RefreshIn, RegisterIn, StatusOut

logger = logging.getLogger(__name__)

router = Router(tags=["auth"])
User = get_user_model()
auth = JWTAuth()


def _cookie_samesite() -> str:
    v = (getattr(settings, "AUTH_COOKIE_SAMESITE", "lax") or "lax").lower()
    if v == "strict":
        return "Strict"
    if v == "none":
        return "None"
    return "Lax"


def _cookie_secure(request) -> bool:
    explicit = getattr(settings, "AUTH_COOKIE_SECURE", None)
    if explicit is True or explicit is False:
        return bool(explicit)
    return bool(request.is_secure())


def _set_auth_cookies(request, response: JsonResponse, *, access: str, refresh: str | None):
    access_name = getattr(settings, "AUTH_COOKIE_ACCESS_NAME", "access_token")
    refresh_name = getattr(settings, "AUTH_COOKIE_REFRESH_NAME", "refresh_token")

    cookie_kwargs = {
        "httponly": True,
        "secure": _cookie_secure(request),
        "samesite": _cookie_samesite(),
        "path": "/",
    }
    response.set_cookie(access_name, access, **cookie_kwargs)
    if refresh is not None:
        response.set_cookie(refresh_name, refresh, **cookie_kwargs)


def _clear_auth_cookies(response: JsonResponse):
    response.delete_cookie(getattr(settings, "AUTH_COOKIE_ACCESS_NAME", "access_token"), path="/")
    response.delete_cookie(getattr(settings, "AUTH_COOKIE_REFRESH_NAME", "refresh_token"), path="/")


def _login_response(request, user) -> JsonResponse:
    resp = JsonResponse({"status": "ok"})
    _set_auth_cookies(
        request,
        resp,
        access=issue_access_token(user_id=user.id),
        refresh=issue_refresh_token(user_id=user.id),
    )
    return resp


def _serialize_me(user) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone_number": user.phone_number,
        "is_staff": bool(user.is_staff),
    }


@router.post("/register", response=StatusOut)
def register(request, payload: RegisterIn):
    email = (payload.email or "").strip().lower()
    if not email or not payload.password:
        raise HttpError(400, "Email and password are required")

    try:
        with transaction.atomic():
            user = User.objects.create_user(
                email=email,
                password=payload.password,
                first_name=(payload.first_name or "").strip(),
                last_name=(payload.last_name or "").strip(),
                phone_number=normalize_phone(payload.phone_number),
            )
    except IntegrityError:
        raise HttpError(400, "User with this email already exists")

    from referrals.services import ReferralError, ensure_profile, register_referral

    ensure_profile(user=user)
    code = (payload.referral_code or "").strip()
    if code:
        try:
            register_referral(referred_user=user, code=code)
        except ReferralError as e:
            # The account is already created; a bad code must not block sign-up.
            logger.info("Referral code rejected on register", extra={"user_id": user.id, "reason": str(e)})

    return _login_response(request, user)


@router.post("/login", response=StatusOut)
def login(request, payload: LoginIn):
    user = authenticate(request, username=(payload.email or "").strip().lower(), password=payload.password)
    if user is None:
        raise HttpError(401, "Invalid credentials")
    return _login_response(request, user)


@router.post("/refresh", response=StatusOut)
def refresh(request, payload: RefreshIn | None = None):
    refresh_token = ((payload.refresh if payload else None) or "").strip()
    if not refresh_token:
        refresh_name = getattr(settings, "AUTH_COOKIE_REFRESH_NAME", "refresh_token")
        refresh_token = (request.COOKIES.get(refresh_name) or "").strip()

    if not refresh_token:
        raise HttpError(401, "Invalid refresh token")

    try:
        data = decode_token(refresh_token)
    except jwt.InvalidTokenError:
        raise HttpError(401, "Invalid refresh token")

    if data.get("type") != "refresh" or not data.get("sub"):
        raise HttpError(401, "Invalid refresh token")

    resp = JsonResponse({"status": "ok"})
    _set_auth_cookies(request, resp, access=issue_access_token(user_id=int(data["sub"])), refresh=None)
    return resp


@router.post("/logout", response=StatusOut)
def logout(request):
    resp = JsonResponse({"status": "ok"})
    _clear_auth_cookies(resp)
    return resp


@router.get("/me", response=MeOut, auth=auth)
def me(request):
    return _serialize_me(request.auth)


@router.patch("/me", response=MeOut, auth=auth)
def update_me(request, payload: MeUpdateIn):
    user = request.auth

    update_fields: list[str] = []
    if payload.first_name is not None:
        user.first_name = payload.first_name.strip()
        update_fields.append("first_name")
    if payload.last_name is not None:
        user.last_name = payload.last_name.strip()
        update_fields.append("last_name")
    if payload.phone_number is not None:
        user.phone_number = normalize_phone(payload.phone_number)
        update_fields.append("phone_number")

    if update_fields:
        user.save(update_fields=update_fields)

    return _serialize_me(user)
