from __future__ import annotations

from dataclasses import asdict

from ninja import Router
from ninja.errors import HttpError
from ninja.pagination import PageNumberPagination, paginate

from accounts.auth import StaffJWTAuth, user_from_request_if_present
from accounts.schemas import StatusOut

from .schemas import PreferencesIn, SubscribeIn, SubscriberOut, SubscriberStatsOut, UnsubscribeIn
from .services import (
    NewsletterError,
    list_subscribers,
    subscribe,
    subscriber_stats,
    unsubscribe,
    update_preferences,
)

router = Router(tags=["newsletter"])
_staff = StaffJWTAuth()


@router.post("/subscribe", response={201: SubscriberOut})
def newsletter_subscribe(request, payload: SubscribeIn):
    try:
        sub = subscribe(
            email=payload.email,
            interests=payload.interests,
            user=user_from_request_if_present(request),
        )
    except NewsletterError as e:
        raise HttpError(400, str(e)) from e
    return 201, sub


@router.post("/unsubscribe", response=StatusOut)
def newsletter_unsubscribe(request, payload: UnsubscribeIn):
    try:
        unsubscribe(email=payload.email)
    except NewsletterError as e:
        raise HttpError(404, str(e)) from e
    return {"status": "ok"}


@router.get("/admin/subscribers", response=list[SubscriberOut], auth=_staff)
@paginate(PageNumberPagination, page_size=50)
def admin_subscribers(request, include_inactive: bool = False):
    return list_subscribers(active_only=not include_inactive)


@router.get("/admin/stats", response=SubscriberStatsOut, auth=_staff)
def admin_stats(request):
    return asdict(subscriber_stats())


@router.patch("/admin/subscribers/{subscriber_id}/preferences", response=SubscriberOut, auth=_staff)
def admin_update_preferences(request, subscriber_id: int, payload: PreferencesIn):
    try:
        return update_preferences(subscriber_id=subscriber_id, preferences=payload.preferences)
    except NewsletterError as e:
        status = 404 if "not found" in str(e) else 400
        raise HttpError(status, str(e)) from e
