from __future__ import annotations

from dataclasses import asdict

from django.contrib.auth import get_user_model
from ninja import Router
from ninja.errors import HttpError

from accounts.auth import JWTAuth, StaffJWTAuth

from .schemas import BanIn, BanOut, CheckIn, CheckOut, ReportIn, ReportOut, ResolveIn, StatsOut
from .services import (
    ModerationError,
    auto_moderate,
    ban_user,
    moderation_stats,
    pending_reports,
    report_content,
    resolve_report,
)

router = Router(tags=["moderation"])
_auth = JWTAuth()
_staff = StaffJWTAuth()


@router.post("/reports", response={201: ReportOut}, auth=_auth)
def create_report(request, payload: ReportIn):
    try:
        report = report_content(
            user=request.auth,
            content_type=payload.content_type,
            content_id=payload.content_id,
            reason=payload.reason,
            description=payload.description,
        )
    except ModerationError as e:
        raise HttpError(400, str(e)) from e
    return 201, report


@router.post("/check", response=CheckOut, auth=_auth)
def check_content(request, payload: CheckIn):
    return asdict(auto_moderate(text=payload.text, content_type=payload.content_type, content_id=payload.content_id))


@router.get("/admin/reports", response=list[ReportOut], auth=_staff)
def admin_pending_reports(request, limit: int = 100):
    limit = max(1, min(int(limit or 100), 500))
    return list(pending_reports()[:limit])


@router.post("/admin/reports/{report_id}/resolve", response=ReportOut, auth=_staff)
def admin_resolve_report(request, report_id: int, payload: ResolveIn):
    try:
        return resolve_report(
            report_id=report_id,
            action=(payload.action or "").strip().lower(),
            moderator=request.auth,
            notes=payload.notes,
        )
    except ModerationError as e:
        status = 404 if "not found" in str(e) else 400
        raise HttpError(status, str(e)) from e


@router.get("/admin/stats", response=StatsOut, auth=_staff)
def admin_stats(request):
    return asdict(moderation_stats())


@router.post("/admin/bans", response={201: BanOut}, auth=_staff)
def admin_ban_user(request, payload: BanIn):
    user = get_user_model().objects.filter(id=payload.user_id).first()
    if not user:
        raise HttpError(404, "User not found")
    try:
        ban = ban_user(user=user, banned_by=request.auth, reason=payload.reason, days=payload.days)
    except ModerationError as e:
        raise HttpError(400, str(e)) from e
    return 201, ban
