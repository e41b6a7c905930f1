from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from django.db import transaction
from django.utils import timezone

from catalog.richtext import plain_text

from .models import ContentReport, UserBan

logger = logging.getLogger(__name__)

HIGH_PRIORITY_REASONS = frozenset({"offensive", "hate_speech"})

BANNED_WORDS: tuple[str, ...] = (
    "spam",
    "scam",
    "fraud",
    "fake",
    "illegal",
    "odio",
    "racista",
    "discriminación",
    "insulto",
    "violencia",
    "amenaza",
    "droga",
    "arma",
)

# Whole words only: "arma" must not match "alarma".
_BANNED_RE = re.compile(r"\b(" + "|".join(re.escape(w) for w in BANNED_WORDS) + r")\b", re.IGNORECASE)


class ModerationError(ValueError):
    pass


@dataclass(frozen=True)
class AutoModerationResult:
    flagged: bool
    reason: str = ""
    banned_words: list[str] = field(default_factory=list)
    report_id: int | None = None


@dataclass(frozen=True)
class ModerationStats:
    total_reports: int
    pending_reports: int
    monthly_resolved: int
    resolution_rate: Decimal


def priority_for(reason: str) -> str:
    if reason in HIGH_PRIORITY_REASONS:
        return ContentReport.Priority.HIGH
    return ContentReport.Priority.MEDIUM


def report_content(*, user, content_type: str, content_id: str, reason: str, description: str = "") -> ContentReport:
    content_type = (content_type or "").strip().lower()
    reason = (reason or "").strip().lower()
    if not content_type or not reason:
        raise ModerationError("content_type and reason are required")

    reporter_name = (
        f"{getattr(user, 'first_name', '')}".strip() or (getattr(user, "email", "") or "").split("@")[0]
    )
    report = ContentReport.objects.create(
        content_type=content_type[:40],
        content_id=str(content_id or "")[:64],
        reporter=user,
        reporter_name=reporter_name,
        reason=reason[:40],
        description=plain_text(description, max_length=2000),
        priority=priority_for(reason),
    )
    logger.info("Content reported", extra={"report_id": report.id, "reason": report.reason})
    return report


def pending_reports():
    return ContentReport.objects.filter(
        status__in=[ContentReport.Status.PENDING, ContentReport.Status.FLAGGED]
    ).order_by("-created_at", "-id")


def resolve_report(*, report_id: int, action: str, moderator, notes: str = "") -> ContentReport:
    if action not in ContentReport.RESOLUTION_STATUSES:
        raise ModerationError("action must be approved, rejected or removed")

    with transaction.atomic():
        report = ContentReport.objects.select_for_update().filter(id=report_id).first()
        if report is None:
            raise ModerationError("Report not found")
        report.status = action
        report.resolved_by = moderator
        report.resolved_at = timezone.now()
        report.moderator_notes = plain_text(notes, max_length=2000)
        report.save(update_fields=["status", "resolved_by", "resolved_at", "moderator_notes"])

    logger.info("Report resolved", extra={"report_id": report.id, "action": action})
    return report


def find_banned_words(text: str) -> list[str]:
    found: list[str] = []
    for match in _BANNED_RE.finditer(text or ""):
        word = match.group(1).lower()
        if word not in found:
            found.append(word)
    return found


def auto_moderate(*, text: str, content_type: str, content_id: str = "") -> AutoModerationResult:
    """Keyword screen; a hit files a high-priority flagged report."""

    words = find_banned_words(text)
    if not words:
        return AutoModerationResult(flagged=False)

    report = ContentReport.objects.create(
        content_type=(content_type or "unknown")[:40],
        content_id=str(content_id or "auto-generated")[:64],
        reporter_name="Sistema Automático",
        reason="auto_detected",
        description=f"Palabras detectadas: {', '.join(words)}",
        status=ContentReport.Status.FLAGGED,
        priority=ContentReport.Priority.HIGH,
        auto_flagged=True,
    )
    return AutoModerationResult(
        flagged=True,
        reason="Potentially inappropriate content detected",
        banned_words=words,
        report_id=report.id,
    )


def moderation_stats(*, now=None) -> ModerationStats:
    now = now or timezone.now()
    total = ContentReport.objects.count()
    pending = ContentReport.objects.filter(
        status__in=[ContentReport.Status.PENDING, ContentReport.Status.FLAGGED]
    ).count()
    monthly = ContentReport.objects.filter(resolved_at__gte=now - timedelta(days=30)).count()
    rate = Decimal("0.0")
    if total:
        rate = (Decimal(total - pending) * 100 / Decimal(total)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return ModerationStats(
        total_reports=total,
        pending_reports=pending,
        monthly_resolved=monthly,
        resolution_rate=rate,
    )


def ban_user(*, user, banned_by, reason: str, days: int | None = None) -> UserBan:
    """Ban a customer. `days=None` is permanent; the account is deactivated either way."""

    reason = (reason or "").strip()
    if not reason:
        raise ModerationError("A reason is required")
    if user.is_staff:
        raise ModerationError("Staff accounts cannot be banned")
    if days is not None and days <= 0:
        raise ModerationError("days must be positive")

    expires_at = timezone.now() + timedelta(days=days) if days else None
    with transaction.atomic():
        ban = UserBan.objects.create(user=user, banned_by=banned_by, reason=reason[:255], expires_at=expires_at)
        if user.is_active:
            user.is_active = False
            user.save(update_fields=["is_active"])

    logger.info("User banned", extra={"user_id": user.pk, "ban_id": ban.id, "permanent": ban.is_permanent})
    return ban


def lift_expired_bans(*, now=None, dry_run: bool = False) -> int:
    """Reactivate users whose temporary bans ran out and who have no other active ban."""

    now = now or timezone.now()
    expired = list(
        UserBan.objects.select_related("user").filter(is_active=True, expires_at__isnull=False, expires_at__lte=now)
    )
    if dry_run:
        return len(expired)

    lifted = 0
    for ban in expired:
        with transaction.atomic():
            ban.is_active = False
            ban.lifted_at = now
            ban.save(update_fields=["is_active", "lifted_at"])

            still_banned = (
                UserBan.objects.filter(user_id=ban.user_id, is_active=True)
                .exclude(expires_at__lte=now)
                .exists()
            )
            if not still_banned and not ban.user.is_active:
                ban.user.is_active = True
                ban.user.save(update_fields=["is_active"])
        lifted += 1
    return lifted
