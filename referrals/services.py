from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from .models import Referral, ReferralProfile

logger = logging.getLogger(__name__)


class ReferralError(ValueError):
    pass


@dataclass(frozen=True)
class ReferralStats:
    total: int
    pending: int
    completed: int
    earnings: int


def _code_base(user) -> str:
    first = (user.first_name or "").strip().split(" ")[0]
    base = first or (user.email or "").split("@", 1)[0] or "user"
    return re.sub(r"[^A-Za-z0-9]", "", base).upper()[:30] or "USER"


def generate_referral_code(*, user, rng: random.Random | None = None) -> str:
    """First name (or e-mail local part) plus a number 0-999, upper-cased and unique."""
    rng = rng or random.SystemRandom()
    base = _code_base(user)
    for _ in range(50):
        code = f"{base}{rng.randint(0, 999)}"
        if not ReferralProfile.objects.filter(code=code).exists():
            return code
    # Crowded base name: widen the numeric space.
    while True:
        code = f"{base}{rng.randint(1000, 999999)}"
        if not ReferralProfile.objects.filter(code=code).exists():
            return code


def ensure_profile(*, user) -> ReferralProfile:
    profile = ReferralProfile.objects.filter(user=user).first()
    if profile:
        return profile
    try:
        with transaction.atomic():
            return ReferralProfile.objects.create(user=user, code=generate_referral_code(user=user))
    except IntegrityError:
        # Concurrent creation for the same user.
        return ReferralProfile.objects.get(user=user)


def register_referral(*, referred_user, code: str) -> Referral:
    code = (code or "").strip().upper()
    profile = ReferralProfile.objects.select_related("user").filter(code=code).first()
    if profile is None:
        raise ReferralError("Invalid referral code")
    if profile.user_id == referred_user.pk:
        raise ReferralError("You cannot use your own referral code")
    if Referral.objects.filter(referred=referred_user).exists():
        raise ReferralError("You have already been referred")

    try:
        with transaction.atomic():
            return Referral.objects.create(
                referrer=profile.user,
                referred=referred_user,
                referred_email=referred_user.email,
                reward_points=int(getattr(settings, "REFERRAL_REWARD_POINTS", 50)),
            )
    except IntegrityError:
        raise ReferralError("You have already been referred")


def complete_referral(*, referred_user) -> Referral | None:
    """Close the pending referral of a customer after their first paid order and reward the referrer."""

    from loyalty.services import award_points

    with transaction.atomic():
        referral = (
            Referral.objects.select_for_update()
            .filter(referred=referred_user, status=Referral.Status.PENDING)
            .first()
        )
        if referral is None:
            return None
        referral.status = Referral.Status.COMPLETED
        referral.completed_at = timezone.now()
        referral.save(update_fields=["status", "completed_at"])

        award_points(
            user=referral.referrer,
            points=referral.reward_points,
            reason=f"Referido: {referral.referred_email or referred_user.email}",
        )

    logger.info("Referral completed", extra={"referral_id": referral.id, "referrer_id": referral.referrer_id})
    return referral


def referral_stats(*, user) -> ReferralStats:
    agg = Referral.objects.filter(referrer=user).aggregate(
        total=Count("id"),
        pending=Count("id", filter=Q(status=Referral.Status.PENDING)),
        completed=Count("id", filter=Q(status=Referral.Status.COMPLETED)),
        earnings=Sum("reward_points", filter=Q(status=Referral.Status.COMPLETED)),
    )
    return ReferralStats(
        total=agg["total"] or 0,
        pending=agg["pending"] or 0,
        completed=agg["completed"] or 0,
        earnings=agg["earnings"] or 0,
    )


def share_link(code: str) -> str:
    frontend = str(getattr(settings, "FRONTEND_URL", "") or "").rstrip("/")
    return f"{frontend}/?ref={code}"


def share_text(code: str) -> str:
    return (
        f"¡Únete a ElGuante y obtén descuentos exclusivos! Usa mi código: {code}\n"
        f"{share_link(code)}"
    )
