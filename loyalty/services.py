from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .models import LoyaltyAccount, PointsEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Level:
    code: str
    name: str
    min_points: int
    discount_percent: int


LEVELS: tuple[Level, ...] = (
    Level(code="oro", name="Oro", min_points=100, discount_percent=15),
    Level(code="plata", name="Plata", min_points=50, discount_percent=10),
    Level(code="bronce", name="Bronce", min_points=25, discount_percent=5),
)
NO_LEVEL = Level(code="none", name="Sin nivel", min_points=0, discount_percent=0)


def _ttl() -> timedelta:
    return timedelta(days=int(getattr(settings, "LOYALTY_POINTS_TTL_DAYS", 60)))


def points_for_total(total: Decimal) -> int:
    """One point per LOYALTY_PESOS_PER_POINT spent, rounded down."""
    per_point = int(getattr(settings, "LOYALTY_PESOS_PER_POINT", 1000)) or 1000
    if total is None or Decimal(total) <= 0:
        return 0
    return int(Decimal(total) // Decimal(per_point))


def level_for_points(points: int) -> Level:
    for level in LEVELS:
        if points >= level.min_points:
            return level
    return NO_LEVEL


def next_level_for_points(points: int) -> Level | None:
    upcoming = [lvl for lvl in LEVELS if lvl.min_points > points]
    return min(upcoming, key=lambda lvl: lvl.min_points) if upcoming else None


def get_account(*, user) -> LoyaltyAccount:
    account, _ = LoyaltyAccount.objects.get_or_create(user=user)
    return account


def get_level(*, user, now=None) -> tuple[Level, int]:
    """Returns (level, effective points). Anonymous users have no level."""
    if user is None or not getattr(user, "is_authenticated", False):
        return NO_LEVEL, 0
    account = LoyaltyAccount.objects.filter(user=user).first()
    points = account.effective_points(now=now) if account else 0
    return level_for_points(points), points


def level_discount(*, user, subtotal: Decimal) -> Decimal:
    level, _ = get_level(user=user)
    if not level.discount_percent:
        return Decimal("0.00")
    return (Decimal(subtotal) * Decimal(level.discount_percent) / Decimal(100)).quantize(Decimal("0.01"))


def award_points(*, user, points: int, reason: str, order=None) -> LoyaltyAccount | None:
    """Credit points, append a history entry and push the expiry forward.

    An order is credited at most once; repeated calls for the same order are no-ops.
    """

    points = int(points or 0)
    if points <= 0:
        return None

    now = timezone.now()
    with transaction.atomic():
        account, _ = LoyaltyAccount.objects.select_for_update().get_or_create(user=user)

        if order is not None and account.entries.filter(order=order, points__gt=0).exists():
            return account

        # Expired balances are not carried over into the new window.
        base = account.effective_points(now=now)
        account.points = base + points
        account.expires_at = now + _ttl()
        account.save(update_fields=["points", "expires_at", "updated_at"])
        PointsEntry.objects.create(account=account, points=points, reason=reason[:255], order=order)

    logger.info("Awarded loyalty points", extra={"user_id": user.pk, "points": points, "reason": reason})
    return account


def expire_points(*, now=None, dry_run: bool = False) -> int:
    """Zero out balances whose expiry has passed. Returns affected accounts."""

    now = now or timezone.now()
    qs = LoyaltyAccount.objects.filter(expires_at__lte=now, points__gt=0)
    if dry_run:
        return qs.count()

    expired = 0
    for account_id in list(qs.values_list("id", flat=True)):
        with transaction.atomic():
            account = LoyaltyAccount.objects.select_for_update().filter(id=account_id).first()
            if account is None or not account.is_expired(now=now) or account.points <= 0:
                continue
            PointsEntry.objects.create(account=account, points=-int(account.points), reason="Vencimiento de puntos")
            account.points = 0
            account.save(update_fields=["points", "updated_at"])
            expired += 1
    return expired
