from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .models import Coupon, CouponRedemption, UserCoupon

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


class CouponError(ValueError):
    pass


@dataclass(frozen=True)
class CouponQuote:
    coupon: Coupon
    discount: Decimal


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def _has_used(*, coupon: Coupon, user) -> bool:
    if user is None:
        return False
    return CouponRedemption.objects.filter(coupon=coupon, user=user).exists()


def validate_coupon(*, code: str, user, cart_total: Decimal, now=None) -> CouponQuote:
    """Run the coupon checks in order and return the discount for `cart_total`.

    Raises CouponError with a customer-facing message on the first failing check.
    """

    code = normalize_code(code)
    if not code:
        raise CouponError("Coupon code is required")

    coupon = Coupon.objects.filter(code=code, is_active=True).first()
    if coupon is None:
        raise CouponError("Coupon not found or expired")
    if coupon.is_expired(now=now):
        raise CouponError("This coupon has expired")
    if coupon.is_exhausted():
        raise CouponError("This coupon is no longer available")
    if coupon.one_per_user and _has_used(coupon=coupon, user=user):
        raise CouponError("You have already used this coupon")

    cart_total = Decimal(cart_total or 0)
    if coupon.min_amount is not None and cart_total < Decimal(coupon.min_amount):
        raise CouponError(f"This coupon requires a minimum purchase of ${coupon.min_amount}")

    return CouponQuote(coupon=coupon, discount=coupon.calculate_discount(cart_total=cart_total))


def reserve_coupon_for_order(*, order_id: int) -> bool:
    """Count the order's coupon against its usage limit while the order is open."""

    from checkout.models import Order

    with transaction.atomic():
        order = Order.objects.select_for_update().filter(id=int(order_id)).first()
        if not order or not normalize_code(order.coupon_code):
            return False

        # Idempotency: one reservation per order.
        if CouponRedemption.objects.filter(order=order).exists():
            return False

        coupon = Coupon.objects.select_for_update().filter(code=normalize_code(order.coupon_code)).first()
        if not coupon:
            return False

        if coupon.one_per_user and _has_used(coupon=coupon, user=order.user):
            return False

        qs = Coupon.objects.filter(id=coupon.id)
        if coupon.usage_limit is not None:
            qs = qs.filter(times_redeemed__lt=int(coupon.usage_limit))
        if qs.update(times_redeemed=F("times_redeemed") + 1) != 1:
            return False

        CouponRedemption.objects.create(
            coupon=coupon,
            order=order,
            user=order.user,
            discount=order.coupon_discount,
        )
        return True


def release_coupon_for_order(*, order_id: int) -> bool:
    """Give back a reservation for an order that will not be paid."""

    with transaction.atomic():
        redemption = (
            CouponRedemption.objects.select_for_update()
            .filter(order_id=int(order_id), status=CouponRedemption.Status.RESERVED)
            .first()
        )
        if not redemption:
            return False

        Coupon.objects.filter(id=redemption.coupon_id, times_redeemed__gt=0).update(
            times_redeemed=F("times_redeemed") - 1
        )
        redemption.delete()
        return True


def redeem_coupon_for_order(*, order_id: int) -> bool:
    """Turn the reservation of a completed/confirmed order into a final use."""

    now = timezone.now()
    with transaction.atomic():
        redemption = (
            CouponRedemption.objects.select_for_update()
            .select_related("order")
            .filter(order_id=int(order_id))
            .first()
        )
        if not redemption or redemption.status == CouponRedemption.Status.USED:
            return False

        redemption.status = CouponRedemption.Status.USED
        redemption.redeemed_at = now
        redemption.save(update_fields=["status", "redeemed_at"])

        if redemption.user_id:
            assigned = (
                UserCoupon.objects.select_for_update()
                .filter(user_id=redemption.user_id, coupon_id=redemption.coupon_id, used=False)
                .first()
            )
            if assigned:
                assigned.used = True
                assigned.used_at = now
                assigned.order = redemption.order
                assigned.save(update_fields=["used", "used_at", "order"])
        return True


def generate_coupon_code(*, length: int = 8) -> str:
    while True:
        code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
        if not Coupon.objects.filter(code=code).exists():
            return code


def create_coupon(
    *,
    code: str | None,
    discount_type: str,
    discount_value: Decimal,
    description: str = "",
    max_discount: Decimal | None = None,
    min_amount: Decimal | None = None,
    usage_limit: int | None = None,
    one_per_user: bool = False,
    expires_at=None,
    created_by=None,
) -> Coupon:
    code = normalize_code(code) or generate_coupon_code()
    if discount_type not in Coupon.DiscountType.values:
        raise CouponError("Invalid discount type")
    discount_value = Decimal(discount_value or 0)
    if discount_value <= 0:
        raise CouponError("Discount value must be positive")
    if discount_type == Coupon.DiscountType.PERCENTAGE and discount_value > 100:
        raise CouponError("Percentage discount cannot exceed 100")
    if Coupon.objects.filter(code=code).exists():
        raise CouponError("Coupon code already exists")

    return Coupon.objects.create(
        code=code,
        description=description,
        discount_type=discount_type,
        discount_value=discount_value,
        max_discount=max_discount,
        min_amount=min_amount,
        usage_limit=usage_limit,
        one_per_user=one_per_user,
        expires_at=expires_at,
        created_by=created_by,
    )


def deactivate_coupon(*, coupon_id: int) -> bool:
    return bool(Coupon.objects.filter(id=coupon_id, is_active=True).update(is_active=False))


def assign_coupon_to_user(*, coupon: Coupon, user) -> UserCoupon:
    ttl_days = int(getattr(settings, "COUPON_ASSIGNMENT_TTL_DAYS", 30))
    with transaction.atomic():
        existing = UserCoupon.objects.select_for_update().filter(user=user, coupon=coupon, used=False).first()
        if existing:
            raise CouponError("Coupon already assigned to this user")
        assigned = UserCoupon.objects.create(
            user=user,
            coupon=coupon,
            expires_at=timezone.now() + timedelta(days=ttl_days),
        )
    logger.info("Coupon assigned", extra={"coupon": coupon.code, "user_id": user.pk})
    return assigned


def user_wallet(*, user, now=None) -> list[UserCoupon]:
    now = now or timezone.now()
    return list(
        UserCoupon.objects.select_related("coupon")
        .filter(user=user, used=False, coupon__is_active=True)
        .exclude(expires_at__lt=now)
        .order_by("expires_at", "id")
    )
