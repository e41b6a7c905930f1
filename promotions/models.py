from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models


class Coupon(models.Model):
    class DiscountType(models.TextChoices):
        PERCENTAGE = "percentage", "Percentage"
        FIXED = "fixed", "Fixed amount"

    # Always stored upper-case.
    code = models.CharField(max_length=40, unique=True)
    description = models.CharField(max_length=255, blank=True, default="")

    discount_type = models.CharField(
        max_length=16, choices=DiscountType.choices, default=DiscountType.PERCENTAGE
    )
    discount_value = models.DecimalField(max_digits=12, decimal_places=2)
    # Cap for percentage coupons.
    max_discount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    min_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    times_redeemed = models.PositiveIntegerField(default=0)
    one_per_user = models.BooleanField(default=False)

    is_active = models.BooleanField(default=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(discount_value__gt=0), name="chk_coupon_value_gt_0"
            ),
        ]

    def __str__(self) -> str:
        return self.code

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)

    def is_expired(self, *, now=None) -> bool:
        from django.utils import timezone

        now = now or timezone.now()
        return self.expires_at is not None and self.expires_at < now

    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and int(self.times_redeemed) >= int(self.usage_limit)

    def calculate_discount(self, *, cart_total: Decimal) -> Decimal:
        cart_total = Decimal(cart_total or 0)
        if cart_total <= 0:
            return Decimal("0.00")

        if self.discount_type == self.DiscountType.PERCENTAGE:
            pct = max(Decimal(0), min(Decimal(100), Decimal(self.discount_value)))
            discount = cart_total * pct / Decimal(100)
            if self.max_discount is not None:
                discount = min(discount, Decimal(self.max_discount))
        else:
            discount = min(Decimal(self.discount_value), cart_total)

        return discount.quantize(Decimal("0.01"))


class CouponRedemption(models.Model):
    class Status(models.TextChoices):
        RESERVED = "reserved", "Reserved"
        USED = "used", "Used"

    coupon = models.ForeignKey(Coupon, on_delete=models.CASCADE, related_name="redemptions")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="coupon_redemptions",
    )
    order = models.OneToOneField(
        "checkout.Order",
        on_delete=models.CASCADE,
        related_name="coupon_redemption",
    )
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.RESERVED)

    created_at = models.DateTimeField(auto_now_add=True)
    redeemed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["id"]
        indexes = [models.Index(fields=["coupon", "user"], name="redemption_coupon_user_idx")]

    def __str__(self) -> str:
        return f"coupon:{self.coupon_id} order:{self.order_id} [{self.status}]"


class UserCoupon(models.Model):
    """A coupon handed to a specific customer (shown in their wallet)."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="assigned_coupons"
    )
    coupon = models.ForeignKey(Coupon, on_delete=models.CASCADE, related_name="assignments")
    used = models.BooleanField(default=False)
    used_at = models.DateTimeField(null=True, blank=True)
    order = models.ForeignKey(
        "checkout.Order", null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    assigned_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["expires_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "coupon"],
                condition=models.Q(used=False),
                name="uniq_open_user_coupon",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id}:{self.coupon_id} used={self.used}"
