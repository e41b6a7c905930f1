from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone


class LoyaltyAccount(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="loyalty"
    )
    points = models.PositiveIntegerField(default=0)
    # Every award pushes the expiry forward; once passed the balance is worth nothing.
    expires_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=["expires_at"], name="loyalty_account_expiry_idx")]

    def __str__(self) -> str:
        return f"{self.user_id}: {self.points} pts"

    def is_expired(self, *, now=None) -> bool:
        now = now or timezone.now()
        return self.expires_at is not None and self.expires_at <= now

    def effective_points(self, *, now=None) -> int:
        return 0 if self.is_expired(now=now) else int(self.points)


class PointsEntry(models.Model):
    account = models.ForeignKey(
        LoyaltyAccount, on_delete=models.CASCADE, related_name="entries"
    )
    # Negative for expiries/adjustments.
    points = models.IntegerField()
    reason = models.CharField(max_length=255)
    order = models.ForeignKey(
        "checkout.Order",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="points_entries",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            # An order credits points at most once.
            models.UniqueConstraint(
                fields=["account", "order"],
                condition=models.Q(order__isnull=False) & models.Q(points__gt=0),
                name="uniq_points_entry_order_award",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.account_id}: {self.points:+d} ({self.reason})"
