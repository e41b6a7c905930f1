from __future__ import annotations

from django.conf import settings
from django.db import models


def default_preferences() -> dict:
    return {
        "product_updates": True,
        "promotions": True,
        "newsletter": True,
        "order_updates": False,
    }


class Subscriber(models.Model):
    class Source(models.TextChoices):
        AUTHENTICATED = "authenticated", "Authenticated"
        GUEST = "guest", "Guest"

    email = models.EmailField(unique=True)
    interests = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)
    source = models.CharField(max_length=20, choices=Source.choices, default=Source.GUEST)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="newsletter_subscriptions",
    )
    preferences = models.JSONField(default=default_preferences, blank=True)

    subscribed_at = models.DateTimeField(auto_now_add=True)
    unsubscribed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-subscribed_at", "-id"]
        indexes = [models.Index(fields=["is_active", "-subscribed_at"], name="subscriber_active_date_idx")]

    def __str__(self) -> str:
        return self.email
