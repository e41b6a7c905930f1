from __future__ import annotations

from django.conf import settings
from django.db import models


class ContentReport(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        FLAGGED = "flagged", "Flagged automatically"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"
        REMOVED = "removed", "Content removed"

    class Priority(models.TextChoices):
        HIGH = "high", "High"
        MEDIUM = "medium", "Medium"

    RESOLUTION_STATUSES = (Status.APPROVED, Status.REJECTED, Status.REMOVED)

    # review, product, comment, chat_message...
    content_type = models.CharField(max_length=40)
    content_id = models.CharField(max_length=64, blank=True, default="")

    reporter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="content_reports",
    )
    reporter_name = models.CharField(max_length=200, blank=True, default="")
    # spam, inappropriate, offensive, hate_speech, fake, auto_detected...
    reason = models.CharField(max_length=40)
    description = models.TextField(blank=True, default="")

    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    priority = models.CharField(max_length=8, choices=Priority.choices, default=Priority.MEDIUM)
    auto_flagged = models.BooleanField(default=False)

    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    resolved_at = models.DateTimeField(null=True, blank=True)
    moderator_notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["status", "-created_at"], name="report_status_date_idx"),
            models.Index(fields=["content_type", "content_id"], name="report_content_idx"),
        ]

    def __str__(self) -> str:
        return f"report:{self.id} {self.content_type}:{self.content_id} ({self.status})"


class UserBan(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="bans"
    )
    banned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    reason = models.CharField(max_length=255)
    # Null means permanent.
    expires_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    lifted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["is_active", "expires_at"], name="userban_active_expiry_idx")]

    def __str__(self) -> str:
        return f"ban:{self.user_id}"

    @property
    def is_permanent(self) -> bool:
        return self.expires_at is None
