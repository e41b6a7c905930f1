from __future__ import annotations

from django.contrib import admin

from .models import ContentReport, UserBan


@admin.register(ContentReport)
class ContentReportAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "content_type",
        "content_id",
        "reason",
        "status",
        "priority",
        "auto_flagged",
        "created_at",
        "resolved_at",
    )
    list_filter = ("status", "priority", "auto_flagged", "content_type")
    search_fields = ("content_id", "description", "reporter__email", "reporter_name")
    readonly_fields = ("created_at", "resolved_at", "resolved_by")


@admin.register(UserBan)
class UserBanAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "reason", "expires_at", "is_active", "banned_by", "created_at")
    list_filter = ("is_active",)
    search_fields = ("user__email", "reason")
