from __future__ import annotations

from django.contrib import admin

from .models import Subscriber


@admin.register(Subscriber)
class SubscriberAdmin(admin.ModelAdmin):
    list_display = ("email", "is_active", "source", "user", "subscribed_at", "unsubscribed_at")
    list_filter = ("is_active", "source")
    search_fields = ("email", "user__email")
    readonly_fields = ("subscribed_at", "unsubscribed_at", "updated_at")
