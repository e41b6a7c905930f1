from __future__ import annotations

from django.contrib import admin

from .models import PaymentMethod, PaymentNotification


@admin.register(PaymentMethod)
class PaymentMethodAdmin(admin.ModelAdmin):
    list_display = (
        "code",
        "name",
        "kind",
        "is_active",
        "sort_order",
        "bank_alias",
        "updated_at",
    )
    list_filter = ("is_active", "kind")
    search_fields = ("code", "name", "bank_alias")
    ordering = ("sort_order", "code")


@admin.register(PaymentNotification)
class PaymentNotificationAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "topic",
        "payment_id",
        "signature_valid",
        "processed",
        "result",
        "order",
        "created_at",
    )
    list_filter = ("topic", "processed", "result", "signature_valid")
    search_fields = ("payment_id", "order__id")
    readonly_fields = (
        "topic",
        "payment_id",
        "raw_body",
        "signature_valid",
        "processed",
        "result",
        "error_message",
        "order",
        "created_at",
    )
