from django.contrib import admin

from .models import OutboundMessage


@admin.register(OutboundMessage)
class OutboundMessageAdmin(admin.ModelAdmin):
    list_display = ("to_number", "kind", "status", "order", "created_at", "sent_at")
    list_filter = ("status", "kind", "channel")
    search_fields = ("to_number", "body", "provider_message_id")
    ordering = ("-created_at",)

    readonly_fields = (
        "channel",
        "kind",
        "to_number",
        "body",
        "order",
        "status",
        "provider_message_id",
        "provider_status",
        "error_message",
        "created_at",
        "sent_at",
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
