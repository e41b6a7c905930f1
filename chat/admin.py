from __future__ import annotations

from django.contrib import admin

from .models import ChatMessage


@admin.register(ChatMessage)
class ChatMessageAdmin(admin.ModelAdmin):
    list_display = ("id", "conversation_id", "sender", "category", "user", "created_at")
    list_filter = ("sender", "category")
    search_fields = ("conversation_id", "text", "user__email")
