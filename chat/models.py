from __future__ import annotations

from django.conf import settings
from django.db import models


class ChatMessage(models.Model):
    class Sender(models.TextChoices):
        USER = "user", "User"
        BOT = "bot", "Bot"

    conversation_id = models.UUIDField(db_index=True)
    sender = models.CharField(max_length=8, choices=Sender.choices)
    text = models.TextField()
    # Bot replies keep the matched topic (greeting, products, ...).
    category = models.CharField(max_length=20, blank=True, default="")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="chat_messages",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [models.Index(fields=["conversation_id", "created_at"], name="chatmessage_conversation_idx")]

    def __str__(self) -> str:
        return f"{self.conversation_id}:{self.sender}"
