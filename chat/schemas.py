from __future__ import annotations

from datetime import datetime
from uuid import UUID

from ninja import Schema


class ChatMessageIn(Schema):
    text: str
    conversation_id: UUID | None = None


class ChatMessageOut(Schema):
    id: int
    conversation_id: UUID
    sender: str
    text: str
    category: str = ""
    created_at: datetime


class ChatExchangeOut(Schema):
    conversation_id: UUID
    message: ChatMessageOut
    reply: ChatMessageOut


class WelcomeOut(Schema):
    sender: str = "bot"
    text: str
