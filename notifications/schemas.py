from __future__ import annotations

from ninja import Schema


class WhatsAppIn(Schema):
    to: str | None = None
    message: str | None = None


class WhatsAppOut(Schema):
    success: bool
    message_id: str | None = None
    status: str | None = None
    outbound_id: int | None = None
