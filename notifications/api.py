from __future__ import annotations

from ninja import Router
from ninja.errors import HttpError

from accounts.auth import StaffJWTAuth

from .schemas import WhatsAppIn, WhatsAppOut
from .services import send_whatsapp

router = Router(tags=["notifications"])
_staff = StaffJWTAuth()


@router.post("/whatsapp", response=WhatsAppOut, auth=_staff)
def send_whatsapp_message(request, payload: WhatsAppIn):
    to = (payload.to or "").strip()
    message = (payload.message or "").strip()
    if not to or not message:
        raise HttpError(400, "Phone number and message are required")

    result = send_whatsapp(to=to, body=message, kind="manual")
    if not result.ok:
        raise HttpError(500, f"Failed to send WhatsApp message: {result.error}")

    return {
        "success": True,
        "message_id": result.message_id,
        "status": result.status,
        "outbound_id": result.outbound_id,
    }
