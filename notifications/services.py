from __future__ import annotations

import logging
from dataclasses import dataclass

from django.conf import settings
from django.utils import timezone

from .models import OutboundMessage
from .twilio import TwilioApiError, TwilioClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendMessageResult:
    ok: bool
    outbound_id: int | None
    message_id: str | None = None
    status: str | None = None
    error: str | None = None


def send_whatsapp(*, to: str, body: str, kind: str = "", order=None) -> SendMessageResult:
    """Send a WhatsApp message through Twilio and keep an OutboundMessage log row.

    Never raises for provider errors; callers inspect `ok`.
    """

    to = (to or "").strip()
    outbound = OutboundMessage.objects.create(
        kind=kind,
        to_number=to,
        body=body,
        order=order,
        status=OutboundMessage.Status.PENDING,
    )

    if not to:
        return _fail(outbound, "Recipient number is empty")

    client = TwilioClient()
    if not client.cfg.is_configured:
        logger.warning("Twilio credentials not configured, skipping WhatsApp message", extra={"kind": kind})
        return _fail(outbound, "Twilio not configured")

    try:
        data = client.send_whatsapp(to=to, body=body)
    except TwilioApiError as e:
        logger.exception("WhatsApp send failed", extra={"outbound_id": outbound.id, "kind": kind})
        return _fail(outbound, str(e))

    outbound.status = OutboundMessage.Status.SENT
    outbound.provider_message_id = str(data.get("sid") or "")
    outbound.provider_status = str(data.get("status") or "")
    outbound.sent_at = timezone.now()
    outbound.save(update_fields=["status", "provider_message_id", "provider_status", "sent_at"])
    return SendMessageResult(
        ok=True,
        outbound_id=outbound.id,
        message_id=outbound.provider_message_id,
        status=outbound.provider_status,
    )


def _fail(outbound: OutboundMessage, error: str) -> SendMessageResult:
    outbound.status = OutboundMessage.Status.FAILED
    outbound.error_message = error
    outbound.save(update_fields=["status", "error_message"])
    return SendMessageResult(ok=False, outbound_id=outbound.id, error=error)


def confirm_payment_url(order) -> str:
    frontend = str(getattr(settings, "FRONTEND_URL", "") or "http://localhost:5173").rstrip("/")
    return f"{frontend}/admin/confirm-payment/{order.id}"


def build_pending_order_message(order) -> str:
    lines = "\n".join(
        f"• {line.product_name} x{line.qty} = ${line.line_total}" for line in order.lines.all()
    )
    alias = str(getattr(settings, "BANK_TRANSFER_ALIAS", "") or "").strip()
    parts = [
        "🛒 *Nueva Orden Pendiente*",
        "",
        f"👤 *Cliente:* {order.customer_name}",
        f"📱 *Celular:* {order.phone_number}",
        f"💰 *Total:* ${order.total}",
        "",
        "📦 *Productos:*",
        lines,
        "",
        f"💳 *Método:* {order.get_payment_method_display()}",
    ]
    if alias:
        parts.append(f"🏦 *Alias:* {alias}")
    parts += [
        "",
        "✅ *Confirmar recepción del pago:*",
        confirm_payment_url(order),
        "",
        "⚠️ Una vez confirmado, la orden se marcará como pagada.",
    ]
    return "\n".join(parts)


def build_payment_confirmed_message(order) -> str:
    return "\n".join(
        [
            "✅ *Pago Confirmado*",
            "",
            f"¡Hola! Tu pago por ${order.total} ha sido confirmado exitosamente.",
            "",
            "📦 Tu orden está siendo preparada y será enviada pronto.",
            "",
            "📱 Si tienes alguna duda, puedes contactarnos.",
            "",
            "¡Gracias por tu compra! 🛒",
        ]
    )


def notify_new_pending_order(order) -> SendMessageResult:
    """Relay a manually-settled order to the store operator."""
    admin_number = str(getattr(settings, "ADMIN_WHATSAPP_NUMBER", "") or "").strip()
    return send_whatsapp(
        to=admin_number,
        body=build_pending_order_message(order),
        kind="order_pending",
        order=order,
    )


def notify_payment_confirmed(order) -> SendMessageResult | None:
    if not (order.phone_number or "").strip():
        return None
    return send_whatsapp(
        to=order.phone_number,
        body=build_payment_confirmed_message(order),
        kind="payment_confirmed",
        order=order,
    )
