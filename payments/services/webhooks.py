from __future__ import annotations

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.db.models import Q

from payments.models import PaymentNotification

from .mercadopago import MercadoPagoApiError, MercadoPagoClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    result: str
    order_id: int | None = None
    payment_status: str = ""


def verify_signature(*, body: bytes, header: str | None, secret: str | None) -> bool:
    """Check `x-signature: sha256=<hex>` against an HMAC-SHA256 of the raw body."""
    header = (header or "").strip()
    secret = (secret or "").strip()
    if not header or not secret:
        return False
    expected = hmac.new(secret.encode("utf-8"), body or b"", hashlib.sha256).hexdigest()
    return hmac.compare_digest(header, f"sha256={expected}")


def parse_notification(*, body: bytes, query: dict | None = None) -> tuple[str, str]:
    """Return (topic, payment_id) from a webhook body or its query string.

    MercadoPago sends `{"type": "payment", "data": {"id": ...}}`; the older IPN
    form puts `topic` and `id` in the query string.
    """

    query = query or {}
    payload: dict = {}
    if body:
        try:
            decoded = json.loads(body)
        except (ValueError, UnicodeDecodeError):
            decoded = None
        if isinstance(decoded, dict):
            payload = decoded

    topic = str(payload.get("type") or payload.get("topic") or query.get("type") or query.get("topic") or "")
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    payment_id = str(data.get("id") or query.get("data.id") or query.get("id") or "").strip()
    return topic.strip().lower(), payment_id


def _find_order(*, payment_id: str, external_reference: str):
    from checkout.models import Order

    lookup = Q(payment_id=payment_id)
    if external_reference:
        lookup |= Q(payment_id=external_reference)
    return Order.objects.filter(lookup).order_by("id").first()


def _paid_amount(payment: dict) -> Decimal | None:
    try:
        amount = Decimal(str(payment.get("transaction_amount")))
    except (InvalidOperation, ValueError):
        return None
    return amount if amount.is_finite() else None


def reconcile_payment(*, payment_id: str, notification: PaymentNotification | None = None) -> ReconcileResult:
    """Complete the order behind an approved MercadoPago payment.

    Safe to call repeatedly for the same payment: an order that is already
    completed is left untouched. A payment below the order total never
    completes it, and a payment for a cancelled order is flagged for refund.
    """

    from checkout.models import Order
    from checkout.services import complete_order

    client = MercadoPagoClient()
    if client.cfg.is_demo:
        return _finish(notification, ReconcileResult(result=PaymentNotification.Result.IGNORED))

    payment = client.get_payment(payment_id)
    status = str(payment.get("status") or "").lower()
    if status != "approved":
        logger.info("Webhook payment not approved", extra={"payment_id": payment_id, "status": status})
        return _finish(
            notification,
            ReconcileResult(result=PaymentNotification.Result.NOT_APPROVED, payment_status=status),
        )

    external_reference = str(payment.get("external_reference") or "").strip()
    order = _find_order(payment_id=str(payment_id), external_reference=external_reference)
    if order is None:
        logger.warning(
            "Webhook for unknown order",
            extra={"payment_id": payment_id, "external_reference": external_reference},
        )
        return _finish(
            notification,
            ReconcileResult(result=PaymentNotification.Result.ORDER_NOT_FOUND, payment_status=status),
        )

    amount = _paid_amount(payment)
    if amount is None or amount < order.total:
        logger.error(
            "Webhook payment does not cover the order",
            extra={"order_id": order.id, "payment_id": payment_id, "paid": str(amount), "total": str(order.total)},
        )
        return _finish(
            notification,
            ReconcileResult(result=PaymentNotification.Result.AMOUNT_MISMATCH, order_id=order.id, payment_status=status),
        )

    details = {
        "payment_id": str(payment_id),
        "status": status,
        "transaction_amount": str(amount),
        "date_approved": payment.get("date_approved"),
    }
    changed = complete_order(order_id=order.id, final_status=Order.Status.COMPLETED, payment_details=details)
    if changed:
        logger.info("Order completed from webhook", extra={"order_id": order.id, "payment_id": payment_id})
        result = PaymentNotification.Result.COMPLETED
    elif Order.objects.filter(id=order.id, status=Order.Status.CANCELLED).exists():
        logger.error(
            "Approved payment for a cancelled order",
            extra={"order_id": order.id, "payment_id": payment_id, "paid": str(amount)},
        )
        result = PaymentNotification.Result.ORDER_CANCELLED
    else:
        result = PaymentNotification.Result.ALREADY_COMPLETED
    return _finish(notification, ReconcileResult(result=result, order_id=order.id, payment_status=status))


def _finish(notification: PaymentNotification | None, res: ReconcileResult) -> ReconcileResult:
    if notification is not None:
        notification.processed = True
        notification.result = res.result
        notification.order_id = res.order_id
        notification.save(update_fields=["processed", "result", "order"])
    return res


def handle_notification(
    *, body: bytes, query: dict | None = None, signature_valid: bool | None = None
) -> ReconcileResult:
    """Store an inbound webhook and reconcile it when it is about a payment.

    MercadoPagoApiError propagates so the endpoint can answer 500 and let
    MercadoPago redeliver.
    """

    topic, payment_id = parse_notification(body=body, query=query)
    notification = PaymentNotification.objects.create(
        topic=topic,
        payment_id=payment_id,
        raw_body=(body or b"").decode("utf-8", errors="replace")[:10000],
        signature_valid=signature_valid,
    )

    if topic != "payment" or not payment_id:
        return _finish(notification, ReconcileResult(result=PaymentNotification.Result.IGNORED))

    logger.info("Payment webhook received", extra={"payment_id": payment_id})
    try:
        return reconcile_payment(payment_id=payment_id, notification=notification)
    except MercadoPagoApiError as e:
        notification.result = PaymentNotification.Result.ERROR
        notification.error_message = str(e)[:1000]
        notification.save(update_fields=["result", "error_message"])
        raise
