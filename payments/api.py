from __future__ import annotations

import logging

from django.conf import settings
from django.http import HttpResponse
from ninja import Router
from ninja.errors import HttpError
from ninja.throttling import AnonRateThrottle, AuthRateThrottle

from accounts.auth import user_from_request_if_present
from checkout.models import Order

from .schemas import BankTransferOut, PaymentMethodOut, PaymentOut, PreferenceIn, PreferenceOut, VerifyOut
from .services.mercadopago import MercadoPagoApiError, MercadoPagoClient, PreferenceValidationError
from .services.methods import available_methods, bank_transfer_method
from .services.webhooks import handle_notification, verify_signature

router = Router(tags=["payments"])

logger = logging.getLogger(__name__)

_payment_rate = getattr(settings, "PAYMENT_THROTTLE_RATE", "120/h")
payment_throttle = [AnonRateThrottle(_payment_rate), AuthRateThrottle(_payment_rate)]


def _public_error(e: Exception) -> str:
    if getattr(settings, "ENVIRONMENT", "") == "production":
        return "Internal server error"
    return str(e)


@router.get("/methods", response=list[PaymentMethodOut])
def payment_methods(request):
    return [
        {
            "code": m.code,
            "name": m.name,
            "kind": m.kind,
            "description": m.description,
            "instructions": m.instructions_for_order() if m.is_manual else "",
        }
        for m in available_methods()
    ]


@router.get("/bank-transfer", response=BankTransferOut)
def bank_transfer_details(request):
    method = bank_transfer_method()
    if not (method.bank_alias or method.bank_cbu):
        raise HttpError(404, "Bank transfer is not configured")
    return {
        "alias": method.bank_alias,
        "holder": method.bank_holder,
        "cbu": method.bank_cbu,
        "instructions": method.instructions_for_order(),
    }


@router.post("/preferences", response=PreferenceOut, throttle=payment_throttle)
def create_preference(request, payload: PreferenceIn):
    user = user_from_request_if_present(request)
    user_id = (payload.user_id or "").strip() or (str(user.id) if user else "")
    if not user_id:
        raise HttpError(400, "User id is required")
    external_reference = (payload.external_reference or "").strip()
    if external_reference.lower().startswith(Order.PAYMENT_ID_PREFIX):
        raise HttpError(400, "external_reference is reserved for store orders")

    try:
        return MercadoPagoClient().create_preference(
            items=[item.model_dump() for item in payload.items],
            user_id=user_id,
            metadata=payload.metadata,
            external_reference=external_reference,
        )
    except PreferenceValidationError as e:
        raise HttpError(400, str(e)) from e
    except MercadoPagoApiError as e:
        logger.exception("Preference creation failed", extra={"user_id": user_id})
        raise HttpError(500, f"Error creating payment preference: {_public_error(e)}") from e


@router.get("/verify/{payment_id}", response=VerifyOut)
def verify_payment(request, payment_id: str):
    payment_id = (payment_id or "").strip()
    if not payment_id:
        raise HttpError(400, "Payment id is required")

    client = MercadoPagoClient()
    if client.cfg.is_demo:
        return {"verified": True, "status": "approved", "payment_id": payment_id, "demo": True}

    try:
        payment = client.get_payment(payment_id)
    except MercadoPagoApiError as e:
        if e.status_code == 404:
            raise HttpError(404, "Payment not found") from e
        logger.exception("Payment verification failed", extra={"payment_id": payment_id})
        raise HttpError(500, f"Error verifying payment: {_public_error(e)}") from e

    status = str(payment.get("status") or "")
    return {
        "verified": status == "approved",
        "status": status,
        "payment_id": payment_id,
        "transaction_amount": payment.get("transaction_amount"),
        "date_approved": payment.get("date_approved"),
    }


@router.post("/webhook")
def mercadopago_webhook(request):
    try:
        handle_notification(body=request.body, query=request.GET.dict())
    except Exception:
        logger.exception("Webhook processing failed")
        return HttpResponse("Error", status=500, content_type="text/plain")
    return HttpResponse("OK", content_type="text/plain")


@router.post("/webhook/secure")
def mercadopago_webhook_secure(request):
    signature = (request.headers.get("x-signature") or "").strip()
    secret = str(getattr(settings, "MP_WEBHOOK_SECRET", "") or "")
    if not signature or not secret:
        logger.warning("Webhook without signature or secret not configured")
        return HttpResponse("Unauthorized", status=401, content_type="text/plain")

    if not verify_signature(body=request.body, header=signature, secret=secret):
        logger.warning("Webhook signature mismatch")
        return HttpResponse("Invalid signature", status=401, content_type="text/plain")

    try:
        handle_notification(body=request.body, query=request.GET.dict(), signature_valid=True)
    except Exception:
        logger.exception("Secure webhook processing failed")
        return HttpResponse("Error", status=500, content_type="text/plain")
    return HttpResponse("OK", content_type="text/plain")


@router.get("/{payment_id}", response=PaymentOut)
def get_payment(request, payment_id: str):
    if not payment_id.isdigit():
        raise HttpError(400, "Payment id must be numeric")

    try:
        payment = MercadoPagoClient().get_payment(payment_id)
    except MercadoPagoApiError as e:
        if e.status_code == 404:
            raise HttpError(404, "Payment not found") from e
        logger.exception("Payment lookup failed", extra={"payment_id": payment_id})
        raise HttpError(500, f"Error fetching payment: {_public_error(e)}") from e

    logger.info("Payment lookup", extra={"payment_id": payment_id, "status": payment.get("status")})
    return {
        "id": str(payment.get("id") or payment_id),
        "status": str(payment.get("status") or ""),
        "status_detail": str(payment.get("status_detail") or ""),
        "transaction_amount": payment.get("transaction_amount"),
        "currency_id": str(payment.get("currency_id") or ""),
        "date_created": payment.get("date_created"),
        "date_approved": payment.get("date_approved"),
        "metadata": payment.get("metadata") or {},
    }
