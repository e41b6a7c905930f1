from __future__ import annotations

from dataclasses import dataclass

import requests


@dataclass(frozen=True)
class PaymentErrorInfo:
    type: str
    retryable: bool
    message: str


_PAYMENT_SERVICE_WORDS = ("mercadopago", "mercado pago", "preference", "payment api")
_NETWORK_WORDS = ("network", "timeout", "timed out", "connection", "unreachable")
_INVENTORY_WORDS = ("stock", "inventory", "out of stock")
_VALIDATION_WORDS = ("invalid", "required", "must be", "format")


def categorize_payment_error(exc: BaseException) -> PaymentErrorInfo:
    """Classify a checkout/payment failure so the client knows whether to retry.

    Exception types are checked first, then the message text.
    """
    from checkout.services import InsufficientStockError

    from .services.mercadopago import MercadoPagoApiError

    message = str(exc) or exc.__class__.__name__
    text = message.lower()

    if isinstance(exc, InsufficientStockError):
        return PaymentErrorInfo(type="inventory", retryable=False, message=message)
    if isinstance(exc, MercadoPagoApiError) or any(w in text for w in _PAYMENT_SERVICE_WORDS):
        return PaymentErrorInfo(type="payment_service", retryable=True, message=message)
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)) or any(w in text for w in _NETWORK_WORDS):
        return PaymentErrorInfo(type="network", retryable=True, message=message)
    if any(w in text for w in _INVENTORY_WORDS):
        return PaymentErrorInfo(type="inventory", retryable=False, message=message)
    if any(w in text for w in _VALIDATION_WORDS):
        return PaymentErrorInfo(type="validation", retryable=False, message=message)
    return PaymentErrorInfo(type="unknown", retryable=True, message=message)
