from __future__ import annotations

from django.conf import settings

from payments.models import PaymentMethod

# Used until an operator configures PaymentMethod rows in the admin.
DEFAULT_METHODS: tuple[tuple[str, str, str, str], ...] = (
    ("payment_link", "Mercado Pago", PaymentMethod.Kind.GATEWAY, "Pagá con tarjeta o dinero en cuenta"),
    ("card", "Tarjeta de crédito / débito", PaymentMethod.Kind.GATEWAY, "Procesado por Mercado Pago"),
    ("bank_transfer", "Transferencia bancaria", PaymentMethod.Kind.OFFLINE, "Confirmamos tu pago por WhatsApp"),
    ("cash", "Efectivo", PaymentMethod.Kind.COD, "Pagás al retirar o recibir tu pedido"),
)


def _settings_bank_method() -> PaymentMethod:
    return PaymentMethod(
        code="bank_transfer",
        name="Transferencia bancaria",
        kind=PaymentMethod.Kind.OFFLINE,
        bank_alias=str(getattr(settings, "BANK_TRANSFER_ALIAS", "") or ""),
        bank_holder=str(getattr(settings, "BANK_TRANSFER_HOLDER", "") or ""),
        bank_cbu=str(getattr(settings, "BANK_TRANSFER_CBU", "") or ""),
    )


def available_methods() -> list[PaymentMethod]:
    methods = list(PaymentMethod.objects.filter(is_active=True).order_by("sort_order", "code"))
    if methods:
        return methods

    out: list[PaymentMethod] = []
    for idx, (code, name, kind, description) in enumerate(DEFAULT_METHODS):
        if code == "bank_transfer":
            method = _settings_bank_method()
            method.description = description
        else:
            method = PaymentMethod(code=code, name=name, kind=kind, description=description)
        method.sort_order = idx
        out.append(method)
    return out


def bank_transfer_method() -> PaymentMethod:
    method = PaymentMethod.objects.filter(code="bank_transfer", is_active=True).first()
    if method is None:
        return _settings_bank_method()
    fallback = _settings_bank_method()
    method.bank_alias = method.bank_alias or fallback.bank_alias
    method.bank_holder = method.bank_holder or fallback.bank_holder
    method.bank_cbu = method.bank_cbu or fallback.bank_cbu
    return method
