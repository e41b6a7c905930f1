from __future__ import annotations

from decimal import Decimal
from typing import Any

from ninja import Schema


class PreferenceItemIn(Schema):
    title: str = ""
    unit_price: Decimal = Decimal("0")
    quantity: int = 0


class PreferenceIn(Schema):
    items: list[PreferenceItemIn] = []
    user_id: str | None = None
    metadata: dict[str, Any] = {}
    external_reference: str = ""


class PreferenceOut(Schema):
    id: str
    init_point: str
    sandbox_init_point: str = ""
    demo: bool = False


class PaymentOut(Schema):
    id: str
    status: str
    status_detail: str = ""
    transaction_amount: Decimal | None = None
    currency_id: str = ""
    date_created: str | None = None
    date_approved: str | None = None
    metadata: dict[str, Any] = {}


class VerifyOut(Schema):
    verified: bool
    status: str
    payment_id: str
    transaction_amount: Decimal | None = None
    date_approved: str | None = None
    demo: bool = False


class PaymentMethodOut(Schema):
    code: str
    name: str
    kind: str
    description: str = ""
    instructions: str = ""


class BankTransferOut(Schema):
    alias: str
    holder: str
    cbu: str
    instructions: str
