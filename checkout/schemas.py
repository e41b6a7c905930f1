from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ninja import Schema


class CartItemOut(Schema):
    id: int
    product_id: int
    sku: str
    name: str
    image_url: str = ""
    qty: int
    stock_available: int
    unit_price: Decimal
    line_total: Decimal
    notes: str = ""


class CartOut(Schema):
    currency: str = "ARS"
    items: list[CartItemOut]
    items_count: int = 0
    subtotal: Decimal


class CartItemAddIn(Schema):
    product_id: int
    qty: int = 1
    notes: str = ""


class CartItemUpdateIn(Schema):
    qty: int
    notes: str | None = None


class CheckoutPreviewIn(Schema):
    coupon_code: str | None = None


class CheckoutPreviewOut(Schema):
    currency: str = "ARS"
    subtotal: Decimal
    level_name: str
    level_discount_percent: int
    level_discount: Decimal
    coupon_code: str = ""
    coupon_discount: Decimal
    total: Decimal
    points_earned: int


class OrderCreateIn(Schema):
    payment_method: str
    phone_number: str = ""
    customer_name: str = ""
    coupon_code: str | None = None
    notes: str = ""


class OrderCreateOut(Schema):
    order_id: int
    status: str
    payment_method: str
    total: Decimal
    points_earned: int
    payment_id: str = ""
    redirect_url: str = ""
    payment_instructions: str = ""
    operator_notified: bool = False


class OrderLineOut(Schema):
    product_id: int | None = None
    sku: str = ""
    name: str
    unit_price: Decimal
    qty: int
    notes: str = ""
    line_total: Decimal


class OrderOut(Schema):
    id: int
    status: str
    payment_method: str
    currency: str
    subtotal: Decimal
    level_discount: Decimal
    coupon_code: str = ""
    coupon_discount: Decimal
    total: Decimal
    points_earned: int
    payment_id: str = ""
    redirect_url: str = ""
    created_at: datetime
    confirmed_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    lines: list[OrderLineOut] = []


class AdminOrderOut(OrderOut):
    user_id: int | None = None
    customer_name: str = ""
    customer_email: str = ""
    phone_number: str = ""
    payment_details: dict = {}
    confirmed_by_id: int | None = None


class OrderActionOut(Schema):
    order_id: int
    status: str
    changed: bool
