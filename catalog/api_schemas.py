from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ninja import Schema


class CategoryOut(Schema):
    id: int
    slug: str
    name: str
    description: str = ""


class CategoryRefOut(Schema):
    id: int
    slug: str
    name: str


class ProductListOut(Schema):
    id: int
    sku: str
    slug: str
    name: str
    price: Decimal
    stock: int
    in_stock: bool
    image_url: str | None = None
    category: CategoryRefOut | None = None


class ProductDetailOut(ProductListOut):
    description: str = ""
    sales_count: int = 0
    lowest_price: Decimal
    is_lowest_price: bool


class PriceChangeOut(Schema):
    old_price: Decimal
    new_price: Decimal
    change_type: str
    percentage_change: Decimal
    reason: str
    created_at: datetime


class PriceHistoryOut(Schema):
    product_id: int
    current_price: Decimal
    lowest_price: Decimal
    is_lowest_price: bool
    history: list[PriceChangeOut]


class PriceChangeIn(Schema):
    new_price: Decimal
    reason: str = "manual"


class PriceAlertIn(Schema):
    product_id: int
    target_price: Decimal


class PriceAlertOut(Schema):
    id: int
    product_id: int
    product_name: str
    target_price: Decimal
    current_price: Decimal
    is_active: bool
    notified: bool
    notified_at: datetime | None = None
    triggered_price: Decimal | None = None
