from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ninja import Schema


class CouponApplyIn(Schema):
    code: str
    cart_total: Decimal | None = None


class CouponApplyOut(Schema):
    code: str
    discount_type: str
    discount_value: Decimal
    discount: Decimal
    total_after_discount: Decimal


class CouponOut(Schema):
    id: int
    code: str
    description: str
    discount_type: str
    discount_value: Decimal
    max_discount: Decimal | None = None
    min_amount: Decimal | None = None
    usage_limit: int | None = None
    times_redeemed: int
    one_per_user: bool
    is_active: bool
    expires_at: datetime | None = None
    created_at: datetime


class CouponCreateIn(Schema):
    code: str | None = None
    description: str = ""
    discount_type: str = "percentage"
    discount_value: Decimal
    max_discount: Decimal | None = None
    min_amount: Decimal | None = None
    usage_limit: int | None = None
    one_per_user: bool = False
    expires_at: datetime | None = None


class CouponAssignIn(Schema):
    user_id: int


class UserCouponOut(Schema):
    id: int
    code: str
    description: str
    discount_type: str
    discount_value: Decimal
    expires_at: datetime | None = None


class CodeOut(Schema):
    code: str
