from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model
from ninja import Router
from ninja.errors import HttpError

from accounts.auth import JWTAuth, StaffJWTAuth

from .models import Coupon
from .schemas import (
    CodeOut,
    CouponApplyIn,
    CouponApplyOut,
    CouponAssignIn,
    CouponCreateIn,
    CouponOut,
    UserCouponOut,
)
from .services import (
    CouponError,
    assign_coupon_to_user,
    create_coupon,
    deactivate_coupon,
    generate_coupon_code,
    user_wallet,
    validate_coupon,
)

router = Router(tags=["coupons"])
_auth = JWTAuth()
_staff = StaffJWTAuth()
User = get_user_model()


def _cart_total_for(user) -> Decimal:
    from checkout.services import cart_subtotal

    cart = getattr(user, "cart", None) if user is not None else None
    return cart_subtotal(cart=cart) if cart is not None else Decimal("0.00")


@router.post("/apply", response=CouponApplyOut, auth=_auth)
def apply_coupon(request, payload: CouponApplyIn):
    cart_total = payload.cart_total if payload.cart_total is not None else _cart_total_for(request.auth)
    try:
        quote = validate_coupon(code=payload.code, user=request.auth, cart_total=cart_total)
    except CouponError as e:
        raise HttpError(400, str(e))

    return {
        "code": quote.coupon.code,
        "discount_type": quote.coupon.discount_type,
        "discount_value": quote.coupon.discount_value,
        "discount": quote.discount,
        "total_after_discount": max(Decimal("0.00"), Decimal(cart_total) - quote.discount),
    }


@router.get("/mine", response=list[UserCouponOut], auth=_auth)
def my_coupons(request):
    return [
        {
            "id": uc.id,
            "code": uc.coupon.code,
            "description": uc.coupon.description,
            "discount_type": uc.coupon.discount_type,
            "discount_value": uc.coupon.discount_value,
            "expires_at": uc.expires_at,
        }
        for uc in user_wallet(user=request.auth)
    ]


@router.get("/admin", response=list[CouponOut], auth=_staff)
def list_coupons(request, active_only: bool = False):
    qs = Coupon.objects.all().order_by("-created_at")
    if active_only:
        qs = qs.filter(is_active=True)
    return list(qs)


@router.post("/admin", response=CouponOut, auth=_staff)
def add_coupon(request, payload: CouponCreateIn):
    try:
        return create_coupon(
            code=payload.code,
            description=payload.description,
            discount_type=payload.discount_type,
            discount_value=payload.discount_value,
            max_discount=payload.max_discount,
            min_amount=payload.min_amount,
            usage_limit=payload.usage_limit,
            one_per_user=payload.one_per_user,
            expires_at=payload.expires_at,
            created_by=request.auth,
        )
    except CouponError as e:
        raise HttpError(400, str(e))


@router.get("/admin/generate-code", response=CodeOut, auth=_staff)
def new_coupon_code(request):
    return {"code": generate_coupon_code()}


@router.post("/admin/{coupon_id}/deactivate", auth=_staff)
def deactivate(request, coupon_id: int):
    if not deactivate_coupon(coupon_id=coupon_id):
        raise HttpError(404, "Active coupon not found")
    return {"status": "ok"}


@router.post("/admin/{coupon_id}/assign", auth=_staff)
def assign(request, coupon_id: int, payload: CouponAssignIn):
    coupon = Coupon.objects.filter(id=coupon_id, is_active=True).first()
    if not coupon:
        raise HttpError(404, "Active coupon not found")
    user = User.objects.filter(id=payload.user_id, is_active=True).first()
    if not user:
        raise HttpError(404, "User not found")
    try:
        assigned = assign_coupon_to_user(coupon=coupon, user=user)
    except CouponError as e:
        raise HttpError(409, str(e))
    return {"status": "ok", "id": assigned.id, "expires_at": assigned.expires_at.isoformat()}
