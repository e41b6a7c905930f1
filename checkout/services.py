from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import F, Value
from django.db.models.functions import Greatest
from django.utils import timezone

from .models import Cart, CartItem, Order, OrderLine

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


class CheckoutError(ValueError):
    pass


class InsufficientStockError(CheckoutError):
    pass


def _q(value: Decimal) -> Decimal:
    return Decimal(value).quantize(Decimal("0.01"))


def cart_items(*, cart: Cart | None) -> list[CartItem]:
    if cart is None:
        return []
    return list(CartItem.objects.select_related("product").filter(cart=cart).order_by("id"))


def cart_subtotal(*, cart: Cart | None) -> Decimal:
    return _q(sum((it.product.price * it.qty for it in cart_items(cart=cart)), ZERO))


def clear_cart(*, cart: Cart | None) -> None:
    if cart is not None:
        CartItem.objects.filter(cart=cart).delete()


def initial_status_for(payment_method: str) -> str:
    """Manual settlement waits for an operator; redirect methods wait for the provider."""
    if payment_method in (Order.PaymentMethod.CARD, Order.PaymentMethod.PAYMENT_LINK):
        return Order.Status.PROCESSING
    return Order.Status.PENDING


@dataclass(frozen=True)
class CheckoutTotals:
    subtotal: Decimal
    level_name: str
    level_discount_percent: int
    level_discount: Decimal
    coupon_discount: Decimal
    total: Decimal
    points_earned: int


def quote_totals(*, user, subtotal: Decimal, coupon_code: str = "") -> CheckoutTotals:
    """Apply the loyalty level discount, then the coupon on what remains."""

    from loyalty.services import get_level, level_discount, points_for_total
    from promotions.services import CouponError, normalize_code, validate_coupon

    subtotal = _q(subtotal)
    level, _ = get_level(user=user)
    lvl_discount = _q(min(level_discount(user=user, subtotal=subtotal), subtotal))
    after_level = subtotal - lvl_discount

    cpn_discount = ZERO
    coupon_code = normalize_code(coupon_code)
    if coupon_code:
        try:
            quote = validate_coupon(code=coupon_code, user=user, cart_total=after_level)
        except CouponError as e:
            raise CheckoutError(str(e)) from e
        cpn_discount = _q(min(quote.discount, after_level))

    total = _q(max(ZERO, after_level - cpn_discount))
    return CheckoutTotals(
        subtotal=subtotal,
        level_name=level.name,
        level_discount_percent=level.discount_percent,
        level_discount=lvl_discount,
        coupon_discount=cpn_discount,
        total=total,
        points_earned=points_for_total(total),
    )


def _resolve_phone(*, payment_method: str, phone_number: str, user) -> str:
    from accounts.models import is_valid_ar_mobile, normalize_phone

    phone = normalize_phone(phone_number or getattr(user, "phone_number", "") or "")
    if payment_method == Order.PaymentMethod.BANK_TRANSFER and not phone:
        raise CheckoutError("A phone number is required for bank transfer payments")
    if phone and not is_valid_ar_mobile(phone):
        raise CheckoutError("Invalid phone number. Use the format 549XXXXXXXXXX")
    return phone


def create_order(
    *,
    user,
    cart: Cart | None,
    payment_method: str,
    phone_number: str = "",
    customer_name: str = "",
    coupon_code: str = "",
    notes: str = "",
) -> Order:
    """Write an order from the cart contents.

    Totals: subtotal, minus the loyalty level discount, minus the coupon discount
    (computed on the already level-discounted amount). Points earned are derived
    from the final total. The cart itself is left untouched; callers clear it
    once payment initiation went through.
    """

    from catalog.models import Product
    from promotions.services import normalize_code, reserve_coupon_for_order

    payment_method = (payment_method or "").strip()
    if payment_method not in Order.PaymentMethod.values:
        raise CheckoutError("Unsupported payment method")

    phone = _resolve_phone(payment_method=payment_method, phone_number=phone_number, user=user)
    coupon_code = normalize_code(coupon_code)

    with transaction.atomic():
        items = cart_items(cart=cart)
        if not items:
            raise CheckoutError("Cart is empty")

        products = {
            p.id: p
            for p in Product.objects.select_for_update()
            .filter(id__in=[it.product_id for it in items])
            .order_by("id")
        }

        subtotal = ZERO
        for it in items:
            product = products.get(it.product_id)
            if product is None or not product.is_active:
                raise CheckoutError(f"{it.product.name} is no longer available")
            if product.stock < it.qty:
                raise InsufficientStockError(
                    f"Insufficient stock for {product.name} (available: {product.stock})"
                )
            subtotal += product.price * it.qty
        totals = quote_totals(user=user, subtotal=subtotal, coupon_code=coupon_code)

        full_name = ""
        if user is not None:
            full_name = f"{getattr(user, 'first_name', '')} {getattr(user, 'last_name', '')}".strip()

        order = Order.objects.create(
            user=user,
            status=initial_status_for(payment_method),
            payment_method=payment_method,
            customer_name=(customer_name or "").strip() or full_name or getattr(user, "email", ""),
            customer_email=getattr(user, "email", "") or "",
            phone_number=phone,
            notes=(notes or "").strip(),
            currency=str(getattr(settings, "STORE_CURRENCY", "ARS") or "ARS"),
            subtotal=totals.subtotal,
            level_discount=totals.level_discount,
            coupon_code=coupon_code,
            coupon_discount=totals.coupon_discount,
            total=totals.total,
            points_earned=totals.points_earned,
        )

        OrderLine.objects.bulk_create(
            [
                OrderLine(
                    order=order,
                    product=products[it.product_id],
                    sku=products[it.product_id].sku,
                    product_name=products[it.product_id].name,
                    unit_price=products[it.product_id].price,
                    qty=it.qty,
                    notes=it.notes,
                    line_total=_q(products[it.product_id].price * it.qty),
                )
                for it in items
            ]
        )

        if order.payment_method not in Order.MANUAL_METHODS:
            order.payment_id = f"{Order.PAYMENT_ID_PREFIX}{order.id}"
            order.save(update_fields=["payment_id", "updated_at"])

        if coupon_code and not reserve_coupon_for_order(order_id=order.id):
            raise CheckoutError("This coupon is no longer available")

    logger.info(
        "Order created",
        extra={
            "order_id": order.id,
            "payment_method": order.payment_method,
            "total": str(order.total),
            "status": order.status,
        },
    )
    return order


def preference_items_for(order: Order) -> list[dict]:
    """Order lines as MercadoPago preference items; a discounted order becomes one line."""

    lines = list(order.lines.all())
    items = [
        {"title": ln.product_name, "unit_price": ln.unit_price, "quantity": ln.qty}
        for ln in lines
    ]
    discount = _q(order.subtotal - order.total)
    if discount > 0:
        # The preference API has no discount line; charge the order total as a single item.
        items = [{"title": f"Orden #{order.id}", "unit_price": order.total, "quantity": 1}]
    return items


def attach_preference(*, order: Order, preference: dict) -> Order:
    order.preference_id = str(preference.get("id") or "")
    order.redirect_url = str(preference.get("init_point") or "")
    order.payment_details = {**(order.payment_details or {}), "preference_demo": bool(preference.get("demo"))}
    order.save(update_fields=["preference_id", "redirect_url", "payment_details", "updated_at"])
    return order


def complete_order(
    *,
    order_id: int,
    final_status: str = Order.Status.COMPLETED,
    payment_details: dict | None = None,
    confirmed_by=None,
    now=None,
) -> bool:
    """Finalise an open order: status, stock, sales counters, points, referral, coupon.

    Returns False when the order is not open (already finalised or cancelled), so
    repeated webhooks and double admin clicks do not decrement stock twice.
    """

    from catalog.models import Product

    if final_status not in (Order.Status.COMPLETED, Order.Status.CONFIRMED):
        raise ValueError("final_status must be completed or confirmed")

    now = now or timezone.now()
    with transaction.atomic():
        order = Order.objects.select_for_update().filter(id=int(order_id)).first()
        if order is None or not order.is_open:
            return False

        order.status = final_status
        if final_status == Order.Status.CONFIRMED:
            order.confirmed_at = now
            order.confirmed_by = confirmed_by
        order.completed_at = now
        if payment_details:
            order.payment_details = {**(order.payment_details or {}), **payment_details}
        order.save(
            update_fields=[
                "status",
                "confirmed_at",
                "confirmed_by",
                "completed_at",
                "payment_details",
                "updated_at",
            ]
        )

        for line in order.lines.exclude(product=None).order_by("product_id"):
            Product.objects.filter(id=line.product_id).update(
                stock=Greatest(F("stock") - line.qty, Value(0)),
                sales_count=F("sales_count") + line.qty,
            )

    _run_completion_side_effects(order)
    logger.info("Order finalised", extra={"order_id": order.id, "status": order.status})
    return True


def _run_completion_side_effects(order: Order) -> None:
    from loyalty.services import award_points, points_for_total
    from promotions.services import redeem_coupon_for_order
    from referrals.services import complete_referral

    if order.user_id:
        try:
            points = int(order.points_earned or points_for_total(order.total))
            award_points(user=order.user, points=points, reason=f"Compra #{order.id}", order=order)
        except Exception:
            logger.exception("Failed to award loyalty points", extra={"order_id": order.id})

        try:
            complete_referral(referred_user=order.user)
        except Exception:
            logger.exception("Failed to complete referral", extra={"order_id": order.id})

    if order.coupon_code:
        try:
            redeem_coupon_for_order(order_id=order.id)
        except Exception:
            logger.exception("Failed to redeem coupon", extra={"order_id": order.id})


def confirm_order(*, order_id: int, confirmed_by=None) -> bool:
    """Operator confirmation of a manual payment; also tells the customer on WhatsApp."""

    from notifications.services import notify_payment_confirmed

    if not complete_order(order_id=order_id, final_status=Order.Status.CONFIRMED, confirmed_by=confirmed_by):
        return False

    order = Order.objects.get(id=int(order_id))
    result = notify_payment_confirmed(order)
    if result is not None and not result.ok:
        logger.warning("Payment confirmation message not sent", extra={"order_id": order.id, "error": result.error})
    return True


def cancel_order(*, order_id: int, now=None) -> bool:
    from promotions.services import release_coupon_for_order

    now = now or timezone.now()
    with transaction.atomic():
        order = Order.objects.select_for_update().filter(id=int(order_id)).first()
        if order is None or not order.is_open:
            return False
        order.status = Order.Status.CANCELLED
        order.cancelled_at = now
        order.save(update_fields=["status", "cancelled_at", "updated_at"])
        release_coupon_for_order(order_id=order.id)

    logger.info("Order cancelled", extra={"order_id": order.id})
    return True


def stale_order_ids(*, now=None) -> list[int]:
    now = now or timezone.now()
    pending_hours = int(getattr(settings, "ORDER_PENDING_TTL_HOURS", 72) or 72)
    processing_hours = int(getattr(settings, "ORDER_PROCESSING_TTL_HOURS", 24) or 24)

    pending = Order.objects.filter(
        status=Order.Status.PENDING, created_at__lt=now - timedelta(hours=pending_hours)
    ).values_list("id", flat=True)
    processing = Order.objects.filter(
        status=Order.Status.PROCESSING, created_at__lt=now - timedelta(hours=processing_hours)
    ).values_list("id", flat=True)
    return sorted({*pending, *processing})


def expire_stale_orders(*, now=None) -> int:
    """Cancel abandoned orders. Returns how many were cancelled (0 on database errors)."""

    now = now or timezone.now()
    try:
        expired = 0
        for oid in stale_order_ids(now=now):
            if cancel_order(order_id=oid, now=now):
                expired += 1
    except DatabaseError:
        logger.exception("Failed to expire stale orders")
        return 0

    if expired:
        logger.info("Expired stale orders", extra={"count": expired})
    return expired
