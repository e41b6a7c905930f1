from __future__ import annotations

import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from ninja import Router
from ninja.errors import HttpError
from ninja.pagination import PageNumberPagination, paginate

from accounts.auth import JWTAuth, StaffJWTAuth, user_from_request_if_present
from catalog.models import Product
from payments.api import payment_throttle
from payments.errors import categorize_payment_error
from payments.services.mercadopago import MercadoPagoApiError, MercadoPagoClient, PreferenceValidationError
from payments.services.methods import bank_transfer_method

from .models import Cart, CartItem, Order
from .schemas import (
    AdminOrderOut,
    CartItemAddIn,
    CartItemUpdateIn,
    CartOut,
    CheckoutPreviewIn,
    CheckoutPreviewOut,
    OrderActionOut,
    OrderCreateIn,
    OrderCreateOut,
    OrderOut,
)
from .services import (
    CheckoutError,
    InsufficientStockError,
    attach_preference,
    cancel_order,
    cart_items,
    cart_subtotal,
    clear_cart,
    confirm_order,
    create_order,
    preference_items_for,
    quote_totals,
)

router = Router(tags=["checkout"])
_auth = JWTAuth()
_staff = StaffJWTAuth()

logger = logging.getLogger(__name__)

ADMIN_STATUS_FILTERS = {"all", *Order.Status.values}


def _require_user(request):
    user = request.auth
    if not user:
        raise HttpError(401, "Unauthorized")
    return user


def _session_key(request, *, create: bool) -> str:
    session = getattr(request, "session", None)
    if session is None:
        return ""
    if not session.session_key and create:
        session["cart_init"] = True
        session.save()
    return session.session_key or ""


def _get_cart_for_request(request, *, create: bool) -> Cart | None:
    """User cart when logged in (absorbing the guest cart of this session), else the session cart."""

    user = user_from_request_if_present(request)
    session_key = _session_key(request, create=create and user is None)

    if user:
        user_cart = Cart.objects.filter(user=user).first()
        guest_cart = None
        if session_key:
            guest_cart = Cart.objects.filter(user=None, session_key=session_key).first()

        if user_cart is None:
            # Allow merge on first GET after login if a guest cart exists.
            if not (create or guest_cart):
                return None
            user_cart = Cart.objects.create(user=user, session_key="")

        if guest_cart and guest_cart.id != user_cart.id:
            with transaction.atomic():
                for it in CartItem.objects.filter(cart=guest_cart).select_related("product"):
                    existing = CartItem.objects.filter(cart=user_cart, product=it.product).first()
                    if existing:
                        existing.qty = existing.qty + it.qty
                        existing.save(update_fields=["qty", "updated_at"])
                    else:
                        it.pk = None
                        it.cart = user_cart
                        it.save()
                CartItem.objects.filter(cart=guest_cart).delete()
                guest_cart.delete()

        return user_cart

    if not session_key:
        return None
    if not create:
        return Cart.objects.filter(user=None, session_key=session_key).first()

    cart, _ = Cart.objects.get_or_create(user=None, session_key=session_key)
    return cart


def _cart_out(cart: Cart | None) -> dict:
    items = cart_items(cart=cart)
    return {
        "currency": str(getattr(settings, "STORE_CURRENCY", "ARS")),
        "items": [
            {
                "id": it.id,
                "product_id": it.product_id,
                "sku": it.product.sku,
                "name": it.product.name,
                "image_url": it.product.image_url or "",
                "qty": it.qty,
                "stock_available": it.product.stock,
                "unit_price": it.product.price,
                "line_total": (it.product.price * it.qty).quantize(Decimal("0.01")),
                "notes": it.notes,
            }
            for it in items
        ],
        "items_count": sum(it.qty for it in items),
        "subtotal": cart_subtotal(cart=cart),
    }


def _order_out(order: Order) -> dict:
    return {
        "id": order.id,
        "status": order.status,
        "payment_method": order.payment_method,
        "currency": order.currency,
        "subtotal": order.subtotal,
        "level_discount": order.level_discount,
        "coupon_code": order.coupon_code,
        "coupon_discount": order.coupon_discount,
        "total": order.total,
        "points_earned": order.points_earned,
        "payment_id": order.payment_id,
        "redirect_url": order.redirect_url,
        "created_at": order.created_at,
        "confirmed_at": order.confirmed_at,
        "completed_at": order.completed_at,
        "cancelled_at": order.cancelled_at,
        "lines": [
            {
                "product_id": ln.product_id,
                "sku": ln.sku,
                "name": ln.product_name,
                "unit_price": ln.unit_price,
                "qty": ln.qty,
                "notes": ln.notes,
                "line_total": ln.line_total,
            }
            for ln in order.lines.all()
        ],
    }


def _admin_order_out(order: Order) -> dict:
    out = _order_out(order)
    out.update(
        {
            "user_id": order.user_id,
            "customer_name": order.customer_name,
            "customer_email": order.customer_email,
            "phone_number": order.phone_number,
            "payment_details": order.payment_details or {},
            "confirmed_by_id": order.confirmed_by_id,
        }
    )
    return out


@router.get("/cart", response=CartOut)
def get_cart(request):
    return _cart_out(_get_cart_for_request(request, create=False))


@router.post("/cart/items", response=CartOut)
def add_cart_item(request, payload: CartItemAddIn):
    qty = int(payload.qty or 0)
    if qty <= 0:
        raise HttpError(400, "qty must be positive")

    product = Product.objects.filter(id=payload.product_id, is_active=True).first()
    if not product:
        raise HttpError(404, "Product not found")

    cart = _get_cart_for_request(request, create=True)
    if cart is None:
        raise HttpError(400, "Could not create cart")

    with transaction.atomic():
        item = CartItem.objects.select_for_update().filter(cart=cart, product=product).first()
        new_qty = qty + (item.qty if item else 0)
        if new_qty > product.stock:
            raise HttpError(409, f"Not enough stock (available: {product.stock})")
        if item:
            item.qty = new_qty
            if payload.notes:
                item.notes = payload.notes.strip()[:500]
            item.save(update_fields=["qty", "notes", "updated_at"])
        else:
            CartItem.objects.create(cart=cart, product=product, qty=qty, notes=(payload.notes or "").strip()[:500])

    return _cart_out(cart)


@router.patch("/cart/items/{item_id}", response=CartOut)
def update_cart_item(request, item_id: int, payload: CartItemUpdateIn):
    cart = _get_cart_for_request(request, create=False)
    if cart is None:
        raise HttpError(404, "Cart item not found")

    item = CartItem.objects.select_related("product").filter(cart=cart, id=item_id).first()
    if not item:
        raise HttpError(404, "Cart item not found")

    qty = int(payload.qty or 0)
    if qty <= 0:
        item.delete()
        return _cart_out(cart)
    if qty > item.product.stock:
        raise HttpError(409, f"Not enough stock (available: {item.product.stock})")

    item.qty = qty
    if payload.notes is not None:
        item.notes = payload.notes.strip()[:500]
    item.save(update_fields=["qty", "notes", "updated_at"])
    return _cart_out(cart)


@router.delete("/cart/items/{item_id}", response=CartOut)
def delete_cart_item(request, item_id: int):
    cart = _get_cart_for_request(request, create=False)
    if cart is None:
        raise HttpError(404, "Cart item not found")

    deleted, _ = CartItem.objects.filter(cart=cart, id=item_id).delete()
    if not deleted:
        raise HttpError(404, "Cart item not found")
    return _cart_out(cart)


@router.post("/checkout/preview", response=CheckoutPreviewOut, auth=_auth)
def checkout_preview(request, payload: CheckoutPreviewIn):
    user = _require_user(request)
    cart = _get_cart_for_request(request, create=False)
    if not cart_items(cart=cart):
        raise HttpError(400, "Cart is empty")

    try:
        totals = quote_totals(user=user, subtotal=cart_subtotal(cart=cart), coupon_code=payload.coupon_code or "")
    except CheckoutError as e:
        raise HttpError(400, str(e)) from e

    return {
        "currency": str(getattr(settings, "STORE_CURRENCY", "ARS")),
        "subtotal": totals.subtotal,
        "level_name": totals.level_name,
        "level_discount_percent": totals.level_discount_percent,
        "level_discount": totals.level_discount,
        "coupon_code": (payload.coupon_code or "").strip().upper(),
        "coupon_discount": totals.coupon_discount,
        "total": totals.total,
        "points_earned": totals.points_earned,
    }


@router.post("/checkout/orders", response=OrderCreateOut, auth=_auth, throttle=payment_throttle)
def checkout_create_order(request, payload: OrderCreateIn):
    user = _require_user(request)
    cart = _get_cart_for_request(request, create=False)

    try:
        order = create_order(
            user=user,
            cart=cart,
            payment_method=payload.payment_method,
            phone_number=payload.phone_number,
            customer_name=payload.customer_name,
            coupon_code=payload.coupon_code or "",
            notes=payload.notes,
        )
    except InsufficientStockError as e:
        raise HttpError(409, str(e)) from e
    except CheckoutError as e:
        raise HttpError(400, str(e)) from e

    instructions = ""
    operator_notified = False
    if order.is_manual_payment:
        from notifications.services import notify_new_pending_order

        result = notify_new_pending_order(order)
        operator_notified = result.ok
        if not result.ok:
            logger.warning(
                "Operator was not notified about pending order",
                extra={"order_id": order.id, "error": result.error},
            )
        if order.payment_method == Order.PaymentMethod.BANK_TRANSFER:
            instructions = bank_transfer_method().instructions_for_order(order_id=order.id)
    else:
        try:
            preference = MercadoPagoClient().create_preference(
                items=preference_items_for(order),
                user_id=user.id,
                metadata={"order_id": order.id, "total": str(order.total)},
                external_reference=order.payment_id,
            )
        except (PreferenceValidationError, MercadoPagoApiError) as e:
            info = categorize_payment_error(e)
            logger.exception(
                "Payment initiation failed",
                extra={"order_id": order.id, "error_type": info.type, "retryable": info.retryable},
            )
            cancel_order(order_id=order.id)
            if info.retryable:
                raise HttpError(502, "Could not start the payment, please try again") from e
            raise HttpError(400, f"Could not start the payment: {info.message}") from e
        attach_preference(order=order, preference=preference)

    clear_cart(cart=cart)
    return {
        "order_id": order.id,
        "status": order.status,
        "payment_method": order.payment_method,
        "total": order.total,
        "points_earned": order.points_earned,
        "payment_id": order.payment_id,
        "redirect_url": order.redirect_url,
        "payment_instructions": instructions,
        "operator_notified": operator_notified,
    }


@router.get("/orders", response=list[OrderOut], auth=_auth)
def list_orders(request, limit: int = 20):
    user = _require_user(request)
    limit = max(1, min(int(limit or 20), 50))
    qs = Order.objects.filter(user=user).prefetch_related("lines").order_by("-created_at", "-id")[:limit]
    return [_order_out(o) for o in qs]


@router.get("/orders/{order_id}", response=OrderOut, auth=_auth)
def get_order(request, order_id: int):
    user = _require_user(request)
    order = Order.objects.filter(user=user, id=order_id).prefetch_related("lines").first()
    if not order:
        raise HttpError(404, "Order not found")
    return _order_out(order)


class AdminOrderPagination(PageNumberPagination):
    """Slices the queryset first, then builds output rows for that page only."""

    def paginate_queryset(self, queryset, pagination, **params):
        page = super().paginate_queryset(queryset, pagination, **params)
        page["items"] = [_admin_order_out(o) for o in page["items"]]
        return page


@router.get("/admin/orders", response=list[AdminOrderOut], auth=_staff)
@paginate(AdminOrderPagination, page_size=50)
def admin_list_orders(request, status: str = "pending"):
    status = (status or "pending").strip().lower()
    if status not in ADMIN_STATUS_FILTERS:
        raise HttpError(400, "Invalid status filter")

    qs = Order.objects.prefetch_related("lines").order_by("-created_at", "-id")
    if status != "all":
        qs = qs.filter(status=status)
    return qs


@router.post("/admin/orders/{order_id}/confirm", response=OrderActionOut, auth=_staff)
def admin_confirm_order(request, order_id: int):
    order = Order.objects.filter(id=order_id).first()
    if not order:
        raise HttpError(404, "Order not found")

    changed = confirm_order(order_id=order.id, confirmed_by=request.auth)
    order.refresh_from_db(fields=["status"])
    if not changed and order.status == Order.Status.CANCELLED:
        raise HttpError(409, "Cancelled orders cannot be confirmed")
    return {"order_id": order.id, "status": order.status, "changed": changed}


@router.post("/admin/orders/{order_id}/cancel", response=OrderActionOut, auth=_staff)
def admin_cancel_order(request, order_id: int):
    order = Order.objects.filter(id=order_id).first()
    if not order:
        raise HttpError(404, "Order not found")

    changed = cancel_order(order_id=order.id)
    order.refresh_from_db(fields=["status"])
    if not changed and order.status != Order.Status.CANCELLED:
        raise HttpError(409, "Only pending or processing orders can be cancelled")
    return {"order_id": order.id, "status": order.status, "changed": changed}
