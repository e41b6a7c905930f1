from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db import transaction
from django.db.models import Min
from django.utils import timezone

from .models import PriceAlert, PriceChange, Product

logger = logging.getLogger(__name__)


class PriceAlertError(ValueError):
    pass


def money_2dp(value: Decimal) -> Decimal:
    return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def percentage_change(old_price: Decimal, new_price: Decimal) -> Decimal:
    old_price = Decimal(old_price)
    if old_price == 0:
        return Decimal("0.00")
    return money_2dp((Decimal(new_price) - old_price) / old_price * Decimal("100"))


def build_price_change(
    *,
    product: Product,
    old_price: Decimal,
    new_price: Decimal,
    reason: str = "manual",
    changed_by=None,
) -> PriceChange:
    change_type = (
        PriceChange.ChangeType.INCREASE
        if Decimal(new_price) > Decimal(old_price)
        else PriceChange.ChangeType.DECREASE
    )
    return PriceChange.objects.create(
        product=product,
        old_price=money_2dp(old_price),
        new_price=money_2dp(new_price),
        change_type=change_type,
        percentage_change=percentage_change(old_price, new_price),
        reason=(reason or "manual")[:255],
        changed_by=changed_by,
    )


def record_price_change(
    *, product: Product, new_price: Decimal, reason: str = "manual", changed_by=None
) -> PriceChange | None:
    """Update the product price; history is written by the post_save signal.

    Returns the new history row, or None if the price did not change.
    """

    new_price = money_2dp(new_price)
    if new_price <= 0:
        raise ValueError("Price must be positive")
    if money_2dp(product.price) == new_price:
        return None

    product.price = new_price
    product._price_change_reason = reason
    product._price_changed_by = changed_by
    product.save(update_fields=["price", "updated_at"])
    return product.price_changes.order_by("-created_at", "-id").first()


def price_history(*, product: Product, limit: int = 50) -> list[PriceChange]:
    return list(product.price_changes.all()[: max(1, int(limit))])


def lowest_price(*, product: Product) -> Decimal:
    lowest_recorded = product.price_changes.aggregate(v=Min("new_price"))["v"]
    if lowest_recorded is None:
        return money_2dp(product.price)
    return min(money_2dp(product.price), money_2dp(lowest_recorded))


def is_lowest_price(*, product: Product) -> bool:
    return money_2dp(product.price) <= lowest_price(product=product)


def create_price_alert(*, user, product: Product, target_price: Decimal) -> PriceAlert:
    target_price = money_2dp(target_price)
    if target_price <= 0:
        raise PriceAlertError("Target price must be positive")

    with transaction.atomic():
        if PriceAlert.objects.select_for_update().filter(
            user=user, product=product, is_active=True
        ).exists():
            raise PriceAlertError("Price alert already exists for this product")
        return PriceAlert.objects.create(user=user, product=product, target_price=target_price)


def remove_price_alert(*, user, alert_id: int) -> bool:
    updated = PriceAlert.objects.filter(id=alert_id, user=user, is_active=True).update(
        is_active=False
    )
    return bool(updated)


def check_price_alerts(*, product: Product) -> list[PriceAlert]:
    """Mark alerts whose target the current price has reached and notify their owners."""

    now = timezone.now()
    with transaction.atomic():
        alerts = list(
            PriceAlert.objects.select_for_update()
            .select_related("user")
            .filter(
                product=product,
                is_active=True,
                notified=False,
                target_price__gte=product.price,
            )
        )
        for alert in alerts:
            alert.notified = True
            alert.notified_at = now
            alert.triggered_price = product.price
            alert.save(update_fields=["notified", "notified_at", "triggered_price"])

    if not alerts:
        return []

    from notifications.services import send_whatsapp

    for alert in alerts:
        phone = (alert.user.phone_number or "").strip()
        if not phone:
            continue
        result = send_whatsapp(
            to=phone,
            body=(
                f"¡Bajó el precio de {product.name}! Ahora cuesta ${product.price} "
                f"(tu alerta: ${alert.target_price})."
            ),
            kind="price_alert",
        )
        if not result.ok:
            logger.warning(
                "Price alert notification failed",
                extra={"alert_id": alert.id, "error": result.error},
            )
    return alerts
