from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from django.conf import settings

from catalog.models import Product

logger = logging.getLogger(__name__)

STRATEGIES = ("category", "popular", "user-based", "hybrid")

REASON_CATEGORY = "Misma categoría"
REASON_POPULAR = "Más vendido"
REASON_USER = "Te puede interesar"
REASON_FALLBACK = "Popular"

USER_HISTORY_ORDERS = 10


@dataclass(frozen=True)
class Recommendation:
    product: Product
    reason: str


def _limit(name: str, default: int) -> int:
    try:
        v = int(getattr(settings, name, default))
    except (TypeError, ValueError):
        return default
    return v if v > 0 else default


def _share(limit: int, fraction: float) -> int:
    return max(1, math.ceil(limit * fraction))


def _available():
    return Product.objects.filter(is_active=True, stock__gt=0).select_related("category")


def _same_category(*, product: Product, limit: int) -> list[Product]:
    if not product.category_id:
        return []
    qs = _available().filter(category_id=product.category_id).exclude(id=product.id)
    return list(qs.order_by("-sales_count", "id")[:limit])


def _popular(*, exclude_ids: set[int], limit: int) -> list[Product]:
    qs = _available().exclude(id__in=exclude_ids)
    return list(qs.order_by("-sales_count", "id")[:limit])


def _purchased_category_ids(*, user) -> set[int]:
    from checkout.models import Order, OrderLine

    order_ids = list(
        Order.objects.filter(user=user)
        .exclude(status=Order.Status.CANCELLED)
        .order_by("-created_at", "-id")
        .values_list("id", flat=True)[:USER_HISTORY_ORDERS]
    )
    if not order_ids:
        return set()
    return set(
        OrderLine.objects.filter(order_id__in=order_ids, product__category__isnull=False)
        .values_list("product__category_id", flat=True)
        .distinct()
    )


def _user_based(*, user, exclude_ids: set[int], limit: int) -> list[Product]:
    category_ids = _purchased_category_ids(user=user)
    if not category_ids:
        return []
    qs = _available().filter(category_id__in=category_ids).exclude(id__in=exclude_ids)
    return list(qs.order_by("-sales_count", "id")[:limit])


def recommend_products(
    *,
    product: Product | None = None,
    user=None,
    limit: int | None = None,
    strategy: str = "hybrid",
) -> list[Recommendation]:
    """Products to show next to `product` (or on a personal page when it is None).

    Hybrid mixes same-category items (~40%), best sellers (~30%) and categories
    from the user's last orders (~30%). Duplicates and the product itself are
    dropped, and any remaining room is filled with best sellers.
    """

    limit = int(limit or _limit("RECOMMENDATIONS_LIMIT", 6))
    strategy = (strategy or "hybrid").strip().lower()
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown strategy: {strategy}")

    own_id = {product.id} if product is not None else set()
    picked: list[Recommendation] = []
    seen: set[int] = set(own_id)

    def take(products: list[Product], reason: str) -> None:
        for p in products:
            if p.id in seen:
                continue
            seen.add(p.id)
            picked.append(Recommendation(product=p, reason=reason))

    if product is not None and strategy in ("hybrid", "category"):
        take(_same_category(product=product, limit=_share(limit, 0.4)), REASON_CATEGORY)

    if strategy in ("hybrid", "popular"):
        take(_popular(exclude_ids=own_id, limit=_share(limit, 0.3)), REASON_POPULAR)

    if user is not None and strategy in ("hybrid", "user-based"):
        take(_user_based(user=user, exclude_ids=set(seen), limit=_share(limit, 0.3)), REASON_USER)

    picked = picked[:limit]
    if len(picked) < limit:
        take(_popular(exclude_ids=set(seen), limit=limit - len(picked)), REASON_FALLBACK)

    logger.debug(
        "Recommendations computed",
        extra={
            "product_id": getattr(product, "id", None),
            "strategy": strategy,
            "count": len(picked),
        },
    )
    return picked[:limit]
