from __future__ import annotations

from django.db.models import Q
from ninja import Router
from ninja.errors import HttpError
from ninja.pagination import PageNumberPagination, paginate

from accounts.auth import JWTAuth, StaffJWTAuth

from .api_schemas import (
    CategoryOut,
    PriceAlertIn,
    PriceAlertOut,
    PriceChangeIn,
    PriceChangeOut,
    PriceHistoryOut,
    ProductDetailOut,
    ProductListOut,
)
from .models import Category, PriceAlert, Product
from .services import (
    PriceAlertError,
    create_price_alert,
    is_lowest_price,
    lowest_price,
    price_history,
    record_price_change,
    remove_price_alert,
)

router = Router(tags=["catalog"])
_auth = JWTAuth()
_staff = StaffJWTAuth()


def _product_out(p: Product) -> dict:
    return {
        "id": p.id,
        "sku": p.sku,
        "slug": p.slug,
        "name": p.name,
        "price": p.price,
        "stock": p.stock,
        "in_stock": p.in_stock,
        "image_url": p.image_url or None,
        "category": (
            {"id": p.category.id, "slug": p.category.slug, "name": p.category.name}
            if p.category_id
            else None
        ),
    }


def _alert_out(a: PriceAlert) -> dict:
    return {
        "id": a.id,
        "product_id": a.product_id,
        "product_name": a.product.name,
        "target_price": a.target_price,
        "current_price": a.product.price,
        "is_active": a.is_active,
        "notified": a.notified,
        "notified_at": a.notified_at,
        "triggered_price": a.triggered_price,
    }


def _get_product(product_ref: str) -> Product:
    qs = Product.objects.select_related("category").filter(is_active=True)
    p = qs.filter(id=int(product_ref)).first() if product_ref.isdigit() else None
    if p is None:
        p = qs.filter(slug=product_ref).first()
    if p is None:
        raise HttpError(404, "Product not found")
    return p


@router.get("/categories", response=list[CategoryOut])
def categories(request):
    qs = Category.objects.filter(is_active=True).order_by("name")
    return [
        {"id": c.id, "slug": c.slug, "name": c.name, "description": c.description or ""}
        for c in qs
    ]


@router.get("/products", response=list[ProductListOut])
@paginate(PageNumberPagination, page_size=20)
def products(request, category: str | None = None, q: str | None = None, in_stock: bool = False):
    qs = Product.objects.filter(is_active=True).select_related("category").order_by("name", "id")

    if category:
        qs = qs.filter(category__slug=category.strip())
    if q and q.strip():
        term = q.strip()
        qs = qs.filter(Q(name__icontains=term) | Q(description__icontains=term) | Q(sku__iexact=term))
    if in_stock:
        qs = qs.filter(stock__gt=0)

    return [_product_out(p) for p in qs]


@router.get("/products/{product_ref}", response=ProductDetailOut)
def product_detail(request, product_ref: str):
    p = _get_product(product_ref)
    out = _product_out(p)
    out.update(
        {
            "description": p.description or "",
            "sales_count": p.sales_count,
            "lowest_price": lowest_price(product=p),
            "is_lowest_price": is_lowest_price(product=p),
        }
    )
    return out


@router.get("/products/{product_ref}/price-history", response=PriceHistoryOut)
def product_price_history(request, product_ref: str, limit: int = 50):
    p = _get_product(product_ref)
    return {
        "product_id": p.id,
        "current_price": p.price,
        "lowest_price": lowest_price(product=p),
        "is_lowest_price": is_lowest_price(product=p),
        "history": price_history(product=p, limit=limit),
    }


@router.post("/products/{product_id}/price", response=PriceChangeOut, auth=_staff)
def change_product_price(request, product_id: int, payload: PriceChangeIn):
    p = Product.objects.filter(id=product_id).first()
    if not p:
        raise HttpError(404, "Product not found")
    try:
        change = record_price_change(
            product=p, new_price=payload.new_price, reason=payload.reason, changed_by=request.auth
        )
    except ValueError as e:
        raise HttpError(400, str(e))
    if change is None:
        raise HttpError(400, "Price unchanged")
    return change


@router.get("/price-alerts", response=list[PriceAlertOut], auth=_auth)
def list_price_alerts(request):
    qs = PriceAlert.objects.filter(user=request.auth, is_active=True).select_related("product")
    return [_alert_out(a) for a in qs]


@router.post("/price-alerts", response=PriceAlertOut, auth=_auth)
def add_price_alert(request, payload: PriceAlertIn):
    p = Product.objects.filter(id=payload.product_id, is_active=True).first()
    if not p:
        raise HttpError(404, "Product not found")
    try:
        alert = create_price_alert(user=request.auth, product=p, target_price=payload.target_price)
    except PriceAlertError as e:
        raise HttpError(400, str(e))
    return _alert_out(alert)


@router.delete("/price-alerts/{alert_id}", auth=_auth)
def delete_price_alert(request, alert_id: int):
    if not remove_price_alert(user=request.auth, alert_id=alert_id):
        raise HttpError(404, "Price alert not found")
    return {"status": "ok"}
