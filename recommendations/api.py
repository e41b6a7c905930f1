from __future__ import annotations

from ninja import Router, Schema
from ninja.errors import HttpError

from accounts.auth import JWTAuth, user_from_request_if_present
from catalog.api_schemas import ProductListOut
from catalog.models import Product

from .services import STRATEGIES, recommend_products


router = Router(tags=["recommendations"])


class RecommendedProductOut(ProductListOut):
    reason: str


class RecommendationsOut(Schema):
    strategy: str
    items: list[RecommendedProductOut]


def _items_out(recs) -> list[dict]:
    from catalog.api import _product_out

    return [{**_product_out(r.product), "reason": r.reason} for r in recs]


def _check_params(strategy: str, limit: int) -> str:
    strategy = (strategy or "hybrid").strip().lower()
    if strategy not in STRATEGIES:
        raise HttpError(400, f"strategy must be one of: {', '.join(STRATEGIES)}")
    if limit < 1 or limit > 24:
        raise HttpError(400, "limit must be between 1 and 24")
    return strategy


@router.get("/products/{product_id}", response=RecommendationsOut)
def product_recommendations(request, product_id: int, strategy: str = "hybrid", limit: int = 6):
    strategy = _check_params(strategy, limit)
    product = Product.objects.select_related("category").filter(id=product_id, is_active=True).first()
    if product is None:
        raise HttpError(404, "Product not found")

    user = user_from_request_if_present(request)
    recs = recommend_products(product=product, user=user, limit=limit, strategy=strategy)
    return {"strategy": strategy, "items": _items_out(recs)}


@router.get("/for-me", response=RecommendationsOut, auth=JWTAuth())
def my_recommendations(request, limit: int = 6):
    _check_params("hybrid", limit)
    recs = recommend_products(user=request.auth, limit=limit, strategy="hybrid")
    return {"strategy": "hybrid", "items": _items_out(recs)}
