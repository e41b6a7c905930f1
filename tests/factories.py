from __future__ import annotations

import itertools
from decimal import Decimal

from django.contrib.auth import get_user_model

from accounts.jwt_utils import issue_access_token
from catalog.models import Category, Product
from checkout.models import Cart, CartItem

User = get_user_model()

_seq = itertools.count(1)


def make_user(*, email: str | None = None, phone_number: str = "5491122334455", **extra):
    n = next(_seq)
    return User.objects.create_user(
        email=email or f"user{n}@example.com",
        password="secret-pass-123",
        first_name=extra.pop("first_name", "Juan"),
        last_name=extra.pop("last_name", "Pérez"),
        phone_number=phone_number,
        **extra,
    )


def make_staff(**extra):
    return make_user(is_staff=True, **extra)


def make_category(name: str = "Guantes") -> Category:
    n = next(_seq)
    return Category.objects.create(name=name, slug=f"{name.lower()}-{n}")


def make_product(
    *,
    name: str = "Guante de arquero",
    price: str | Decimal = "1500.00",
    stock: int = 10,
    category: Category | None = None,
    sales_count: int = 0,
    is_active: bool = True,
) -> Product:
    n = next(_seq)
    return Product.objects.create(
        sku=f"SKU-{n}",
        name=name,
        slug=f"product-{n}",
        price=Decimal(price),
        stock=stock,
        category=category,
        sales_count=sales_count,
        is_active=is_active,
    )


def make_cart(*, user, items: list[tuple[Product, int]]) -> Cart:
    cart = Cart.objects.create(user=user)
    for product, qty in items:
        CartItem.objects.create(cart=cart, product=product, qty=qty)
    return cart


def auth_headers(user) -> dict[str, str]:
    return {"HTTP_AUTHORIZATION": f"Bearer {issue_access_token(user_id=user.id)}"}
