from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models


class Cart(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="cart",
    )
    # Anonymous carts are stored per Django session.
    session_key = models.CharField(max_length=40, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=(~models.Q(user=None) | ~models.Q(session_key="")),
                name="chk_cart_user_or_session",
            ),
            models.UniqueConstraint(
                fields=["session_key"],
                condition=~models.Q(session_key=""),
                name="uniq_cart_session_key",
            ),
        ]

    def __str__(self) -> str:
        if self.user_id:
            return f"cart:user:{self.user_id}"
        if self.session_key:
            return f"cart:session:{self.session_key}"
        return f"cart:{self.id}"


class CartItem(models.Model):
    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(
        "catalog.Product", on_delete=models.CASCADE, related_name="cart_items"
    )
    qty = models.PositiveIntegerField(default=1)
    # Free text from the customer (size, colour, engraving...).
    notes = models.CharField(max_length=500, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["cart", "product"], name="uniq_cart_product"),
            models.CheckConstraint(condition=models.Q(qty__gte=1), name="chk_cart_qty_gte_1"),
        ]
        ordering = ["-updated_at", "-id"]

    def __str__(self) -> str:
        return f"cart:{self.cart_id} product:{self.product_id} x{self.qty}"


class Order(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PROCESSING = "processing", "Processing"
        CONFIRMED = "confirmed", "Confirmed"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"

    class PaymentMethod(models.TextChoices):
        CASH = "cash", "Efectivo"
        CARD = "card", "Tarjeta"
        BANK_TRANSFER = "bank_transfer", "Transferencia bancaria"
        PAYMENT_LINK = "payment_link", "Link de pago"

    OPEN_STATUSES = (Status.PENDING, Status.PROCESSING)
    PAID_STATUSES = (Status.CONFIRMED, Status.COMPLETED)
    MANUAL_METHODS = (PaymentMethod.CASH, PaymentMethod.BANK_TRANSFER)
    # payment_id of redirect orders; only checkout may issue references in this namespace.
    PAYMENT_ID_PREFIX = "payment_"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="orders",
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)

    # Snapshot of the customer at checkout time.
    customer_name = models.CharField(max_length=200, blank=True, default="")
    customer_email = models.EmailField(blank=True, default="")
    phone_number = models.CharField(max_length=20, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    currency = models.CharField(max_length=3, default="ARS")
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    level_discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    coupon_code = models.CharField(max_length=32, blank=True, default="")
    coupon_discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    points_earned = models.PositiveIntegerField(default=0)

    # `payment_<order id>` for redirect methods; also sent as the MercadoPago external reference.
    payment_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    payment_details = models.JSONField(default=dict, blank=True)
    preference_id = models.CharField(max_length=64, blank=True, default="")
    redirect_url = models.URLField(max_length=1000, blank=True, default="")

    confirmed_at = models.DateTimeField(null=True, blank=True)
    confirmed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["status", "-created_at"], name="order_status_date_idx"),
            models.Index(fields=["user", "-created_at"], name="order_user_date_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(total__gte=0), name="chk_order_total_gte_0"),
        ]

    def __str__(self) -> str:
        return f"order:{self.id} {self.status}"

    @property
    def is_open(self) -> bool:
        return self.status in self.OPEN_STATUSES

    @property
    def is_manual_payment(self) -> bool:
        return self.payment_method in self.MANUAL_METHODS


class OrderLine(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="lines")
    product = models.ForeignKey(
        "catalog.Product",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="order_lines",
    )

    sku = models.CharField(max_length=64, blank=True, default="")
    product_name = models.CharField(max_length=255)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    qty = models.PositiveIntegerField()
    notes = models.CharField(max_length=500, blank=True, default="")
    line_total = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(condition=models.Q(qty__gte=1), name="chk_orderline_qty_gte_1"),
        ]

    def __str__(self) -> str:
        return f"order:{self.order_id} {self.product_name} x{self.qty}"
