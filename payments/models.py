from __future__ import annotations

from django.db import models


class PaymentMethod(models.Model):
    class Kind(models.TextChoices):
        OFFLINE = "offline", "Offline"
        GATEWAY = "gateway", "Gateway"
        COD = "cod", "Cash on delivery"

    # Matches checkout.Order.PaymentMethod values (cash, card, bank_transfer, payment_link).
    code = models.SlugField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    kind = models.CharField(max_length=20, choices=Kind.choices, default=Kind.OFFLINE)
    description = models.CharField(max_length=255, blank=True, default="")

    is_active = models.BooleanField(default=True)
    sort_order = models.IntegerField(default=0)

    instructions = models.TextField(blank=True, default="")

    bank_alias = models.CharField(max_length=64, blank=True, default="")
    bank_holder = models.CharField(max_length=200, blank=True, default="")
    bank_cbu = models.CharField(max_length=32, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sort_order", "code"]
        indexes = [
            models.Index(fields=["is_active", "sort_order"], name="paymentmethod_active_sort_idx"),
        ]

    def __str__(self) -> str:
        return self.code

    @property
    def is_manual(self) -> bool:
        return self.kind in (self.Kind.OFFLINE, self.Kind.COD)

    def instructions_for_order(self, *, order_id: int | None = None) -> str:
        base = (self.instructions or "").strip()
        if base:
            if order_id is not None:
                base = base.replace("{order_id}", str(order_id))
            return base

        parts: list[str] = []
        if (self.bank_alias or "").strip():
            parts.append(f"Alias: {self.bank_alias.strip()}")
        if (self.bank_holder or "").strip():
            parts.append(f"Titular: {self.bank_holder.strip()}")
        if (self.bank_cbu or "").strip():
            parts.append(f"CBU: {self.bank_cbu.strip()}")
        if parts and order_id is not None:
            parts.append(f"Referencia: Orden #{order_id}")

        return "\n".join(parts).strip()


class PaymentNotification(models.Model):
    """Inbound MercadoPago webhook, stored before it is reconciled."""

    class Result(models.TextChoices):
        RECEIVED = "received", "Received"
        IGNORED = "ignored", "Ignored"
        NOT_APPROVED = "not_approved", "Payment not approved"
        ORDER_NOT_FOUND = "order_not_found", "Order not found"
        COMPLETED = "completed", "Order completed"
        ALREADY_COMPLETED = "already_completed", "Order already completed"
        AMOUNT_MISMATCH = "amount_mismatch", "Paid amount does not cover the order"
        ORDER_CANCELLED = "order_cancelled", "Paid after the order was cancelled"
        ERROR = "error", "Error"

    topic = models.CharField(max_length=50, blank=True, default="")
    payment_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    raw_body = models.TextField(blank=True, default="")
    signature_valid = models.BooleanField(null=True, blank=True)

    processed = models.BooleanField(default=False)
    result = models.CharField(max_length=32, choices=Result.choices, default=Result.RECEIVED)
    error_message = models.TextField(blank=True, default="")

    order = models.ForeignKey(
        "checkout.Order",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="payment_notifications",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"{self.topic}:{self.payment_id} ({self.result})"
