from __future__ import annotations

from django.contrib import admin, messages

from .models import Cart, CartItem, Order, OrderLine
from .services import cancel_order, confirm_order


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0
    autocomplete_fields = ("product",)


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "session_key", "updated_at")
    search_fields = ("user__email", "session_key")
    inlines = (CartItemInline,)


class OrderLineInline(admin.TabularInline):
    model = OrderLine
    extra = 0
    fields = ("product", "sku", "product_name", "unit_price", "qty", "notes", "line_total")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "status",
        "payment_method",
        "customer_name",
        "phone_number",
        "total",
        "points_earned",
        "created_at",
        "confirmed_at",
    )
    list_filter = ("status", "payment_method", "created_at")
    search_fields = ("id", "customer_name", "customer_email", "phone_number", "payment_id", "coupon_code")
    readonly_fields = (
        "subtotal",
        "level_discount",
        "coupon_code",
        "coupon_discount",
        "total",
        "points_earned",
        "payment_id",
        "preference_id",
        "redirect_url",
        "payment_details",
        "confirmed_at",
        "confirmed_by",
        "completed_at",
        "cancelled_at",
        "created_at",
        "updated_at",
    )
    inlines = (OrderLineInline,)
    actions = ("confirm_payment_selected", "cancel_selected")

    @admin.action(description="Confirmar pago (descuenta stock y otorga puntos)")
    def confirm_payment_selected(self, request, queryset):
        confirmed = 0
        skipped = 0
        for order in queryset.order_by("id"):
            if confirm_order(order_id=order.id, confirmed_by=request.user):
                confirmed += 1
            else:
                skipped += 1
        if confirmed:
            self.message_user(request, f"{confirmed} orden(es) confirmada(s).", messages.SUCCESS)
        if skipped:
            self.message_user(
                request,
                f"{skipped} orden(es) omitida(s): solo se confirman órdenes pendientes o en proceso.",
                messages.WARNING,
            )

    @admin.action(description="Cancelar órdenes seleccionadas")
    def cancel_selected(self, request, queryset):
        cancelled = sum(1 for order in queryset.order_by("id") if cancel_order(order_id=order.id))
        self.message_user(request, f"{cancelled} orden(es) cancelada(s).", messages.SUCCESS)
