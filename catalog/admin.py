from __future__ import annotations

from django.contrib import admin

from .models import Category, PriceAlert, PriceChange, Product


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}


class PriceChangeInline(admin.TabularInline):
    model = PriceChange
    extra = 0
    can_delete = False
    readonly_fields = (
        "old_price",
        "new_price",
        "change_type",
        "percentage_change",
        "reason",
        "changed_by",
        "created_at",
    )


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("sku", "name", "category", "price", "stock", "sales_count", "is_active")
    list_filter = ("is_active", "category")
    search_fields = ("sku", "name", "handle", "ref")
    prepopulated_fields = {"slug": ("name",)}
    readonly_fields = ("sales_count", "created_at", "updated_at")
    inlines = [PriceChangeInline]

    def save_model(self, request, obj, form, change):
        if change and "price" in form.changed_data:
            obj._price_change_reason = "admin"
            obj._price_changed_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(PriceAlert)
class PriceAlertAdmin(admin.ModelAdmin):
    list_display = ("user", "product", "target_price", "is_active", "notified", "notified_at")
    list_filter = ("is_active", "notified")
    search_fields = ("user__email", "product__name", "product__sku")
