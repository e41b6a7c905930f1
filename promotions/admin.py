from __future__ import annotations

from django.contrib import admin

from .models import Coupon, CouponRedemption, UserCoupon


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = (
        "code",
        "discount_type",
        "discount_value",
        "max_discount",
        "min_amount",
        "usage_limit",
        "times_redeemed",
        "one_per_user",
        "is_active",
        "expires_at",
    )
    search_fields = ("code", "description")
    list_filter = ("is_active", "discount_type", "one_per_user")
    readonly_fields = ("times_redeemed", "created_by", "created_at", "updated_at")
    actions = ["deactivate_selected"]

    @admin.action(description="Deactivate selected coupons")
    def deactivate_selected(self, request, queryset):
        n = queryset.filter(is_active=True).update(is_active=False)
        self.message_user(request, f"Deactivated {n} coupon(s).")

    def save_model(self, request, obj, form, change):
        if not change and not obj.created_by_id:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(CouponRedemption)
class CouponRedemptionAdmin(admin.ModelAdmin):
    list_display = ("coupon", "order", "user", "discount", "status", "created_at", "redeemed_at")
    list_filter = ("status",)
    search_fields = ("coupon__code", "user__email")
    readonly_fields = ("coupon", "order", "user", "discount", "status", "created_at", "redeemed_at")


@admin.register(UserCoupon)
class UserCouponAdmin(admin.ModelAdmin):
    list_display = ("user", "coupon", "used", "assigned_at", "expires_at", "used_at")
    list_filter = ("used",)
    search_fields = ("user__email", "coupon__code")
