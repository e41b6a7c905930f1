from django.contrib import admin

from .models import LoyaltyAccount, PointsEntry


class PointsEntryInline(admin.TabularInline):
    model = PointsEntry
    extra = 0
    readonly_fields = ("points", "reason", "order", "created_at")
    can_delete = False


@admin.register(LoyaltyAccount)
class LoyaltyAccountAdmin(admin.ModelAdmin):
    list_display = ("user", "points", "expires_at", "updated_at")
    search_fields = ("user__email",)
    readonly_fields = ("created_at", "updated_at")
    inlines = [PointsEntryInline]
