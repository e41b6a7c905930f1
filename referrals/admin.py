from django.contrib import admin

from .models import Referral, ReferralProfile


@admin.register(ReferralProfile)
class ReferralProfileAdmin(admin.ModelAdmin):
    list_display = ("code", "user", "created_at")
    search_fields = ("code", "user__email")


@admin.register(Referral)
class ReferralAdmin(admin.ModelAdmin):
    list_display = ("referrer", "referred", "status", "reward_points", "created_at", "completed_at")
    list_filter = ("status",)
    search_fields = ("referrer__email", "referred__email", "referred_email")
