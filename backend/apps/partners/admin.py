from django.contrib import admin

from apps.partners.models import AccountabilityPartner


@admin.register(AccountabilityPartner)
class AccountabilityPartnerAdmin(admin.ModelAdmin):
    list_display = ("owner", "partner", "status", "updated_at")
    list_filter = ("status",)
    search_fields = ("owner__username", "partner__username")
