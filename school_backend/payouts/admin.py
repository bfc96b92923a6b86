# payouts/admin.py

from django.contrib import admin

from billing.admin import ReadOnlyLedgerAdmin
from payouts.models import PayoutRule


@admin.register(PayoutRule)
class PayoutRuleAdmin(ReadOnlyLedgerAdmin):
    list_display = (
        "teacher",
        "is_fixed",
        "fixed_percentage",
        "tier1_percentage",
        "tier1_threshold",
        "tier2_percentage",
        "effective_from",
        "effective_to",
        "is_active",
    )
    list_filter = ("is_fixed", "is_active")
    search_fields = ("teacher__email",)
    ordering = ("teacher", "-effective_from")
