# reconciliation/admin.py

from django.contrib import admin

from billing.admin import ReadOnlyLedgerAdmin
from reconciliation.models import DailyClose


@admin.register(DailyClose)
class DailyCloseAdmin(ReadOnlyLedgerAdmin):
    list_display = (
        "close_date",
        "is_locked",
        "expected_cash",
        "expected_bank",
        "actual_cash",
        "actual_bank",
        "variance",
        "closed_by",
        "closed_at",
    )
    list_filter = ("is_locked",)
    date_hierarchy = "close_date"
    ordering = ("-close_date",)
