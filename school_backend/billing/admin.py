# billing/admin.py

"""
BILLING ADMIN (READ-MOSTLY)

Ledger rows are written by the billing services only.
Admin is for inspection: nothing here can add, change or delete money.
"""

from django.contrib import admin

from billing.models import (
    DocumentSequence,
    Invoice,
    InvoiceAdjustment,
    InvoiceItem,
    Payment,
    PaymentAllocation,
)


class ReadOnlyLedgerAdmin(admin.ModelAdmin):
    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    can_delete = False
    readonly_fields = ("description", "item_type", "quantity", "unit_price", "total", "subject", "teacher")

    def has_add_permission(self, request, obj=None):
        return False


class InvoiceAdjustmentInline(admin.TabularInline):
    model = InvoiceAdjustment
    extra = 0
    can_delete = False
    readonly_fields = ("kind", "amount", "reason", "applied_by", "applied_at")

    def has_add_permission(self, request, obj=None):
        return False


# ======================================================
# INVOICE ADMIN
# ======================================================


@admin.register(Invoice)
class InvoiceAdmin(ReadOnlyLedgerAdmin):
    list_display = (
        "invoice_number",
        "student",
        "status",
        "kind",
        "issue_date",
        "due_date",
        "total",
        "amount_paid",
        "balance_due",
    )
    search_fields = ("invoice_number", "student__roll_number", "student__last_name")
    list_filter = ("status", "kind", "due_date")
    inlines = (InvoiceItemInline, InvoiceAdjustmentInline)


# ======================================================
# PAYMENT ADMIN
# ======================================================


class PaymentAllocationInline(admin.TabularInline):
    model = PaymentAllocation
    extra = 0
    can_delete = False
    readonly_fields = ("invoice", "amount", "allocated_at", "is_reversed", "reversed_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Payment)
class PaymentAdmin(ReadOnlyLedgerAdmin):
    list_display = (
        "receipt_number",
        "student",
        "amount",
        "method",
        "payment_date",
        "status",
        "received_by",
    )
    search_fields = ("receipt_number", "transaction_reference", "student__roll_number")
    list_filter = ("status", "method", "payment_date")
    inlines = (PaymentAllocationInline,)


@admin.register(DocumentSequence)
class DocumentSequenceAdmin(ReadOnlyLedgerAdmin):
    list_display = ("key", "last_value", "updated_at")
