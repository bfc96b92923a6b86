# billing/apps.py

"""
BILLING APP CONFIG

Ledger Store + Allocation Engine:
- Invoices (with line items and adjustments)
- Payments (receipts) and their allocations against invoices
- Refunds (allocation reversal, never deletion)
- Student credit, statements and recurring invoice chains
"""

from django.apps import AppConfig


class BillingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "billing"
    verbose_name = "Billing Ledger"
