# billing/models/__init__.py

"""
BILLING MODELS PACKAGE EXPORTS

Purpose:
- Central export surface for billing ledger models.
"""

from .document_sequence import DocumentSequence
from .invoice import Invoice
from .invoice_adjustment import InvoiceAdjustment
from .invoice_item import InvoiceItem
from .payment import Payment
from .payment_allocation import PaymentAllocation

__all__ = [
    "DocumentSequence",
    "Invoice",
    "InvoiceAdjustment",
    "InvoiceItem",
    "Payment",
    "PaymentAllocation",
]
