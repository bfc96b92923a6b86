"""
INVOICE LIFECYCLE DOMAIN RULES

Defines how an invoice's status is derived and which transitions are legal.

DESIGN PRINCIPLES:
- No database writes
- Single source of truth for status derivation

Derivation (non-draft invoices):
- paid     if balance_due == 0
- overdue  if due_date < today
- sent     otherwise
"""

from __future__ import annotations

from billing.models import Invoice
from billing.services.exceptions import InvoiceNotOpen

# ============================================================
# STATE DEFINITIONS
# ============================================================

# paid is not terminal: a refund or a late fee re-opens the invoice.
ALLOWED_TRANSITIONS = {
    Invoice.STATUS_DRAFT: {
        Invoice.STATUS_SENT,
        Invoice.STATUS_OVERDUE,
        Invoice.STATUS_PAID,
    },
    Invoice.STATUS_SENT: {
        Invoice.STATUS_PAID,
        Invoice.STATUS_OVERDUE,
    },
    Invoice.STATUS_OVERDUE: {
        Invoice.STATUS_PAID,
        Invoice.STATUS_SENT,
    },
    Invoice.STATUS_PAID: {
        Invoice.STATUS_SENT,
        Invoice.STATUS_OVERDUE,
    },
}


# ============================================================
# DOMAIN RULES
# ============================================================


def derive_status(*, balance_due: int, due_date, today) -> str:
    if balance_due == 0:
        return Invoice.STATUS_PAID
    if due_date < today:
        return Invoice.STATUS_OVERDUE
    return Invoice.STATUS_SENT


def resolve_status(*, invoice: Invoice, balance_due: int, today) -> str:
    """
    Status after a balance change. Drafts stay drafts until issued.
    """
    if invoice.status == Invoice.STATUS_DRAFT:
        return Invoice.STATUS_DRAFT
    return derive_status(balance_due=balance_due, due_date=invoice.due_date, today=today)


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status == to_status:
        return True
    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_transition(*, invoice: Invoice, target_status: str):
    if not can_transition(from_status=invoice.status, to_status=target_status):
        raise InvoiceNotOpen(
            f"Invoice {invoice.invoice_number} cannot transition from "
            f"'{invoice.status}' to '{target_status}'",
            invoice_id=str(invoice.pk),
        )


def ensure_can_receive_money(invoice: Invoice):
    if invoice.status == Invoice.STATUS_DRAFT:
        raise InvoiceNotOpen(
            f"Invoice {invoice.invoice_number} is still a draft; issue it before taking payment.",
            invoice_id=str(invoice.pk),
        )
