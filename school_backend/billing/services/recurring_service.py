# billing/services/recurring_service.py

"""
RECURRING INVOICE CHAINS

A recurring invoice may name its predecessor (parent_invoice).
Each parent has at most one child, so a chain is a simple list:

    INV-202601-0001 -> INV-202602-0001 -> INV-202603-0001

Operations:
- invoice_chain(...)                    -> list[Invoice] (root first)
- generate_next_recurring_invoice(...)  -> Invoice
- generate_due_recurring_invoices(...)  -> list[Invoice] (batch, used by cron)

Traversal is iterative and bounded by BILLING["MAX_CHAIN_LENGTH"];
a loop or an over-long chain raises ChainTooLong.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
import logging

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS
from django.utils import timezone

from billing.models import Invoice
from billing.services.exceptions import (
    ChainTooLong,
    InvoiceNotFound,
    LedgerError,
    LedgerValidationError,
    RecurringAlreadyGenerated,
)
from billing.services.invoice_service import create_invoice

logger = logging.getLogger("billing")


def _max_chain_length(max_length=None) -> int:
    return max_length or settings.BILLING["MAX_CHAIN_LENGTH"]


def _add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


# ============================================================
# CHAIN TRAVERSAL
# ============================================================


def invoice_chain(*, invoice_id, max_length=None, using=DEFAULT_DB_ALIAS) -> list[Invoice]:
    """
    Return the full chain containing invoice_id, oldest first.
    """
    limit = _max_chain_length(max_length)

    invoice = Invoice.objects.using(using).filter(pk=invoice_id).first()
    if invoice is None:
        raise InvoiceNotFound(f"Invoice {invoice_id} not found", invoice_id=str(invoice_id))

    seen = {invoice.pk}
    ancestors = []

    # walk up
    current = invoice
    while current.parent_invoice_id is not None:
        if current.parent_invoice_id in seen or len(seen) >= limit:
            raise ChainTooLong(
                f"Invoice chain of {invoice.invoice_number} loops or exceeds {limit} invoices",
                invoice_id=str(invoice.pk),
                limit=limit,
            )
        current = Invoice.objects.using(using).get(pk=current.parent_invoice_id)
        seen.add(current.pk)
        ancestors.append(current)

    chain = list(reversed(ancestors)) + [invoice]

    # walk down
    current = invoice
    while True:
        child = Invoice.objects.using(using).filter(parent_invoice_id=current.pk).first()
        if child is None:
            break
        if child.pk in seen or len(seen) >= limit:
            raise ChainTooLong(
                f"Invoice chain of {invoice.invoice_number} loops or exceeds {limit} invoices",
                invoice_id=str(invoice.pk),
                limit=limit,
            )
        seen.add(child.pk)
        chain.append(child)
        current = child

    return chain


# ============================================================
# NEXT PERIOD
# ============================================================


def next_billing_period(invoice: Invoice) -> tuple[date, date]:
    """
    The period right after the invoice's period, one calendar month long.
    Invoices without a period are treated as covering their issue month.
    """
    if invoice.billing_period_end is not None:
        start = invoice.billing_period_end + timedelta(days=1)
    else:
        start = _add_months(invoice.issue_date.replace(day=1), 1)
    end = _add_months(start, 1) - timedelta(days=1)
    return start, end


def generate_next_recurring_invoice(
    *,
    invoice_id,
    created_by=None,
    using=DEFAULT_DB_ALIAS,
    today=None,
) -> Invoice:
    """
    Create the successor of a recurring invoice.

    - line items copied (same subjects, teachers and prices)
    - one-time discounts and adjustments are NOT carried forward
    - due date keeps the parent's issue -> due offset
    """
    parent = Invoice.objects.using(using).filter(pk=invoice_id).first()
    if parent is None:
        raise InvoiceNotFound(f"Invoice {invoice_id} not found", invoice_id=str(invoice_id))

    if parent.kind != Invoice.KIND_RECURRING:
        raise LedgerValidationError(
            f"Invoice {parent.invoice_number} is not recurring",
            invoice_id=str(parent.pk),
        )

    if Invoice.objects.using(using).filter(parent_invoice_id=parent.pk).exists():
        raise RecurringAlreadyGenerated(
            f"Invoice {parent.invoice_number} already has a successor",
            invoice_id=str(parent.pk),
        )

    # guards against extending an over-long chain
    chain = invoice_chain(invoice_id=parent.pk, using=using)
    if len(chain) >= _max_chain_length():
        raise ChainTooLong(
            f"Invoice chain of {parent.invoice_number} already holds {len(chain)} invoices",
            invoice_id=str(parent.pk),
        )

    period_start, period_end = next_billing_period(parent)
    due_offset = parent.due_date - parent.issue_date

    line_items = [
        {
            "description": item.description,
            "item_type": item.item_type,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "subject_id": item.subject_id,
            "teacher_id": item.teacher_id,
        }
        for item in parent.items.using(using).order_by("pk")
    ]

    invoice = create_invoice(
        student_id=parent.student_id,
        line_items=line_items,
        issue_date=period_start,
        due_date=period_start + due_offset,
        billing_period_start=period_start,
        billing_period_end=period_end,
        kind=Invoice.KIND_RECURRING,
        parent_invoice_id=parent.pk,
        created_by=created_by,
        using=using,
        today=today,
    )

    logger.info(
        "Recurring invoice generated",
        extra={
            "parent": parent.invoice_number,
            "invoice_number": invoice.invoice_number,
            "period_start": str(period_start),
        },
    )
    return invoice


def generate_due_recurring_invoices(*, as_of=None, created_by=None, using=DEFAULT_DB_ALIAS) -> list[Invoice]:
    """
    Generate successors for every chain tail whose billing period ended
    before as_of. Failures are logged per chain; the batch continues.
    """
    as_of = as_of or timezone.localdate()

    tails = (
        Invoice.objects.using(using)
        .filter(
            kind=Invoice.KIND_RECURRING,
            child_invoice__isnull=True,
            billing_period_end__lt=as_of,
        )
        .order_by("billing_period_end", "pk")
    )

    generated = []
    for tail in tails:
        try:
            generated.append(
                generate_next_recurring_invoice(
                    invoice_id=tail.pk,
                    created_by=created_by,
                    using=using,
                    today=as_of,
                )
            )
        except LedgerError as exc:
            logger.warning(
                "Recurring invoice not generated",
                extra={"invoice_number": tail.invoice_number, "error": str(exc)},
            )
    return generated
