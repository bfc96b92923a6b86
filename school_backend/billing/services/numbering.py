# billing/services/numbering.py

"""
DOCUMENT NUMBERING

Receipt and invoice numbers come from a per-month DocumentSequence row,
incremented under SELECT ... FOR UPDATE inside the caller's transaction:

    RCP-202401-000001
    INV-202401-0001

A rolled-back transaction also rolls back the increment, so numbers are
gap-free per committed document.
"""

from __future__ import annotations

from django.db import DEFAULT_DB_ALIAS

from billing.models import DocumentSequence

RECEIPT_PREFIX = "RCP"
INVOICE_PREFIX = "INV"

RECEIPT_WIDTH = 6
INVOICE_WIDTH = 4


def next_document_number(*, prefix: str, on_date, width: int, using=DEFAULT_DB_ALIAS) -> str:
    key = f"{prefix}-{on_date:%Y%m}"

    seq, _ = (
        DocumentSequence.objects.using(using)
        .select_for_update()
        .get_or_create(key=key)
    )
    seq.last_value += 1
    seq.save(using=using, update_fields=["last_value", "updated_at"])

    return f"{key}-{seq.last_value:0{width}d}"


def next_receipt_number(*, on_date, using=DEFAULT_DB_ALIAS) -> str:
    return next_document_number(
        prefix=RECEIPT_PREFIX, on_date=on_date, width=RECEIPT_WIDTH, using=using
    )


def next_invoice_number(*, on_date, using=DEFAULT_DB_ALIAS) -> str:
    return next_document_number(
        prefix=INVOICE_PREFIX, on_date=on_date, width=INVOICE_WIDTH, using=using
    )
