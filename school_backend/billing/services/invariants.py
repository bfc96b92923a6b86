# billing/services/invariants.py

"""
LEDGER INVARIANT CHECKS

Run at the end of every ledger write (inside the transaction) and by the
check_ledger_integrity management command:

1. sum(active allocations of a payment) <= payment.amount
   (and a refunded payment has no active allocations)
2. sum(active allocations of an invoice) <= invoice.total
3. invoice.amount_paid == sum(active allocations)
   invoice.balance_due == invoice.total - invoice.amount_paid >= 0

A violation inside a write raises LedgerIntegrityError, which rolls the
transaction back.
"""

from __future__ import annotations

import logging

from django.db import DEFAULT_DB_ALIAS
from django.db.models import BigIntegerField, Q, Sum
from django.db.models.functions import Coalesce

from billing.models import Invoice, Payment
from billing.services.exceptions import LedgerIntegrityError

logger = logging.getLogger("billing")

_ACTIVE = Q(allocations__is_reversed=False)


def invoice_violations(*, invoice_ids=None, using=DEFAULT_DB_ALIAS) -> list[str]:
    qs = Invoice.objects.using(using).annotate(
        allocated=Coalesce(
            Sum("allocations__amount", filter=_ACTIVE), 0, output_field=BigIntegerField()
        )
    )
    if invoice_ids is not None:
        qs = qs.filter(pk__in=list(invoice_ids))

    problems = []
    for inv in qs:
        if inv.amount_paid != inv.allocated:
            problems.append(
                f"{inv.invoice_number}: amount_paid={inv.amount_paid} but active allocations={inv.allocated}"
            )
        if inv.allocated > inv.total:
            problems.append(
                f"{inv.invoice_number}: active allocations={inv.allocated} exceed total={inv.total}"
            )
        if inv.balance_due != inv.total - inv.amount_paid:
            problems.append(
                f"{inv.invoice_number}: balance_due={inv.balance_due} != total - amount_paid"
            )
        if inv.balance_due < 0:
            problems.append(f"{inv.invoice_number}: negative balance_due={inv.balance_due}")
    return problems


def payment_violations(*, payment_ids=None, using=DEFAULT_DB_ALIAS) -> list[str]:
    qs = Payment.objects.using(using).annotate(
        allocated=Coalesce(
            Sum("allocations__amount", filter=_ACTIVE), 0, output_field=BigIntegerField()
        )
    )
    if payment_ids is not None:
        qs = qs.filter(pk__in=list(payment_ids))

    problems = []
    for pay in qs:
        if pay.allocated > pay.amount:
            problems.append(
                f"{pay.receipt_number}: allocations={pay.allocated} exceed amount={pay.amount}"
            )
        if pay.status == Payment.STATUS_REFUNDED and pay.allocated:
            problems.append(
                f"{pay.receipt_number}: refunded but still has active allocations={pay.allocated}"
            )
    return problems


def assert_ledger_consistent(*, invoice_ids=(), payment_ids=(), operation: str, using=DEFAULT_DB_ALIAS):
    problems = []
    if invoice_ids:
        problems += invoice_violations(invoice_ids=invoice_ids, using=using)
    if payment_ids:
        problems += payment_violations(payment_ids=payment_ids, using=using)

    if problems:
        logger.error(
            "Ledger invariant violated",
            extra={"operation": operation, "problems": problems},
        )
        raise LedgerIntegrityError(
            f"{operation} would break ledger invariants: {'; '.join(problems)}",
            operation=operation,
        )
