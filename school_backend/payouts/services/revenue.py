# payouts/services/revenue.py

"""
REVENUE BASE (CASH BASIS)

Revenue for a teacher over [period_start, period_end] is what was
COLLECTED, not what was billed:

- active (non-reversed) allocations
- of completed payments whose payment_date is inside the period
- to invoices carrying at least one line item taught by the teacher

An invoice shared between teachers is split by line totals:

    share = collected_on_invoice * teacher_line_total / all_line_total

Shares are summed as exact fractions and rounded half-up once.
"""

from __future__ import annotations

from fractions import Fraction

from django.db import DEFAULT_DB_ALIAS
from django.db.models import Q, Sum

from billing.models import InvoiceItem, Payment, PaymentAllocation
from billing.services.money import round_half_up


def collected_by_invoice(*, teacher_id, period_start, period_end, using=DEFAULT_DB_ALIAS) -> dict:
    rows = (
        PaymentAllocation.objects.using(using)
        .filter(
            is_reversed=False,
            payment__status=Payment.STATUS_COMPLETED,
            payment__payment_date__gte=period_start,
            payment__payment_date__lte=period_end,
            invoice__in=InvoiceItem.objects.using(using)
            .filter(teacher_id=teacher_id)
            .values("invoice_id"),
        )
        .values("invoice_id")
        .annotate(collected=Sum("amount"))
    )
    return {row["invoice_id"]: row["collected"] for row in rows}


def revenue_share(*, teacher_id, period_start, period_end, using=DEFAULT_DB_ALIAS) -> Fraction:
    """Exact (unrounded) revenue attributable to the teacher."""
    collected = collected_by_invoice(
        teacher_id=teacher_id,
        period_start=period_start,
        period_end=period_end,
        using=using,
    )
    if not collected:
        return Fraction(0)

    lines = (
        InvoiceItem.objects.using(using)
        .filter(invoice_id__in=list(collected))
        .values("invoice_id")
        .annotate(
            all_total=Sum("total"),
            teacher_total=Sum("total", filter=Q(teacher_id=teacher_id)),
        )
    )

    share = Fraction(0)
    for row in lines:
        if not row["all_total"]:
            continue
        share += Fraction(collected[row["invoice_id"]] * (row["teacher_total"] or 0), row["all_total"])
    return share


def revenue_base(*, teacher_id, period_start, period_end, using=DEFAULT_DB_ALIAS) -> int:
    return round_half_up(
        revenue_share(
            teacher_id=teacher_id,
            period_start=period_start,
            period_end=period_end,
            using=using,
        )
    )
