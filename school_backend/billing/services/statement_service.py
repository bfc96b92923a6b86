# billing/services/statement_service.py

"""
STUDENT STATEMENT

Read-only account view for one student:

- summary: invoiced / paid / outstanding / unapplied credit
- entries: chronological ledger lines with a running balance
           (debit = student owes more, credit = student owes less)

Draft invoices are not part of the account until issued.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from django.db import DEFAULT_DB_ALIAS
from django.db.models import BigIntegerField, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from billing.models import Invoice, InvoiceAdjustment, Payment
from billing.services.exceptions import StudentNotFound
from billing.services.payment_service import student_credit_balance
from school.models import Student


@dataclass
class StatementEntry:
    entry_date: date
    entry_type: str
    reference: str
    description: str
    debit: int = 0
    credit: int = 0
    balance: int = 0


@dataclass
class Statement:
    student: Student
    total_invoiced: int
    total_paid: int
    total_outstanding: int
    credit_balance: int
    closing_balance: int
    entries: list[StatementEntry] = field(default_factory=list)


def _sum(qs, column) -> int:
    return qs.aggregate(s=Coalesce(Sum(column), 0, output_field=BigIntegerField()))["s"]


def student_statement(*, student_id, using=DEFAULT_DB_ALIAS) -> Statement:
    student = Student.objects.using(using).filter(pk=student_id).first()
    if student is None:
        raise StudentNotFound(f"Student {student_id} not found", student_id=str(student_id))

    invoices = list(
        Invoice.objects.using(using)
        .filter(student=student)
        .exclude(status=Invoice.STATUS_DRAFT)
        .order_by("issue_date", "created_at")
    )
    adjustments = list(
        InvoiceAdjustment.objects.using(using)
        .filter(invoice__in=invoices)
        .select_related("invoice")
        .order_by("applied_at")
    )
    payments = list(
        Payment.objects.using(using).filter(student=student).order_by("payment_date", "created_at")
    )

    # ----------------------------------------------
    # Raw entries (sort key, entry)
    # ----------------------------------------------
    adjusted_by_invoice: dict = {}
    for adj in adjustments:
        adjusted_by_invoice[adj.invoice_id] = adjusted_by_invoice.get(adj.invoice_id, 0) + adj.amount

    rows = []
    for inv in invoices:
        original = inv.total - adjusted_by_invoice.get(inv.pk, 0)
        rows.append(
            (
                (inv.issue_date, inv.created_at),
                StatementEntry(
                    entry_date=inv.issue_date,
                    entry_type="invoice",
                    reference=inv.invoice_number,
                    description=f"Invoice {inv.invoice_number}",
                    debit=original,
                ),
            )
        )

    for adj in adjustments:
        applied_on = timezone.localdate(adj.applied_at)
        rows.append(
            (
                (applied_on, adj.applied_at),
                StatementEntry(
                    entry_date=applied_on,
                    entry_type=adj.kind,
                    reference=adj.invoice.invoice_number,
                    description=adj.reason,
                    debit=adj.amount if adj.amount > 0 else 0,
                    credit=-adj.amount if adj.amount < 0 else 0,
                ),
            )
        )

    for pay in payments:
        rows.append(
            (
                (pay.payment_date, pay.created_at),
                StatementEntry(
                    entry_date=pay.payment_date,
                    entry_type="payment",
                    reference=pay.receipt_number,
                    description=f"Payment ({pay.get_method_display()})",
                    credit=pay.amount,
                ),
            )
        )
        if pay.status == Payment.STATUS_REFUNDED and pay.refunded_at is not None:
            refunded_on = timezone.localdate(pay.refunded_at)
            rows.append(
                (
                    (refunded_on, pay.refunded_at),
                    StatementEntry(
                        entry_date=refunded_on,
                        entry_type="refund",
                        reference=pay.receipt_number,
                        description=pay.refund_reason or "Payment refunded",
                        debit=pay.amount,
                    ),
                )
            )

    rows.sort(key=lambda row: row[0])

    running = 0
    entries = []
    for _, entry in rows:
        running += entry.debit - entry.credit
        entry.balance = running
        entries.append(entry)

    # ----------------------------------------------
    # Summary
    # ----------------------------------------------
    invoice_qs = Invoice.objects.using(using).filter(student=student).exclude(
        status=Invoice.STATUS_DRAFT
    )
    total_invoiced = _sum(invoice_qs, "total")
    total_outstanding = _sum(invoice_qs, "balance_due")
    total_paid = _sum(
        Payment.objects.using(using).filter(student=student, status=Payment.STATUS_COMPLETED),
        "amount",
    )
    credit = student_credit_balance(student_id=student.pk, using=using)

    return Statement(
        student=student,
        total_invoiced=total_invoiced,
        total_paid=total_paid,
        total_outstanding=total_outstanding,
        credit_balance=credit,
        closing_balance=total_outstanding - credit,
        entries=entries,
    )
