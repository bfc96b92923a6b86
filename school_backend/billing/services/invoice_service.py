# billing/services/invoice_service.py

"""
INVOICE SERVICE (LEDGER STORE)

Operations:
- create_invoice(...)            -> Invoice (numbered, totals derived from line items)
- issue_invoice(...)             -> Invoice (draft -> sent/overdue/paid)
- apply_adjustment(...)          -> Invoice (discount / late fee / credit note / write-off)
- refresh_invoice_statuses(...)  -> int    (sent -> overdue once the due date passes)

Guarantees:
- Each operation runs in one transaction on the given database alias
- Money is integer minor units end to end
- Invariants are re-checked before commit
"""

from __future__ import annotations

from datetime import timedelta
import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DEFAULT_DB_ALIAS, transaction
from django.utils import timezone

from billing.models import Invoice, InvoiceAdjustment, InvoiceItem
from billing.services.allocation import (
    POLICY_CREDIT,
    get_overpayment_policy,
    lock_invoices,
    write_invoice_balance,
)
from billing.services.exceptions import (
    InvalidAdjustment,
    InvalidLineItems,
    InvoiceNotFound,
    InvoiceNotOpen,
    LedgerValidationError,
    OverAdjustment,
    RecurringAlreadyGenerated,
    StaleInvoice,
    StudentNotFound,
    TeacherNotFound,
)
from billing.services.invariants import assert_ledger_consistent
from billing.services.invoice_lifecycle import derive_status, resolve_status, validate_transition
from billing.services.money import require_minor_units
from billing.services.numbering import next_invoice_number
from billing.services.persistence import ledger_operation
from permissions.roles import ROLE_TEACHER
from school.models import Student, Subject

logger = logging.getLogger("billing")


# ============================================================
# INPUT NORMALIZATION
# ============================================================


def _resolve_teacher(teacher_id, *, using):
    User = get_user_model()
    try:
        return User.objects.using(using).get(pk=teacher_id, role=ROLE_TEACHER)
    except User.DoesNotExist as exc:
        raise TeacherNotFound(
            f"Teacher {teacher_id} not found", teacher_id=str(teacher_id)
        ) from exc


def _normalize_line_items(line_items, *, using) -> list[dict]:
    if not line_items:
        raise InvalidLineItems("An invoice needs at least one line item")

    normalized = []
    for idx, raw in enumerate(line_items, start=1):
        description = str(raw.get("description") or "").strip()
        quantity = raw.get("quantity", 1)
        unit_price = raw.get("unit_price")

        subject = None
        subject_id = raw.get("subject_id")
        if subject_id:
            subject = Subject.objects.using(using).filter(pk=subject_id).first()
            if subject is None:
                raise InvalidLineItems(f"Line {idx}: unknown subject {subject_id}")

        if not description and subject is not None:
            description = subject.name
        if not description:
            raise InvalidLineItems(f"Line {idx}: description is required")

        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidLineItems(f"Line {idx}: quantity must be an integer >= 1")

        if unit_price is None and subject is not None:
            unit_price = subject.monthly_fee
        if isinstance(unit_price, bool) or not isinstance(unit_price, int) or unit_price < 0:
            raise InvalidLineItems(f"Line {idx}: unit_price must be an integer >= 0 (minor units)")

        teacher_id = raw.get("teacher_id")
        if teacher_id:
            teacher = _resolve_teacher(teacher_id, using=using)
        else:
            teacher = subject.teacher if subject is not None else None

        normalized.append(
            {
                "description": description[:255],
                "item_type": raw.get("item_type") or InvoiceItem.TYPE_TUITION,
                "quantity": quantity,
                "unit_price": unit_price,
                "total": quantity * unit_price,
                "subject": subject,
                "teacher": teacher,
            }
        )

    return normalized


def _validate_dates(*, issue_date, due_date, billing_period_start, billing_period_end):
    if due_date < issue_date:
        raise LedgerValidationError("due_date cannot be before issue_date")

    if (billing_period_start is None) != (billing_period_end is None):
        raise LedgerValidationError("billing period needs both start and end")

    if billing_period_start and billing_period_end < billing_period_start:
        raise LedgerValidationError("billing_period_end must be >= billing_period_start")


# ============================================================
# CREATE
# ============================================================


@ledger_operation("create_invoice")
def create_invoice(
    *,
    student_id,
    line_items,
    due_date=None,
    issue_date=None,
    billing_period_start=None,
    billing_period_end=None,
    discount: int = 0,
    kind: str = Invoice.KIND_ONE_OFF,
    parent_invoice_id=None,
    draft: bool = False,
    notes: str = "",
    created_by=None,
    using=DEFAULT_DB_ALIAS,
    today=None,
) -> Invoice:
    """
    Create a numbered invoice from line items.

    line_items: [{"description", "quantity", "unit_price", "subject_id"?, "teacher_id"?, "item_type"?}]
    (unit_price in minor units; subject supplies a default price and teacher)
    """
    today = today or timezone.localdate()
    issue_date = issue_date or today
    due_date = due_date or issue_date + timedelta(days=settings.BILLING["DEFAULT_DUE_DAYS"])

    if kind not in dict(Invoice.KIND_CHOICES):
        raise LedgerValidationError(f"Unknown invoice kind '{kind}'")

    require_minor_units(discount, field="discount", allow_zero=True)
    _validate_dates(
        issue_date=issue_date,
        due_date=due_date,
        billing_period_start=billing_period_start,
        billing_period_end=billing_period_end,
    )

    with transaction.atomic(using=using):
        student = Student.objects.using(using).filter(pk=student_id).first()
        if student is None:
            raise StudentNotFound(f"Student {student_id} not found", student_id=str(student_id))

        items = _normalize_line_items(line_items, using=using)
        subtotal = sum(item["total"] for item in items)

        if discount > subtotal:
            raise LedgerValidationError(
                f"discount {discount} cannot exceed the invoice subtotal {subtotal}"
            )

        parent = None
        if parent_invoice_id is not None:
            locked = lock_invoices([parent_invoice_id], using=using)
            if not locked:
                raise InvoiceNotFound(
                    f"Parent invoice {parent_invoice_id} not found",
                    invoice_id=str(parent_invoice_id),
                )
            parent = locked[0]
            if parent.student_id != student.pk:
                raise LedgerValidationError("A recurring chain cannot span students")
            if Invoice.objects.using(using).filter(parent_invoice_id=parent.pk).exists():
                raise RecurringAlreadyGenerated(
                    f"Invoice {parent.invoice_number} already has a successor",
                    invoice_id=str(parent.pk),
                )
            kind = Invoice.KIND_RECURRING

        total = Invoice.compute_total(
            subtotal=subtotal, discount=discount, late_fee=0, adjustments_total=0
        )

        if draft:
            status = Invoice.STATUS_DRAFT
        else:
            status = derive_status(balance_due=total, due_date=due_date, today=today)

        invoice = Invoice(
            invoice_number=next_invoice_number(on_date=issue_date, using=using),
            student=student,
            issue_date=issue_date,
            due_date=due_date,
            subtotal=subtotal,
            discount=discount,
            total=total,
            amount_paid=0,
            balance_due=total,
            status=status,
            kind=kind,
            billing_period_start=billing_period_start,
            billing_period_end=billing_period_end,
            parent_invoice=parent,
            notes=(notes or "").strip(),
            created_by=created_by,
        )
        invoice.save(using=using)

        for item in items:
            InvoiceItem(invoice=invoice, **item).save(using=using)

        if not draft and get_overpayment_policy() == POLICY_CREDIT:
            # local import: payment_service imports this module's neighbours
            from billing.services.payment_service import allocate_student_credit

            allocate_student_credit(student_id=student.pk, using=using, today=today)
            invoice.refresh_from_db(using=using)

        assert_ledger_consistent(invoice_ids=[invoice.pk], operation="create_invoice", using=using)

    logger.info(
        "Invoice created",
        extra={
            "invoice_number": invoice.invoice_number,
            "student_id": str(student.pk),
            "total": invoice.total,
            "status": invoice.status,
        },
    )
    return invoice


# ============================================================
# ISSUE (draft -> open)
# ============================================================


@ledger_operation("issue_invoice")
def issue_invoice(*, invoice_id, using=DEFAULT_DB_ALIAS, today=None) -> Invoice:
    today = today or timezone.localdate()

    with transaction.atomic(using=using):
        locked = lock_invoices([invoice_id], using=using)
        if not locked:
            raise InvoiceNotFound(f"Invoice {invoice_id} not found", invoice_id=str(invoice_id))
        invoice = locked[0]

        if invoice.status != Invoice.STATUS_DRAFT:
            raise InvoiceNotOpen(
                f"Invoice {invoice.invoice_number} is already issued ({invoice.status})",
                invoice_id=str(invoice.pk),
            )

        target = derive_status(
            balance_due=invoice.balance_due, due_date=invoice.due_date, today=today
        )
        validate_transition(invoice=invoice, target_status=target)
        write_invoice_balance(invoice, fields={"status": target}, using=using)

        if get_overpayment_policy() == POLICY_CREDIT:
            from billing.services.payment_service import allocate_student_credit

            allocate_student_credit(student_id=invoice.student_id, using=using, today=today)
            invoice.refresh_from_db(using=using)

    logger.info(
        "Invoice issued",
        extra={"invoice_number": invoice.invoice_number, "status": invoice.status},
    )
    return invoice


# ============================================================
# ADJUSTMENTS
# ============================================================


@ledger_operation("apply_adjustment")
def apply_adjustment(
    *,
    invoice_id,
    kind: str,
    amount: int,
    reason: str,
    applied_by=None,
    using=DEFAULT_DB_ALIAS,
    today=None,
) -> Invoice:
    """
    Signed adjustment: late_fee > 0; discount / credit_note / write_off < 0.

    Rejected (OverAdjustment) if the new total would drop below zero or
    below what has already been paid against the invoice.
    """
    today = today or timezone.localdate()

    if kind not in dict(InvoiceAdjustment.KIND_CHOICES):
        raise InvalidAdjustment(f"Unknown adjustment kind '{kind}'")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount == 0:
        raise InvalidAdjustment("amount must be a non-zero integer number of minor units")
    if kind in InvoiceAdjustment.INCREASING_KINDS and amount < 0:
        raise InvalidAdjustment(f"{kind} adjustments must be positive")
    if kind in InvoiceAdjustment.DECREASING_KINDS and amount > 0:
        raise InvalidAdjustment(f"{kind} adjustments must be negative")

    reason = (reason or "").strip()
    if not reason:
        raise InvalidAdjustment("reason is required")

    with transaction.atomic(using=using):
        locked = lock_invoices([invoice_id], using=using)
        if not locked:
            raise InvoiceNotFound(f"Invoice {invoice_id} not found", invoice_id=str(invoice_id))
        invoice = locked[0]

        discount = invoice.discount
        late_fee = invoice.late_fee
        adjustments_total = invoice.adjustments_total

        if kind == InvoiceAdjustment.KIND_DISCOUNT:
            discount -= amount
        elif kind == InvoiceAdjustment.KIND_LATE_FEE:
            late_fee += amount
        else:
            adjustments_total += amount

        new_total = Invoice.compute_total(
            subtotal=invoice.subtotal,
            discount=discount,
            late_fee=late_fee,
            adjustments_total=adjustments_total,
        )

        if new_total < 0:
            raise OverAdjustment(
                f"Adjustment would make invoice {invoice.invoice_number} total negative ({new_total})",
                invoice_id=str(invoice.pk),
            )
        if new_total < invoice.amount_paid:
            raise OverAdjustment(
                f"Adjustment would reduce invoice {invoice.invoice_number} total to {new_total}, "
                f"below the {invoice.amount_paid} already paid. Refund first.",
                invoice_id=str(invoice.pk),
            )

        InvoiceAdjustment(
            invoice=invoice,
            kind=kind,
            amount=amount,
            reason=reason[:255],
            applied_by=applied_by,
        ).save(using=using)

        balance = new_total - invoice.amount_paid
        write_invoice_balance(
            invoice,
            fields={
                "discount": discount,
                "late_fee": late_fee,
                "adjustments_total": adjustments_total,
                "total": new_total,
                "balance_due": balance,
                "status": resolve_status(invoice=invoice, balance_due=balance, today=today),
            },
            using=using,
        )

        assert_ledger_consistent(invoice_ids=[invoice.pk], operation="apply_adjustment", using=using)

    logger.info(
        "Invoice adjusted",
        extra={
            "invoice_number": invoice.invoice_number,
            "kind": kind,
            "amount": amount,
            "new_total": invoice.total,
        },
    )
    return invoice


# ============================================================
# STATUS REFRESH (sent -> overdue)
# ============================================================


@ledger_operation("refresh_invoice_statuses")
def refresh_invoice_statuses(*, using=DEFAULT_DB_ALIAS, today=None) -> int:
    """
    Flip open invoices whose due date has passed to overdue.
    Returns the number of invoices changed.
    """
    today = today or timezone.localdate()
    changed = 0

    candidates = Invoice.objects.using(using).filter(
        status=Invoice.STATUS_SENT,
        balance_due__gt=0,
        due_date__lt=today,
    ).values_list("pk", flat=True)

    for invoice_id in list(candidates):
        with transaction.atomic(using=using):
            locked = lock_invoices([invoice_id], using=using)
            if not locked or locked[0].status != Invoice.STATUS_SENT:
                continue
            try:
                write_invoice_balance(
                    locked[0], fields={"status": Invoice.STATUS_OVERDUE}, using=using
                )
            except StaleInvoice:
                logger.warning(
                    "Skipped overdue refresh for concurrently modified invoice",
                    extra={"invoice_id": str(invoice_id)},
                )
                continue
            changed += 1

    if changed:
        logger.info("Invoices marked overdue", extra={"count": changed, "as_of": str(today)})
    return changed
