# billing/services/payment_service.py

"""
PAYMENT SERVICE (LEDGER STORE + ALLOCATION ENGINE ENTRYPOINTS)

Operations:
- record_payment(...)          -> AllocationResult  (receipt numbered, allocated synchronously)
- refund_payment(...)          -> RefundResult      (allocations reversed, never deleted)
- apply_student_credit(...)    -> list[PaymentAllocation]
- student_credit_balance(...)  -> int

Guarantees:
- One transaction per operation (payment + allocations + invoice balances)
- Strict overpayment policy rejects BEFORE anything is written
- No internal retries; conflicts surface to the caller
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging

from django.db import DEFAULT_DB_ALIAS, IntegrityError, transaction
from django.db.models import BigIntegerField, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from billing.models import Payment, PaymentAllocation
from billing.services.allocation import (
    AllocationResult,
    apply_plan,
    enforce_overpayment_policy,
    get_overpayment_policy,
    open_invoices_for_student,
    plan_allocation,
    reverse_payment_allocations,
    select_allocation_targets,
)
from billing.services.exceptions import (
    AlreadyRefunded,
    DuplicateReceipt,
    FutureDate,
    InvalidAmount,
    LedgerValidationError,
    PaymentNotFound,
    StudentNotFound,
)
from billing.services.invariants import assert_ledger_consistent
from billing.services.numbering import next_receipt_number
from billing.services.persistence import ledger_operation
from school.models import Student

logger = logging.getLogger("billing")


@dataclass
class RefundResult:
    payment: Payment
    reversed_allocations: list[PaymentAllocation] = field(default_factory=list)


# ============================================================
# RECORD PAYMENT
# ============================================================


@ledger_operation("record_payment")
def record_payment(
    *,
    student_id,
    amount: int,
    method: str,
    invoice_id=None,
    payment_date=None,
    notes: str = "",
    transaction_reference: str = "",
    received_by=None,
    policy: str | None = None,
    using=DEFAULT_DB_ALIAS,
    today=None,
) -> AllocationResult:
    """
    Record a received payment and allocate it.

    FLOW:
    1) Validate amount / method / date
    2) Lock allocation targets (target invoice, or open invoices FIFO)
    3) Plan allocation, apply overpayment policy
    4) Assign receipt number, create payment
    5) Insert allocations, recompute invoice balances
    6) Verify invariants
    """
    today = today or timezone.localdate()
    payment_date = payment_date or today
    policy = policy or get_overpayment_policy()

    # --------------------------------------------------
    # 1. INPUT VALIDATION
    # --------------------------------------------------
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        logger.warning("Rejected payment with invalid amount", extra={"amount": str(amount)})
        raise InvalidAmount("Payment amount must be greater than zero", amount=str(amount))

    if method not in dict(Payment.METHOD_CHOICES):
        raise LedgerValidationError(
            f"Unknown payment method '{method}'. Use one of: "
            f"{', '.join(dict(Payment.METHOD_CHOICES))}"
        )

    if payment_date > today:
        raise FutureDate(
            f"Payment date {payment_date} is in the future (today is {today})",
            payment_date=str(payment_date),
        )

    logger.info(
        "Recording payment",
        extra={
            "student_id": str(student_id),
            "invoice_id": str(invoice_id) if invoice_id else None,
            "amount": amount,
            "method": method,
            "policy": policy,
        },
    )

    with transaction.atomic(using=using):
        student = Student.objects.using(using).filter(pk=student_id).first()
        if student is None:
            raise StudentNotFound(f"Student {student_id} not found", student_id=str(student_id))

        # --------------------------------------------------
        # 2-3. TARGETS + PLAN + POLICY
        # --------------------------------------------------
        targets = select_allocation_targets(
            student_id=student.pk, invoice_id=invoice_id, using=using
        )
        plan = plan_allocation(amount, targets)
        enforce_overpayment_policy(
            plan=plan, amount=amount, policy=policy, student_id=student.pk
        )

        # --------------------------------------------------
        # 4. RECEIPT + PAYMENT ROW
        # --------------------------------------------------
        receipt_number = next_receipt_number(on_date=payment_date, using=using)
        payment = Payment(
            receipt_number=receipt_number,
            student=student,
            invoice_id=invoice_id,
            amount=amount,
            method=method,
            received_by=received_by,
            payment_date=payment_date,
            notes=(notes or "").strip(),
            transaction_reference=(transaction_reference or "").strip()[:64],
        )
        try:
            with transaction.atomic(using=using):
                payment.save(using=using)
        except IntegrityError as exc:
            if Payment.objects.using(using).filter(receipt_number=receipt_number).exists():
                logger.error(
                    "Receipt number collision",
                    extra={"receipt_number": receipt_number},
                )
                raise DuplicateReceipt(
                    f"Receipt number {receipt_number} is already in use; retry the payment.",
                    receipt_number=receipt_number,
                ) from exc
            raise

        # --------------------------------------------------
        # 5. ALLOCATE
        # --------------------------------------------------
        allocations = apply_plan(payment=payment, plan=plan, using=using, today=today)

        # --------------------------------------------------
        # 6. INVARIANTS
        # --------------------------------------------------
        assert_ledger_consistent(
            invoice_ids=[inv.pk for inv, _ in plan.lines],
            payment_ids=[payment.pk],
            operation="record_payment",
            using=using,
        )

    if plan.unapplied:
        logger.info(
            "Payment left unapplied credit",
            extra={"receipt_number": receipt_number, "unapplied": plan.unapplied},
        )

    logger.info(
        "Payment recorded",
        extra={
            "receipt_number": receipt_number,
            "allocations": len(allocations),
            "allocated": plan.allocated,
        },
    )
    return AllocationResult(
        payment=payment,
        allocations=allocations,
        unapplied_amount=plan.unapplied,
    )


# ============================================================
# REFUND
# ============================================================


@ledger_operation("refund_payment")
def refund_payment(
    *,
    payment_id,
    refunded_by=None,
    reason: str = "",
    using=DEFAULT_DB_ALIAS,
    today=None,
) -> RefundResult:
    """
    FULL PAYMENT REFUND

    - Reverses every active allocation (rows kept, flagged is_reversed)
    - Recomputes affected invoices (paid -> sent/overdue)
    - Transitions payment completed -> refunded
    """
    with transaction.atomic(using=using):
        payment = (
            Payment.objects.using(using)
            .select_for_update()
            .filter(pk=payment_id)
            .first()
        )
        if payment is None:
            raise PaymentNotFound(f"Payment {payment_id} not found", payment_id=str(payment_id))

        if payment.status == Payment.STATUS_REFUNDED:
            raise AlreadyRefunded(
                f"Payment {payment.receipt_number} has already been refunded",
                payment_id=str(payment.pk),
            )

        reversed_allocations = reverse_payment_allocations(
            payment=payment, using=using, today=today
        )

        payment.status = Payment.STATUS_REFUNDED
        payment.refunded_at = timezone.now()
        payment.refunded_by = refunded_by
        payment.refund_reason = (reason or "").strip()
        payment.save(
            using=using,
            update_fields=["status", "refunded_at", "refunded_by", "refund_reason"],
        )

        assert_ledger_consistent(
            invoice_ids={a.invoice_id for a in reversed_allocations},
            payment_ids=[payment.pk],
            operation="refund_payment",
            using=using,
        )

    logger.info(
        "Payment refunded",
        extra={
            "receipt_number": payment.receipt_number,
            "reversed_allocations": len(reversed_allocations),
            "amount": payment.amount,
        },
    )
    return RefundResult(payment=payment, reversed_allocations=reversed_allocations)


# ============================================================
# STUDENT CREDIT
# ============================================================


def _allocated_by_payment(payment_ids, *, using) -> dict:
    rows = (
        PaymentAllocation.objects.using(using)
        .filter(payment_id__in=list(payment_ids), is_reversed=False)
        .values("payment_id")
        .annotate(total=Sum("amount"))
    )
    return {row["payment_id"]: row["total"] for row in rows}


def student_credit_balance(*, student_id, using=DEFAULT_DB_ALIAS) -> int:
    """
    Unapplied money of completed payments.
    """
    paid = Payment.objects.using(using).filter(
        student_id=student_id, status=Payment.STATUS_COMPLETED
    ).aggregate(s=Coalesce(Sum("amount"), 0, output_field=BigIntegerField()))["s"]

    applied = PaymentAllocation.objects.using(using).filter(
        Q(payment__student_id=student_id)
        & Q(payment__status=Payment.STATUS_COMPLETED)
        & Q(is_reversed=False)
    ).aggregate(s=Coalesce(Sum("amount"), 0, output_field=BigIntegerField()))["s"]

    return paid - applied


def allocate_student_credit(*, student_id, using=DEFAULT_DB_ALIAS, today=None) -> list[PaymentAllocation]:
    """
    Spend unapplied credit (oldest payment first) on open invoices (FIFO).
    Must run inside the caller's transaction.
    """
    payments = list(
        Payment.objects.using(using)
        .select_for_update()
        .filter(student_id=student_id, status=Payment.STATUS_COMPLETED)
        .order_by("payment_date", "created_at", "pk")
    )
    if not payments:
        return []

    allocated = _allocated_by_payment([p.pk for p in payments], using=using)
    invoices = open_invoices_for_student(student_id, using=using)

    created = []
    for payment in payments:
        credit = payment.amount - allocated.get(payment.pk, 0)
        if credit <= 0:
            continue

        plan = plan_allocation(credit, [inv for inv in invoices if inv.balance_due > 0])
        if not plan.lines:
            break
        created += apply_plan(payment=payment, plan=plan, using=using, today=today)

    if created:
        assert_ledger_consistent(
            invoice_ids={a.invoice_id for a in created},
            payment_ids={a.payment_id for a in created},
            operation="apply_student_credit",
            using=using,
        )
        logger.info(
            "Student credit applied",
            extra={
                "student_id": str(student_id),
                "allocations": len(created),
                "amount": sum(a.amount for a in created),
            },
        )
    return created


@ledger_operation("apply_student_credit")
def apply_student_credit(*, student_id, using=DEFAULT_DB_ALIAS, today=None) -> list[PaymentAllocation]:
    with transaction.atomic(using=using):
        if not Student.objects.using(using).filter(pk=student_id).exists():
            raise StudentNotFound(f"Student {student_id} not found", student_id=str(student_id))
        return allocate_student_credit(student_id=student_id, using=using, today=today)
