# billing/services/allocation.py

"""
ALLOCATION ENGINE

Decides which invoice(s) absorb a payment and by how much, then
recomputes the affected invoice balances.

Targeting:
- targeted payment   -> min(amount, invoice.balance_due) to that invoice
- untargeted payment -> student's open invoices, oldest obligation first:
                        due_date ASC, issue_date ASC, created_at ASC
                        (greedy: exhaust one invoice before touching the next)

Leftover money follows the deployment's overpayment policy
(settings.BILLING["OVERPAYMENT_POLICY"]):
- strict: rejected (OverpaymentRejected), nothing persists
- credit: stays unapplied on the payment as student credit

Concurrency:
- invoice rows are locked SELECT ... FOR UPDATE in primary-key order
  before planning
- every balance write is a compare-and-set on Invoice.version
  (StaleInvoice if another writer got there first)

All functions here expect to run inside the caller's transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS
from django.db.models import BigIntegerField, F, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from billing.models import Invoice, Payment, PaymentAllocation
from billing.services.exceptions import (
    InvoiceNotFound,
    LedgerIntegrityError,
    OverpaymentRejected,
    StaleInvoice,
)
from billing.services.invoice_lifecycle import ensure_can_receive_money, resolve_status

POLICY_STRICT = "strict"
POLICY_CREDIT = "credit"

POLICIES = (POLICY_STRICT, POLICY_CREDIT)

FIFO_ORDER = ("due_date", "issue_date", "created_at", "pk")


# ============================================================
# RESULT TYPES
# ============================================================


@dataclass(frozen=True)
class AllocationPlan:
    lines: tuple[tuple[Invoice, int], ...]
    unapplied: int

    @property
    def allocated(self) -> int:
        return sum(amount for _, amount in self.lines)


@dataclass
class AllocationResult:
    payment: Payment
    allocations: list[PaymentAllocation] = field(default_factory=list)
    unapplied_amount: int = 0


# ============================================================
# POLICY
# ============================================================


def get_overpayment_policy() -> str:
    policy = settings.BILLING.get("OVERPAYMENT_POLICY", POLICY_STRICT)
    return policy if policy in POLICIES else POLICY_STRICT


def enforce_overpayment_policy(*, plan: AllocationPlan, amount: int, policy: str, student_id):
    if plan.unapplied > 0 and policy == POLICY_STRICT:
        raise OverpaymentRejected(
            f"Payment of {amount} exceeds the {plan.allocated} that can be allocated; "
            f"{plan.unapplied} would be left over.",
            student_id=str(student_id),
            allocatable=plan.allocated,
            unapplied=plan.unapplied,
        )


# ============================================================
# TARGET SELECTION (LOCKING)
# ============================================================


def lock_invoices(invoice_ids: Iterable, *, using=DEFAULT_DB_ALIAS) -> list[Invoice]:
    """
    Lock invoices in primary-key order. Every path that locks invoice rows
    goes through here.
    """
    return list(
        Invoice.objects.using(using)
        .select_for_update()
        .filter(pk__in=list(invoice_ids))
        .order_by("pk")
    )


def open_invoices_for_student(student_id, *, using=DEFAULT_DB_ALIAS, lock: bool = True) -> list[Invoice]:
    """
    Open invoices with a balance, oldest obligation first.

    Rows are locked in primary-key order (same as lock_invoices) and then
    sorted by FIFO_ORDER in Python.
    """
    qs = Invoice.objects.using(using).filter(
        student_id=student_id,
        status__in=Invoice.OPEN_STATUSES,
        balance_due__gt=0,
    )
    if lock:
        candidates = lock_invoices(qs.order_by().values_list("pk", flat=True), using=using)
        # re-check after the lock; a concurrent writer may have settled one
        invoices = [inv for inv in candidates if inv.is_open]
    else:
        invoices = list(qs)
    invoices.sort(key=fifo_key)
    return invoices


def fifo_key(invoice: Invoice):
    return tuple(getattr(invoice, name) for name in FIFO_ORDER)


def select_allocation_targets(*, student_id, invoice_id=None, using=DEFAULT_DB_ALIAS) -> list[Invoice]:
    if invoice_id is None:
        return open_invoices_for_student(student_id, using=using)

    locked = lock_invoices([invoice_id], using=using)
    if not locked or locked[0].student_id != student_id:
        raise InvoiceNotFound(
            f"Invoice {invoice_id} not found for this student",
            invoice_id=str(invoice_id),
            student_id=str(student_id),
        )

    invoice = locked[0]
    ensure_can_receive_money(invoice)
    return [invoice]


# ============================================================
# PLANNING (PURE)
# ============================================================


def plan_allocation(amount: int, invoices: Iterable[Invoice]) -> AllocationPlan:
    """
    Greedy allocation over invoices in the given order.
    """
    remaining = amount
    lines = []

    for invoice in invoices:
        if remaining <= 0:
            break
        take = min(remaining, invoice.balance_due)
        if take <= 0:
            continue
        lines.append((invoice, take))
        remaining -= take

    return AllocationPlan(lines=tuple(lines), unapplied=remaining)


# ============================================================
# BALANCE RECOMPUTATION
# ============================================================


def active_allocated_total(*, invoice_id, using=DEFAULT_DB_ALIAS) -> int:
    return PaymentAllocation.objects.using(using).filter(
        invoice_id=invoice_id, is_reversed=False
    ).aggregate(
        s=Coalesce(Sum("amount"), 0, output_field=BigIntegerField())
    )["s"]


def write_invoice_balance(invoice: Invoice, *, fields: dict, using=DEFAULT_DB_ALIAS) -> Invoice:
    """
    Compare-and-set write of balance-related invoice columns.
    """
    updated = (
        Invoice.objects.using(using)
        .filter(pk=invoice.pk, version=invoice.version)
        .update(version=F("version") + 1, updated_at=timezone.now(), **fields)
    )
    if updated != 1:
        raise StaleInvoice(
            f"Invoice {invoice.invoice_number} was modified concurrently; re-fetch and retry.",
            invoice_id=str(invoice.pk),
            expected_version=invoice.version,
        )

    for name, value in fields.items():
        setattr(invoice, name, value)
    invoice.version += 1
    return invoice


def recompute_invoice(invoice: Invoice, *, using=DEFAULT_DB_ALIAS, today=None) -> Invoice:
    """
    amount_paid := sum(active allocations); balance_due := total - amount_paid;
    status re-derived.
    """
    today = today or timezone.localdate()
    paid = active_allocated_total(invoice_id=invoice.pk, using=using)
    balance = invoice.total - paid

    if paid < 0 or balance < 0:
        raise LedgerIntegrityError(
            f"Invoice {invoice.invoice_number} would be over-allocated "
            f"(total={invoice.total}, allocated={paid})",
            invoice_id=str(invoice.pk),
        )

    return write_invoice_balance(
        invoice,
        fields={
            "amount_paid": paid,
            "balance_due": balance,
            "status": resolve_status(invoice=invoice, balance_due=balance, today=today),
        },
        using=using,
    )


# ============================================================
# APPLY / REVERSE
# ============================================================


def apply_plan(*, payment: Payment, plan: AllocationPlan, using=DEFAULT_DB_ALIAS, today=None) -> list[PaymentAllocation]:
    now = timezone.now()
    allocations = []

    for invoice, amount in plan.lines:
        allocation = PaymentAllocation(
            payment=payment,
            invoice=invoice,
            amount=amount,
            allocated_at=now,
        )
        allocation.save(using=using)
        recompute_invoice(invoice, using=using, today=today)
        allocations.append(allocation)

    return allocations


def unapplied_amount(payment: Payment, *, using=DEFAULT_DB_ALIAS) -> int:
    if payment.status != Payment.STATUS_COMPLETED:
        return 0
    allocated = PaymentAllocation.objects.using(using).filter(
        payment_id=payment.pk, is_reversed=False
    ).aggregate(
        s=Coalesce(Sum("amount"), 0, output_field=BigIntegerField())
    )["s"]
    return payment.amount - allocated


def reverse_payment_allocations(*, payment: Payment, using=DEFAULT_DB_ALIAS, today=None) -> list[PaymentAllocation]:
    """
    Mark every active allocation of the payment reversed and recompute the
    invoices they touched (paid -> sent/overdue where applicable).
    """
    active = list(
        PaymentAllocation.objects.using(using)
        .filter(payment_id=payment.pk, is_reversed=False)
        .order_by("allocated_at", "pk")
    )
    if not active:
        return []

    invoices = lock_invoices({a.invoice_id for a in active}, using=using)

    now = timezone.now()
    for allocation in active:
        allocation.is_reversed = True
        allocation.reversed_at = now
        allocation.save(using=using, update_fields=["is_reversed", "reversed_at"])

    for invoice in invoices:
        recompute_invoice(invoice, using=using, today=today)

    return active
