# billing/tests/test_allocation.py

from datetime import date

from django.db import connection, transaction
from django.test import TestCase, override_settings
from django.test.utils import CaptureQueriesContext

from billing.models import Invoice, Payment, PaymentAllocation
from billing.services.allocation import open_invoices_for_student, plan_allocation
from billing.services.exceptions import (
    FutureDate,
    InvalidAmount,
    InvoiceNotFound,
    InvoiceNotOpen,
    OverpaymentRejected,
    StudentNotFound,
)
from billing.services.payment_service import (
    apply_student_credit,
    record_payment,
    refund_payment,
    student_credit_balance,
)
from billing.tests.helpers import TODAY, make_invoice, make_student


def _credit_policy():
    return override_settings(
        BILLING={
            "CURRENCY_CODE": "PKR",
            "OVERPAYMENT_POLICY": "credit",
            "MAX_CHAIN_LENGTH": 120,
            "DEFAULT_DUE_DAYS": 7,
        }
    )


class AllocationTests(TestCase):
    """
    Tests for payment allocation.

    GUARANTEES:
    - Full payment settles the invoice
    - FIFO by due date exhausts the oldest obligation first
    - sum(allocations) never exceeds the payment
    - amount_paid + balance_due == total
    """

    def setUp(self):
        self.student = make_student()

    # ======================================================
    # SINGLE INVOICE
    # ======================================================

    def test_full_payment_marks_invoice_paid(self):
        invoice = make_invoice(self.student, 9000, due_date=date(2024, 1, 15))

        result = record_payment(
            student_id=self.student.pk,
            amount=9000,
            method="cash",
            payment_date=TODAY,
            today=TODAY,
        )

        invoice.refresh_from_db()
        self.assertEqual(invoice.balance_due, 0)
        self.assertEqual(invoice.amount_paid, 9000)
        self.assertEqual(invoice.status, Invoice.STATUS_PAID)

        self.assertEqual(len(result.allocations), 1)
        self.assertEqual(result.allocations[0].amount, 9000)
        self.assertEqual(result.allocations[0].invoice_id, invoice.pk)
        self.assertEqual(result.unapplied_amount, 0)

    def test_partial_payment_keeps_invoice_open(self):
        invoice = make_invoice(self.student, 9000, due_date=date(2024, 1, 15))

        record_payment(
            student_id=self.student.pk,
            amount=4000,
            method="bank_transfer",
            today=TODAY,
        )

        invoice.refresh_from_db()
        self.assertEqual(invoice.amount_paid, 4000)
        self.assertEqual(invoice.balance_due, 5000)
        self.assertEqual(invoice.status, Invoice.STATUS_SENT)
        self.assertEqual(invoice.amount_paid + invoice.balance_due, invoice.total)

    # ======================================================
    # FIFO
    # ======================================================

    def test_untargeted_payment_allocates_oldest_due_first(self):
        invoice_a = make_invoice(self.student, 5000, due_date=date(2024, 1, 5))
        invoice_b = make_invoice(self.student, 3000, due_date=date(2024, 1, 10))

        result = record_payment(
            student_id=self.student.pk,
            amount=6000,
            method="cash",
            today=TODAY,
        )

        invoice_a.refresh_from_db()
        invoice_b.refresh_from_db()

        amounts = {a.invoice_id: a.amount for a in result.allocations}
        self.assertEqual(amounts, {invoice_a.pk: 5000, invoice_b.pk: 1000})

        self.assertEqual(invoice_a.balance_due, 0)
        self.assertEqual(invoice_a.status, Invoice.STATUS_PAID)

        self.assertEqual(invoice_b.balance_due, 2000)
        # due 2024-01-10, today 2024-01-08
        self.assertEqual(invoice_b.status, Invoice.STATUS_SENT)

    def test_fifo_uses_issue_date_to_break_due_date_ties(self):
        later = make_invoice(
            self.student, 3000, due_date=date(2024, 1, 20), issue_date=date(2024, 1, 3)
        )
        earlier = make_invoice(
            self.student, 3000, due_date=date(2024, 1, 20), issue_date=date(2024, 1, 2)
        )

        result = record_payment(
            student_id=self.student.pk, amount=3000, method="cash", today=TODAY
        )

        self.assertEqual([a.invoice_id for a in result.allocations], [earlier.pk])
        later.refresh_from_db()
        self.assertEqual(later.balance_due, 3000)

    def test_overdue_status_is_kept_for_partially_paid_late_invoice(self):
        invoice = make_invoice(self.student, 5000, due_date=date(2024, 1, 5))
        self.assertEqual(invoice.status, Invoice.STATUS_OVERDUE)

        record_payment(student_id=self.student.pk, amount=1000, method="cash", today=TODAY)

        invoice.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.STATUS_OVERDUE)
        self.assertEqual(invoice.balance_due, 4000)

    def test_plan_allocation_is_greedy_and_bounded(self):
        a = Invoice(balance_due=500)
        b = Invoice(balance_due=300)

        plan = plan_allocation(600, [a, b])

        self.assertEqual([amount for _, amount in plan.lines], [500, 100])
        self.assertEqual(plan.unapplied, 0)
        self.assertEqual(plan.allocated, 600)

    # ======================================================
    # TARGETED
    # ======================================================

    def test_targeted_payment_only_touches_target(self):
        older = make_invoice(self.student, 5000, due_date=date(2024, 1, 5))
        target = make_invoice(self.student, 3000, due_date=date(2024, 1, 10))

        record_payment(
            student_id=self.student.pk,
            invoice_id=target.pk,
            amount=3000,
            method="card",
            today=TODAY,
        )

        older.refresh_from_db()
        target.refresh_from_db()
        self.assertEqual(older.balance_due, 5000)
        self.assertEqual(target.status, Invoice.STATUS_PAID)

    def test_targeted_invoice_of_other_student_is_not_found(self):
        other = make_student(roll_number="S-002", first_name="Bilal")
        foreign = make_invoice(other, 3000, due_date=date(2024, 1, 10))

        with self.assertRaises(InvoiceNotFound):
            record_payment(
                student_id=self.student.pk,
                invoice_id=foreign.pk,
                amount=1000,
                method="cash",
                today=TODAY,
            )
        self.assertEqual(Payment.objects.count(), 0)

    def test_draft_invoice_cannot_receive_payment(self):
        draft = make_invoice(self.student, 3000, due_date=date(2024, 1, 10), draft=True)

        with self.assertRaises(InvoiceNotOpen):
            record_payment(
                student_id=self.student.pk,
                invoice_id=draft.pk,
                amount=1000,
                method="cash",
                today=TODAY,
            )

    # ======================================================
    # VALIDATION
    # ======================================================

    def test_non_positive_amount_rejected(self):
        make_invoice(self.student, 3000, due_date=date(2024, 1, 10))

        for amount in (0, -100):
            with self.assertRaises(InvalidAmount):
                record_payment(
                    student_id=self.student.pk, amount=amount, method="cash", today=TODAY
                )
        self.assertEqual(Payment.objects.count(), 0)

    def test_future_payment_date_rejected(self):
        with self.assertRaises(FutureDate):
            record_payment(
                student_id=self.student.pk,
                amount=100,
                method="cash",
                payment_date=date(2024, 1, 9),
                today=TODAY,
            )

    def test_unknown_student_rejected(self):
        with self.assertRaises(StudentNotFound):
            record_payment(
                student_id="00000000-0000-0000-0000-000000000000",
                amount=100,
                method="cash",
                today=TODAY,
            )

    # ======================================================
    # OVERPAYMENT POLICY
    # ======================================================

    def test_strict_policy_rejects_overpayment_and_persists_nothing(self):
        invoice = make_invoice(self.student, 3000, due_date=date(2024, 1, 10))

        with self.assertRaises(OverpaymentRejected):
            record_payment(
                student_id=self.student.pk,
                invoice_id=invoice.pk,
                amount=5000,
                method="cash",
                today=TODAY,
            )

        invoice.refresh_from_db()
        self.assertEqual(invoice.balance_due, 3000)
        self.assertEqual(Payment.objects.count(), 0)
        self.assertEqual(PaymentAllocation.objects.count(), 0)

    def test_strict_policy_rejects_payment_with_nothing_owed(self):
        with self.assertRaises(OverpaymentRejected):
            record_payment(student_id=self.student.pk, amount=500, method="cash", today=TODAY)

    def test_credit_policy_keeps_remainder_as_student_credit(self):
        invoice = make_invoice(self.student, 3000, due_date=date(2024, 1, 10))

        with _credit_policy():
            result = record_payment(
                student_id=self.student.pk,
                amount=5000,
                method="cash",
                today=TODAY,
            )

        invoice.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.STATUS_PAID)
        self.assertEqual(result.unapplied_amount, 2000)
        self.assertEqual(sum(a.amount for a in result.allocations), 3000)
        self.assertEqual(student_credit_balance(student_id=self.student.pk), 2000)

    def test_credit_is_consumed_by_next_invoice(self):
        with _credit_policy():
            record_payment(student_id=self.student.pk, amount=2500, method="cash", today=TODAY)
            self.assertEqual(student_credit_balance(student_id=self.student.pk), 2500)

            invoice = make_invoice(self.student, 4000, due_date=date(2024, 1, 20))

        invoice.refresh_from_db()
        self.assertEqual(invoice.amount_paid, 2500)
        self.assertEqual(invoice.balance_due, 1500)
        self.assertEqual(student_credit_balance(student_id=self.student.pk), 0)

    def test_apply_student_credit_is_noop_without_credit(self):
        make_invoice(self.student, 4000, due_date=date(2024, 1, 20))

        created = apply_student_credit(student_id=self.student.pk, today=TODAY)

        self.assertEqual(created, [])

    # ======================================================
    # INVARIANTS
    # ======================================================

    def test_allocations_never_exceed_payment(self):
        make_invoice(self.student, 1000, due_date=date(2024, 1, 5))
        make_invoice(self.student, 1000, due_date=date(2024, 1, 6))
        make_invoice(self.student, 1000, due_date=date(2024, 1, 7))

        result = record_payment(student_id=self.student.pk, amount=2500, method="cash", today=TODAY)

        self.assertEqual(sum(a.amount for a in result.allocations), 2500)
        for invoice in Invoice.objects.all():
            self.assertEqual(invoice.amount_paid + invoice.balance_due, invoice.total)
            self.assertGreaterEqual(invoice.balance_due, 0)


def _invoice_lock_orderings(queries):
    """
    ORDER BY clauses of the row-locking invoice SELECTs (pk IN (...), no aggregate).
    """
    orderings = []
    for query in queries:
        sql = query["sql"]
        if not sql.startswith("SELECT") or 'FROM "billing_invoice"' not in sql:
            continue
        if '"billing_invoice"."id" IN (' not in sql or "GROUP BY" in sql or "ORDER BY" not in sql:
            continue
        orderings.append(sql.rsplit("ORDER BY", 1)[1].split(" FOR UPDATE")[0].strip())
    return orderings


class InvoiceLockOrderTests(TestCase):
    """
    Every path that locks invoice rows locks them in primary-key order.
    """

    def setUp(self):
        self.student = make_student()
        self.later = make_invoice(self.student, 3000, due_date=date(2024, 1, 20))
        self.older = make_invoice(self.student, 2000, due_date=date(2024, 1, 5))

    def test_untargeted_payment_and_refund_lock_in_the_same_order(self):
        with CaptureQueriesContext(connection) as record_ctx:
            result = record_payment(
                student_id=self.student.pk, amount=2500, method="cash", today=TODAY
            )
        with CaptureQueriesContext(connection) as refund_ctx:
            refund_payment(payment_id=result.payment.pk, today=TODAY)

        record_orderings = _invoice_lock_orderings(record_ctx.captured_queries)
        refund_orderings = _invoice_lock_orderings(refund_ctx.captured_queries)

        self.assertEqual(record_orderings, ['"billing_invoice"."id" ASC'])
        self.assertEqual(refund_orderings, record_orderings)
        for query in record_ctx.captured_queries:
            self.assertNotIn('ORDER BY "billing_invoice"."due_date"', query["sql"])

        # allocation itself is still oldest-obligation first
        self.assertEqual(
            [a.invoice_id for a in result.allocations], [self.older.pk, self.later.pk]
        )
        self.assertEqual([a.amount for a in result.allocations], [2000, 500])

    def test_open_invoices_are_sorted_fifo_after_locking(self):
        with transaction.atomic():
            invoices = open_invoices_for_student(self.student.pk)

        self.assertEqual([inv.pk for inv in invoices], [self.older.pk, self.later.pk])

    def test_settled_invoices_are_not_returned(self):
        record_payment(
            student_id=self.student.pk,
            amount=2000,
            method="cash",
            invoice_id=self.older.pk,
            today=TODAY,
        )

        with transaction.atomic():
            invoices = open_invoices_for_student(self.student.pk)

        self.assertEqual([inv.pk for inv in invoices], [self.later.pk])
