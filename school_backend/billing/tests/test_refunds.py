# billing/tests/test_refunds.py

from datetime import date

from django.core.exceptions import ValidationError
from django.test import TestCase

from billing.models import Invoice, Payment, PaymentAllocation
from billing.services.exceptions import AlreadyRefunded, PaymentNotFound
from billing.services.payment_service import record_payment, refund_payment
from billing.tests.helpers import TODAY, make_invoice, make_student


class RefundTests(TestCase):
    """
    Tests for payment refunds.

    GUARANTEES:
    - Allocations are reversed, never deleted
    - Invoice balances and statuses are re-derived
    - A payment can be refunded once
    """

    def setUp(self):
        self.student = make_student()
        self.invoice = make_invoice(self.student, 9000, due_date=date(2024, 1, 15))
        self.payment = record_payment(
            student_id=self.student.pk,
            amount=9000,
            method="cash",
            today=TODAY,
        ).payment

    def test_refund_reverses_allocation_and_reopens_invoice(self):
        result = refund_payment(payment_id=self.payment.pk, reason="Duplicate deposit", today=TODAY)

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.balance_due, 9000)
        self.assertEqual(self.invoice.amount_paid, 0)
        self.assertEqual(self.invoice.status, Invoice.STATUS_SENT)

        self.assertEqual(result.payment.status, Payment.STATUS_REFUNDED)
        self.assertEqual(result.payment.refund_reason, "Duplicate deposit")
        self.assertEqual(len(result.reversed_allocations), 1)

        # audit trail kept
        allocation = PaymentAllocation.objects.get(payment=self.payment)
        self.assertTrue(allocation.is_reversed)
        self.assertIsNotNone(allocation.reversed_at)

    def test_refund_after_due_date_reopens_as_overdue(self):
        refund_payment(payment_id=self.payment.pk, today=date(2024, 1, 20))

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.STATUS_OVERDUE)

    def test_second_refund_fails(self):
        refund_payment(payment_id=self.payment.pk, today=TODAY)

        with self.assertRaises(AlreadyRefunded):
            refund_payment(payment_id=self.payment.pk, today=TODAY)

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.balance_due, 9000)

    def test_unknown_payment(self):
        with self.assertRaises(PaymentNotFound):
            refund_payment(payment_id="00000000-0000-0000-0000-000000000000", today=TODAY)

    def test_refund_spanning_several_invoices(self):
        second = make_invoice(self.student, 2000, due_date=date(2024, 1, 20))
        third = make_invoice(self.student, 2000, due_date=date(2024, 1, 25))

        payment = record_payment(
            student_id=self.student.pk, amount=3000, method="bank_transfer", today=TODAY
        ).payment

        result = refund_payment(payment_id=payment.pk, today=TODAY)

        self.assertEqual(len(result.reversed_allocations), 2)
        second.refresh_from_db()
        third.refresh_from_db()
        self.assertEqual(second.balance_due, 2000)
        self.assertEqual(third.balance_due, 2000)

    # ======================================================
    # MODEL GUARDS
    # ======================================================

    def test_refunded_payment_is_frozen(self):
        refund_payment(payment_id=self.payment.pk, today=TODAY)

        payment = Payment.objects.get(pk=self.payment.pk)
        payment.notes = "edited later"
        with self.assertRaises(ValidationError):
            payment.save()

    def test_payment_amount_is_immutable(self):
        payment = Payment.objects.get(pk=self.payment.pk)
        payment.amount = 1
        with self.assertRaises(ValidationError):
            payment.save()

    def test_ledger_rows_cannot_be_deleted(self):
        with self.assertRaises(ValidationError):
            Payment.objects.get(pk=self.payment.pk).delete()
        with self.assertRaises(ValidationError):
            PaymentAllocation.objects.get(payment=self.payment).delete()
        with self.assertRaises(ValidationError):
            Invoice.objects.get(pk=self.invoice.pk).delete()
