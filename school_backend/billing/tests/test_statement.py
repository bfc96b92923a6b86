# billing/tests/test_statement.py

from datetime import date, datetime, timezone as dt_timezone

from django.test import TestCase, override_settings

from billing.models import InvoiceAdjustment, Payment
from billing.services.exceptions import StudentNotFound
from billing.services.invoice_service import apply_adjustment
from billing.services.payment_service import record_payment, refund_payment
from billing.services.statement_service import student_statement
from billing.tests.helpers import TODAY, make_invoice, make_student


class StudentStatementTests(TestCase):
    def setUp(self):
        self.student = make_student()

    def test_summary_and_running_balance(self):
        invoice = make_invoice(self.student, 5000, due_date=date(2024, 1, 5))
        make_invoice(self.student, 3000, due_date=date(2024, 1, 10))
        apply_adjustment(
            invoice_id=invoice.pk, kind="late_fee", amount=200, reason="Late", today=TODAY
        )
        record_payment(student_id=self.student.pk, amount=6000, method="cash", today=TODAY)

        statement = student_statement(student_id=self.student.pk)

        self.assertEqual(statement.total_invoiced, 8200)
        self.assertEqual(statement.total_paid, 6000)
        self.assertEqual(statement.total_outstanding, 2200)
        self.assertEqual(statement.credit_balance, 0)
        self.assertEqual(statement.closing_balance, 2200)

        types = [e.entry_type for e in statement.entries]
        self.assertEqual(types.count("invoice"), 2)
        self.assertIn("late_fee", types)
        self.assertIn("payment", types)
        self.assertEqual(statement.entries[-1].balance, 2200)

        # original invoice line shows the pre-adjustment amount
        first = next(e for e in statement.entries if e.reference == invoice.invoice_number and e.entry_type == "invoice")
        self.assertEqual(first.debit, 5000)

    def test_refund_shows_as_debit(self):
        make_invoice(self.student, 4000, due_date=date(2024, 1, 10))
        payment = record_payment(
            student_id=self.student.pk, amount=4000, method="cash", today=TODAY
        ).payment
        refund_payment(payment_id=payment.pk, reason="Cheque bounced", today=TODAY)

        statement = student_statement(student_id=self.student.pk)

        self.assertEqual(statement.total_paid, 0)
        self.assertEqual(statement.total_outstanding, 4000)
        refund = statement.entries[-1]
        self.assertEqual(refund.entry_type, "refund")
        self.assertEqual(refund.debit, 4000)
        self.assertEqual(refund.balance, 4000)

    def test_drafts_are_excluded(self):
        make_invoice(self.student, 4000, due_date=date(2024, 1, 10), draft=True)

        statement = student_statement(student_id=self.student.pk)

        self.assertEqual(statement.total_invoiced, 0)
        self.assertEqual(statement.entries, [])

    def test_unknown_student(self):
        with self.assertRaises(StudentNotFound):
            student_statement(student_id="00000000-0000-0000-0000-000000000000")

    @override_settings(TIME_ZONE="Asia/Karachi")
    def test_entry_dates_use_local_calendar_day(self):
        invoice = make_invoice(self.student, 4000, due_date=date(2024, 1, 10))
        apply_adjustment(
            invoice_id=invoice.pk, kind="late_fee", amount=200, reason="Late", today=TODAY
        )
        payment = record_payment(
            student_id=self.student.pk, amount=4200, method="cash", today=TODAY
        ).payment
        refund_payment(payment_id=payment.pk, reason="Bounced", today=TODAY)

        # 20:00 UTC on the 8th is 01:00 on the 9th in Karachi
        late_evening_utc = datetime(2024, 1, 8, 20, 0, tzinfo=dt_timezone.utc)
        InvoiceAdjustment.objects.filter(invoice=invoice).update(applied_at=late_evening_utc)
        Payment.objects.filter(pk=payment.pk).update(refunded_at=late_evening_utc)

        statement = student_statement(student_id=self.student.pk)

        by_type = {e.entry_type: e for e in statement.entries}
        self.assertEqual(by_type["late_fee"].entry_date, date(2024, 1, 9))
        self.assertEqual(by_type["refund"].entry_date, date(2024, 1, 9))
