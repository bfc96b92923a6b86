# billing/tests/test_commands.py

from datetime import date
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from billing.models import Invoice
from billing.services.payment_service import record_payment
from billing.tests.helpers import TODAY, make_invoice, make_student, make_user
from payouts.services.rules import upsert_payout_rule


class LedgerCommandTests(TestCase):
    def setUp(self):
        self.student = make_student()
        self.teacher = make_user("teacher@example.com", "teacher")
        self.invoice = make_invoice(
            self.student, 9000, teacher=self.teacher, due_date=date(2024, 1, 10)
        )

    def test_integrity_check_passes_on_clean_ledger(self):
        record_payment(student_id=self.student.pk, amount=4000, method="cash", today=TODAY)

        out = StringIO()
        call_command("check_ledger_integrity", "--strict", stdout=out, stderr=StringIO())

        self.assertIn("VALIDATION PASSED", out.getvalue())

    def test_integrity_check_fails_strict_on_drift(self):
        Invoice.objects.filter(pk=self.invoice.pk).update(amount_paid=1, balance_due=8999)

        err = StringIO()
        with self.assertRaises(SystemExit):
            call_command("check_ledger_integrity", "--strict", stdout=StringIO(), stderr=err)

        self.assertIn(self.invoice.invoice_number, err.getvalue())

    def test_refresh_statuses(self):
        out = StringIO()
        call_command("refresh_invoice_statuses", "--as-of", "2024-01-11", stdout=out)

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.STATUS_OVERDUE)
        self.assertIn("1 invoice(s)", out.getvalue())

    def test_bad_date_argument(self):
        with self.assertRaises(CommandError):
            call_command("refresh_invoice_statuses", "--as-of", "11/01/2024", stdout=StringIO())
        with self.assertRaises(CommandError):
            call_command("generate_recurring_invoices", "--as-of", "soon", stdout=StringIO())

    def test_generate_recurring(self):
        make_invoice(
            self.student,
            5000,
            issue_date=date(2024, 1, 1),
            due_date=date(2024, 1, 10),
            billing_period_start=date(2024, 1, 1),
            billing_period_end=date(2024, 1, 31),
            kind=Invoice.KIND_RECURRING,
        )

        out = StringIO()
        call_command("generate_recurring_invoices", "--as-of", "2024-02-01", stdout=out)

        self.assertIn("Generated 1 recurring invoice(s)", out.getvalue())

    def test_compute_payouts_report(self):
        upsert_payout_rule(
            teacher_id=self.teacher.pk, fixed_percentage=70, effective_from=date(2024, 1, 1)
        )
        record_payment(student_id=self.student.pk, amount=9000, method="cash", today=TODAY)

        out = StringIO()
        call_command("compute_payouts", "--from", "2024-01-01", "--to", "2024-01-31", stdout=out)

        self.assertIn("payout=63.00", out.getvalue())
        self.assertIn("Computed 1 payout(s)", out.getvalue())
