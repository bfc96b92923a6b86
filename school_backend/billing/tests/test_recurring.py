# billing/tests/test_recurring.py

from datetime import date

from django.test import TestCase, override_settings

from billing.models import Invoice
from billing.services.exceptions import (
    ChainTooLong,
    LedgerValidationError,
    RecurringAlreadyGenerated,
)
from billing.services.invoice_service import apply_adjustment
from billing.services.recurring_service import (
    generate_due_recurring_invoices,
    generate_next_recurring_invoice,
    invoice_chain,
    next_billing_period,
)
from billing.tests.helpers import make_invoice, make_student, make_user


class RecurringInvoiceTests(TestCase):
    """
    Tests for recurring invoice chains.

    GUARANTEES:
    - One successor per invoice
    - Chains are walked iteratively, oldest first
    - Chain length is bounded
    """

    def setUp(self):
        self.student = make_student()
        self.teacher = make_user("teacher@example.com", "teacher")
        self.january = make_invoice(
            self.student,
            8000,
            teacher=self.teacher,
            issue_date=date(2024, 1, 1),
            due_date=date(2024, 1, 10),
            billing_period_start=date(2024, 1, 1),
            billing_period_end=date(2024, 1, 31),
            kind=Invoice.KIND_RECURRING,
            today=date(2024, 1, 1),
        )

    def test_successor_covers_next_month_and_copies_items(self):
        february = generate_next_recurring_invoice(
            invoice_id=self.january.pk, today=date(2024, 2, 1)
        )

        self.assertEqual(february.parent_invoice_id, self.january.pk)
        self.assertEqual(february.kind, Invoice.KIND_RECURRING)
        self.assertEqual(february.billing_period_start, date(2024, 2, 1))
        self.assertEqual(february.billing_period_end, date(2024, 2, 29))
        self.assertEqual(february.issue_date, date(2024, 2, 1))
        self.assertEqual(february.due_date, date(2024, 2, 10))
        self.assertEqual(february.total, 8000)

        item = february.items.get()
        self.assertEqual(item.teacher_id, self.teacher.pk)

    def test_one_time_adjustments_are_not_carried_forward(self):
        apply_adjustment(
            invoice_id=self.january.pk,
            kind="discount",
            amount=-1000,
            reason="Welcome discount",
            today=date(2024, 1, 2),
        )

        february = generate_next_recurring_invoice(
            invoice_id=self.january.pk, today=date(2024, 2, 1)
        )

        self.assertEqual(february.discount, 0)
        self.assertEqual(february.total, 8000)

    def test_second_successor_rejected(self):
        generate_next_recurring_invoice(invoice_id=self.january.pk, today=date(2024, 2, 1))

        with self.assertRaises(RecurringAlreadyGenerated):
            generate_next_recurring_invoice(invoice_id=self.january.pk, today=date(2024, 2, 1))

    def test_one_off_invoice_has_no_successor(self):
        one_off = make_invoice(self.student, 100, due_date=date(2024, 1, 10))

        with self.assertRaises(LedgerValidationError):
            generate_next_recurring_invoice(invoice_id=one_off.pk)

    def test_chain_is_returned_oldest_first_from_any_member(self):
        february = generate_next_recurring_invoice(invoice_id=self.january.pk, today=date(2024, 2, 1))
        march = generate_next_recurring_invoice(invoice_id=february.pk, today=date(2024, 3, 1))

        expected = [self.january.pk, february.pk, march.pk]
        for member in (self.january, february, march):
            chain = invoice_chain(invoice_id=member.pk)
            self.assertEqual([inv.pk for inv in chain], expected)

    def test_chain_length_is_bounded(self):
        february = generate_next_recurring_invoice(invoice_id=self.january.pk, today=date(2024, 2, 1))
        generate_next_recurring_invoice(invoice_id=february.pk, today=date(2024, 3, 1))

        with self.assertRaises(ChainTooLong):
            invoice_chain(invoice_id=february.pk, max_length=2)

    def test_generation_stops_at_configured_chain_limit(self):
        february = generate_next_recurring_invoice(invoice_id=self.january.pk, today=date(2024, 2, 1))

        with override_settings(
            BILLING={
                "CURRENCY_CODE": "PKR",
                "OVERPAYMENT_POLICY": "strict",
                "MAX_CHAIN_LENGTH": 2,
                "DEFAULT_DUE_DAYS": 7,
            }
        ):
            with self.assertRaises(ChainTooLong):
                generate_next_recurring_invoice(invoice_id=february.pk, today=date(2024, 3, 1))

    def test_month_end_periods(self):
        jan_31 = Invoice(
            issue_date=date(2024, 1, 1),
            billing_period_start=date(2024, 1, 1),
            billing_period_end=date(2024, 1, 31),
        )
        self.assertEqual(next_billing_period(jan_31), (date(2024, 2, 1), date(2024, 2, 29)))

        no_period = Invoice(issue_date=date(2024, 12, 15))
        self.assertEqual(next_billing_period(no_period), (date(2025, 1, 1), date(2025, 1, 31)))

    def test_batch_generation_skips_chains_with_successor(self):
        generated = generate_due_recurring_invoices(as_of=date(2024, 2, 1))
        self.assertEqual(len(generated), 1)

        again = generate_due_recurring_invoices(as_of=date(2024, 2, 1))
        self.assertEqual(again, [])
