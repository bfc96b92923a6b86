# billing/tests/test_api.py

from datetime import timedelta

from django.db import connection
from django.test import TestCase
from django.test.utils import CaptureQueriesContext
from django.utils import timezone
from rest_framework.test import APIClient

from billing.models import Invoice, Payment
from billing.services.payment_service import record_payment
from billing.tests.helpers import make_invoice, make_student, make_user


class BillingApiTests(TestCase):
    """
    Tests for the billing HTTP surface.

    GUARANTEES:
    - Display amounts in, minor units stored
    - Ledger errors map to 400 / 404 / 409
    - Capabilities gate every endpoint
    """

    def setUp(self):
        self.client = APIClient()
        self.bursar = make_user("bursar@example.com", "finance")
        self.parent = make_user("parent@example.com", "parent")
        self.student = make_student()
        self.today = timezone.localdate()

    def _invoice(self, amount=9000):
        return make_invoice(
            self.student,
            amount,
            issue_date=self.today,
            due_date=self.today + timedelta(days=10),
            today=self.today,
        )

    # ======================================================
    # AUTH
    # ======================================================

    def test_anonymous_denied(self):
        res = self.client.get("/api/billing/invoices/")
        self.assertEqual(res.status_code, 401)

    def test_parent_role_has_no_billing_access(self):
        self.client.force_authenticate(self.parent)
        res = self.client.get("/api/billing/invoices/")
        self.assertEqual(res.status_code, 403)

    # ======================================================
    # INVOICES
    # ======================================================

    def test_create_invoice_converts_display_amounts(self):
        self.client.force_authenticate(self.bursar)

        res = self.client.post(
            "/api/billing/invoices/",
            {
                "student_id": str(self.student.pk),
                "line_items": [
                    {"description": "Tuition", "quantity": 1, "unit_price": "1500.50"},
                ],
                "due_date": str(self.today + timedelta(days=7)),
            },
            format="json",
        )

        self.assertEqual(res.status_code, 201, res.data)
        self.assertEqual(res.data["total"], "1500.50")
        self.assertEqual(res.data["total_minor"], 150050)
        self.assertEqual(res.data["status"], "sent")
        self.assertEqual(len(res.data["items"]), 1)

        invoice = Invoice.objects.get(pk=res.data["id"])
        self.assertEqual(invoice.created_by, self.bursar)

    def test_sub_minor_precision_rejected(self):
        self.client.force_authenticate(self.bursar)

        res = self.client.post(
            "/api/billing/invoices/",
            {
                "student_id": str(self.student.pk),
                "line_items": [{"description": "Tuition", "unit_price": "10.005"}],
            },
            format="json",
        )
        self.assertEqual(res.status_code, 400)

    def test_list_filters_by_status(self):
        self.client.force_authenticate(self.bursar)
        self._invoice()

        res = self.client.get("/api/billing/invoices/", {"status": "paid"})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["count"], 0)

        res = self.client.get("/api/billing/invoices/", {"status": "sent"})
        self.assertEqual(res.data["count"], 1)

    def test_adjustment_endpoint(self):
        self.client.force_authenticate(self.bursar)
        invoice = self._invoice()

        res = self.client.post(
            f"/api/billing/invoices/{invoice.pk}/adjustments/",
            {"kind": "discount", "amount": "-10.00", "reason": "Sibling"},
            format="json",
        )
        self.assertEqual(res.status_code, 201, res.data)
        self.assertEqual(res.data["total_minor"], 8000)

        res = self.client.post(
            f"/api/billing/invoices/{invoice.pk}/adjustments/",
            {"kind": "discount", "amount": "10.00", "reason": "Wrong sign"},
            format="json",
        )
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["code"], "INVALID_ADJUSTMENT")

    # ======================================================
    # PAYMENTS
    # ======================================================

    def test_record_payment_returns_receipt_with_allocations(self):
        self.client.force_authenticate(self.bursar)
        invoice = self._invoice()

        res = self.client.post(
            "/api/billing/payments/",
            {"student_id": str(self.student.pk), "amount": "90.00", "method": "cash"},
            format="json",
        )

        self.assertEqual(res.status_code, 201, res.data)
        self.assertTrue(res.data["receipt_number"].startswith("RCP-"))
        self.assertEqual(res.data["amount_minor"], 9000)
        self.assertEqual(res.data["unapplied_amount"], "0.00")
        self.assertEqual(len(res.data["allocations"]), 1)
        self.assertEqual(res.data["allocations"][0]["invoice_number"], invoice.invoice_number)

        invoice.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.STATUS_PAID)

    def test_zero_payment_is_400(self):
        self.client.force_authenticate(self.bursar)
        self._invoice()

        res = self.client.post(
            "/api/billing/payments/",
            {"student_id": str(self.student.pk), "amount": "0", "method": "cash"},
            format="json",
        )
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["code"], "INVALID_AMOUNT")

    def test_overpayment_is_409_under_strict_policy(self):
        self.client.force_authenticate(self.bursar)
        self._invoice(amount=1000)

        res = self.client.post(
            "/api/billing/payments/",
            {"student_id": str(self.student.pk), "amount": "50.00", "method": "cash"},
            format="json",
        )
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.data["error"]["code"], "OVERPAYMENT_REJECTED")
        self.assertFalse(res.data["error"]["retryable"])
        self.assertEqual(Payment.objects.count(), 0)

    def test_unknown_invoice_is_404(self):
        self.client.force_authenticate(self.bursar)

        res = self.client.post(
            "/api/billing/payments/",
            {
                "student_id": str(self.student.pk),
                "invoice_id": "00000000-0000-0000-0000-000000000000",
                "amount": "10.00",
                "method": "cash",
            },
            format="json",
        )
        self.assertEqual(res.status_code, 404)

    def test_refund_twice_is_409(self):
        self.client.force_authenticate(self.bursar)
        self._invoice()
        res = self.client.post(
            "/api/billing/payments/",
            {"student_id": str(self.student.pk), "amount": "90.00", "method": "cash"},
            format="json",
        )
        payment_id = res.data["id"]

        res = self.client.post(f"/api/billing/payments/{payment_id}/refund/", {"reason": "Bounced"}, format="json")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["status"], "refunded")
        self.assertTrue(res.data["allocations"][0]["is_reversed"])

        res = self.client.post(f"/api/billing/payments/{payment_id}/refund/", {}, format="json")
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.data["error"]["code"], "ALREADY_REFUNDED")

    def test_payment_list_unapplied_amounts_without_per_row_queries(self):
        self.client.force_authenticate(self.bursar)
        self._invoice(amount=9000)
        applied = record_payment(
            student_id=self.student.pk, amount=6000, method="cash", today=self.today
        ).payment
        partial = record_payment(
            student_id=self.student.pk, amount=5000, method="cash", policy="credit", today=self.today
        ).payment

        with CaptureQueriesContext(connection) as two_rows:
            res = self.client.get("/api/billing/payments/")
        self.assertEqual(res.status_code, 200)
        unapplied = {row["receipt_number"]: row["unapplied_amount"] for row in res.data["results"]}
        self.assertEqual(unapplied[applied.receipt_number], "0.00")
        self.assertEqual(unapplied[partial.receipt_number], "20.00")

        for _ in range(3):
            record_payment(
                student_id=self.student.pk, amount=1000, method="cash", policy="credit", today=self.today
            )

        with CaptureQueriesContext(connection) as five_rows:
            res = self.client.get("/api/billing/payments/")
        self.assertEqual(res.data["count"], 5)
        self.assertEqual(len(five_rows.captured_queries), len(two_rows.captured_queries))

    # ======================================================
    # STUDENT ACCOUNT
    # ======================================================

    def test_statement_endpoint(self):
        self.client.force_authenticate(self.bursar)
        self._invoice()

        res = self.client.get(f"/api/billing/students/{self.student.pk}/statement/")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["total_outstanding"], "90.00")
        self.assertEqual(len(res.data["entries"]), 1)

    def test_statement_unknown_student_is_404(self):
        self.client.force_authenticate(self.bursar)
        res = self.client.get("/api/billing/students/00000000-0000-0000-0000-000000000000/statement/")
        self.assertEqual(res.status_code, 404)
