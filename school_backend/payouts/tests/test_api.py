# payouts/tests/test_api.py

from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from billing.services.payment_service import record_payment
from billing.tests.helpers import make_invoice, make_student, make_user
from payouts.models import PayoutRule
from payouts.services.rules import upsert_payout_rule


class PayoutApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.today = timezone.localdate()
        self.month_start = self.today - timedelta(days=30)

        self.teacher = make_user("teacher@example.com", "teacher")
        self.other_teacher = make_user("other@example.com", "teacher")
        self.bursar = make_user("bursar@example.com", "finance")
        self.manager = make_user("manager@example.com", "management")

        upsert_payout_rule(
            teacher_id=self.teacher.pk, fixed_percentage=70, effective_from=self.month_start
        )

        student = make_student()
        make_invoice(
            student,
            21000,
            teacher=self.teacher,
            issue_date=self.today,
            due_date=self.today + timedelta(days=10),
            today=self.today,
        )
        record_payment(student_id=student.pk, amount=21000, method="cash", today=self.today)

    def _payout_url(self, teacher):
        return f"/api/payouts/teachers/{teacher.pk}/payout/"

    def _period(self):
        return {"period_start": str(self.month_start), "period_end": str(self.today)}

    def test_teacher_sees_own_payout(self):
        self.client.force_authenticate(self.teacher)

        res = self.client.get(self._payout_url(self.teacher), self._period())

        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["revenue_base"], "210.00")
        self.assertEqual(res.data["payout"], "147.00")
        self.assertEqual(res.data["payout_minor"], 14700)
        self.assertTrue(res.data["rule_applied"]["is_fixed"])

    def test_teacher_cannot_see_other_teacher(self):
        self.client.force_authenticate(self.other_teacher)
        res = self.client.get(self._payout_url(self.teacher), self._period())
        self.assertEqual(res.status_code, 403)

    def test_finance_sees_any_teacher(self):
        self.client.force_authenticate(self.bursar)

        res = self.client.get(self._payout_url(self.other_teacher), self._period())

        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.data["error"]["code"], "NO_PAYOUT_RULE")

    def test_missing_period_is_400(self):
        self.client.force_authenticate(self.bursar)
        res = self.client.get(self._payout_url(self.teacher))
        self.assertEqual(res.status_code, 400)

    def test_manager_adds_tiered_rule(self):
        self.client.force_authenticate(self.manager)

        res = self.client.post(
            "/api/payouts/rules/",
            {
                "teacher_id": str(self.teacher.pk),
                "effective_from": str(self.today),
                "tier1_percentage": "70",
                "tier1_threshold": "150.00",
                "tier2_percentage": "60",
            },
            format="json",
        )

        self.assertEqual(res.status_code, 201, res.data)
        self.assertFalse(res.data["is_fixed"])
        self.assertEqual(res.data["tier1_threshold"], "150.00")
        self.assertEqual(PayoutRule.objects.get(pk=res.data["id"]).tier1_threshold, 15000)

        res = self.client.get("/api/payouts/rules/", {"teacher": str(self.teacher.pk)})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(len(res.data), 2)
        self.assertTrue(res.data[0]["is_active"])
        self.assertFalse(res.data[1]["is_active"])

    def test_stale_effective_from_is_409(self):
        self.client.force_authenticate(self.manager)

        res = self.client.post(
            "/api/payouts/rules/",
            {
                "teacher_id": str(self.teacher.pk),
                "effective_from": str(self.month_start),
                "fixed_percentage": "50",
            },
            format="json",
        )
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.data["error"]["code"], "PAYOUT_RULE_NOT_LATER")

    def test_finance_cannot_manage_rules(self):
        self.client.force_authenticate(self.bursar)
        res = self.client.post(
            "/api/payouts/rules/",
            {
                "teacher_id": str(self.teacher.pk),
                "effective_from": str(self.today),
                "fixed_percentage": "50",
            },
            format="json",
        )
        self.assertEqual(res.status_code, 403)

    def test_history_requires_teacher(self):
        self.client.force_authenticate(self.bursar)
        res = self.client.get("/api/payouts/rules/")
        self.assertEqual(res.status_code, 400)
