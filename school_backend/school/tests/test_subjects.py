# school/tests/test_subjects.py

from datetime import date

from django.db import IntegrityError, transaction
from django.test import TestCase

from billing.services.invoice_service import create_invoice
from billing.services.payment_service import record_payment
from billing.tests.helpers import TODAY, make_student, make_subject, make_user
from payouts.services.revenue import revenue_base
from school.models import Subject


class SubjectTests(TestCase):
    def setUp(self):
        self.teacher = make_user("teacher@example.com", "teacher")
        self.replacement = make_user("replacement@example.com", "teacher")
        self.subject = make_subject("MTH-9", self.teacher, monthly_fee=6000, name="Mathematics")

    def test_reassigning_teacher_keeps_billed_revenue(self):
        student = make_student()
        create_invoice(
            student_id=student.pk,
            line_items=[{"subject_id": self.subject.pk}],
            issue_date=date(2024, 1, 1),
            due_date=date(2024, 1, 10),
            today=TODAY,
        )
        record_payment(student_id=student.pk, amount=6000, method="cash", today=TODAY)

        self.subject.teacher = self.replacement
        self.subject.save()

        period = {"period_start": date(2024, 1, 1), "period_end": date(2024, 1, 31)}
        self.assertEqual(revenue_base(teacher_id=self.teacher.pk, **period), 6000)
        self.assertEqual(revenue_base(teacher_id=self.replacement.pk, **period), 0)

    def test_negative_fee_rejected(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Subject.objects.create(code="BAD-1", name="Bad", monthly_fee=-1)
