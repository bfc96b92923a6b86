# billing/tests/helpers.py

"""
Shared fixtures for ledger tests (plain functions, no factories library).
"""

from datetime import date

from django.contrib.auth import get_user_model

from billing.services.invoice_service import create_invoice
from school.models import Student, Subject

User = get_user_model()

TODAY = date(2024, 1, 8)


def make_student(roll_number="S-001", first_name="Ayesha", last_name="Khan"):
    return Student.objects.create(
        roll_number=roll_number,
        first_name=first_name,
        last_name=last_name,
    )


def make_user(email, role):
    return User.objects.create_user(email=email, password="pass", role=role)


def make_subject(code, teacher, monthly_fee=0, name=None):
    return Subject.objects.create(
        code=code,
        name=name or code,
        teacher=teacher,
        monthly_fee=monthly_fee,
    )


def make_invoice(student, amount, *, due_date, issue_date=None, teacher=None, today=TODAY, **kwargs):
    line = {"description": "Tuition", "quantity": 1, "unit_price": amount}
    if teacher is not None:
        line["teacher_id"] = teacher.pk

    return create_invoice(
        student_id=student.pk,
        line_items=[line],
        issue_date=issue_date or date(due_date.year, due_date.month, 1),
        due_date=due_date,
        today=today,
        **kwargs,
    )
