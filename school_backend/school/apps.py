# school/apps.py

"""
SCHOOL APP CONFIG

Boundary entities the ledger bills against:
- Student (who owes)
- Subject (what is taught, and by which teacher)

Enrollment, attendance and gradebook live outside this backend.
"""

from django.apps import AppConfig


class SchoolConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "school"
    verbose_name = "School"
