# reconciliation/apps.py

"""
RECONCILIATION APP CONFIG

Daily Close Engine:
- expected cash / bank totals derived from the day's payments
- staff-counted actuals, variance, and a one-way lock
"""

from django.apps import AppConfig


class ReconciliationConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "reconciliation"
    verbose_name = "Daily Close"
