# payouts/apps.py

"""
PAYOUTS APP CONFIG

Payout Engine:
- teacher payout rules (fixed / tiered), history kept as rows
- period payout computed from collected, allocated revenue
"""

from django.apps import AppConfig


class PayoutsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "payouts"
    verbose_name = "Teacher Payouts"
