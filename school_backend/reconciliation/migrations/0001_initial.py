"""
======================================================
PATH: reconciliation/migrations/0001_initial.py
======================================================
MIGRATION: CREATE DAILY CLOSE
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="DailyClose",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("close_date", models.DateField(unique=True)),
                ("expected_cash", models.BigIntegerField(default=0)),
                ("expected_bank", models.BigIntegerField(default=0)),
                ("actual_cash", models.BigIntegerField(default=0)),
                ("actual_bank", models.BigIntegerField(default=0)),
                ("variance", models.BigIntegerField(default=0)),
                ("is_locked", models.BooleanField(default=False)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "prepared_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="daily_closes_prepared",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "closed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="daily_closes_locked",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Daily Close",
                "verbose_name_plural": "Daily Closes",
                "ordering": ["-close_date"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("actual_cash__gte", 0), ("actual_bank__gte", 0)),
                        name="chk_daily_close_actuals_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("expected_cash__gte", 0), ("expected_bank__gte", 0)),
                        name="chk_daily_close_expected_non_negative",
                    ),
                ],
            },
        ),
    ]
