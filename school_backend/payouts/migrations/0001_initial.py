"""
======================================================
PATH: payouts/migrations/0001_initial.py
======================================================
MIGRATION: CREATE PAYOUT RULE
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
            name="PayoutRule",
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
                ("is_fixed", models.BooleanField(default=True)),
                (
                    "fixed_percentage",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True),
                ),
                (
                    "tier1_percentage",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True),
                ),
                ("tier1_threshold", models.BigIntegerField(blank=True, null=True)),
                (
                    "tier2_percentage",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True),
                ),
                ("effective_from", models.DateField()),
                ("effective_to", models.DateField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "teacher",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payout_rules",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payout_rules_created",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["teacher", "-effective_from", "-created_at"],
                "indexes": [
                    models.Index(
                        fields=["teacher", "effective_from"],
                        name="payout_rule_teacher_from_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("fixed_percentage__isnull", False), ("is_fixed", True)),
                            models.Q(
                                ("is_fixed", False),
                                ("tier1_percentage__isnull", False),
                                ("tier1_threshold__isnull", False),
                                ("tier2_percentage__isnull", False),
                            ),
                            _connector="OR",
                        ),
                        name="chk_payout_rule_shape",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("tier1_threshold__isnull", True),
                            ("tier1_threshold__gte", 0),
                            _connector="OR",
                        ),
                        name="chk_payout_rule_threshold_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("effective_to__isnull", True),
                            ("effective_to__gte", models.F("effective_from")),
                            _connector="OR",
                        ),
                        name="chk_payout_rule_window",
                    ),
                ],
            },
        ),
    ]
