# payouts/models/payout_rule.py

"""
======================================================
PATH: payouts/models/payout_rule.py
======================================================
PAYOUT RULE MODEL

One row per rule version. A change of rate is a NEW row with a later
effective_from; the row it replaces is deactivated and gets
effective_to = new.effective_from - 1 day.

    fixed:   payout = revenue * fixed_percentage / 100
    tiered:  payout = min(revenue, T) * tier1 / 100
                    + max(0, revenue - T) * tier2 / 100

Audit guarantees:
- Rates, threshold and effective_from are write-once
- The only permitted change is deactivation (is_active True -> False,
  effective_to stamped)
- Never deleted
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

User = settings.AUTH_USER_MODEL


class PayoutRule(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    teacher = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name="payout_rules",
    )

    is_fixed = models.BooleanField(default=True)

    fixed_percentage = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    tier1_percentage = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    tier1_threshold = models.BigIntegerField(null=True, blank=True)
    tier2_percentage = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)

    effective_from = models.DateField()
    effective_to = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payout_rules_created",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["teacher", "-effective_from", "-created_at"]
        indexes = [
            models.Index(fields=["teacher", "effective_from"], name="payout_rule_teacher_from_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(is_fixed=True, fixed_percentage__isnull=False)
                    | Q(
                        is_fixed=False,
                        tier1_percentage__isnull=False,
                        tier1_threshold__isnull=False,
                        tier2_percentage__isnull=False,
                    )
                ),
                name="chk_payout_rule_shape",
            ),
            models.CheckConstraint(
                condition=Q(tier1_threshold__isnull=True) | Q(tier1_threshold__gte=0),
                name="chk_payout_rule_threshold_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(effective_to__isnull=True) | Q(effective_to__gte=models.F("effective_from")),
                name="chk_payout_rule_window",
            ),
        ]

    IMMUTABLE_FIELDS = (
        "teacher_id",
        "is_fixed",
        "fixed_percentage",
        "tier1_percentage",
        "tier1_threshold",
        "tier2_percentage",
        "effective_from",
    )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            previous = (
                PayoutRule.objects.using(kwargs.get("using") or self._state.db)
                .filter(pk=self.pk)
                .first()
            )
            if previous is not None:
                for name in self.IMMUTABLE_FIELDS:
                    if getattr(previous, name) != getattr(self, name):
                        raise ValidationError(f"Payout rule field '{name}' cannot change.")
                if not previous.is_active and self.is_active:
                    raise ValidationError("A deactivated payout rule cannot be re-activated.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Payout rules are kept for history and cannot be deleted")

    def covers(self, day) -> bool:
        if self.effective_from > day:
            return False
        return self.effective_to is None or self.effective_to >= day

    def describe(self) -> str:
        if self.is_fixed:
            return f"fixed {self.fixed_percentage}%"
        return (
            f"tiered {self.tier1_percentage}% up to {self.tier1_threshold}, "
            f"{self.tier2_percentage}% above"
        )

    def __str__(self):
        return f"PayoutRule({self.teacher_id}, {self.describe()}, from {self.effective_from})"
