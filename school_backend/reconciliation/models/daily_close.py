# reconciliation/models/daily_close.py

"""
======================================================
PATH: reconciliation/models/daily_close.py
======================================================
DAILY CLOSE MODEL

One row per business day:

    NoRecord -> Draft (is_locked=False) -> Locked (is_locked=True)

variance = (actual_cash + actual_bank) - (expected_cash + expected_bank)
    > 0 surplus, < 0 shortage, 0 exact match

Audit guarantees:
- Exactly one row per close_date
- Expected figures on a locked row are the snapshot taken at lock time
- Locked rows can never be saved again
- Never deleted
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

User = settings.AUTH_USER_MODEL


class DailyClose(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    close_date = models.DateField(unique=True)

    expected_cash = models.BigIntegerField(default=0)
    expected_bank = models.BigIntegerField(default=0)
    actual_cash = models.BigIntegerField(default=0)
    actual_bank = models.BigIntegerField(default=0)
    variance = models.BigIntegerField(default=0)

    is_locked = models.BooleanField(default=False)

    prepared_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="daily_closes_prepared",
    )
    closed_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="daily_closes_locked",
    )
    closed_at = models.DateTimeField(null=True, blank=True)

    notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-close_date"]
        constraints = [
            models.CheckConstraint(
                condition=Q(actual_cash__gte=0) & Q(actual_bank__gte=0),
                name="chk_daily_close_actuals_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(expected_cash__gte=0) & Q(expected_bank__gte=0),
                name="chk_daily_close_expected_non_negative",
            ),
        ]
        verbose_name = "Daily Close"
        verbose_name_plural = "Daily Closes"

    @property
    def expected_total(self) -> int:
        return self.expected_cash + self.expected_bank

    @property
    def actual_total(self) -> int:
        return self.actual_cash + self.actual_bank

    def save(self, *args, **kwargs):
        if not self._state.adding:
            previous = (
                DailyClose.objects.using(kwargs.get("using") or self._state.db)
                .filter(pk=self.pk)
                .first()
            )
            if previous is not None and previous.is_locked:
                raise ValidationError(
                    f"Daily close for {previous.close_date} is locked and cannot change."
                )

        if self.variance != self.actual_total - self.expected_total:
            raise ValidationError("variance must equal actual total - expected total.")

        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Daily close records are permanent and cannot be deleted")

    def __str__(self):
        state = "locked" if self.is_locked else "draft"
        return f"DailyClose {self.close_date} ({state}) variance={self.variance}"
