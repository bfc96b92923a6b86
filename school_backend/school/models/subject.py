# school/models/subject.py

import uuid

from django.conf import settings
from django.db import models
from django.db.models import Q

User = settings.AUTH_USER_MODEL


class Subject(models.Model):
    """
    A taught subject / class offering.

    teacher:
    - the teacher whose payout is credited when fees for this subject are collected
    - invoice line items copy it at billing time, so later re-assignment
      does not move already-billed revenue between teachers
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    code = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=200)

    teacher = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="subjects",
    )

    monthly_fee = models.BigIntegerField(
        default=0,
        help_text="Default monthly fee in minor currency units.",
    )

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["code"]
        constraints = [
            models.CheckConstraint(
                condition=Q(monthly_fee__gte=0),
                name="chk_subject_monthly_fee_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.code} | {self.name}"
