# school/models/student.py

import uuid

from django.db import models


class Student(models.Model):
    """
    A billable student.

    Roll-number assignment is owned by the enrollment system; we only store it.
    Students are deactivated, never deleted, once they have ledger history.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    roll_number = models.CharField(max_length=32, unique=True)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True, default="")
    guardian_name = models.CharField(max_length=200, blank=True, default="")

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["roll_number"]

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self):
        return f"{self.roll_number} | {self.full_name}"
