# billing/models/document_sequence.py

from django.db import models


class DocumentSequence(models.Model):
    """
    Monotonic counter backing receipt / invoice numbering.

    key examples:
    - "RCP-202401"  (receipts issued in January 2024)
    - "INV-202401"

    Incremented only under SELECT ... FOR UPDATE (see billing.services.numbering).
    """

    key = models.CharField(max_length=32, unique=True)
    last_value = models.PositiveBigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["key"]

    def __str__(self):
        return f"{self.key} = {self.last_value}"
