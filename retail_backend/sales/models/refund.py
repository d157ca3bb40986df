# sales/models/refund.py

"""
REFUND (APPEND-ONLY)

One refund event against a completed sale. A sale may receive several
partial refunds until every line is fully refunded.

Design guarantees:
- Append-only (no updates, no deletes)
- Money comes from the SaleLine snapshots, never from current batch prices
- Over-refunding is prevented at service layer
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from .sale import Sale

User = settings.AUTH_USER_MODEL


class Refund(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sale = models.ForeignKey(
        Sale,
        on_delete=models.PROTECT,
        related_name="refunds",
    )

    reason = models.TextField(blank=True, default="")

    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )

    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="refunds",
    )

    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["sale", "created_at"], name="refund_sale_created_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Refund records are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Refund records are immutable and cannot be deleted")

    def __str__(self):
        return f"Refund {self.id} | {self.total_amount}"
